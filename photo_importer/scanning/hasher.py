import hashlib
from pathlib import Path
from .. import config
from ..exceptions import FileHashError

class FileHasher:
    def __init__(self, chunk_size: int = config.HASH_CHUNK_SIZE):
        self.chunk_size = chunk_size

    def compute_digest(self, path: Path) -> str:
        """
        Streams the whole file through SHA-512 and returns the hex digest.
        Identical bytes give identical digests regardless of name or location.
        """
        h = hashlib.sha512()
        try:
            with open(path, 'rb') as f:
                while chunk := f.read(self.chunk_size):
                    h.update(chunk)
        except OSError as e:
            raise FileHashError(f"Cannot read {path}: {e}") from e
        return h.hexdigest()
