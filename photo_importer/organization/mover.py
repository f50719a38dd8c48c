import shutil
import logging
from pathlib import Path

from ..exceptions import FileOperationError

class FileMover:
    def __init__(self, archive_root: Path):
        self.archive_root = archive_root

    def move_into_archive(self, src: Path, rel_dest: Path) -> Path:
        """
        Moves src to archive_root/rel_dest, creating folders as needed.
        On failure the source is left where it was.
        """
        dest = self.archive_root / rel_dest
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(src), str(dest))
        except OSError as e:
            raise FileOperationError(f"Failed to move {src} -> {dest}: {e}") from e
        return dest

    def remove_duplicate(self, path: Path):
        try:
            path.unlink()
        except FileNotFoundError:
            logging.debug(f"{path} already gone")
        except OSError as e:
            raise FileOperationError(f"Failed to remove duplicate {path}: {e}") from e
