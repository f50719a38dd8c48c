from pathlib import Path, PurePath
from typing import Iterator

from .. import config
from ..exceptions import FilenameExhaustedError
from ..models import MediaMetadata

class PathAllocator:
    """
    Computes where a file goes inside the archive.

    Layout: {type folder}/{camera or 'unknown camera'}/{YYYY}/{MM}/{name}
    where name is the first free entry of candidate_names().

    The free-name check looks at the real archive directory, so allocate()
    must only be called while holding the pipeline's storage lock.
    """

    def __init__(self, archive_root: Path, max_suffix: int = config.MAX_NAME_SUFFIX):
        self.archive_root = archive_root
        self.max_suffix = max_suffix

    def destination_dir(self, metadata: MediaMetadata) -> PurePath:
        if metadata.capture_time is None:
            raise ValueError("capture_time is required; fall back to the file mtime before allocating")

        year_fmt, month_fmt = config.DATE_FOLDER_FORMAT
        return PurePath(
            metadata.media_type.folder,
            metadata.camera_model or config.UNKNOWN_CAMERA,
            metadata.capture_time.strftime(year_fmt),
            metadata.capture_time.strftime(month_fmt),
        )

    def candidate_names(self, metadata: MediaMetadata, source_stem: str, ext: str) -> Iterator[str]:
        """Yields the max_suffix + 2 candidate filenames in priority order."""
        stamp = metadata.capture_time.strftime(config.FILENAME_TIME_FORMAT)
        yield f"{stamp}{ext}"
        yield f"{stamp} {source_stem}{ext}"
        for i in range(1, self.max_suffix + 1):
            yield f"{stamp} {source_stem} {i}{ext}"

    def allocate(self, metadata: MediaMetadata, source_path: Path, ext: str) -> PurePath:
        """
        Returns the archive-relative path of the first candidate that does not exist yet.

        Raises:
            FilenameExhaustedError: all candidates are taken.
        """
        rel_dir = self.destination_dir(metadata)
        abs_dir = self.archive_root / rel_dir
        source_stem = source_path.name[:-len(ext)] if ext else source_path.stem

        for name in self.candidate_names(metadata, source_stem, ext):
            if not (abs_dir / name).exists():
                return rel_dir / name

        raise FilenameExhaustedError(
            f"Unable to store {source_path}, {self.max_suffix} filename limit exceeded in {rel_dir}"
        )
