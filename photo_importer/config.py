"""
Configuration constants and run settings for the photo importer.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet

# --- File Type Definitions ---
JPEG_EXTS = {'.jpg', '.jpeg'}
SCREENSHOT_EXTS = {'.png'}
VIDEO_EXTS = {'.mov', '.mp4', '.m4v'}

MEDIA_EXTS = frozenset(JPEG_EXTS | SCREENSHOT_EXTS | VIDEO_EXTS)

# Extension to media type hint
EXT_TO_TYPE = {}
for ext in JPEG_EXTS: EXT_TO_TYPE[ext] = 'photo'
for ext in SCREENSHOT_EXTS: EXT_TO_TYPE[ext] = 'screenshot'
for ext in VIDEO_EXTS: EXT_TO_TYPE[ext] = 'video'

# Only these go through the ImageMagick corruption probe
CORRUPTION_CHECK_EXTS = frozenset(JPEG_EXTS)

# --- Metadata Parsing ---
DATE_TAGS = [
    'EXIF DateTimeOriginal',
    'Image DateTime',
    'EXIF DateTimeDigitized',
]
MODEL_TAG = 'Image Model'

SCREENSHOT_MARKER = 'screenshot'

# --- Hashing ---
HASH_CHUNK_SIZE = 40960

# --- Archive Layout ---
DIGEST_DB_NAME = 'digests.sqlite'
UNKNOWN_CAMERA = 'unknown camera'
DATE_FOLDER_FORMAT = ('%Y', '%m')
FILENAME_TIME_FORMAT = '%Y-%m-%d %H-%M-%S'
MAX_NAME_SUFFIX = 10_000

# --- Defaults ---
INBOX_ENV = 'PHOTO_IMPORTER_INBOX'
STORAGE_ENV = 'PHOTO_IMPORTER_STORAGE'
DEFAULT_INBOX = Path.home() / 'photo-inbox'
DEFAULT_STORAGE = Path.home() / 'photo-storage'


def default_concurrency() -> int:
    """Half the available CPUs, never less than one worker."""
    return max(1, (os.cpu_count() or 2) // 2)


@dataclass
class ImportConfig:
    """
    Settings for a single import run.

    Passed explicitly into the pipeline instead of living in module globals.
    """
    intake_root: Path
    archive_root: Path
    concurrency: int = field(default_factory=default_concurrency)
    check_corruption: bool = True
    verbose: bool = False
    media_extensions: FrozenSet[str] = MEDIA_EXTS

    @property
    def digest_db_path(self) -> Path:
        return self.archive_root / DIGEST_DB_NAME
