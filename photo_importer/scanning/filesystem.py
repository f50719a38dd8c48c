import os
import logging
from pathlib import Path
from typing import Iterator, List

from ..exceptions import ConfigurationError
from ..models import CandidateFile

class DiskScanner:
    def iter_candidates(self, root: Path) -> Iterator[CandidateFile]:
        """
        Yields a CandidateFile for every regular file under root that has an
        extension. Extension filtering against the media set is left to the
        pipeline so unsupported files can be reported.
        """
        for path in self._iter_files(root):
            ext = path.suffix
            if not ext:
                continue
            yield CandidateFile(source_path=path.absolute(), extension=ext.lower())

    def _iter_files(self, root: Path) -> Iterator[Path]:
        """Depth-first walker using os.scandir for speed."""
        stack = [root]
        while stack:
            current = stack.pop()

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except (OSError, PermissionError):
                logging.warning(f"Permission denied: {current}")
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            files = []
            for e in entries:
                if e.is_dir(follow_symlinks=False):
                    dirs.append(Path(e.path))
                elif e.is_file(follow_symlinks=False):
                    files.append(Path(e.path))

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)

            for f in files:
                yield f


def ensure_dir_exists(path: Path):
    """Creates path if missing. A non-directory already at path is fatal."""
    if path.exists():
        if not path.is_dir():
            raise ConfigurationError(f"{path} is not a directory")
    else:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"Cannot create {path}: {e}") from e


def check_roots(intake_root: Path, archive_root: Path):
    """
    Validates both roots without creating anything. The archive must not
    overlap the intake, or archived files would be re-scanned as duplicates
    of themselves and deleted.
    """
    for path in (intake_root, archive_root):
        if path.exists() and not path.is_dir():
            raise ConfigurationError(f"{path} is not a directory")

    intake = intake_root.resolve()
    archive = archive_root.resolve()
    if intake == archive or intake in archive.parents or archive in intake.parents:
        raise ConfigurationError(f"Intake {intake} and archive {archive} must not contain each other")


def remove_empty_dirs(root: Path) -> List[Path]:
    """
    Removes every empty directory below root, deepest first, so parents
    emptied by their children's removal go too. root itself is kept.
    """
    removed = []
    for dirpath, _, _ in sorted(os.walk(root), key=lambda w: w[0].count(os.sep), reverse=True):
        path = Path(dirpath)
        if path == root:
            continue
        try:
            if not any(path.iterdir()):
                path.rmdir()
                removed.append(path)
        except OSError as e:
            logging.warning(f"Could not prune {path}: {e}")
    return removed
