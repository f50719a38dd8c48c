import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from tqdm import tqdm

from . import config
from .config import ImportConfig
from .database.index import DigestIndex
from .exceptions import CorruptionDetected, DatabaseError
from .metadata.extract import MetadataExtractor
from .metadata.integrity import is_image_corrupted
from .models import CandidateFile, ImportOutcome, ImportResult, ImportSummary, MediaMetadata
from .organization.mover import FileMover
from .organization.rules import PathAllocator
from .scanning.filesystem import DiskScanner, check_roots, ensure_dir_exists, remove_empty_dirs
from .scanning.hasher import FileHasher

class ImportPipeline:
    """
    Moves every unique media file from the intake root into the archive.

    Each candidate is handled by one worker thread:
      digest -> fast duplicate check -> corruption probe -> metadata
      -> [storage lock: re-check -> allocate -> move -> index]

    The storage lock is the only point where workers wait on each other. It
    guards the index and the archive tree together: a path allocated inside it
    stays free until the move, and a digest re-checked inside it cannot be
    archived by another worker in between.
    """

    def __init__(self,
                 import_config: ImportConfig,
                 metadata: Optional[MetadataExtractor] = None,
                 corruption_probe: Optional[Callable[[Path], bool]] = None,
                 hasher: Optional[FileHasher] = None):
        self.config = import_config

        check_roots(import_config.intake_root, import_config.archive_root)
        ensure_dir_exists(import_config.intake_root)
        ensure_dir_exists(import_config.archive_root)

        self.index = DigestIndex(import_config.digest_db_path)
        self.allocator = PathAllocator(import_config.archive_root)
        self.mover = FileMover(import_config.archive_root)
        self.scanner = DiskScanner()
        self.hasher = hasher or FileHasher()
        self.metadata = metadata or MetadataExtractor()
        self.corruption_probe = corruption_probe or is_image_corrupted

        self.storage_lock = threading.Lock()

    def run(self) -> ImportSummary:
        """
        Processes every candidate under the intake root, then prunes the
        directories left empty. Per-file errors end up in the summary.
        """
        start = time.monotonic()
        summary = ImportSummary()
        intake_root = self.config.intake_root

        logging.info(f"Importing {intake_root} -> {self.config.archive_root} "
                     f"({self.config.concurrency} workers)")

        with ThreadPoolExecutor(max_workers=self.config.concurrency) as executor:
            futures = {
                executor.submit(self.process_file_safely, candidate): candidate
                for candidate in self.scanner.iter_candidates(intake_root)
            }
            for future in tqdm(as_completed(futures), total=len(futures), desc="Importing", disable=None):
                summary.add(future.result())

        for path in remove_empty_dirs(intake_root):
            logging.debug(f"Removed empty directory {path}")

        summary.elapsed_sec = time.monotonic() - start
        return summary

    def process_file_safely(self, candidate: CandidateFile) -> ImportResult:
        """Per-file error boundary: nothing raised here reaches sibling files."""
        try:
            return self.process_file(candidate)
        except CorruptionDetected as e:
            logging.error(str(e))
            return ImportResult(candidate, ImportOutcome.CORRUPTED, error=str(e))
        except Exception as e:
            logging.error(f"{candidate.source_path}: {e}")
            return ImportResult(candidate, ImportOutcome.FAILED, error=str(e))

    def process_file(self, candidate: CandidateFile) -> ImportResult:
        src = candidate.source_path
        ext = candidate.extension

        if ext not in self.config.media_extensions:
            self._report(f"{src} not in media extensions list")
            return ImportResult(candidate, ImportOutcome.SKIPPED, error="unsupported extension")

        digest = self.hasher.compute_digest(src)

        # Fast path, outside the lock. Not authoritative; re-checked below.
        if self.index.exists(digest):
            self._remove_duplicate(src)
            return ImportResult(candidate, ImportOutcome.DUPLICATE, digest=digest)

        if (self.config.check_corruption
                and ext in config.CORRUPTION_CHECK_EXTS
                and self.corruption_probe(src)):
            raise CorruptionDetected(f"{src} is corrupted")

        metadata = self._resolve_metadata(src, ext)

        with self.storage_lock:
            if self.index.exists(digest):
                self._remove_duplicate(src)
                return ImportResult(candidate, ImportOutcome.DUPLICATE, digest=digest)

            rel_dest = self.allocator.allocate(metadata, src, ext)
            self.mover.move_into_archive(src, rel_dest)
            self._report(f"{rel_dest.as_posix()}")

            try:
                self.index.insert(rel_dest, digest)
            except DatabaseError as e:
                # The file is archived but unindexed; a later run will not
                # recognise its content.
                logging.error(f"{src}: archived to {rel_dest.as_posix()} but not indexed: {e}")
                return ImportResult(candidate, ImportOutcome.FAILED, digest=digest,
                                    archived_path=rel_dest.as_posix(), error=str(e))

        return ImportResult(candidate, ImportOutcome.ARCHIVED, digest=digest,
                            archived_path=rel_dest.as_posix())

    def lookup(self, paths: Iterable[Path]) -> List[Tuple[Path, str, Optional[str]]]:
        """Digests each path and reports where (if anywhere) its content is archived."""
        found = []
        for path in paths:
            digest = self.hasher.compute_digest(path)
            found.append((path, digest, self.index.lookup(digest)))
        return found

    def close(self):
        self.index.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _resolve_metadata(self, src: Path, ext: str) -> MediaMetadata:
        metadata = self.metadata.resolve(src, config.EXT_TO_TYPE.get(ext))
        if metadata.capture_time is None:
            metadata.capture_time = datetime.fromtimestamp(src.stat().st_mtime)
        return metadata

    def _remove_duplicate(self, src: Path):
        self._report(f"{src} is a duplicate")
        self.mover.remove_duplicate(src)

    def _report(self, message: str):
        """Per-file progress lines; shown only in verbose mode."""
        logging.log(logging.INFO if self.config.verbose else logging.DEBUG, message)
