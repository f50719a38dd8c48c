import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List

from . import config
from .config import ImportConfig
from .core import ImportPipeline
from .exceptions import ConfigurationError
from .reporting import ReportGenerator
from .scanning.filesystem import check_roots, ensure_dir_exists

def build_log_handlers(log_file: Path) -> List[logging.Handler]:
    """
    Everything goes to the log file. On the console, progress goes to stdout
    and warnings/failures go to stderr only.
    """
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.addFilter(lambda record: record.levelno < logging.WARNING)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)

    return [
        logging.FileHandler(log_file, encoding='utf-8'),
        stdout_handler,
        stderr_handler,
    ]

def setup_logging(archive_root: Path, verbose: bool):
    """Sets up logging to the console and to a file in the archive root."""
    log_level = logging.DEBUG if verbose else logging.INFO

    ensure_dir_exists(archive_root)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=build_log_handlers(archive_root / "importer.log")
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)
    logging.getLogger("PIL").setLevel(logging.WARNING)

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Photo Importer: move unique media from an inbox into a dated archive")

    p.add_argument("intake", type=Path, nargs="?",
                   default=Path(os.environ.get(config.INBOX_ENV, config.DEFAULT_INBOX)),
                   help=f"Drop folder to import from (default: ${config.INBOX_ENV} or ~/photo-inbox)")
    p.add_argument("archive", type=Path, nargs="?",
                   default=Path(os.environ.get(config.STORAGE_ENV, config.DEFAULT_STORAGE)),
                   help=f"Archive root (default: ${config.STORAGE_ENV} or ~/photo-storage)")

    p.add_argument("-j", "--jobs", type=int, default=config.default_concurrency(),
                   help="Number of worker threads (default: half the CPUs)")
    p.add_argument("--no-corruption-check", action="store_true",
                   help="Skip the ImageMagick corruption probe for JPEGs")
    p.add_argument("-v", "--verbose", action="store_true", help="Report every file and enable debug logging")
    p.add_argument("--report-csv", type=Path, default=None, help="Write a per-file outcome report to this CSV")
    p.add_argument("--lookup", type=Path, nargs="+", default=None, metavar="FILE",
                   help="Only check whether these files are already archived")

    args = p.parse_args(argv)
    if args.jobs < 1:
        p.error("--jobs must be at least 1")
    return args

def main(argv=None):
    args = parse_args(argv)

    intake_root = args.intake.expanduser().resolve()
    archive_root = args.archive.expanduser().resolve()

    try:
        # Validate before setup_logging creates the archive root
        check_roots(intake_root, archive_root)
        setup_logging(archive_root, args.verbose)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    logging.info("=== Photo Importer Started ===")
    logging.info(f"Intake:  {intake_root}")
    logging.info(f"Archive: {archive_root}")

    import_config = ImportConfig(
        intake_root=intake_root,
        archive_root=archive_root,
        concurrency=args.jobs,
        check_corruption=not args.no_corruption_check,
        verbose=args.verbose,
    )

    try:
        with ImportPipeline(import_config) as pipeline:
            if args.lookup:
                for path, digest, archived in pipeline.lookup(args.lookup):
                    status = f"archived as {archived}" if archived else "not archived"
                    print(f"{path}: {status} ({digest[:16]})")
                return

            summary = pipeline.run()

        reporter = ReportGenerator(summary)
        reporter.log_summary()
        if args.report_csv:
            reporter.write_csv(args.report_csv)
    except ConfigurationError as e:
        logging.error(f"Configuration error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logging.warning("Import interrupted by user.")
        sys.exit(1)
    except Exception:
        logging.exception("Fatal error during import.")
        sys.exit(1)

if __name__ == "__main__":
    main()
