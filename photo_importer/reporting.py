import csv
import logging
from pathlib import Path

from .models import ImportOutcome, ImportSummary

class ReportGenerator:
    HEADERS = [
        "Source Path",
        "Outcome",
        "Digest",
        "Archived Path",
        "Notes",
    ]

    def __init__(self, summary: ImportSummary):
        self.summary = summary

    def write_csv(self, output_csv: Path):
        """
        Writes one row per processed file, sorted by source path so that
        reports from repeated runs diff cleanly.
        """
        logging.info(f"Writing import report -> {output_csv}")

        rows = sorted(self.summary.results, key=lambda r: str(r.candidate.source_path))
        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(self.HEADERS)
            for r in rows:
                writer.writerow([
                    str(r.candidate.source_path),
                    r.outcome.value,
                    r.digest or "",
                    r.archived_path or "",
                    r.error or "",
                ])

        logging.info(f"Report complete. {len(rows)} files.")

    def log_summary(self):
        counts = self.summary.counts()
        logging.info(
            "Import finished: "
            + ", ".join(f"{counts[o]} {o.value}" for o in ImportOutcome)
        )
        for r in self.summary.failures:
            logging.warning(f"  {r.outcome.value}: {r.candidate.source_path} ({r.error})")
        log_elapsed(self.summary.elapsed_sec)


def log_elapsed(seconds: float):
    elapsed = int(seconds)
    logging.info(f"Elapsed time: {elapsed // 3600}h {(elapsed % 3600) // 60}m {elapsed % 60}s")
