from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional


class MediaType(Enum):
    PHOTO = 'photo'
    SCREENSHOT = 'screenshot'
    VIDEO = 'video'
    UNKNOWN = 'unknown'

    @property
    def folder(self) -> str:
        """Top-level archive folder for this type."""
        if self is MediaType.UNKNOWN:
            return 'unknown'
        return f"{self.value}s"

    @classmethod
    def from_hint(cls, hint: Optional[str]) -> 'MediaType':
        try:
            return cls(hint)
        except ValueError:
            return cls.UNKNOWN


class ImportOutcome(Enum):
    ARCHIVED = 'archived'
    DUPLICATE = 'duplicate'
    SKIPPED = 'skipped'
    CORRUPTED = 'corrupted'
    FAILED = 'failed'


@dataclass(frozen=True)
class DigestRecord:
    digest: str
    archived_path: str


@dataclass
class MediaMetadata:
    """
    Best-effort capture metadata for a single file.
    Never persisted; only folded into the archive path.
    """
    media_type: MediaType
    capture_time: Optional[datetime] = None
    camera_model: Optional[str] = None


@dataclass(frozen=True)
class CandidateFile:
    source_path: Path
    extension: str          # lowercase, with leading dot


@dataclass
class ImportResult:
    candidate: CandidateFile
    outcome: ImportOutcome
    digest: Optional[str] = None
    archived_path: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ImportSummary:
    results: List[ImportResult] = field(default_factory=list)
    elapsed_sec: float = 0.0

    def add(self, result: ImportResult):
        self.results.append(result)

    def counts(self) -> Dict[ImportOutcome, int]:
        totals = {outcome: 0 for outcome in ImportOutcome}
        for r in self.results:
            totals[r.outcome] += 1
        return totals

    def by_outcome(self, outcome: ImportOutcome) -> List[ImportResult]:
        return [r for r in self.results if r.outcome is outcome]

    @property
    def failures(self) -> List[ImportResult]:
        return [r for r in self.results if r.outcome in (ImportOutcome.FAILED, ImportOutcome.CORRUPTED)]
