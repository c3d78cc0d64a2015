"""Data model shared by the PixelPorter components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from ...utils.checksum import ChecksumService
from ...utils.media_types import MediaKind, classify


class DateProvenance(str, Enum):
    """Where a resolved timestamp came from."""
    METADATA = "metadata"
    FILENAME = "filename"
    FILESYSTEM = "filesystem"
    NONE = "none"


class Outcome(str, Enum):
    COPIED = "copied"
    COPIED_AND_VERIFIED = "copied_and_verified"
    SKIPPED = "skipped"
    CONFLICT_BACKED_UP = "conflict_backed_up"
    FAILED = "failed"


# Only these allow the source to be removed in move mode
SUCCESS_OUTCOMES = frozenset({Outcome.COPIED, Outcome.COPIED_AND_VERIFIED})


@dataclass(frozen=True)
class ResolvedDate:
    """A canonical timestamp plus its provenance."""
    timestamp: Optional[datetime]
    provenance: DateProvenance
    source_tag: str = ""

    @classmethod
    def none(cls) -> ResolvedDate:
        return cls(None, DateProvenance.NONE)

    @property
    def has_date(self) -> bool:
        return self.timestamp is not None

    def __str__(self) -> str:
        if self.timestamp is None:
            return "no date"
        return f"{self.timestamp:%Y-%m-%d %H:%M:%S} ({self.provenance.value})"


@dataclass
class SourceFile:
    """A candidate file found in the source tree."""
    path: Path
    size: int
    kind: MediaKind
    _content_hash: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_path(cls, path: Path) -> SourceFile:
        path = Path(path)
        return cls(path=path, size=path.stat().st_size, kind=classify(path))

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def extension(self) -> str:
        return self.path.suffix

    @property
    def is_supported(self) -> bool:
        return self.kind is not MediaKind.UNSUPPORTED

    def content_hash(self, checksum: ChecksumService) -> str:
        """Digest used for duplicate decisions, computed once per run."""
        if self._content_hash is None:
            self._content_hash = checksum.hash(self.path)
        return self._content_hash


@dataclass(frozen=True)
class DestinationPlan:
    """Where one file is going inside one destination."""
    target_dir: Path
    base_name: str
    suffix: int
    final_name: str
    duplicate_of: Optional[Path] = None

    @property
    def target_path(self) -> Path:
        return self.target_dir / self.final_name


@dataclass(frozen=True)
class DestinationSpec:
    """
    One configured destination root.

    ``rename`` routes names through the FilenameComposer; a flat destination
    keeps original filenames at its root.
    """
    root: Path
    label: str = "primary"
    rename: bool = True
    organize_by_date: bool = False
    verify: bool = False
    skip_same_size: bool = False


@dataclass
class DestinationResult:
    label: str
    outcome: Outcome
    target_path: Optional[Path] = None
    reason: str = ""
    backup_path: Optional[Path] = None
    error_kind: str = ""
    verified: bool = False
    dry_run: bool = False


@dataclass
class IngestionResult:
    """Per-file event published once the file is done."""
    source_path: Path
    outcome: Outcome
    resolved_date: ResolvedDate = field(default_factory=ResolvedDate.none)
    destinations: list[DestinationResult] = field(default_factory=list)
    reason: str = ""
    remark: str = ""
    source_deleted: bool = False

    @property
    def destination_paths(self) -> list[Path]:
        return [d.target_path for d in self.destinations if d.target_path is not None]

    @property
    def verified(self) -> bool:
        return self.outcome is Outcome.COPIED_AND_VERIFIED

    @staticmethod
    def combine(destinations: list[DestinationResult]) -> tuple[Outcome, str]:
        """Fold per-destination outcomes into the file's overall outcome."""
        outcomes = [d.outcome for d in destinations]
        if not outcomes:
            return Outcome.SKIPPED, "no destinations"
        if Outcome.FAILED in outcomes:
            reasons = [d.reason for d in destinations if d.outcome is Outcome.FAILED]
            return Outcome.FAILED, "; ".join(reasons)
        if all(o is Outcome.SKIPPED for o in outcomes):
            return Outcome.SKIPPED, "; ".join(d.reason for d in destinations)
        if Outcome.CONFLICT_BACKED_UP in outcomes:
            return Outcome.CONFLICT_BACKED_UP, ""
        written = [o for o in outcomes if o is not Outcome.SKIPPED]
        if all(o is Outcome.COPIED_AND_VERIFIED for o in written):
            return Outcome.COPIED_AND_VERIFIED, ""
        return Outcome.COPIED, ""


class PushResult:
    """Result of a push_media run."""
    def __init__(self):
        self.processed = 0
        self.copied = 0
        self.verified = 0
        self.skipped = 0
        self.unsupported = 0
        self.failed = 0
        self.conflicts = 0
        self.deleted = 0
        self.errors: list[str] = []
        self.results: list[IngestionResult] = []

    def record(self, result: IngestionResult) -> None:
        self.results.append(result)
        if result.outcome is Outcome.SKIPPED:
            self.skipped += 1
        elif result.outcome is Outcome.FAILED:
            self.failed += 1
            self.errors.append(f"{result.source_path.name}: {result.reason}")
        else:
            self.copied += 1
            if any(d.verified for d in result.destinations):
                self.verified += 1
            if result.outcome is Outcome.CONFLICT_BACKED_UP:
                self.conflicts += 1
        if result.source_deleted:
            self.deleted += 1

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def summary_rows(self) -> list[tuple[str, int]]:
        return [
            ("Processed", self.processed),
            ("Copied", self.copied),
            ("Verified", self.verified),
            ("Skipped", self.skipped),
            ("Unsupported", self.unsupported),
            ("Conflicts backed up", self.conflicts),
            ("Sources deleted", self.deleted),
            ("Failed", self.failed),
        ]
