"""Protocol definitions for PixelPorter's pluggable components."""

from datetime import datetime
from typing import Protocol, NamedTuple, Optional
from pathlib import Path

from .models import ResolvedDate, SourceFile


class DateCandidate(NamedTuple):
    """Raw embedded timestamp as read from one metadata tag."""
    tag: str
    value: str


class FilesystemTimes(NamedTuple):
    """POSIX timestamps (seconds since epoch) from stat()."""
    modify: float
    access: float
    change: float


class MetadataExtractor(Protocol):
    """Interface for metadata readers like the exiftool adapter."""

    def check_tools(self) -> None:
        """
        Ensure required external tools are installed.

        Raises:
            ToolUnavailable: If a required tool is missing
        """
        ...

    def get_creation_time(self, file_path: Path) -> list[DateCandidate]:
        """
        Read embedded creation tags.

        Returns:
            Candidates ordered CreateDate, DateTimeOriginal, ModifyDate;
            tags absent from the file are left out.

        Raises:
            MetadataUnavailable: If the file's metadata cannot be read
        """
        ...

    def get_container_creation_time(self, file_path: Path) -> Optional[str]:
        """Container-level ``creation_time`` for video formats, if any."""
        ...

    def get_filesystem_timestamps(self, file_path: Path) -> FilesystemTimes:
        ...

    def get_remark(self, file_path: Path) -> str:
        ...

    def set_remark(self, file_path: Path, text: str) -> bool:
        ...

    def set_timestamps(self, file_path: Path, timestamp: datetime) -> bool:
        """Write timestamp into the file's own date tags."""
        ...

    def close(self) -> None:
        ...


class DateStrategy(Protocol):
    """One step of the date fallback chain."""

    name: str

    def __call__(self, source: SourceFile) -> Optional[ResolvedDate]:
        ...


class Deduplicator(Protocol):
    """Interface for content-duplicate lookups against a destination tree."""

    def find_by_content(
        self,
        file_path: Path,
        dest_root: Path,
        content_hash: Optional[str] = None
    ) -> Optional[Path]:
        """
        Find a file under dest_root holding the same bytes.

        Args:
            file_path: Candidate file
            dest_root: Destination tree to search recursively
            content_hash: Precomputed digest of file_path, if known

        Returns:
            Path of the first matching file, or None
        """
        ...

    def register(self, dest_root: Path, file_path: Path, content_hash: str, size: int) -> None:
        """Record a file written (or planned) under dest_root during this run."""
        ...

    def rename(self, dest_root: Path, old_path: Path, new_path: Path) -> None:
        """Move an indexed file's entry to its new path inside dest_root."""
        ...

    def matches_by_size(self, source: Path, target: Path) -> bool:
        ...
