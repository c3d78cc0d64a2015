"""
Event models for the snapstage pub-sub system.
File-type agnostic events for tracking file operations during ingestion.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


@dataclass(frozen=True)
class FileCopiedEvent:
    """
    Event published when a file is copied into a destination tree.

    The source stays where it is; only the destination gains a file.
    """
    source_path: str
    destination_path: str
    source_size: int
    destination_size: int
    verified: bool
    timestamp: datetime

    def __post_init__(self):
        """Validate event data on creation."""
        if not self.source_path or not self.destination_path:
            raise ValueError("Source and destination paths cannot be empty")

        if self.source_size < 0 or self.destination_size < 0:
            raise ValueError("File size cannot be negative")

    @property
    def source_name(self) -> str:
        return Path(self.source_path).name

    @property
    def destination_name(self) -> str:
        return Path(self.destination_path).name

    @property
    def sizes_match(self) -> bool:
        return self.source_size == self.destination_size

    def __repr__(self) -> str:
        return (f"FileCopiedEvent("
                f"'{self.source_name}' -> '{self.destination_name}', "
                f"size={self.destination_size}, verified={self.verified})")


@dataclass(frozen=True)
class FileDeletedEvent:
    """
    Event published when a file is successfully deleted.

    Published for move-mode source removal.
    """
    file_path: str
    file_size: int
    timestamp: datetime

    def __post_init__(self):
        """Validate event data on creation."""
        if not self.file_path:
            raise ValueError("File path cannot be empty")

        if self.file_size < 0:
            raise ValueError("File size cannot be negative")

    @property
    def filename(self) -> str:
        """Get the filename from file path."""
        return Path(self.file_path).name

    @property
    def file_dir(self) -> str:
        """Get the directory from file path."""
        return str(Path(self.file_path).parent)

    def __repr__(self) -> str:
        return f"FileDeletedEvent('{self.filename}', size={self.file_size})"


@dataclass(frozen=True)
class FileBackedUpEvent:
    """
    Event published when existing destination content is renamed aside.

    Fired by a ConflictBackup, just before new content takes the original name.
    """
    original_path: str
    backup_path: str
    timestamp: datetime

    def __post_init__(self):
        if not self.original_path or not self.backup_path:
            raise ValueError("Original and backup paths cannot be empty")

    def __repr__(self) -> str:
        return (f"FileBackedUpEvent("
                f"'{Path(self.original_path).name}' -> '{Path(self.backup_path).name}')")
