"""Error taxonomy for PixelPorter ingestion."""

from pathlib import Path


class IngestionError(Exception):
    """Base class for every ingestion error."""


class SourceNotFound(IngestionError):
    """Source file vanished between enumeration and processing."""

    def __init__(self, path: Path):
        super().__init__(f"Source file not found: {path}")
        self.path = path


class UnsupportedExtension(IngestionError):
    """File extension is not on the media allow-list."""

    def __init__(self, path: Path):
        super().__init__(f"Unsupported file type: {Path(path).name}")
        self.path = path


class SourceUnreadable(IngestionError):
    """Source bytes could not be read for hashing."""

    kind = "read"


class MetadataUnavailable(IngestionError):
    """Metadata could not be read. Triggers the date fallback chain."""


class WriteFailure(IngestionError):
    """Copy to the destination failed at the I/O level."""

    kind = "write"


class VerificationMismatch(IngestionError):
    """Destination digest differs from the source digest after copying."""

    kind = "verification"

    def __init__(self, source: Path, destination: Path, expected: str, actual: str):
        super().__init__(
            f"Checksum mismatch for {Path(destination).name}: "
            f"expected {expected}, got {actual}"
        )
        self.source = source
        self.destination = destination
        self.expected = expected
        self.actual = actual


class NameCollisionWithDifferentContent(IngestionError):
    """
    Exact target path already holds other content.

    Not a failure: the engine answers it with a ConflictBackup.
    """

    def __init__(self, target: Path):
        super().__init__(f"Different content already at {target}")
        self.target = target


class ToolUnavailable(IngestionError):
    """A required external tool is not installed. Fatal at startup."""

    def __init__(self, tool: str, hint: str = ""):
        message = f"{tool} is required but was not found on PATH"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)
        self.tool = tool
