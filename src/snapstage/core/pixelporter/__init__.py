"""PixelPorter - Photo and video ingestion orchestrator."""

from .pixelporter import PixelPorter, push_media, discover_files, build_destinations
from .models import (
    DateProvenance,
    DestinationPlan,
    DestinationResult,
    DestinationSpec,
    IngestionResult,
    Outcome,
    PushResult,
    ResolvedDate,
    SourceFile,
)
from .date_resolver import DateResolver
from .filename_composer import FilenameComposer
from .metadata_edits import EditResult, apply_remark, restamp_from_filenames
from .protocols import MetadataExtractor, Deduplicator, DateCandidate, FilesystemTimes
from .errors import (
    IngestionError,
    SourceNotFound,
    SourceUnreadable,
    UnsupportedExtension,
    MetadataUnavailable,
    WriteFailure,
    VerificationMismatch,
    NameCollisionWithDifferentContent,
    ToolUnavailable,
)

__all__ = [
    'PixelPorter', 'push_media', 'discover_files', 'build_destinations',
    'DateProvenance', 'DestinationPlan', 'DestinationResult', 'DestinationSpec',
    'IngestionResult', 'Outcome', 'PushResult', 'ResolvedDate', 'SourceFile',
    'DateResolver', 'FilenameComposer',
    'EditResult', 'apply_remark', 'restamp_from_filenames',
    'MetadataExtractor', 'Deduplicator', 'DateCandidate', 'FilesystemTimes',
    'IngestionError', 'SourceNotFound', 'SourceUnreadable', 'UnsupportedExtension', 'MetadataUnavailable',
    'WriteFailure', 'VerificationMismatch', 'NameCollisionWithDifferentContent',
    'ToolUnavailable',
]
