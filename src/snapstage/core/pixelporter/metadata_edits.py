"""In-place metadata edits on source files: capture dates from names, remarks."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from ...utils.logging import get_configured_logger, log_and_display
from ...utils.media_types import MediaKind, classify
from .date_resolver import date_from_filename
from .protocols import MetadataExtractor

logger = get_configured_logger("MetadataEdits")


@dataclass
class EditResult:
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


def restamp_from_filenames(
    files: Iterable[Path],
    extractor: MetadataExtractor,
    dry_run: bool = False
) -> EditResult:
    """
    Write the timestamp encoded in each name into the file's date tags.

    Files named ``[PREFIX_]YYYYMMDD_HHMMSS`` get their capture tags set to that
    time, so a later date resolution agrees with the name. Unsupported files
    and names without a timestamp are skipped.

    Args:
        files: Files to edit in place
        extractor: Metadata adapter that performs the write
        dry_run: Report the edits without touching any file

    Returns:
        EditResult with per-outcome counts
    """
    result = EditResult()
    action_prefix = "[DRY RUN]" if dry_run else "[ACTION]"

    for file_path in files:
        file_path = Path(file_path)
        if classify(file_path) is MediaKind.UNSUPPORTED:
            result.skipped += 1
            continue

        timestamp = date_from_filename(file_path.name)
        if timestamp is None:
            logger.debug(f"No timestamp in name: {file_path.name}")
            result.skipped += 1
            continue

        if dry_run:
            log_and_display(f"{action_prefix} Would set dates of {file_path.name} to {timestamp}")
            result.updated += 1
            continue

        if extractor.set_timestamps(file_path, timestamp):
            log_and_display(f"{action_prefix} Set dates of {file_path.name} to {timestamp}")
            result.updated += 1
        else:
            result.failed += 1
            result.errors.append(f"Could not set dates of {file_path.name}")

    logger.info(f"Restamped: {result.updated}, Skipped: {result.skipped}, Failed: {result.failed}")
    return result


def apply_remark(
    files: Iterable[Path],
    text: str,
    extractor: MetadataExtractor,
    dry_run: bool = False
) -> EditResult:
    """Write text as the free-form remark of every supported file."""
    result = EditResult()
    action_prefix = "[DRY RUN]" if dry_run else "[ACTION]"

    for file_path in files:
        file_path = Path(file_path)
        if classify(file_path) is MediaKind.UNSUPPORTED:
            result.skipped += 1
            continue

        if dry_run:
            log_and_display(f"{action_prefix} Would set remark of {file_path.name}: {text}")
            result.updated += 1
        elif extractor.set_remark(file_path, text):
            log_and_display(f"{action_prefix} Set remark of {file_path.name}")
            result.updated += 1
        else:
            result.failed += 1
            result.errors.append(f"Could not set remark of {file_path.name}")

    logger.info(f"Remarks set: {result.updated}, Skipped: {result.skipped}, Failed: {result.failed}")
    return result
