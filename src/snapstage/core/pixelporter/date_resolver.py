"""
Date resolution for ingested media.

One canonical timestamp per file, taken from the first strategy that yields
a valid date:

    1. embedded metadata (container creation time first for some videos)
    2. a YYYYMMDD_HHMMSS stamp in the filename
    3. the oldest filesystem timestamp

A year of 0000 is a camera sentinel, not a date, and falls through to the
next strategy. Timezone suffixes are stripped, never converted.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Sequence

from ...utils.logging import get_configured_logger
from ...utils.media_types import MediaKind
from .errors import MetadataUnavailable
from .models import DateProvenance, ResolvedDate, SourceFile
from .protocols import DateStrategy, MetadataExtractor

logger = get_configured_logger("DateResolver")

# Video containers whose container-level creation_time beats embedded tags
CONTAINER_FIRST_EXTENSIONS = frozenset({
    '.avi', '.mov', '.mkv', '.webm', '.flv', '.wmv', '.mpg', '.mpeg',
})

_TIMESTAMP_RE = re.compile(
    r"^\s*(?P<year>\d{4})[:\-](?P<month>\d{2})[:\-](?P<day>\d{2})"
    r"[ T]+(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})"
)

_FILENAME_RE = re.compile(
    r"^(?:[^_]+_)?(?P<date>\d{8})_(?P<time>\d{6})(?:_\d{3})?$"
)


def parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """
    Parse an exiftool/ffprobe timestamp into a naive datetime.

    Accepts ``2023:12:25 14:30:22``, ``2023:12:25 14:30:22+05:30``,
    ``2017:01:29 22:39:02.150`` and ``2015-05-24T08:51:40.000000Z``.
    Anything after the seconds field is ignored.

    Returns:
        The wall-clock datetime, or None for empty, all-zero-year or
        impossible values
    """
    if not raw:
        return None

    match = _TIMESTAMP_RE.match(raw)
    if not match:
        return None

    if match["year"] == "0000":
        return None

    try:
        return datetime(
            int(match["year"]), int(match["month"]), int(match["day"]),
            int(match["hour"]), int(match["minute"]), int(match["second"]),
        )
    except ValueError:
        logger.warning(f"Discarding impossible timestamp: {raw!r}")
        return None


def date_from_filename(name: str) -> Optional[datetime]:
    """
    Extract a local timestamp from ``[PREFIX_]YYYYMMDD_HHMMSS[_NNN].ext``.

    Example:
        >>> date_from_filename("VID_20161010_231520.mp4")
        datetime.datetime(2016, 10, 10, 23, 15, 20)
    """
    match = _FILENAME_RE.match(Path(name).stem)
    if not match:
        return None

    date_part, time_part = match["date"], match["time"]
    return parse_timestamp(
        f"{date_part[:4]}:{date_part[4:6]}:{date_part[6:]} "
        f"{time_part[:2]}:{time_part[2:4]}:{time_part[4:]}"
    )


class EmbeddedMetadataStrategy:
    """CreateDate → DateTimeOriginal → ModifyDate, with container dates for video."""

    name = "metadata"

    def __init__(self, extractor: MetadataExtractor):
        self.extractor = extractor

    def _from_tags(self, source: SourceFile) -> Optional[ResolvedDate]:
        for candidate in self.extractor.get_creation_time(source.path):
            timestamp = parse_timestamp(candidate.value)
            if timestamp is not None:
                return ResolvedDate(timestamp, DateProvenance.METADATA, candidate.tag)
            logger.info(f"Ignoring invalid {candidate.tag} in {source.name}: {candidate.value!r}")
        return None

    def _from_container(self, source: SourceFile) -> Optional[ResolvedDate]:
        timestamp = parse_timestamp(self.extractor.get_container_creation_time(source.path))
        if timestamp is None:
            return None
        return ResolvedDate(timestamp, DateProvenance.METADATA, "creation_time")

    def __call__(self, source: SourceFile) -> Optional[ResolvedDate]:
        if source.kind is not MediaKind.VIDEO:
            return self._from_tags(source)

        if source.extension.lower() in CONTAINER_FIRST_EXTENSIONS:
            order = (self._from_container, self._from_tags)
        else:
            order = (self._from_tags, self._from_container)

        for step in order:
            resolved = step(source)
            if resolved is not None:
                return resolved
        return None


class FilenameStrategy:
    name = "filename"

    def __call__(self, source: SourceFile) -> Optional[ResolvedDate]:
        timestamp = date_from_filename(source.name)
        if timestamp is None:
            return None
        return ResolvedDate(timestamp, DateProvenance.FILENAME, "filename")


class FilesystemStrategy:
    """Oldest of mtime, atime and ctime, which predates any later touch of the file."""

    name = "filesystem"

    def __init__(self, extractor: MetadataExtractor):
        self.extractor = extractor

    def __call__(self, source: SourceFile) -> Optional[ResolvedDate]:
        times = self.extractor.get_filesystem_timestamps(source.path)
        labelled = [(value, label) for value, label in zip(times, times._fields) if value > 0]
        if not labelled:
            return None

        oldest, label = min(labelled)
        timestamp = datetime.fromtimestamp(oldest).replace(microsecond=0)
        return ResolvedDate(timestamp, DateProvenance.FILESYSTEM, f"file_{label}")


def first_success(strategies: Iterable[DateStrategy], source: SourceFile) -> ResolvedDate:
    """Run strategies in order and return the first date found."""
    for strategy in strategies:
        try:
            resolved = strategy(source)
        except MetadataUnavailable as e:
            logger.info(f"{strategy.name} unavailable for {source.name}: {e}")
            continue
        if resolved is not None:
            return resolved
    return ResolvedDate.none()


class DateResolver:
    """Resolves one canonical timestamp per file."""

    def __init__(
        self,
        extractor: MetadataExtractor,
        date_sources: Sequence[str] = ("metadata", "filename", "filesystem"),
        strategies: Optional[Sequence[DateStrategy]] = None
    ):
        if strategies is None:
            available = {
                "metadata": EmbeddedMetadataStrategy(extractor),
                "filename": FilenameStrategy(),
                "filesystem": FilesystemStrategy(extractor),
            }
            unknown = [s for s in date_sources if s not in available]
            if unknown:
                raise ValueError(f"Unknown date source(s): {', '.join(unknown)}")
            strategies = [available[s] for s in date_sources]
        self.strategies = list(strategies)

    def resolve(self, source: SourceFile) -> ResolvedDate:
        resolved = first_success(self.strategies, source)
        if resolved.has_date:
            logger.info(f"{source.name}: {resolved} via {resolved.source_tag}")
        else:
            logger.info(f"{source.name}: no date found, keeping original filename")
        return resolved
