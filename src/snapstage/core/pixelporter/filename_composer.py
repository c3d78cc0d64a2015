"""Canonical destination names with content-aware collision suffixes."""

import threading
from pathlib import Path
from typing import Optional

from ...utils.checksum import ChecksumService
from ...utils.logging import get_configured_logger
from .models import DestinationPlan, ResolvedDate, SourceFile

logger = get_configured_logger("FilenameComposer")

CANONICAL_FORMAT = "%Y%m%d_%H%M%S"


def canonical_base(resolved: ResolvedDate) -> Optional[str]:
    """``YYYYMMDD_HHMMSS`` for a dated file, None otherwise."""
    if not resolved.has_date:
        return None
    return resolved.timestamp.strftime(CANONICAL_FORMAT)


class FilenameComposer:
    """
    Turns a resolved date into a final filename inside a destination directory.

    Dated files become ``YYYYMMDD_HHMMSS.ext`` (lower-case extension). When that
    name is taken by different content, ``_NNN`` is appended from a counter kept
    per base name for the whole run: it starts at 1, only moves forward, and a
    suffix handed out once is never handed out again. A candidate name already
    holding the same bytes is reported as ``duplicate_of`` instead of renamed.

    Undated files keep their original filename and skip the collision loop.

    Every name planned during the run is claimed together with its content
    hash, so later files see it even before (or without, in dry runs) a write.
    """

    def __init__(self, checksum: Optional[ChecksumService] = None):
        self.checksum = checksum or ChecksumService()
        self._counters: dict[str, int] = {}
        self._claims: dict[Path, str] = {}
        self._lock = threading.Lock()

    def _content_at(self, path: Path) -> Optional[str]:
        """Digest of whatever occupies path (claimed or on disk), None if free."""
        claimed = self._claims.get(path)
        if claimed is not None:
            return claimed
        if path.is_file():
            return self.checksum.hash(path)
        if path.exists():
            # a directory squatting on the name still blocks it
            return ""
        return None

    def compose(self, resolved: ResolvedDate, source: SourceFile, dest_dir: Path) -> DestinationPlan:
        """
        Plan the final name for source inside dest_dir.

        Args:
            resolved: Resolved date for the source
            source: File being ingested
            dest_dir: Directory the file will be written to

        Returns:
            DestinationPlan; ``duplicate_of`` is set when identical content
            already sits under one of the candidate names
        """
        dest_dir = Path(dest_dir)
        base = canonical_base(resolved)

        if base is None:
            return DestinationPlan(dest_dir, Path(source.name).stem, 0, source.name)

        ext = source.extension.lower()
        source_hash = source.content_hash(self.checksum)

        with self._lock:
            candidate = dest_dir / f"{base}{ext}"
            existing = self._content_at(candidate)
            if existing is None:
                return self._claim(dest_dir, base, 0, candidate.name, source_hash)
            if existing == source_hash:
                return DestinationPlan(dest_dir, base, 0, candidate.name, duplicate_of=candidate)

            counter = self._counters.get(base, 1)
            while True:
                candidate = dest_dir / f"{base}_{counter:03d}{ext}"
                existing = self._content_at(candidate)
                if existing is None:
                    break
                if existing == source_hash:
                    return DestinationPlan(dest_dir, base, counter, candidate.name, duplicate_of=candidate)
                counter += 1

            self._counters[base] = counter + 1
            logger.info(f"Name collision on {base}{ext}: using {candidate.name}")
            return self._claim(dest_dir, base, counter, candidate.name, source_hash)

    def _claim(self, dest_dir: Path, base: str, suffix: int, final_name: str, content_hash: str) -> DestinationPlan:
        plan = DestinationPlan(dest_dir, base, suffix, final_name)
        self._claims[plan.target_path] = content_hash
        return plan

    def release(self, plan: DestinationPlan) -> None:
        """Forget a claim whose write failed. The suffix stays consumed."""
        with self._lock:
            self._claims.pop(plan.target_path, None)
