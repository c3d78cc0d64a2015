"""Content-hash duplicate index over destination trees."""

from __future__ import annotations

import concurrent.futures
import os
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .checksum import ChecksumService
from .logging import get_configured_logger

logger = get_configured_logger("Deduplicator")


@dataclass(frozen=True)
class DuplicateIndexEntry:
    content_hash: str
    path: Path


@dataclass
class _TreeIndex:
    """Sizes of every file under one destination root, digests filled lazily."""
    root: Path
    by_size: dict[int, list[Path]] = field(default_factory=lambda: defaultdict(list))
    digests: dict[Path, str] = field(default_factory=dict)
    by_hash: dict[str, DuplicateIndexEntry] = field(default_factory=dict)


class HashDeduplicator:
    """
    Answers "does this content already exist under this destination root?".

    Each root is scanned once, on first query, and then kept current through
    register() as the run writes files. Files are only hashed when their size
    matches a candidate, and every digest is kept for the rest of the run.
    Nothing is persisted: the destination tree is the index.
    """

    def __init__(self, checksum: Optional[ChecksumService] = None, hash_workers: int = 1):
        self.checksum = checksum or ChecksumService()
        self.hash_workers = max(1, hash_workers)
        self._indexes: dict[Path, _TreeIndex] = {}
        self._lock = threading.Lock()

    def _index_for(self, dest_root: Path) -> _TreeIndex:
        key = Path(dest_root).resolve()
        with self._lock:
            index = self._indexes.get(key)
            if index is None:
                index = self._scan(key)
                self._indexes[key] = index
            return index

    def _scan(self, root: Path) -> _TreeIndex:
        index = _TreeIndex(root=root)
        if not root.exists():
            return index

        count = 0
        for dirpath, _, filenames in os.walk(root):
            for filename in filenames:
                file_path = Path(dirpath) / filename
                try:
                    size = file_path.stat().st_size
                except OSError as e:
                    logger.warning(f"Cannot stat {file_path}: {e}")
                    continue
                index.by_size[size].append(file_path)
                count += 1

        logger.info(f"Indexed {count} existing file(s) under {root}")
        return index

    def _digests(self, index: _TreeIndex, paths: list[Path]) -> None:
        """Hash paths not yet known to the index, in parallel when configured."""
        pending = [p for p in paths if p not in index.digests]
        if not pending:
            return

        if self.hash_workers > 1 and len(pending) > 1:
            with concurrent.futures.ThreadPoolExecutor(max_workers=self.hash_workers) as pool:
                futures = {pool.submit(self.checksum.hash, p): p for p in pending}
                for future in concurrent.futures.as_completed(futures):
                    path = futures[future]
                    try:
                        self._remember(index, path, future.result())
                    except OSError as e:
                        logger.warning(f"Cannot hash {path}: {e}")
        else:
            for path in pending:
                try:
                    self._remember(index, path, self.checksum.hash(path))
                except OSError as e:
                    logger.warning(f"Cannot hash {path}: {e}")

    @staticmethod
    def _remember(index: _TreeIndex, path: Path, digest: str) -> None:
        index.digests[path] = digest
        index.by_hash.setdefault(digest, DuplicateIndexEntry(digest, path))

    def find_by_content(
        self,
        file_path: Path,
        dest_root: Path,
        content_hash: Optional[str] = None
    ) -> Optional[Path]:
        """
        Find a file under dest_root with the same bytes as file_path.

        Size is only a prefilter; equality is always decided by digest.

        Args:
            file_path: Candidate file
            dest_root: Destination tree to search recursively
            content_hash: Precomputed digest of file_path, if known

        Returns:
            Path of the first-seen matching file, or None
        """
        index = self._index_for(dest_root)
        size = Path(file_path).stat().st_size

        with self._lock:
            candidates = list(index.by_size.get(size, ()))
            if not candidates:
                return None

            digest = content_hash or self.checksum.hash(file_path)
            self._digests(index, candidates)

            entry = index.by_hash.get(digest)
            if entry is not None and entry.path in candidates:
                return entry.path
            # First-seen entry may have been displaced by a backup rename
            for candidate in candidates:
                if index.digests.get(candidate) == digest:
                    return candidate
        return None

    def register(self, dest_root: Path, file_path: Path, content_hash: str, size: int) -> None:
        index = self._index_for(dest_root)
        file_path = Path(file_path).resolve()
        with self._lock:
            if file_path not in index.by_size[size]:
                index.by_size[size].append(file_path)
            self._remember(index, file_path, content_hash)

    def rename(self, dest_root: Path, old_path: Path, new_path: Path) -> None:
        """
        Follow a file moved inside dest_root (backup or restore).

        Size and any known digest move with the file, so its content stays
        visible to find_by_content under the new name.
        """
        index = self._index_for(dest_root)
        old_path = Path(old_path).resolve()
        new_path = Path(new_path).resolve()
        with self._lock:
            for paths in index.by_size.values():
                if old_path in paths:
                    paths[paths.index(old_path)] = new_path
                    break
            else:
                # A scan run after the move on disk already lists new_path
                return

            digest = index.digests.pop(old_path, None)
            if digest is None:
                return
            index.digests[new_path] = digest
            entry = index.by_hash.get(digest)
            if entry is None or entry.path == old_path:
                index.by_hash[digest] = DuplicateIndexEntry(digest, new_path)

    def entries(self, dest_root: Path) -> list[DuplicateIndexEntry]:
        """Entries hashed so far for dest_root."""
        return list(self._index_for(dest_root).by_hash.values())

    def matches_by_size(self, source: Path, target: Path) -> bool:
        """
        Legacy "skip if same size" check against one exact target path.

        Weaker than find_by_content and only used when a destination opts in.
        """
        target = Path(target)
        return target.is_file() and self.checksum.same_size(source, target)
