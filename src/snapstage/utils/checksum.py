"""Whole-file content hashing used for every equality decision."""

import hashlib
from pathlib import Path

from .logging import get_configured_logger

logger = get_configured_logger("Checksum")


class ChecksumService:
    """
    Streams file bytes through a hashlib digest.

    Digests are never cached here: every call re-reads the file, so a
    post-copy verification sees exactly what landed on disk.
    """

    def __init__(self, algorithm: str = "md5", chunk_size: int = 1024 * 1024):
        if algorithm not in hashlib.algorithms_available:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")
        self.algorithm = algorithm
        self.chunk_size = chunk_size

    def hash(self, path: Path) -> str:
        """
        Compute the hex digest of a file's bytes.

        Args:
            path: File to hash

        Returns:
            Hex digest string

        Raises:
            OSError: If the file cannot be read
        """
        digest = hashlib.new(self.algorithm)
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(self.chunk_size), b""):
                digest.update(chunk)
        logger.debug(f"Hashed {Path(path).name}")
        return digest.hexdigest()

    @staticmethod
    def same_size(first: Path, second: Path) -> bool:
        return Path(first).stat().st_size == Path(second).stat().st_size

    def same_content(self, first: Path, second: Path) -> bool:
        """Byte equality by digest, short-circuiting on differing sizes."""
        if not self.same_size(first, second):
            return False
        return self.hash(first) == self.hash(second)
