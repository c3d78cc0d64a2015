"""
Post-run comparison of the flat backup stage against the organized stage.
Every STAGE1 file must exist in STAGE2 with the same size and digest.
"""

import os
from pathlib import Path
from typing import Optional, Set

from ..utils.checksum import ChecksumService
from ..utils.deduplicator import HashDeduplicator
from ..utils.logging import get_configured_logger, log_and_display

logger = get_configured_logger("StageVerifier")


class StageVerifier:
    """
    Content check between STAGE1 (flat backup) and STAGE2 (organized primary).

    A STAGE1 file is first compared with the file at the same relative path in
    STAGE2. When STAGE2 has nothing there, which is normal once STAGE2 is
    organized into date folders, the file is looked up by content anywhere in
    STAGE2. Missing files and mismatches fail the check; STAGE2 files with no
    STAGE1 counterpart are only reported.
    """

    def __init__(self, stage1_dir: str, stage2_dir: str, checksum: Optional[ChecksumService] = None):
        self.stage1_dir = Path(stage1_dir).resolve()
        self.stage2_dir = Path(stage2_dir).resolve()
        self.checksum = checksum or ChecksumService()
        self._index = HashDeduplicator(self.checksum)

        self.total_files = 0
        self.verified: list[str] = []
        self.missing: list[str] = []
        self.extra: list[str] = []
        self.size_mismatches: list[str] = []
        self.checksum_mismatches: list[str] = []

    @staticmethod
    def _scan_directory(directory: Path) -> Set[Path]:
        if not directory.exists():
            return set()

        files = set()
        for root, _, filenames in os.walk(directory):
            for filename in filenames:
                files.add(Path(root, filename).resolve())
        return files

    def _verify_file(self, stage1_file: Path, matched: Set[Path]) -> None:
        rel_path = str(stage1_file.relative_to(self.stage1_dir))
        stage2_file = self.stage2_dir / rel_path

        if stage2_file.is_file():
            matched.add(stage2_file.resolve())
            stage1_size = stage1_file.stat().st_size
            stage2_size = stage2_file.stat().st_size
            if stage1_size != stage2_size:
                logger.error(f"Size mismatch: {rel_path} (STAGE1: {stage1_size}, STAGE2: {stage2_size})")
                self.size_mismatches.append(rel_path)
                return
            if not self.checksum.same_content(stage1_file, stage2_file):
                logger.error(f"Checksum mismatch: {rel_path}")
                self.checksum_mismatches.append(rel_path)
                return
            logger.debug(f"Verified: {rel_path}")
            self.verified.append(rel_path)
            return

        found = self._index.find_by_content(stage1_file, self.stage2_dir)
        if found is None:
            logger.error(f"Missing in STAGE2: {rel_path}")
            self.missing.append(rel_path)
            return

        matched.add(Path(found).resolve())
        logger.debug(f"Verified: {rel_path} as {Path(found).relative_to(self.stage2_dir)}")
        self.verified.append(rel_path)

    def report(self) -> bool:
        """
        Compare both stages and log the outcome.

        Returns:
            True if every STAGE1 file is present and identical in STAGE2

        Raises:
            FileNotFoundError: If either stage directory does not exist
        """
        for stage in (self.stage1_dir, self.stage2_dir):
            if not stage.is_dir():
                raise FileNotFoundError(f"Stage directory does not exist: {stage}")

        log_and_display(f"Verifying STAGE1 '{self.stage1_dir}' against STAGE2 '{self.stage2_dir}'")

        matched: Set[Path] = set()
        for stage1_file in sorted(self._scan_directory(self.stage1_dir)):
            self.total_files += 1
            try:
                self._verify_file(stage1_file, matched)
            except OSError as e:
                rel_path = str(stage1_file.relative_to(self.stage1_dir))
                logger.error(f"Cannot compare {rel_path}: {e}")
                self.checksum_mismatches.append(rel_path)

        for stage2_file in sorted(self._scan_directory(self.stage2_dir) - matched):
            rel_path = str(stage2_file.relative_to(self.stage2_dir))
            logger.warning(f"Extra file in STAGE2 (not in STAGE1): {rel_path}")
            self.extra.append(rel_path)

        success = not (self.missing or self.size_mismatches or self.checksum_mismatches)
        if success:
            log_and_display(f"✓ Stage verification passed - {len(self.verified)} file(s) match", sticky=True)
            if self.extra:
                log_and_display(f"⚠️ {len(self.extra)} extra file(s) in STAGE2", level="warning", sticky=True)
        else:
            log_and_display(
                f"✗ Stage verification failed - Missing: {len(self.missing)}, "
                f"Size mismatches: {len(self.size_mismatches)}, "
                f"Checksum mismatches: {len(self.checksum_mismatches)}",
                level="error",
                sticky=True
            )
        return success

    def get_stats(self) -> dict:
        return {
            "total_files": self.total_files,
            "verified": len(self.verified),
            "missing_in_stage2": len(self.missing),
            "extra_in_stage2": len(self.extra),
            "size_mismatches": len(self.size_mismatches),
            "checksum_mismatches": len(self.checksum_mismatches),
        }
