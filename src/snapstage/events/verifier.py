"""
Event-driven directory verification for snapstage ingestion runs.
Path-based verification using pub-sub events to track expected filesystem state.
"""

import os
from pathlib import Path
from typing import Set

from .bus import event_bus
from .models import FileBackedUpEvent, FileCopiedEvent, FileDeletedEvent
from ..utils.logging import get_configured_logger

logger = get_configured_logger("DirectoryVerifier")


class DirectoryVerifier:
    """
    Event-driven verifier that tracks file operations and validates final filesystem state.

    Snapshots the source tree and every destination tree, follows copy, delete
    and backup events to build the expected state, then compares it with what
    is actually on disk.
    """

    def __init__(self, source_dir: str, *target_dirs: str):
        """
        Initialize verifier and take initial filesystem snapshots.

        Args:
            source_dir: Directory files are ingested from
            target_dirs: One or more destination roots
        """
        if not target_dirs:
            raise ValueError("At least one target directory is required")

        self.source_dir = str(Path(source_dir).resolve())
        self.target_dirs = [str(Path(d).resolve()) for d in target_dirs]

        self.initial_source_files = self._scan_directory(self.source_dir)
        self.initial_target_files = set()
        for target_dir in self.target_dirs:
            self.initial_target_files |= self._scan_directory(target_dir)

        self.expected_source_files = self.initial_source_files.copy()
        self.expected_target_files = self.initial_target_files.copy()
        self.copies_tracked = 0
        self.deletions_tracked = 0
        self.backups_tracked = 0

        event_bus.subscribe(FileCopiedEvent, self._handle_file_copied)
        event_bus.subscribe(FileDeletedEvent, self._handle_file_deleted)
        event_bus.subscribe(FileBackedUpEvent, self._handle_file_backed_up)

        logger.info(f"Initialized verifier - Source: {len(self.initial_source_files)} files, "
                    f"Targets: {len(self.initial_target_files)} files")

    @staticmethod
    def _scan_directory(directory: str) -> Set[str]:
        """Return the set of all file paths under directory (empty if missing)."""
        if not os.path.exists(directory):
            return set()

        files = set()
        for root, _, filenames in os.walk(directory):
            for filename in filenames:
                files.add(str(Path(root, filename).resolve()))
        return files

    def _handle_file_copied(self, event: FileCopiedEvent) -> None:
        """Copy: source stays, destination gains the file."""
        self.expected_target_files.add(str(Path(event.destination_path).resolve()))
        self.copies_tracked += 1
        logger.debug(f"Copy event: {event.destination_name} added to target")

    def _handle_file_deleted(self, event: FileDeletedEvent) -> None:
        file_path = str(Path(event.file_path).resolve())
        self.expected_source_files.discard(file_path)
        self.expected_target_files.discard(file_path)
        self.deletions_tracked += 1
        logger.debug(f"Delete event: {event.filename}")

    def _handle_file_backed_up(self, event: FileBackedUpEvent) -> None:
        """Backup: the original name is vacated, the backup name appears."""
        self.expected_target_files.discard(str(Path(event.original_path).resolve()))
        self.expected_target_files.add(str(Path(event.backup_path).resolve()))
        self.backups_tracked += 1
        logger.debug(f"Backup event: {Path(event.backup_path).name}")

    def report(self) -> bool:
        """
        Verify actual filesystem state matches expected state based on events.

        Returns:
            True if verification passed, False if discrepancies found
        """
        actual_source_files = self._scan_directory(self.source_dir)
        actual_target_files = set()
        for target_dir in self.target_dirs:
            actual_target_files |= self._scan_directory(target_dir)

        source_ok = self._verify_directory("source", self.expected_source_files, actual_source_files)
        target_ok = self._verify_directory("target", self.expected_target_files, actual_target_files)

        overall_success = source_ok and target_ok
        if overall_success:
            logger.info(f"✓ Verification passed - Source: {len(actual_source_files)} files, "
                        f"Targets: {len(actual_target_files)} files")
        else:
            logger.warning("✗ Verification failed - check file locations above")

        return overall_success

    def _verify_directory(self, dir_name: str, expected: Set[str], actual: Set[str]) -> bool:
        missing_files = expected - actual
        unexpected_files = actual - expected

        if not missing_files and not unexpected_files:
            logger.debug(f"✓ {dir_name} directory verification passed")
            return True

        if missing_files:
            logger.warning(f"✗ Missing files in {dir_name} directory:")
            for file_path in sorted(missing_files):
                logger.warning(f"  - {Path(file_path).name}")

        if unexpected_files:
            logger.warning(f"✗ Unexpected files in {dir_name} directory:")
            for file_path in sorted(unexpected_files):
                logger.warning(f"  + {Path(file_path).name}")

        return False

    def get_stats(self) -> dict:
        return {
            "initial_source_count": len(self.initial_source_files),
            "initial_target_count": len(self.initial_target_files),
            "expected_source_count": len(self.expected_source_files),
            "expected_target_count": len(self.expected_target_files),
            "copies_tracked": self.copies_tracked,
            "deletions_tracked": self.deletions_tracked,
            "backups_tracked": self.backups_tracked,
        }

    def cleanup(self) -> None:
        """Unsubscribe from events. Call when verification is complete."""
        event_bus.unsubscribe(FileCopiedEvent, self._handle_file_copied)
        event_bus.unsubscribe(FileDeletedEvent, self._handle_file_deleted)
        event_bus.unsubscribe(FileBackedUpEvent, self._handle_file_backed_up)
        logger.debug("Unsubscribed from file operation events")
