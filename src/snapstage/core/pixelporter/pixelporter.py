"""PixelPorter - Photo and video ingestion orchestrator."""

import shutil
import threading
import time
from pathlib import Path
from typing import Optional, Sequence

from ...utils.checksum import ChecksumService
from ...utils.config_loader import IngestConfig, load_ingest_config
from ...utils.deduplicator import HashDeduplicator
from ...utils.logging import (
    display_summary,
    get_configured_logger,
    log_and_display,
    trackerator,
)
from ...utils.media_types import MediaKind, classify
from ...events.bus import (
    publish_file_backed_up,
    publish_file_copied,
    publish_file_deleted,
    publish_ingestion_result,
)
from .date_resolver import DateResolver
from .errors import (
    IngestionError,
    MetadataUnavailable,
    NameCollisionWithDifferentContent,
    SourceNotFound,
    SourceUnreadable,
    UnsupportedExtension,
    VerificationMismatch,
    WriteFailure,
)
from .filename_composer import FilenameComposer, canonical_base
from .metadata_edits import apply_remark, restamp_from_filenames
from .models import (
    SUCCESS_OUTCOMES,
    DestinationPlan,
    DestinationResult,
    DestinationSpec,
    IngestionResult,
    Outcome,
    PushResult,
    ResolvedDate,
    SourceFile,
)
from .protocols import Deduplicator, MetadataExtractor

logger = get_configured_logger("PixelPorter")


def discover_files(source: Path, pattern: str = "*", recursive: bool = False) -> list[Path]:
    """
    Enumerate candidate files once, sorted by path.

    Sorting keeps collision suffixes deterministic between runs.
    """
    matches = source.rglob(pattern) if recursive else source.glob(pattern)
    return sorted(p for p in matches if p.is_file())


def _require_supported(file_path: Path) -> None:
    if classify(file_path) is MediaKind.UNSUPPORTED:
        raise UnsupportedExtension(file_path)


def _backup_path(target: Path) -> Path:
    """
    Timestamped sibling name for displaced content.

    Example:
        IMG_1234.JPG -> IMG_1234.JPG.backup.1704452123
    """
    backup = target.with_name(f"{target.name}.backup.{int(time.time())}")
    counter = 1
    while backup.exists():
        backup = target.with_name(f"{target.name}.backup.{int(time.time())}_{counter}")
        counter += 1
    return backup


class PixelPorter:
    """
    Per-file ingestion state machine.

    Start → DuplicateCheck → {Skip | ComposeDestination} → Write → Verify?
    → DeleteSource? → Done, run independently for every configured
    destination. Per-file errors become Failed results and the run goes on.
    Run counters live on ``self.result``.
    """

    def __init__(
        self,
        destinations: Sequence[DestinationSpec],
        extractor: MetadataExtractor,
        checksum: Optional[ChecksumService] = None,
        deduplicator: Optional[Deduplicator] = None,
        composer: Optional[FilenameComposer] = None,
        resolver: Optional[DateResolver] = None,
        move: bool = False,
        dry_run: bool = False,
        read_remarks: bool = False
    ):
        if not destinations:
            raise ValueError("At least one destination is required")

        self.destinations = list(destinations)
        self.extractor = extractor
        self.checksum = checksum or ChecksumService()
        self.deduplicator = deduplicator or HashDeduplicator(self.checksum)
        self.composer = composer or FilenameComposer(self.checksum)
        self.resolver = resolver or DateResolver(extractor)
        self.move = move
        self.dry_run = dry_run
        self.read_remarks = read_remarks
        self.action_prefix = "[DRY RUN]" if dry_run else "[ACTION]"

        self.result = PushResult()
        self._planned: set[Path] = set()
        self._stop = threading.Event()

    def stop(self) -> None:
        """Stop dispatching new files. A write already in progress completes."""
        self._stop.set()

    def run(self, files: Sequence[Path], show_progress: bool = False) -> PushResult:
        items = trackerator(list(files), "Ingesting media") if show_progress else files
        for file_path in items:
            if self._stop.is_set():
                log_and_display(f"{self.action_prefix} Stop requested, remaining files left untouched",
                                level="warning", sticky=True)
                break
            self.ingest(file_path)
        return self.result

    def ingest(self, file_path: Path) -> Optional[IngestionResult]:
        """
        Ingest one file into every destination.

        Returns:
            The published IngestionResult, or None for unsupported file types
        """
        file_path = Path(file_path)
        try:
            _require_supported(file_path)
        except UnsupportedExtension as e:
            logger.debug(f"Skipping: {e}")
            self.result.unsupported += 1
            return None

        self.result.processed += 1
        try:
            result = self._ingest_source(file_path)
        except (IngestionError, OSError) as e:
            log_and_display(f"❌ {self.action_prefix} {file_path.name}: {e}", level="error", sticky=True)
            result = IngestionResult(file_path, Outcome.FAILED, reason=str(e))

        self.result.record(result)
        publish_ingestion_result(result)
        return result

    def _ingest_source(self, file_path: Path) -> IngestionResult:
        if not file_path.is_file():
            raise SourceNotFound(file_path)

        source = SourceFile.from_path(file_path)
        resolved = self.resolver.resolve(source)
        remark = self._read_remark(source) if self.read_remarks else ""

        destinations = [self._ingest_to(dest, source, resolved) for dest in self.destinations]
        outcome, reason = IngestionResult.combine(destinations)
        result = IngestionResult(source.path, outcome, resolved, destinations, reason, remark)

        if self.move:
            result.source_deleted = self._delete_source(source, destinations)

        self._log_result(result)
        return result

    def _read_remark(self, source: SourceFile) -> str:
        try:
            return self.extractor.get_remark(source.path)
        except MetadataUnavailable as e:
            logger.info(f"No remark for {source.name}: {e}")
            return ""

    # ------------------------------------------------------------------ #
    #  one destination
    # ------------------------------------------------------------------ #

    def _ingest_to(self, dest: DestinationSpec, source: SourceFile, resolved: ResolvedDate) -> DestinationResult:
        try:
            return self._transfer(dest, source, resolved)
        except (SourceUnreadable, WriteFailure, VerificationMismatch) as e:
            log_and_display(f"❌ {self.action_prefix} [{dest.label}] {e}", level="error", sticky=True)
            return DestinationResult(dest.label, Outcome.FAILED, reason=str(e), error_kind=e.kind)
        except OSError as e:
            log_and_display(f"❌ {self.action_prefix} [{dest.label}] {source.name}: {e}", level="error", sticky=True)
            return DestinationResult(dest.label, Outcome.FAILED, reason=str(e), error_kind=WriteFailure.kind)

    def _transfer(self, dest: DestinationSpec, source: SourceFile, resolved: ResolvedDate) -> DestinationResult:
        try:
            source_hash = source.content_hash(self.checksum)
        except OSError as e:
            raise SourceUnreadable(f"Cannot read source {source.name}: {e}") from e

        existing = self.deduplicator.find_by_content(source.path, dest.root, source_hash)
        if existing is not None:
            return self._skip(dest, source, f"duplicate of {existing}", existing)

        target_dir = self._target_dir(dest, resolved)
        if dest.skip_same_size:
            same_size_target = target_dir / self._natural_name(dest, source, resolved)
            if self.deduplicator.matches_by_size(source.path, same_size_target):
                return self._skip(dest, source, "file with same size exists", same_size_target)

        if dest.rename:
            plan = self.composer.compose(resolved, source, target_dir)
            if plan.duplicate_of is not None:
                return self._skip(dest, source, f"duplicate of {plan.duplicate_of}", plan.duplicate_of)
        else:
            plan = DestinationPlan(target_dir, Path(source.name).stem, 0, source.name)
        target = plan.target_path

        backup = None
        try:
            self._ensure_free(plan)
        except NameCollisionWithDifferentContent as e:
            logger.warning(str(e))
            backup = self._backup_existing(dest, target)

        return self._write(dest, source, plan, source_hash, backup)

    @staticmethod
    def _natural_name(dest: DestinationSpec, source: SourceFile, resolved: ResolvedDate) -> str:
        """Name the file gets when nothing collides: canonical if renamed and dated, else original."""
        base = canonical_base(resolved) if dest.rename else None
        if base is None:
            return source.name
        return f"{base}{source.extension.lower()}"

    def _target_dir(self, dest: DestinationSpec, resolved: ResolvedDate) -> Path:
        if dest.organize_by_date and resolved.has_date:
            return dest.root / f"{resolved.timestamp:%Y}" / f"{resolved.timestamp:%m}"
        return dest.root

    def _ensure_free(self, plan: DestinationPlan) -> None:
        """
        Raise if an exact target (flat or undated name) is already occupied.

        Identical content never reaches this point: the duplicate check
        already skipped it.
        """
        target = plan.target_path
        if target.exists() or target in self._planned:
            raise NameCollisionWithDifferentContent(target)

    def _skip(self, dest: DestinationSpec, source: SourceFile, reason: str, path: Optional[Path]) -> DestinationResult:
        log_and_display(f"⚠️ {self.action_prefix} [{dest.label}] Skipping {source.name} - {reason}", log=False)
        logger.info(f"[{dest.label}] Skipped {source.name}: {reason}")
        return DestinationResult(dest.label, Outcome.SKIPPED, path, reason, dry_run=self.dry_run)

    def _backup_existing(self, dest: DestinationSpec, target: Path) -> Path:
        backup = _backup_path(target)
        if self.dry_run:
            log_and_display(f"{self.action_prefix} Would back up {target.name} -> {backup.name}")
            self.deduplicator.rename(dest.root, target, backup)
            return backup

        target.rename(backup)
        self.deduplicator.rename(dest.root, target, backup)
        publish_file_backed_up(str(target), str(backup))
        log_and_display(f"⚠️ [{dest.label}] {target.name} exists but differs - backed up to {backup.name}",
                        level="warning")
        return backup

    def _restore_backup(self, dest: DestinationSpec, backup: Optional[Path], target: Path) -> None:
        if self.dry_run or backup is None or not backup.exists() or target.exists():
            return
        backup.rename(target)
        self.deduplicator.rename(dest.root, backup, target)
        publish_file_backed_up(str(backup), str(target))
        log_and_display(f"Restored {target.name} from {backup.name}", level="warning")

    @staticmethod
    def _discard(target: Path) -> None:
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Could not remove partial copy {target}: {e}")

    def _write(
        self,
        dest: DestinationSpec,
        source: SourceFile,
        plan: DestinationPlan,
        source_hash: str,
        backup: Optional[Path]
    ) -> DestinationResult:
        target = plan.target_path
        if backup is not None:
            outcome = Outcome.CONFLICT_BACKED_UP
        elif dest.verify:
            outcome = Outcome.COPIED_AND_VERIFIED
        else:
            outcome = Outcome.COPIED

        if self.dry_run:
            log_and_display(f"{self.action_prefix} [{dest.label}] Would copy: {source.name} -> {target}")
            self.deduplicator.register(dest.root, target, source_hash, source.size)
            self._planned.add(target)
            return DestinationResult(dest.label, outcome, target, "dry run", backup,
                                     verified=dest.verify, dry_run=True)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source.path, target)
        except OSError as e:
            self._rollback(dest, plan, backup)
            raise WriteFailure(f"Failed to copy {source.name} -> {target}: {e}") from e

        if dest.verify:
            try:
                self._verify(source.path, target)
            except VerificationMismatch:
                self._rollback(dest, plan, backup)
                raise
            except OSError as e:
                self._rollback(dest, plan, backup)
                raise WriteFailure(f"Could not re-read {target} for verification: {e}") from e

        self.deduplicator.register(dest.root, target, source_hash, source.size)
        publish_file_copied(
            source_path=str(source.path),
            destination_path=str(target),
            source_size=source.size,
            destination_size=target.stat().st_size,
            verified=dest.verify
        )
        return DestinationResult(dest.label, outcome, target, "", backup, verified=dest.verify)

    def _rollback(self, dest: DestinationSpec, plan: DestinationPlan, backup: Optional[Path]) -> None:
        self._discard(plan.target_path)
        self._restore_backup(dest, backup, plan.target_path)
        self.composer.release(plan)

    def _verify(self, source: Path, target: Path) -> None:
        """Re-hash both files from disk; no digest from the duplicate check is reused."""
        expected = self.checksum.hash(source)
        actual = self.checksum.hash(target)
        if expected != actual:
            raise VerificationMismatch(source, target, expected, actual)

    # ------------------------------------------------------------------ #
    #  move mode
    # ------------------------------------------------------------------ #

    def _delete_source(self, source: SourceFile, destinations: list[DestinationResult]) -> bool:
        if not all(d.outcome in SUCCESS_OUTCOMES for d in destinations):
            logger.info(f"Keeping source {source.name}: not every destination reported a fresh copy")
            return False

        if self.dry_run:
            log_and_display(f"{self.action_prefix} Would delete source: {source.name}")
            return False

        try:
            source.path.unlink()
        except OSError as e:
            log_and_display(f"Failed to delete source {source.name}: {e}", level="error")
            self.result.errors.append(f"{source.name}: delete failed: {e}")
            return False

        publish_file_deleted(file_path=str(source.path), file_size=source.size)
        logger.info(f"Deleted source after successful copy: {source.name}")
        return True

    def _log_result(self, result: IngestionResult) -> None:
        name = result.source_path.name
        targets = ", ".join(p.name for p in result.destination_paths) or "-"
        if result.outcome is Outcome.FAILED:
            log_and_display(f"❌ {self.action_prefix} {name}: {result.reason}", level="error", sticky=True)
        elif result.outcome is Outcome.SKIPPED:
            logger.info(f"{name} skipped: {result.reason}")
        else:
            log_and_display(f"✅ {self.action_prefix} {name} -> {targets} ({result.outcome.value})")


def build_destinations(config: IngestConfig) -> list[DestinationSpec]:
    """Primary (renamed, optionally YYYY/MM) and optional flat secondary destination."""
    destinations = [DestinationSpec(
        root=Path(config.primary_folder),
        label="primary",
        rename=True,
        organize_by_date=config.organize_by_date,
        verify=config.verify,
        skip_same_size=config.skip_same_size,
    )]
    if config.secondary_folder:
        destinations.append(DestinationSpec(
            root=Path(config.secondary_folder),
            label="secondary",
            rename=False,
            organize_by_date=False,
            verify=config.verify,
            skip_same_size=config.skip_same_size,
        ))
    return destinations


def push_media(
    source: Optional[Path] = None,
    primary: Optional[Path] = None,
    secondary: Optional[Path] = None,
    pattern: Optional[str] = None,
    config_path: Optional[str] = None,
    config: Optional[IngestConfig] = None,
    extractor: Optional[MetadataExtractor] = None,
    deduplicator: Optional[Deduplicator] = None,
    **options
) -> PushResult:
    """
    Ingest photos and videos from source into the primary (and secondary) destination.

    Args:
        source: Source directory (falls back to config)
        primary: Organized destination root (falls back to config)
        secondary: Optional flat backup root (falls back to config)
        pattern: Glob pattern for source files
        config_path: Directory holding snapstage.json
        config: Pre-built IngestConfig, bypasses file and environment loading
        extractor: MetadataExtractor (default: exiftool adapter)
        deduplicator: Deduplicator instance (default: HashDeduplicator)
        **options: Any other IngestConfig field, e.g. verify=True, move=True

    Returns:
        PushResult with operation statistics

    Raises:
        ValueError: If source or primary destination is not configured
        FileNotFoundError: If the source directory does not exist
        ToolUnavailable: If exiftool is missing
    """
    if config is None:
        config = load_ingest_config(
            config_path or "configs",
            source_folder=str(source) if source else None,
            primary_folder=str(primary) if primary else None,
            secondary_folder=str(secondary) if secondary else None,
            pattern=pattern,
            **options
        )

    if not config.source_folder or not config.primary_folder:
        raise ValueError("Source and primary destination must be provided via args or config")

    source_dir = Path(config.source_folder)
    action_prefix = "[DRY RUN]" if config.dry_run else "[ACTION]"

    if not source_dir.is_dir():
        msg = f"Source folder does not exist: {source_dir}"
        log_and_display(f"❌ {action_prefix} {msg}", level="error", sticky=True)
        raise FileNotFoundError(msg)

    owns_extractor = extractor is None
    if extractor is None:
        from .adapters import ExifToolMetadata
        extractor = ExifToolMetadata(tool_timeout=config.tool_timeout)
    extractor.check_tools()

    destinations = build_destinations(config)
    if not config.dry_run:
        for dest in destinations:
            dest.root.mkdir(parents=True, exist_ok=True)

    checksum = ChecksumService(config.hash_algorithm)
    porter = PixelPorter(
        destinations,
        extractor,
        checksum=checksum,
        deduplicator=deduplicator or HashDeduplicator(checksum, config.hash_workers),
        resolver=DateResolver(extractor, config.date_sources),
        move=config.move,
        dry_run=config.dry_run,
        read_remarks=config.read_remarks,
    )

    log_and_display(
        f"{action_prefix} Ingesting '{source_dir}' ({config.pattern}) → "
        + " + ".join(f"{d.label}: '{d.root}'" for d in destinations),
        sticky=True
    )

    files = discover_files(source_dir, config.pattern, config.recursive)
    try:
        if config.restamp_from_filename:
            restamp_from_filenames(files, extractor, dry_run=config.dry_run)
        if config.remark:
            apply_remark(files, config.remark, extractor, dry_run=config.dry_run)
        result = porter.run(files, show_progress=config.show_progress)
    finally:
        if owns_extractor:
            extractor.close()

    display_summary(f"{action_prefix} Summary", result.summary_rows())
    logger.info(
        f"Processed: {result.processed}, Copied: {result.copied}, Verified: {result.verified}, "
        f"Skipped: {result.skipped}, Unsupported: {result.unsupported}, Failed: {result.failed}"
    )
    if config.dry_run:
        log_and_display("💡 Run with dry_run=False to apply changes.", sticky=True)

    return result
