from pathlib import Path

import pytest

from snapstage.core.pixelporter import pixelporter as engine
from snapstage.core.pixelporter.models import DestinationSpec, IngestionResult, Outcome
from snapstage.core.pixelporter.pixelporter import PixelPorter, discover_files, push_media
from snapstage.events.bus import event_bus
from snapstage.events.models import FileBackedUpEvent, FileCopiedEvent
from snapstage.events.verifier import DirectoryVerifier
from snapstage.utils.checksum import ChecksumService
from snapstage.utils.config_loader import IngestConfig
from snapstage.utils.deduplicator import HashDeduplicator


def files_under(root: Path) -> list[str]:
    if not root.exists():
        return []
    return sorted(str(p.relative_to(root)) for p in root.rglob("*") if p.is_file())


@pytest.fixture
def porter_for(dirs, fake_metadata):
    def _make(secondary: bool = False, **options) -> PixelPorter:
        dest_opts = {k: options.pop(k) for k in ("organize_by_date", "verify", "skip_same_size") if k in options}
        destinations = [DestinationSpec(dirs["primary"], "primary", rename=True, **dest_opts)]
        if secondary:
            destinations.append(DestinationSpec(dirs["secondary"], "secondary", rename=False, **dest_opts))
        return PixelPorter(destinations, fake_metadata, **options)
    return _make


def test_dated_photo_gets_canonical_name(dirs, fake_metadata, write_file, porter_for):
    src = write_file(dirs["source"] / "IMG_0001.JPG", b"beach")
    fake_metadata.tag("IMG_0001.JPG", "2023:12:25 14:30:22", "CreateDate")

    result = porter_for().ingest(src)

    assert result.outcome is Outcome.COPIED
    assert result.destination_paths == [dirs["primary"] / "20231225_143022.jpg"]
    assert (dirs["primary"] / "20231225_143022.jpg").read_bytes() == b"beach"
    assert src.exists()


def test_second_run_is_idempotent(dirs, fake_metadata, write_file, porter_for):
    src = write_file(dirs["source"] / "IMG_0001.JPG", b"beach")
    fake_metadata.tag("IMG_0001.JPG", "2023:12:25 14:30:22")
    porter_for().run([src])
    before = files_under(dirs["primary"])

    rerun = porter_for()
    result = rerun.ingest(src)

    assert result.outcome is Outcome.SKIPPED
    assert "duplicate" in result.reason
    assert files_under(dirs["primary"]) == before
    assert rerun.result.skipped == 1


def test_identical_content_collapses_to_one_copy(dirs, fake_metadata, write_file, porter_for):
    a = write_file(dirs["source"] / "IMG_0001.JPG", b"same")
    b = write_file(dirs["source"] / "IMG_0001 copy.JPG", b"same")
    fake_metadata.tag("IMG_0001.JPG", "2023:12:25 14:30:22")
    fake_metadata.tag("IMG_0001 copy.JPG", "2023:12:25 14:30:22")

    porter = porter_for()
    porter.run([a, b])

    assert files_under(dirs["primary"]) == ["20231225_143022.jpg"]
    assert porter.result.copied == 1
    assert porter.result.skipped == 1


def test_same_second_different_content_gets_suffix(dirs, fake_metadata, write_file, porter_for):
    a = write_file(dirs["source"] / "a.jpg", b"first")
    b = write_file(dirs["source"] / "b.jpg", b"second")
    for name in ("a.jpg", "b.jpg"):
        fake_metadata.tag(name, "2024:01:01 00:00:00")

    porter_for().run([a, b])

    assert files_under(dirs["primary"]) == ["20240101_000000.jpg", "20240101_000000_001.jpg"]
    assert (dirs["primary"] / "20240101_000000_001.jpg").read_bytes() == b"second"


def test_undated_video_keeps_original_name(dirs, write_file, porter_for):
    src = write_file(dirs["source"] / "holiday.mov", b"movie")

    result = porter_for().ingest(src)

    assert not result.resolved_date.has_date
    assert files_under(dirs["primary"]) == ["holiday.mov"]


def test_filename_date_used_when_metadata_missing(dirs, write_file, porter_for):
    src = write_file(dirs["source"] / "VID_20161010_231520.mp4", b"movie")
    porter_for().ingest(src)
    assert files_under(dirs["primary"]) == ["20161010_231520.mp4"]


def test_organize_by_date_uses_year_month_folders(dirs, fake_metadata, write_file, porter_for):
    src = write_file(dirs["source"] / "IMG_0001.JPG", b"beach")
    fake_metadata.tag("IMG_0001.JPG", "2023:12:25 14:30:22")

    porter_for(organize_by_date=True).ingest(src)

    assert files_under(dirs["primary"]) == [str(Path("2023", "12", "20231225_143022.jpg"))]


def test_duplicate_found_in_other_month_folder(dirs, fake_metadata, write_file, porter_for):
    write_file(dirs["primary"] / "2019" / "06" / "old_name.jpg", b"beach")
    src = write_file(dirs["source"] / "IMG_0001.JPG", b"beach")
    fake_metadata.tag("IMG_0001.JPG", "2023:12:25 14:30:22")

    result = porter_for(organize_by_date=True).ingest(src)

    assert result.outcome is Outcome.SKIPPED
    assert not (dirs["primary"] / "2023").exists()


def test_verify_reports_copied_and_verified(dirs, fake_metadata, write_file, porter_for):
    src = write_file(dirs["source"] / "IMG_0001.JPG", b"beach")
    fake_metadata.tag("IMG_0001.JPG", "2023:12:25 14:30:22")

    porter = porter_for(verify=True)
    result = porter.ingest(src)

    assert result.outcome is Outcome.COPIED_AND_VERIFIED
    assert result.verified
    assert porter.result.verified == 1


class CorruptingChecksum(ChecksumService):
    """Reports a different digest for anything under one directory."""

    def __init__(self, corrupt_root: Path):
        super().__init__()
        self.corrupt_root = corrupt_root

    def hash(self, file_path):
        if self.corrupt_root in Path(file_path).parents:
            return "0" * 32
        return super().hash(file_path)


def test_verification_mismatch_fails_and_keeps_source(dirs, fake_metadata, write_file, porter_for):
    src = write_file(dirs["source"] / "IMG_0001.JPG", b"beach")
    fake_metadata.tag("IMG_0001.JPG", "2023:12:25 14:30:22")

    porter = porter_for(verify=True, move=True, checksum=CorruptingChecksum(dirs["primary"]))
    result = porter.ingest(src)

    assert result.outcome is Outcome.FAILED
    assert result.destinations[0].error_kind == "verification"
    assert files_under(dirs["primary"]) == []
    assert src.exists()
    assert porter.result.exit_code == 1


def test_write_failure_rolls_back_and_continues(dirs, fake_metadata, write_file, porter_for, monkeypatch):
    a = write_file(dirs["source"] / "a.jpg", b"first")
    b = write_file(dirs["source"] / "b.jpg", b"second")
    real_copy = engine.shutil.copy2

    def flaky_copy(src, dst, *args, **kwargs):
        if Path(src).name == "a.jpg":
            raise OSError("disk full")
        return real_copy(src, dst, *args, **kwargs)

    monkeypatch.setattr(engine.shutil, "copy2", flaky_copy)
    porter = porter_for(move=True)
    porter.run([a, b])

    failed, copied = porter.result.results
    assert failed.outcome is Outcome.FAILED
    assert failed.destinations[0].error_kind == "write"
    assert "disk full" in failed.reason
    assert copied.outcome is Outcome.COPIED
    assert a.exists()
    assert not b.exists()
    assert porter.result.deleted == 1
    assert porter.result.failed == 1


def test_move_deletes_source_only_after_every_destination(dirs, fake_metadata, write_file, porter_for):
    src = write_file(dirs["source"] / "IMG_0001.JPG", b"beach")
    fake_metadata.tag("IMG_0001.JPG", "2023:12:25 14:30:22")

    result = porter_for(secondary=True, move=True).ingest(src)

    assert result.source_deleted
    assert not src.exists()
    assert files_under(dirs["primary"]) == ["20231225_143022.jpg"]
    assert files_under(dirs["secondary"]) == ["IMG_0001.JPG"]


def test_conflict_backup_on_flat_destination(dirs, fake_metadata, write_file, porter_for):
    write_file(dirs["secondary"] / "IMG_1234.JPG", b"someone else's photo")
    src = write_file(dirs["source"] / "IMG_1234.JPG", b"our photo")
    fake_metadata.tag("IMG_1234.JPG", "2025:11:05 23:44:10+05:30")
    backed_up = []
    event_bus.subscribe(FileBackedUpEvent, backed_up.append)

    result = porter_for(secondary=True, move=True).ingest(src)

    primary, secondary = result.destinations
    assert primary.outcome is Outcome.COPIED
    assert secondary.outcome is Outcome.CONFLICT_BACKED_UP
    assert result.outcome is Outcome.CONFLICT_BACKED_UP
    assert (dirs["secondary"] / "IMG_1234.JPG").read_bytes() == b"our photo"
    assert secondary.backup_path.name.startswith("IMG_1234.JPG.backup.")
    assert secondary.backup_path.read_bytes() == b"someone else's photo"
    assert len(backed_up) == 1
    # a backup is not a clean copy, so the source stays
    assert src.exists()
    assert not result.source_deleted


def test_same_name_same_content_on_flat_destination_is_skipped(dirs, fake_metadata, write_file, porter_for):
    write_file(dirs["secondary"] / "IMG_1234.JPG", b"our photo")
    src = write_file(dirs["source"] / "IMG_1234.JPG", b"our photo")

    result = porter_for(secondary=True).ingest(src)

    assert result.destinations[1].outcome is Outcome.SKIPPED
    assert files_under(dirs["secondary"]) == ["IMG_1234.JPG"]


def test_skip_same_size_on_exact_target(dirs, fake_metadata, write_file, porter_for):
    write_file(dirs["secondary"] / "IMG_1234.JPG", b"AAAA")
    src = write_file(dirs["source"] / "IMG_1234.JPG", b"BBBB")

    result = porter_for(secondary=True, skip_same_size=True).ingest(src)

    assert result.destinations[1].outcome is Outcome.SKIPPED
    assert (dirs["secondary"] / "IMG_1234.JPG").read_bytes() == b"AAAA"


def test_dry_run_writes_nothing_but_plans_collisions(dirs, fake_metadata, write_file, porter_for):
    a = write_file(dirs["source"] / "a.jpg", b"first")
    b = write_file(dirs["source"] / "b.jpg", b"second")
    c = write_file(dirs["source"] / "c.jpg", b"first")
    for name in ("a.jpg", "b.jpg", "c.jpg"):
        fake_metadata.tag(name, "2024:01:01 00:00:00")

    porter = porter_for(dry_run=True, move=True)
    porter.run([a, b, c])

    planned = [r.destinations[0] for r in porter.result.results]
    assert [d.outcome for d in planned] == [Outcome.COPIED, Outcome.COPIED, Outcome.SKIPPED]
    assert planned[1].target_path.name == "20240101_000000_001.jpg"
    assert all(d.dry_run for d in planned)
    assert not dirs["primary"].exists()
    assert a.exists() and b.exists() and c.exists()


def test_unsupported_files_are_counted_not_published(dirs, write_file, porter_for):
    src = write_file(dirs["source"] / "notes.txt", b"text")
    published = []
    event_bus.subscribe(IngestionResult, published.append)

    porter = porter_for()
    assert porter.ingest(src) is None
    assert porter.result.unsupported == 1
    assert porter.result.processed == 0
    assert published == []


def test_vanished_source_is_a_failed_result(dirs, porter_for):
    porter = porter_for()
    result = porter.ingest(dirs["source"] / "gone.jpg")
    assert result.outcome is Outcome.FAILED
    assert "not found" in result.reason


def test_every_file_publishes_one_result(dirs, fake_metadata, write_file, porter_for):
    files = [write_file(dirs["source"] / f"{i}.jpg", f"data{i}".encode()) for i in range(3)]
    published = []
    copied = []
    event_bus.subscribe(IngestionResult, published.append)
    event_bus.subscribe(FileCopiedEvent, copied.append)

    porter_for().run(files)

    assert [r.source_path for r in published] == files
    assert len(copied) == 3


def test_stop_leaves_remaining_files(dirs, write_file, porter_for):
    files = [write_file(dirs["source"] / f"{i}.jpg", f"data{i}".encode()) for i in range(3)]
    porter = porter_for()
    porter.stop()

    porter.run(files)

    assert porter.result.processed == 0
    assert files_under(dirs["primary"]) == []


def test_read_remarks(dirs, fake_metadata, write_file, porter_for):
    src = write_file(dirs["source"] / "IMG_0001.JPG", b"beach")
    fake_metadata.remarks["IMG_0001.JPG"] = "Grandma's birthday"

    result = porter_for(read_remarks=True).ingest(src)

    assert result.remark == "Grandma's birthday"


def test_verifier_agrees_with_move_run(dirs, fake_metadata, write_file, porter_for):
    write_file(dirs["secondary"] / "IMG_1234.JPG", b"old")
    a = write_file(dirs["source"] / "IMG_1234.JPG", b"new")
    b = write_file(dirs["source"] / "IMG_5678.JPG", b"other")
    verifier = DirectoryVerifier(str(dirs["source"]), str(dirs["primary"]), str(dirs["secondary"]))

    try:
        porter_for(secondary=True, move=True).run([a, b])
        assert verifier.report()
        stats = verifier.get_stats()
        assert stats["copies_tracked"] == 4
        assert stats["backups_tracked"] == 1
        assert stats["deletions_tracked"] == 1
    finally:
        verifier.cleanup()


def test_move_keeps_source_when_every_destination_skips(dirs, fake_metadata, write_file, porter_for):
    write_file(dirs["primary"] / "20231225_143022.jpg", b"beach")
    src = write_file(dirs["source"] / "IMG_0001.JPG", b"beach")
    fake_metadata.tag("IMG_0001.JPG", "2023:12:25 14:30:22")

    porter = porter_for(move=True)
    result = porter.ingest(src)

    assert result.outcome is Outcome.SKIPPED
    assert not result.source_deleted
    assert src.exists()
    assert porter.result.deleted == 0


def test_displaced_content_is_still_a_duplicate(dirs, fake_metadata, write_file, porter_for):
    write_file(dirs["secondary"] / "a.jpg", b"XXXX")
    a = write_file(dirs["source"] / "a.jpg", b"YYYY")
    b = write_file(dirs["source"] / "b.jpg", b"XXXX")

    porter = porter_for(secondary=True)
    porter.run([a, b])

    stored = files_under(dirs["secondary"])
    assert len(stored) == 2
    assert stored[0] == "a.jpg"
    assert stored[1].startswith("a.jpg.backup.")
    second = porter.result.results[1]
    assert second.destinations[1].outcome is Outcome.SKIPPED
    assert (dirs["secondary"] / "a.jpg").read_bytes() == b"YYYY"


def test_failed_verification_restores_backup(dirs, fake_metadata, write_file, porter_for):
    write_file(dirs["secondary"] / "a.jpg", b"old content")
    src = write_file(dirs["source"] / "a.jpg", b"new")

    porter = porter_for(secondary=True, verify=True, move=True, checksum=CorruptingChecksum(dirs["secondary"]))
    result = porter.ingest(src)

    primary, secondary = result.destinations
    assert primary.outcome is Outcome.COPIED_AND_VERIFIED
    assert secondary.outcome is Outcome.FAILED
    assert secondary.error_kind == "verification"
    assert files_under(dirs["secondary"]) == ["a.jpg"]
    assert (dirs["secondary"] / "a.jpg").read_bytes() == b"old content"
    assert src.exists()


def test_failed_write_restores_backup_and_its_index_entry(dirs, fake_metadata, write_file, porter_for,
                                                          monkeypatch):
    write_file(dirs["secondary"] / "a.jpg", b"old content")
    a = write_file(dirs["source"] / "a.jpg", b"new")
    b = write_file(dirs["source"] / "b.jpg", b"old content")
    real_copy = engine.shutil.copy2

    def full_secondary(src, dst, *args, **kwargs):
        if dirs["secondary"] in Path(dst).parents and Path(src).name == "a.jpg":
            raise OSError("disk full")
        return real_copy(src, dst, *args, **kwargs)

    monkeypatch.setattr(engine.shutil, "copy2", full_secondary)
    porter = porter_for(secondary=True)
    first, second = porter.run([a, b]).results

    assert first.destinations[1].outcome is Outcome.FAILED
    assert first.destinations[1].error_kind == "write"
    assert (dirs["secondary"] / "a.jpg").read_bytes() == b"old content"
    # the restored file is found under its own name again
    assert second.destinations[1].outcome is Outcome.SKIPPED
    assert files_under(dirs["secondary"]) == ["a.jpg"]


class ProtocolOnlyDeduplicator:
    """Implements just the Deduplicator protocol, nothing HashDeduplicator adds."""

    def __init__(self):
        self._index = HashDeduplicator()
        self.renamed = []

    def find_by_content(self, file_path, dest_root, content_hash=None):
        return self._index.find_by_content(file_path, dest_root, content_hash)

    def register(self, dest_root, file_path, content_hash, size):
        self._index.register(dest_root, file_path, content_hash, size)

    def rename(self, dest_root, old_path, new_path):
        self.renamed.append((Path(old_path).name, Path(new_path).name))
        self._index.rename(dest_root, old_path, new_path)

    def matches_by_size(self, source, target):
        return self._index.matches_by_size(source, target)


def test_injected_deduplicator_handles_conflict_backup(dirs, fake_metadata, write_file, porter_for):
    write_file(dirs["secondary"] / "IMG_1234.JPG", b"someone else's photo")
    src = write_file(dirs["source"] / "IMG_1234.JPG", b"our photo")
    dedup = ProtocolOnlyDeduplicator()

    result = porter_for(secondary=True, deduplicator=dedup).ingest(src)

    assert result.destinations[1].outcome is Outcome.CONFLICT_BACKED_UP
    assert len(dedup.renamed) == 1
    assert dedup.renamed[0][0] == "IMG_1234.JPG"


def test_skip_same_size_checks_canonical_name(dirs, fake_metadata, write_file, porter_for):
    write_file(dirs["primary"] / "20240101_000000.jpg", b"AAAA")
    src = write_file(dirs["source"] / "a.jpg", b"BBBB")
    fake_metadata.tag("a.jpg", "2024:01:01 00:00:00")

    result = porter_for(skip_same_size=True).ingest(src)

    assert result.destinations[0].outcome is Outcome.SKIPPED
    assert files_under(dirs["primary"]) == ["20240101_000000.jpg"]


def test_without_skip_same_size_canonical_name_gets_suffix(dirs, fake_metadata, write_file, porter_for):
    write_file(dirs["primary"] / "20240101_000000.jpg", b"AAAA")
    src = write_file(dirs["source"] / "a.jpg", b"BBBB")
    fake_metadata.tag("a.jpg", "2024:01:01 00:00:00")

    porter_for().ingest(src)

    assert files_under(dirs["primary"]) == ["20240101_000000.jpg", "20240101_000000_001.jpg"]


class UnreadableSourceChecksum(ChecksumService):
    """Fails to read anything under one directory."""

    def __init__(self, unreadable_root: Path):
        super().__init__()
        self.unreadable_root = unreadable_root

    def hash(self, file_path):
        if self.unreadable_root in Path(file_path).parents:
            raise OSError("Input/output error")
        return super().hash(file_path)


def test_unreadable_source_is_a_read_failure(dirs, fake_metadata, write_file, porter_for):
    src = write_file(dirs["source"] / "IMG_0001.JPG", b"beach")

    porter = porter_for(secondary=True, move=True, checksum=UnreadableSourceChecksum(dirs["source"]))
    result = porter.ingest(src)

    assert result.outcome is Outcome.FAILED
    assert [d.error_kind for d in result.destinations] == ["read", "read"]
    assert files_under(dirs["primary"]) == []
    assert src.exists()


def test_discover_files_sorted_and_pattern(dirs, write_file):
    write_file(dirs["source"] / "b.jpg", b"b")
    write_file(dirs["source"] / "a.JPG", b"a")
    write_file(dirs["source"] / "nested" / "c.jpg", b"c")

    assert [p.name for p in discover_files(dirs["source"])] == ["a.JPG", "b.jpg"]
    assert [p.name for p in discover_files(dirs["source"], "*.jpg", recursive=True)] == ["b.jpg", "c.jpg"]


def test_push_media_end_to_end(dirs, fake_metadata, write_file):
    write_file(dirs["source"] / "IMG_0001.JPG", b"beach")
    write_file(dirs["source"] / "notes.txt", b"text")
    fake_metadata.tag("IMG_0001.JPG", "2023:12:25 14:30:22")
    config = IngestConfig(
        source_folder=str(dirs["source"]),
        primary_folder=str(dirs["primary"]),
        secondary_folder=str(dirs["secondary"]),
        verify=True,
    )

    result = push_media(config=config, extractor=fake_metadata)

    assert result.exit_code == 0
    assert result.processed == 1
    assert result.unsupported == 1
    assert result.verified == 1
    assert files_under(dirs["primary"]) == ["20231225_143022.jpg"]
    assert files_under(dirs["secondary"]) == ["IMG_0001.JPG"]
    # caller-supplied extractors stay open
    assert not fake_metadata.closed


def test_push_media_dry_run_creates_nothing(dirs, fake_metadata, write_file):
    write_file(dirs["source"] / "IMG_0001.JPG", b"beach")
    config = IngestConfig(source_folder=str(dirs["source"]), primary_folder=str(dirs["primary"]), dry_run=True)

    result = push_media(config=config, extractor=fake_metadata)

    assert result.copied == 1
    assert not dirs["primary"].exists()


def test_push_media_missing_source(dirs, fake_metadata):
    config = IngestConfig(source_folder=str(dirs["source"] / "nope"), primary_folder=str(dirs["primary"]))
    with pytest.raises(FileNotFoundError):
        push_media(config=config, extractor=fake_metadata)


def test_push_media_requires_primary(dirs, fake_metadata):
    with pytest.raises(ValueError):
        push_media(config=IngestConfig(source_folder=str(dirs["source"])), extractor=fake_metadata)
