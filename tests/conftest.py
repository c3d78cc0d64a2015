from datetime import datetime
from pathlib import Path

import pytest

from snapstage.core.pixelporter.errors import MetadataUnavailable
from snapstage.core.pixelporter.protocols import DateCandidate, FilesystemTimes
from snapstage.events.bus import event_bus


class FakeMetadata:
    """In-memory MetadataExtractor keyed by file name."""

    def __init__(self):
        self.tags: dict[str, list[tuple[str, str]]] = {}
        self.container: dict[str, str] = {}
        self.fs_times: dict[str, FilesystemTimes] = {}
        self.remarks: dict[str, str] = {}
        self.unreadable: set[str] = set()
        self.read_only: set[str] = set()
        self.stamped: dict[str, datetime] = {}
        self.closed = False

    def tag(self, name: str, value: str, tag: str = "DateTimeOriginal") -> None:
        self.tags.setdefault(name, []).append((tag, value))

    def check_tools(self) -> None:
        pass

    def get_creation_time(self, file_path: Path) -> list[DateCandidate]:
        name = Path(file_path).name
        if name in self.unreadable:
            raise MetadataUnavailable(f"cannot read {name}")
        return [DateCandidate(t, v) for t, v in self.tags.get(name, [])]

    def get_container_creation_time(self, file_path: Path):
        return self.container.get(Path(file_path).name)

    def get_filesystem_timestamps(self, file_path: Path) -> FilesystemTimes:
        return self.fs_times.get(Path(file_path).name, FilesystemTimes(0, 0, 0))

    def get_remark(self, file_path: Path) -> str:
        return self.remarks.get(Path(file_path).name, "")

    def set_remark(self, file_path: Path, text: str) -> bool:
        self.remarks[Path(file_path).name] = text
        return True

    def set_timestamps(self, file_path: Path, timestamp: datetime) -> bool:
        name = Path(file_path).name
        if name in self.read_only:
            return False
        self.stamped[name] = timestamp
        return True

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_metadata() -> FakeMetadata:
    return FakeMetadata()


@pytest.fixture
def dirs(tmp_path: Path) -> dict[str, Path]:
    layout = {
        "source": tmp_path / "incoming",
        "primary": tmp_path / "STAGE2",
        "secondary": tmp_path / "STAGE1",
    }
    layout["source"].mkdir()
    return layout


@pytest.fixture
def write_file():
    def _write(path: Path, data: bytes) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path
    return _write


@pytest.fixture(autouse=True)
def _isolated_event_bus():
    yield
    event_bus.clear()
