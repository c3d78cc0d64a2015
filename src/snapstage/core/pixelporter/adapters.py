"""Adapters to make external metadata tools compatible with PixelPorter protocols."""

import os
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Optional

import exiftool
from exiftool.exceptions import ExifToolException

from ...utils.logging import get_configured_logger
from ...utils.media_types import is_video
from .errors import MetadataUnavailable, ToolUnavailable
from .protocols import DateCandidate, FilesystemTimes

logger = get_configured_logger("PixelPorter.Adapters")

# Primary creation tag, original capture tag, last modified tag
CREATION_TAGS = ("CreateDate", "DateTimeOriginal", "ModifyDate")

# JPEGs get every capture tag rewritten; other formats only the file date
JPEG_EXTENSIONS = frozenset({".jpg", ".jpeg"})
TIMESTAMP_TAGS = ("DateTimeOriginal", "CreateDate", "ModifyDate", "FileModifyDate")

IMAGE_REMARK_TAGS = ("ImageDescription", "UserComment")
VIDEO_REMARK_TAGS = ("title", "comment", "description")


class ExifToolMetadata:
    """
    MetadataExtractor backed by exiftool (via pyexiftool) and ffprobe/ffmpeg.

    A single exiftool process is started on first use and reused until
    close(). ffprobe and ffmpeg are optional: without them, video container
    dates are unavailable and video remarks fall back to exiftool.
    """

    def __init__(
        self,
        executable: str = "exiftool",
        ffprobe: str = "ffprobe",
        ffmpeg: str = "ffmpeg",
        tool_timeout: Optional[float] = 30.0
    ):
        self.executable = executable
        self.ffprobe = shutil.which(ffprobe)
        self.ffmpeg = shutil.which(ffmpeg)
        self.tool_timeout = tool_timeout
        self._et: Optional[exiftool.ExifToolHelper] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def check_tools(self) -> None:
        if shutil.which(self.executable) is None:
            raise ToolUnavailable(
                "exiftool",
                "Install with: sudo apt-get install libimage-exiftool-perl "
                "(Debian/Ubuntu) or: brew install exiftool (macOS)"
            )
        if self.ffprobe is None:
            logger.warning("ffprobe not found, video container dates are disabled")

    def _helper(self) -> exiftool.ExifToolHelper:
        if self._et is None:
            self._et = exiftool.ExifToolHelper(executable=self.executable, common_args=["-G"])
        if not self._et.running:
            self._et.run()
        return self._et

    def close(self) -> None:
        if self._et is not None and self._et.running:
            self._et.terminate()
        self._et = None

    def _read_tags(self, file_path: Path, tags: tuple[str, ...]) -> dict[str, str]:
        """Read tags, keyed by bare tag name (first group wins)."""
        try:
            metadata = self._helper().get_tags(str(file_path), tags=list(tags))
        except ExifToolException as e:
            raise MetadataUnavailable(f"exiftool could not read {Path(file_path).name}: {e}") from e

        values: dict[str, str] = {}
        for key, value in (metadata[0] if metadata else {}).items():
            if key == "SourceFile":
                continue
            tag = key.split(":")[-1]
            text = str(value).strip()
            if text and tag not in values:
                values[tag] = text
        return values

    def get_creation_time(self, file_path: Path) -> list[DateCandidate]:
        values = self._read_tags(file_path, CREATION_TAGS)
        return [DateCandidate(tag, values[tag]) for tag in CREATION_TAGS if tag in values]

    def _probe_tag(self, file_path: Path, entry: str) -> str:
        if self.ffprobe is None:
            return ""
        try:
            completed = subprocess.run(
                [
                    self.ffprobe, "-v", "quiet",
                    "-show_entries", entry,
                    "-of", "default=noprint_wrappers=1:nokey=1",
                    str(file_path)
                ],
                capture_output=True,
                text=True,
                timeout=self.tool_timeout
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"ffprobe timed out on {Path(file_path).name}")
            return ""
        lines = completed.stdout.strip().splitlines()
        return lines[0].strip() if lines else ""

    def get_container_creation_time(self, file_path: Path) -> Optional[str]:
        for entry in ("format_tags=creation_time", "stream_tags=creation_time"):
            value = self._probe_tag(file_path, entry)
            if value:
                return value
        return None

    def get_filesystem_timestamps(self, file_path: Path) -> FilesystemTimes:
        try:
            st = os.stat(file_path)
        except OSError as e:
            raise MetadataUnavailable(f"Cannot stat {file_path}: {e}") from e
        return FilesystemTimes(st.st_mtime, st.st_atime, st.st_ctime)

    def get_remark(self, file_path: Path) -> str:
        """ImageDescription/UserComment for images, title/comment/description for video."""
        if is_video(file_path):
            if self.ffprobe is not None:
                for tag in VIDEO_REMARK_TAGS:
                    remark = self._probe_tag(file_path, f"format_tags={tag}")
                    if remark:
                        return remark
                return ""
            return self._read_tags(file_path, ("Comment",)).get("Comment", "")

        values = self._read_tags(file_path, IMAGE_REMARK_TAGS)
        for tag in IMAGE_REMARK_TAGS:
            if values.get(tag):
                return values[tag]
        return ""

    def set_remark(self, file_path: Path, text: str) -> bool:
        """
        Write a remark into the file's own metadata.

        Returns:
            True if the remark was written
        """
        file_path = Path(file_path)
        if is_video(file_path):
            return self._set_video_remark(file_path, text)

        try:
            self._helper().set_tags(
                str(file_path),
                {tag: text for tag in IMAGE_REMARK_TAGS},
                params=["-overwrite_original"]
            )
        except ExifToolException as e:
            logger.warning(f"Cannot set remark for {file_path.name}: {e}")
            return False

        logger.info(f"Set remark for {file_path.name}")
        return True

    def _set_video_remark(self, file_path: Path, text: str) -> bool:
        if self.ffmpeg is None:
            logger.error("ffmpeg not found, cannot set remarks on video files")
            return False

        temp_path = file_path.with_name(f"{file_path.stem}.tmp_remark{file_path.suffix}")
        command = [self.ffmpeg, "-v", "quiet", "-i", str(file_path)]
        for tag in VIDEO_REMARK_TAGS:
            command += ["-metadata", f"{tag}={text}"]
        command += ["-c", "copy", "-y", str(temp_path)]

        try:
            subprocess.run(command, capture_output=True, check=True, timeout=self.tool_timeout)
            os.replace(temp_path, file_path)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            temp_path.unlink(missing_ok=True)
            logger.warning(f"Failed to set remark for {file_path.name} using ffmpeg: {e}")
            return False

        logger.info(f"Set remark for {file_path.name}")
        return True

    def set_timestamps(self, file_path: Path, timestamp: datetime) -> bool:
        """
        Rewrite capture dates in place.

        JPEGs get DateTimeOriginal, CreateDate, ModifyDate and FileModifyDate;
        everything else only FileModifyDate.

        Returns:
            True if exiftool accepted the write
        """
        file_path = Path(file_path)
        value = timestamp.strftime("%Y:%m:%d %H:%M:%S")
        tags = TIMESTAMP_TAGS if file_path.suffix.lower() in JPEG_EXTENSIONS else ("FileModifyDate",)

        try:
            self._helper().set_tags(
                str(file_path),
                {tag: value for tag in tags},
                params=["-overwrite_original"]
            )
        except ExifToolException as e:
            logger.warning(f"Cannot set timestamps for {file_path.name}: {e}")
            return False

        logger.info(f"Set {', '.join(tags)} of {file_path.name} to {value}")
        return True

