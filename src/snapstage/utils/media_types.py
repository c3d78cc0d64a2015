"""Case-insensitive allow-list of ingestible media extensions."""

from enum import Enum
from pathlib import Path

IMAGE_EXTENSIONS = frozenset({'.jpg', '.jpeg', '.png', '.heic', '.heif'})

VIDEO_EXTENSIONS = frozenset({
    '.avi', '.mov', '.mp4', '.m4v', '.mkv',
    '.webm', '.flv', '.wmv', '.mpg', '.mpeg',
})


class MediaKind(Enum):
    IMAGE = "image"
    VIDEO = "video"
    UNSUPPORTED = "unsupported"


def classify(file_path: Path) -> MediaKind:
    """
    Classify a file by extension.

    macOS resource forks (``._IMG_1234.JPG``) carry a media extension but no
    media payload, so they are treated as unsupported.
    """
    file_path = Path(file_path)
    if file_path.name.startswith('._'):
        return MediaKind.UNSUPPORTED

    ext = file_path.suffix.lower()
    if ext in IMAGE_EXTENSIONS:
        return MediaKind.IMAGE
    if ext in VIDEO_EXTENSIONS:
        return MediaKind.VIDEO
    return MediaKind.UNSUPPORTED


def is_video(file_path: Path) -> bool:
    return classify(file_path) is MediaKind.VIDEO
