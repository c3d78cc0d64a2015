"""
Minimal synchronous pub-sub bus.

Handlers subscribe per event type and are called in subscription order on
the publishing thread. A failing handler is logged and never interrupts
the ingestion run that published the event.
"""

from collections import defaultdict
from datetime import datetime
from typing import Any, Callable

from .models import FileBackedUpEvent, FileCopiedEvent, FileDeletedEvent
from ..utils.logging import get_configured_logger

logger = get_configured_logger("EventBus")

Handler = Callable[[Any], None]


class EventBus:
    def __init__(self):
        self._subscribers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        if handler not in self._subscribers[event_type]:
            self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: Handler) -> None:
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: Any) -> None:
        for handler in list(self._subscribers.get(type(event), [])):
            try:
                handler(event)
            except Exception:
                logger.exception(f"Event handler failed for {event!r}")

    def clear(self) -> None:
        self._subscribers.clear()


event_bus = EventBus()


def publish_file_copied(
    source_path: str,
    destination_path: str,
    source_size: int,
    destination_size: int,
    verified: bool = False
) -> None:
    event_bus.publish(FileCopiedEvent(
        source_path=source_path,
        destination_path=destination_path,
        source_size=source_size,
        destination_size=destination_size,
        verified=verified,
        timestamp=datetime.now()
    ))


def publish_file_deleted(file_path: str, file_size: int) -> None:
    event_bus.publish(FileDeletedEvent(
        file_path=file_path,
        file_size=file_size,
        timestamp=datetime.now()
    ))


def publish_file_backed_up(original_path: str, backup_path: str) -> None:
    event_bus.publish(FileBackedUpEvent(
        original_path=original_path,
        backup_path=backup_path,
        timestamp=datetime.now()
    ))


def publish_ingestion_result(result) -> None:
    """Publish a per-file IngestionResult to the result stream."""
    event_bus.publish(result)
