from __future__ import annotations

import logging
import queue
import threading
import time

from bookmarkly.backend.realtime import (
    EVENT_DELETE,
    EVENT_INSERT,
    EVENT_UPDATE,
    STATUS_CHANNEL_ERROR,
    STATUS_SUBSCRIBED,
    ChangeEvent,
    RealtimeHub,
)
from bookmarkly.services.records import BookmarkRecord, RecordShapeError
from bookmarkly.services.state import BookmarkState


logger = logging.getLogger(__name__)

TABLE = "bookmarks"


def apply_change(items: list[BookmarkRecord], change: ChangeEvent) -> list[BookmarkRecord]:
    if change.event_type == EVENT_INSERT:
        record = BookmarkRecord.from_payload(change.new)
        if any(item.id == record.id for item in items):
            return items
        return [record, *items]

    if change.event_type == EVENT_UPDATE:
        record = BookmarkRecord.from_payload(change.new)
        return [record if item.id == record.id else item for item in items]

    if change.event_type == EVENT_DELETE:
        bookmark_id = change.old.get("id")
        if not isinstance(bookmark_id, str):
            raise RecordShapeError("delete event without an id")
        return [item for item in items if item.id != bookmark_id]

    return items


class BookmarkRealtime:
    """Keeps a ``BookmarkState`` in step with the user's change feed.

    The hub calls back on whichever thread committed the write, so the
    callback only enqueues. ``pump`` is the single consumer: it drains the
    queue in arrival order and merges each event into the state.
    """

    def __init__(self, hub: RealtimeHub, state: BookmarkState):
        self._hub = hub
        self.state = state
        self.user_id: str | None = None
        self.status: str | None = None
        self._channel = None
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._consume_lock = threading.Lock()

    @property
    def channel_name(self) -> str | None:
        return self._channel.name if self._channel else None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def subscribe(self, user_id: str | None):
        self.unsubscribe()
        if user_id != self.user_id:
            self._queue = queue.SimpleQueue()
        self.user_id = user_id
        if not user_id:
            return None

        name = f"{TABLE}-{user_id}-{int(time.time() * 1000)}"
        inbox = self._queue
        self._channel = self._hub.channel(name).on(
            TABLE, inbox.put, filters={"user_id": user_id}
        )
        self._channel.subscribe(self._on_status)
        return self._channel

    def resume(self):
        return self.subscribe(self.user_id)

    def unsubscribe(self) -> None:
        if self._channel is not None:
            self._hub.remove_channel(self._channel)
            self._channel = None

    def pump(self) -> int:
        applied = 0
        with self._consume_lock:
            while True:
                try:
                    change = self._queue.get_nowait()
                except queue.Empty:
                    break
                try:
                    self.state.update(lambda items: apply_change(items, change))
                except RecordShapeError as exc:
                    logger.warning(
                        "Skipping malformed %s event: %s", change.event_type, exc
                    )
                    continue
                applied += 1
        return applied

    def _on_status(self, status: str) -> None:
        self.status = status
        if status == STATUS_SUBSCRIBED:
            logger.info("Realtime channel subscribed: %s", self.channel_name)
        elif status == STATUS_CHANNEL_ERROR:
            logger.warning("Realtime channel issue: %s", status)
