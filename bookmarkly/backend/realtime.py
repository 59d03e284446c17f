"""In-process change feed.

Writes made through the data service are published here after commit. Each
subscriber owns a :class:`Channel` with one or more table bindings; a binding
receives the events for its table whose row matches all of its column filters.
Delivery happens on the publishing thread, so callbacks must only hand the
event off (see ``bookmarkly.services.bookmark_realtime``).
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from bookmarkly.models import utcnow


logger = logging.getLogger(__name__)

EVENT_INSERT = "INSERT"
EVENT_UPDATE = "UPDATE"
EVENT_DELETE = "DELETE"
EVENT_ANY = "*"
EVENT_TYPES = {EVENT_INSERT, EVENT_UPDATE, EVENT_DELETE}

STATUS_IDLE = "IDLE"
STATUS_SUBSCRIBED = "SUBSCRIBED"
STATUS_CLOSED = "CLOSED"
STATUS_CHANNEL_ERROR = "CHANNEL_ERROR"


@dataclass(frozen=True)
class ChangeEvent:
    event_type: str
    table: str
    new: dict = field(default_factory=dict)
    old: dict = field(default_factory=dict)
    commit_timestamp: datetime = field(default_factory=utcnow)

    @property
    def row(self) -> dict:
        return self.new or self.old


@dataclass
class _Binding:
    table: str
    callback: Callable[[ChangeEvent], None]
    event: str = EVENT_ANY
    filters: dict = field(default_factory=dict)

    def matches(self, change: ChangeEvent) -> bool:
        if change.table != self.table:
            return False
        if self.event != EVENT_ANY and change.event_type != self.event:
            return False
        row = change.row
        return all(
            key in row and str(row[key]) == str(value)
            for key, value in self.filters.items()
        )


class Channel:
    def __init__(self, hub: "RealtimeHub", name: str):
        self.name = name
        self.status = STATUS_IDLE
        self._hub = hub
        self._bindings: list[_Binding] = []
        self._status_callback: Callable[[str], None] | None = None

    def on(
        self,
        table: str,
        callback: Callable[[ChangeEvent], None],
        *,
        event: str = EVENT_ANY,
        filters: dict | None = None,
    ) -> "Channel":
        if event != EVENT_ANY and event not in EVENT_TYPES:
            raise ValueError(f"unsupported event type: {event}")
        self._bindings.append(
            _Binding(table=table, callback=callback, event=event, filters=filters or {})
        )
        return self

    def subscribe(self, status_callback: Callable[[str], None] | None = None):
        self._status_callback = status_callback
        self._hub._join(self)
        self._set_status(STATUS_SUBSCRIBED)
        return self

    def unsubscribe(self) -> None:
        if self.status == STATUS_CLOSED:
            return
        self._hub._leave(self)
        self._set_status(STATUS_CLOSED)

    def deliver(self, change: ChangeEvent) -> int:
        delivered = 0
        for binding in list(self._bindings):
            if not binding.matches(change):
                continue
            try:
                binding.callback(change)
            except Exception:
                # A broken subscriber must not fail the write that published.
                logger.exception("Realtime callback failed on channel %s", self.name)
                self._set_status(STATUS_CHANNEL_ERROR)
                continue
            delivered += 1
        return delivered

    def _set_status(self, status: str) -> None:
        self.status = status
        if self._status_callback is not None:
            self._status_callback(status)


class RealtimeHub:
    def __init__(self):
        self._channels: dict[int, Channel] = {}
        self._lock = threading.Lock()

    def channel(self, name: str) -> Channel:
        return Channel(self, name)

    def remove_channel(self, channel: Channel) -> None:
        channel.unsubscribe()

    def publish(self, change: ChangeEvent) -> int:
        with self._lock:
            channels = list(self._channels.values())
        return sum(channel.deliver(change) for channel in channels)

    @property
    def channel_names(self) -> list[str]:
        with self._lock:
            return [channel.name for channel in self._channels.values()]

    def _join(self, channel: Channel) -> None:
        with self._lock:
            self._channels[id(channel)] = channel

    def _leave(self, channel: Channel) -> None:
        with self._lock:
            self._channels.pop(id(channel), None)
