from __future__ import annotations

import threading
from typing import Callable, Iterable

from bookmarkly.services.records import BookmarkRecord


class BookmarkState:
    """The local bookmark collection.

    Fetches, optimistic mutations and realtime merges all go through
    ``update``; each call swaps the whole list under a lock and bumps
    ``version`` so readers can tell when something changed.
    """

    def __init__(self, items: Iterable[BookmarkRecord] = ()):
        self._items: list[BookmarkRecord] = list(items)
        self._lock = threading.Lock()
        self.version = 0

    @property
    def items(self) -> list[BookmarkRecord]:
        with self._lock:
            return list(self._items)

    def set(self, items: Iterable[BookmarkRecord]) -> list[BookmarkRecord]:
        return self.update(lambda _current: list(items))

    def update(
        self, fn: Callable[[list[BookmarkRecord]], list[BookmarkRecord]]
    ) -> list[BookmarkRecord]:
        with self._lock:
            updated = list(fn(list(self._items)))
            if updated != self._items:
                self.version += 1
            self._items = updated
            return list(updated)

    def find(self, bookmark_id: str) -> BookmarkRecord | None:
        for item in self.items:
            if item.id == bookmark_id:
                return item
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
