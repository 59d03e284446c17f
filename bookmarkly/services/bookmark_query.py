from __future__ import annotations

import logging

from bookmarkly.backend.errors import BackendError
from bookmarkly.services.records import BookmarkRecord, RecordShapeError
from bookmarkly.services.state import BookmarkState


logger = logging.getLogger(__name__)

LOAD_ERROR = "Failed to load bookmarks"


class BookmarkQuery:
    def __init__(self, table, state: BookmarkState):
        self._table = table
        self.state = state
        self.user_id: str | None = None
        self.loading = True
        self.error: str | None = None

    def fetch(self, user_id: str | None) -> list[BookmarkRecord]:
        self.user_id = user_id
        if not user_id:
            self.state.set([])
            self.error = None
            self.loading = False
            return []

        self.loading = True
        self.error = None
        try:
            rows = self._table.select(user_id, descending=True)
            records = [BookmarkRecord.from_payload(row) for row in rows]
        except BackendError as exc:
            logger.error("Fetch bookmarks error: %s", exc.message)
            self.error = exc.message or LOAD_ERROR
            return self.state.set([])
        except RecordShapeError as exc:
            logger.error("Fetch bookmarks returned a malformed row: %s", exc)
            self.error = LOAD_ERROR
            return self.state.set([])
        finally:
            self.loading = False

        records.sort(key=lambda record: record.created_at, reverse=True)
        return self.state.set(records)

    def refetch(self) -> list[BookmarkRecord]:
        return self.fetch(self.user_id)
