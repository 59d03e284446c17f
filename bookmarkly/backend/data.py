from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from bookmarkly.backend.errors import BackendError, NotFoundError
from bookmarkly.backend.realtime import (
    EVENT_DELETE,
    EVENT_INSERT,
    EVENT_UPDATE,
    ChangeEvent,
    RealtimeHub,
)
from bookmarkly.extensions import db
from bookmarkly.models import Bookmark, utcnow


logger = logging.getLogger(__name__)

WRITABLE_COLUMNS = ("url", "title", "tags", "notes")


def _check_values(values: dict) -> None:
    for column in ("url", "title"):
        if column in values and not (values[column] or "").strip():
            raise BackendError(f"{column} must not be empty", code="check_violation")
    if "tags" in values:
        tags = values["tags"] or []
        if not all(isinstance(tag, str) for tag in tags):
            raise BackendError("tags must be strings", code="check_violation")
        if len(set(tags)) != len(tags):
            raise BackendError("tags must be unique", code="check_violation")


class BookmarkTable:
    """Row access for ``bookmarks``; every call is scoped to one owner."""

    name = "bookmarks"

    def __init__(self, hub: RealtimeHub):
        self._hub = hub

    def select(self, user_id: str, descending: bool = True) -> list[dict]:
        order = Bookmark.created_at.desc() if descending else Bookmark.created_at.asc()
        try:
            rows = Bookmark.query.filter_by(user_id=user_id).order_by(order).all()
        except SQLAlchemyError as exc:
            logger.error("Bookmark select failed for user %s: %s", user_id, exc)
            raise BackendError("Failed to load bookmarks") from exc
        return [row.as_dict() for row in rows]

    def insert(self, values: dict) -> dict:
        if not values.get("user_id"):
            raise BackendError("user_id is required", code="not_null_violation")
        if not values.get("url") or not values.get("title"):
            raise BackendError("url and title are required", code="not_null_violation")
        _check_values(values)

        bookmark = Bookmark(
            user_id=values["user_id"],
            url=values["url"],
            title=values["title"],
            tags=list(values.get("tags") or []),
            notes=values.get("notes"),
        )
        db.session.add(bookmark)
        self._commit()
        payload = bookmark.as_dict()
        self._hub.publish(ChangeEvent(EVENT_INSERT, self.name, new=payload))
        return payload

    def update(self, bookmark_id: str, values: dict, user_id: str) -> dict:
        _check_values(values)
        bookmark = self._owned(bookmark_id, user_id)
        old = bookmark.as_dict()
        for column in WRITABLE_COLUMNS:
            if column not in values:
                continue
            value = values[column]
            if column == "tags":
                value = list(value or [])
            setattr(bookmark, column, value)
        bookmark.updated_at = utcnow()
        self._commit()
        payload = bookmark.as_dict()
        self._hub.publish(ChangeEvent(EVENT_UPDATE, self.name, new=payload, old=old))
        return payload

    def delete(self, bookmark_id: str, user_id: str) -> dict:
        bookmark = self._owned(bookmark_id, user_id)
        old = bookmark.as_dict()
        db.session.delete(bookmark)
        self._commit()
        self._hub.publish(ChangeEvent(EVENT_DELETE, self.name, old=old))
        return old

    def _owned(self, bookmark_id: str, user_id: str) -> Bookmark:
        try:
            bookmark = Bookmark.query.filter_by(id=bookmark_id, user_id=user_id).first()
        except SQLAlchemyError as exc:
            raise BackendError("Failed to load bookmark") from exc
        if not bookmark:
            raise NotFoundError("Bookmark not found", code="not_found")
        return bookmark

    def _commit(self) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Bookmark write failed: %s", exc)
            raise BackendError("Failed to save bookmark") from exc


class DataService:
    def __init__(self, hub: RealtimeHub):
        self._tables = {BookmarkTable.name: BookmarkTable(hub)}

    def table(self, name: str):
        try:
            return self._tables[name]
        except KeyError:
            raise BackendError(f"Unknown table: {name}") from None
