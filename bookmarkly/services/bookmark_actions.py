from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from bookmarkly.backend.errors import BackendError
from bookmarkly.models import utcnow
from bookmarkly.services.forms import is_script_url
from bookmarkly.services.records import BookmarkRecord, RecordShapeError
from bookmarkly.services.state import BookmarkState


logger = logging.getLogger(__name__)


class BookmarkValidationError(ValueError):
    pass


class BookmarkActionError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass
class BookmarkInput:
    url: str
    title: str
    tags: list[str] = field(default_factory=list)
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "BookmarkInput":
        tags = data.get("tags")
        if tags is not None and not isinstance(tags, (list, tuple)):
            raise BookmarkValidationError("Tags must be a list")
        return cls(
            url=data.get("url") or "",
            title=data.get("title") or "",
            tags=list(tags or []),
            notes=data.get("notes"),
        )


def _clean_url(value) -> str:
    url = _text(value, "URL must be text")
    if is_script_url(url):
        raise BookmarkValidationError("URL scheme is not allowed")
    return url


def _text(value, message: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise BookmarkValidationError(message)
    return value.strip()


def normalize_tags(tags) -> list[str]:
    if tags is not None and not isinstance(tags, (list, tuple)):
        raise BookmarkValidationError("Tags must be a list")
    cleaned: list[str] = []
    for tag in tags or []:
        if not isinstance(tag, str):
            raise BookmarkValidationError("Tags must be text")
        name = tag.strip()
        if not name:
            continue
        if name in cleaned:
            raise BookmarkValidationError(f"Duplicate tag: {name}")
        cleaned.append(name)
    return cleaned


def _clean_notes(value) -> str | None:
    return _text(value, "Notes must be text") or None


def clean_patch(patch: dict) -> dict:
    changes = {}
    if "url" in patch:
        changes["url"] = _clean_url(patch["url"])
        if not changes["url"]:
            raise BookmarkValidationError("URL is required")
    if "title" in patch:
        changes["title"] = _text(patch["title"], "Title must be text")
        if not changes["title"]:
            raise BookmarkValidationError("Title is required")
    if "tags" in patch:
        changes["tags"] = normalize_tags(patch["tags"])
    if "notes" in patch:
        changes["notes"] = _clean_notes(patch["notes"])
    return changes


class BookmarkActions:
    """Create, update and delete bookmarks for one user.

    Update and delete apply to the local state before the backend answers and
    put the previous collection back if the backend call fails.
    """

    def __init__(
        self,
        table,
        state: BookmarkState,
        user_id: str | None,
        clock: Callable = utcnow,
    ):
        self._table = table
        self.state = state
        self.user_id = user_id
        self._clock = clock

    def create(self, data) -> BookmarkRecord:
        if isinstance(data, dict):
            data = BookmarkInput.from_dict(data)
        if not self.user_id:
            raise BookmarkValidationError("User ID is required")
        url = _clean_url(data.url)
        title = _text(data.title, "Title must be text")
        if not url:
            raise BookmarkValidationError("URL is required")
        if not title:
            raise BookmarkValidationError("Title is required")

        values = {
            "url": url,
            "title": title,
            "tags": normalize_tags(data.tags),
            "notes": _clean_notes(data.notes),
            "user_id": self.user_id,
        }
        try:
            row = self._table.insert(values)
        except BackendError as exc:
            logger.error("Create bookmark error: %s", exc.message)
            raise BookmarkActionError(exc.message or "Failed to create bookmark") from exc

        record = self._record(row, "Failed to create bookmark")
        self.state.update(
            lambda items: items
            if any(item.id == record.id for item in items)
            else [record, *items]
        )
        return record

    def update(self, bookmark_id: str, patch: dict) -> BookmarkRecord:
        if not (bookmark_id or "").strip():
            raise BookmarkValidationError("Bookmark ID is required")
        if not self.user_id:
            raise BookmarkValidationError("User ID is required")
        changes = clean_patch(patch)

        snapshot = self.state.items
        stamped = self._clock()
        self.state.update(
            lambda items: [
                item.with_changes(**changes, updated_at=stamped)
                if item.id == bookmark_id
                else item
                for item in items
            ]
        )

        try:
            row = self._table.update(bookmark_id, changes, user_id=self.user_id)
        except BackendError as exc:
            logger.error("Update bookmark error: %s", exc.message)
            self.state.set(snapshot)
            raise BookmarkActionError(exc.message or "Failed to update bookmark") from exc

        record = self._record(row, "Failed to update bookmark")
        self.state.update(
            lambda items: [record if item.id == record.id else item for item in items]
        )
        return record

    def delete(self, bookmark_id: str) -> None:
        if not (bookmark_id or "").strip():
            raise BookmarkValidationError("Bookmark ID is required")
        if not self.user_id:
            raise BookmarkValidationError("User ID is required")

        snapshot = self.state.items
        self.state.update(lambda items: [item for item in items if item.id != bookmark_id])

        try:
            self._table.delete(bookmark_id, user_id=self.user_id)
        except BackendError as exc:
            logger.error("Delete bookmark error: %s", exc.message)
            self.state.set(snapshot)
            raise BookmarkActionError(exc.message or "Failed to delete bookmark") from exc

    def _record(self, row, fallback: str) -> BookmarkRecord:
        try:
            return BookmarkRecord.from_payload(row)
        except RecordShapeError as exc:
            logger.error("Backend returned a malformed bookmark: %s", exc)
            raise BookmarkActionError(fallback) from exc
