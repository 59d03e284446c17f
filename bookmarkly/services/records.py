"""Typed records for payloads coming back from the backend.

Every payload is checked when it crosses into the application; a missing
field, a wrong type or an unparsable timestamp raises ``RecordShapeError``
instead of travelling further as a half-filled dict.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone

from dateutil import parser as dt_parser
from flask_login import UserMixin


class RecordShapeError(ValueError):
    pass


_MISSING = object()


def _field(payload, key: str, kind, optional: bool = False):
    if not isinstance(payload, dict):
        raise RecordShapeError(f"expected an object, got {type(payload).__name__}")
    value = payload.get(key, _MISSING)
    if value is _MISSING or value is None:
        if optional:
            return None
        raise RecordShapeError(f"missing field: {key}")
    if not isinstance(value, kind):
        raise RecordShapeError(f"field {key} has type {type(value).__name__}")
    return value


def parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = dt_parser.isoparse(value)
        except (ValueError, OverflowError) as exc:
            raise RecordShapeError(f"bad timestamp: {value!r}") from exc
    else:
        raise RecordShapeError(f"bad timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def clean_tags(values) -> tuple[str, ...]:
    if values is None:
        return ()
    if not isinstance(values, (list, tuple)):
        raise RecordShapeError("tags must be a list")
    if not all(isinstance(tag, str) for tag in values):
        raise RecordShapeError("tags must be strings")
    if len(set(values)) != len(values):
        raise RecordShapeError("tags must be unique")
    return tuple(values)


@dataclass(frozen=True)
class BookmarkRecord:
    id: str
    url: str
    title: str
    tags: tuple[str, ...]
    notes: str | None
    user_id: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_payload(cls, payload) -> "BookmarkRecord":
        return cls(
            id=_field(payload, "id", str),
            url=_field(payload, "url", str),
            title=_field(payload, "title", str),
            tags=clean_tags(payload.get("tags")),
            notes=_field(payload, "notes", str, optional=True),
            user_id=_field(payload, "user_id", str),
            created_at=parse_timestamp(_field(payload, "created_at", (str, datetime))),
            updated_at=parse_timestamp(_field(payload, "updated_at", (str, datetime))),
        )

    def with_changes(self, **changes) -> "BookmarkRecord":
        if "tags" in changes:
            changes["tags"] = tuple(changes["tags"] or ())
        return replace(self, **changes)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "tags": list(self.tags),
            "notes": self.notes,
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class UserRecord(UserMixin):
    id: str
    email: str | None

    @classmethod
    def from_payload(cls, payload) -> "UserRecord":
        return cls(
            id=_field(payload, "id", str),
            email=_field(payload, "email", str, optional=True),
        )


@dataclass(frozen=True)
class SessionRecord:
    id: str
    user: UserRecord
    access_token: str | None
    refresh_token: str | None
    expires_at: datetime
    provider: str
    provider_token: str | None
    provider_refresh_token: str | None

    @classmethod
    def from_payload(cls, payload) -> "SessionRecord":
        return cls(
            id=_field(payload, "id", str),
            user=UserRecord.from_payload(_field(payload, "user", dict)),
            access_token=_field(payload, "access_token", str, optional=True),
            refresh_token=_field(payload, "refresh_token", str, optional=True),
            expires_at=parse_timestamp(_field(payload, "expires_at", (str, datetime))),
            provider=_field(payload, "provider", str),
            provider_token=_field(payload, "provider_token", str, optional=True),
            provider_refresh_token=_field(
                payload, "provider_refresh_token", str, optional=True
            ),
        )
