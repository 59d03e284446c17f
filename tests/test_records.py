from datetime import timezone

import pytest

from bookmarkly.services.records import (
    BookmarkRecord,
    RecordShapeError,
    SessionRecord,
    parse_timestamp,
)


def _row(**overrides):
    row = {
        "id": "b1",
        "url": "https://example.com",
        "title": "Example",
        "tags": ["web"],
        "notes": None,
        "user_id": "u1",
        "created_at": "2024-01-01T10:00:00Z",
        "updated_at": "2024-01-01T10:00:00+00:00",
    }
    row.update(overrides)
    return row


def test_bookmark_record_from_payload():
    record = BookmarkRecord.from_payload(_row())
    assert record.tags == ("web",)
    assert record.notes is None
    assert record.created_at.tzinfo is not None
    assert record.as_dict()["tags"] == ["web"]


def test_bookmark_record_rejects_bad_shapes():
    with pytest.raises(RecordShapeError):
        BookmarkRecord.from_payload(_row(title=None))
    with pytest.raises(RecordShapeError):
        BookmarkRecord.from_payload(_row(tags="web"))
    with pytest.raises(RecordShapeError):
        BookmarkRecord.from_payload(_row(tags=["web", "web"]))
    with pytest.raises(RecordShapeError):
        BookmarkRecord.from_payload(_row(created_at="yesterday"))
    with pytest.raises(RecordShapeError):
        BookmarkRecord.from_payload(["not", "a", "dict"])


def test_naive_timestamps_are_treated_as_utc():
    parsed = parse_timestamp("2024-03-05T08:30:00")
    assert parsed.tzinfo == timezone.utc


def test_with_changes_keeps_tags_as_tuple():
    record = BookmarkRecord.from_payload(_row())
    changed = record.with_changes(title="Renamed", tags=["a", "b"])
    assert changed.title == "Renamed"
    assert changed.tags == ("a", "b")
    assert record.title == "Example"


def test_session_record_requires_a_user():
    payload = {
        "id": "s1",
        "user": {"id": "u1", "email": "a@example.com"},
        "access_token": "bka_x",
        "refresh_token": None,
        "expires_at": "2030-01-01T00:00:00Z",
        "provider": "google",
        "provider_token": None,
        "provider_refresh_token": None,
    }
    session = SessionRecord.from_payload(payload)
    assert session.user.id == "u1"
    assert session.user.is_authenticated

    payload["user"] = None
    with pytest.raises(RecordShapeError):
        SessionRecord.from_payload(payload)
