"""Add/edit form state: field validation and the tag entry widget."""
from __future__ import annotations

import string
import time
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import urlparse


URL_ERROR = "Please enter a valid URL (include http:// or https://)"
TITLE_ERROR = "Title is required"
URL_FIELD_ERROR = "Valid URL required (include http://)"
TITLE_FIELD_ERROR = "Title cannot be empty"
DUPLICATE_TAG_MESSAGE = "Tag already exists"

_SCHEME_CHARS = set(string.ascii_letters + string.digits + "+-.")
_NETWORK_SCHEMES = {"http", "https", "ftp", "ws", "wss"}
_SCRIPT_SCHEMES = {"javascript", "data", "vbscript"}


def is_script_url(value: str | None) -> bool:
    scheme, sep, _rest = (value or "").strip().partition(":")
    return bool(sep) and scheme.strip().lower() in _SCRIPT_SCHEMES


def is_absolute_url(value: str | None) -> bool:
    text = (value or "").strip()
    if not text or any(ch.isspace() for ch in text):
        return False
    try:
        parsed = urlparse(text)
        parsed.port  # raises on a malformed port
    except ValueError:
        return False
    scheme = parsed.scheme
    if not scheme or not scheme[0].isalpha() or not set(scheme) <= _SCHEME_CHARS:
        return False
    if is_script_url(text):
        return False
    if scheme.lower() in _NETWORK_SCHEMES:
        return bool(parsed.netloc)
    return bool(parsed.netloc or parsed.path)


class TagInput:
    """Tag chips plus the text box used to type new ones.

    Enter and blur commit the typed text; Backspace on an empty box drops the
    last tag. A duplicate leaves the text in place and shows a message for
    ``message_seconds``.
    """

    def __init__(
        self,
        tags=None,
        text: str = "",
        message_seconds: float = 2.5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.tags: list[str] = list(tags or [])
        self.text = text
        self.message_seconds = message_seconds
        self._clock = clock
        self._message: str | None = None
        self._message_until = 0.0

    @property
    def message(self) -> str | None:
        if self._message and self._clock() < self._message_until:
            return self._message
        return None

    def add(self) -> bool:
        tag = self.text.strip()
        if not tag:
            return False
        if tag in self.tags:
            self._message = DUPLICATE_TAG_MESSAGE
            self._message_until = self._clock() + self.message_seconds
            return False
        self.tags.append(tag)
        self.text = ""
        self._message = None
        return True

    def key_down(self, key: str) -> None:
        if key == "Enter" and self.text.strip():
            self.add()
        elif key == "Backspace" and not self.text and self.tags:
            self.tags.pop()

    def blur(self) -> None:
        self.add()

    def remove(self, tag: str) -> None:
        self.tags = [existing for existing in self.tags if existing != tag]
        self._message = None


@dataclass
class BookmarkForm:
    url: str = ""
    title: str = ""
    notes: str = ""
    tags: list[str] = field(default_factory=list)
    field_errors: dict = field(default_factory=dict)
    error: str | None = None

    @classmethod
    def from_record(cls, record) -> "BookmarkForm":
        return cls(
            url=record.url,
            title=record.title,
            notes=record.notes or "",
            tags=list(record.tags),
        )

    def validate(self) -> bool:
        self.field_errors = {}
        self.error = None
        if not is_absolute_url(self.url):
            self.field_errors["url"] = URL_FIELD_ERROR
            self.error = URL_ERROR
            return False
        if not self.title.strip():
            self.field_errors["title"] = TITLE_FIELD_ERROR
            self.error = TITLE_ERROR
            return False
        return True

    def cleaned(self) -> dict:
        return {
            "url": self.url.strip(),
            "title": self.title.strip(),
            "tags": list(self.tags),
            "notes": self.notes.strip() or None,
        }
