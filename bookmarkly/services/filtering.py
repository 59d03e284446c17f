from __future__ import annotations

from typing import Iterable
from urllib.parse import urlparse


ALL_TAGS = "All"


def _safe(value: str | None) -> str:
    return (value or "").strip()


def matches_query(bookmark, query: str) -> bool:
    q = _safe(query).lower()
    return q in (bookmark.title or "").lower() or q in (bookmark.url or "").lower()


def matches_tag(bookmark, tag: str | None) -> bool:
    if not tag or tag == ALL_TAGS:
        return True
    return tag in (bookmark.tags or ())


def filter_bookmarks(bookmarks: Iterable, query: str = "", tag: str | None = ALL_TAGS):
    return [
        bookmark
        for bookmark in bookmarks
        if matches_query(bookmark, query) and matches_tag(bookmark, tag)
    ]


def tag_vocabulary(bookmarks: Iterable) -> list[str]:
    seen: dict[str, None] = {}
    for bookmark in bookmarks:
        for tag in bookmark.tags or ():
            seen.setdefault(tag, None)
    return [ALL_TAGS, *seen]


def display_domain(url: str) -> str:
    parsed = urlparse(_safe(url))
    if parsed.scheme and parsed.hostname:
        host = parsed.hostname
        return host[4:] if host.startswith("www.") else host
    stripped = _safe(url)
    for prefix in ("https://", "http://"):
        if stripped.startswith(prefix):
            stripped = stripped[len(prefix):]
            break
    return stripped.split("/")[0]
