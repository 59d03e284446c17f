from __future__ import annotations

from dataclasses import dataclass

from flask import current_app, g, session

from bookmarkly.backend import Backend
from bookmarkly.services.session import SessionAccessor
from bookmarkly.services.workspace import BookmarkWorkspace, WorkspaceRegistry


@dataclass
class AppServices:
    backend: Backend
    workspaces: WorkspaceRegistry


def get_services() -> AppServices:
    return current_app.extensions["bookmarkly"]


def get_session_accessor() -> SessionAccessor:
    accessor = g.get("session_accessor")
    if accessor is None:
        # Auth events can arrive on other threads, so hand over the session
        # object itself rather than the request-local proxy.
        accessor = SessionAccessor(
            get_services().backend.auth, session._get_current_object()
        )
        g.session_accessor = accessor
    return accessor


def close_session_accessor(_exc=None) -> None:
    accessor = g.pop("session_accessor", None)
    if accessor is not None:
        accessor.close()


def current_workspace() -> BookmarkWorkspace:
    accessor = get_session_accessor()
    if accessor.loading:
        accessor.resolve()
    user_id = accessor.user.id if accessor.user else None
    return get_services().workspaces.get(accessor.session_id or "", user_id)
