from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from bookmarkly.backend.auth import EVENT_SIGNED_OUT
from bookmarkly.services.bookmark_actions import BookmarkActions
from bookmarkly.services.bookmark_query import BookmarkQuery
from bookmarkly.services.bookmark_realtime import BookmarkRealtime
from bookmarkly.services.state import BookmarkState


logger = logging.getLogger(__name__)


class BookmarkWorkspace:
    """Query, mutation and realtime layers sharing one collection."""

    def __init__(self, backend, clock: Callable[[], float] = time.monotonic):
        table = backend.data.table("bookmarks")
        self.state = BookmarkState()
        self.query = BookmarkQuery(table, self.state)
        self.actions = BookmarkActions(table, self.state, None)
        self.realtime = BookmarkRealtime(backend.realtime, self.state)
        self.user_id: str | None = None
        self._clock = clock
        self.touched_at = clock()

    @property
    def items(self):
        return self.state.items

    @property
    def loading(self) -> bool:
        return self.query.loading

    @property
    def error(self) -> str | None:
        return self.query.error

    def switch_user(self, user_id: str | None) -> None:
        self.touch()
        self.user_id = user_id
        self.actions.user_id = user_id
        # Subscribe before fetching so nothing committed in between is missed;
        # replaying those events over the fresh rows is harmless.
        self.realtime.subscribe(user_id)
        self.query.fetch(user_id)
        self.realtime.pump()

    def sync(self) -> int:
        self.touch()
        return self.realtime.pump()

    def on_visible(self) -> int:
        self.realtime.resume()
        return self.sync()

    def touch(self) -> None:
        self.touched_at = self._clock()

    def idle_for(self) -> float:
        return self._clock() - self.touched_at

    def close(self) -> None:
        self.realtime.unsubscribe()


class WorkspaceRegistry:
    """Workspaces keyed by auth session id.

    A workspace is dropped when its session signs out or when it has not been
    used for a while (see ``bookmarkly.jobs.scheduler``).
    """

    def __init__(self, backend, clock: Callable[[], float] = time.monotonic):
        self._backend = backend
        self._clock = clock
        self._workspaces: dict[str, BookmarkWorkspace] = {}
        self._lock = threading.Lock()
        self._subscription = backend.auth.on_auth_state_change(self._on_auth_change)

    def get(self, key: str, user_id: str | None) -> BookmarkWorkspace:
        with self._lock:
            workspace = self._workspaces.get(key)
            created = workspace is None
            if created:
                workspace = BookmarkWorkspace(self._backend, clock=self._clock)
                self._workspaces[key] = workspace

        if created or workspace.user_id != user_id:
            workspace.switch_user(user_id)
        else:
            workspace.sync()
        return workspace

    def discard(self, key: str) -> bool:
        with self._lock:
            workspace = self._workspaces.pop(key, None)
        if workspace is None:
            return False
        workspace.close()
        return True

    def sweep_idle(self, max_idle_seconds: float) -> int:
        with self._lock:
            stale = [
                key
                for key, workspace in self._workspaces.items()
                if workspace.idle_for() >= max_idle_seconds
            ]
        removed = sum(1 for key in stale if self.discard(key))
        if removed:
            logger.info("Closed %d idle bookmark workspaces", removed)
        return removed

    def close_all(self) -> None:
        with self._lock:
            keys = list(self._workspaces)
        for key in keys:
            self.discard(key)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._workspaces

    def __len__(self) -> int:
        with self._lock:
            return len(self._workspaces)

    def _on_auth_change(self, event: str, payload: dict | None) -> None:
        if event == EVENT_SIGNED_OUT and payload:
            self.discard(payload.get("id") or "")
