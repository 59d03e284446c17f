from __future__ import annotations

import logging
from collections.abc import MutableMapping

from bookmarkly.backend.auth import (
    EVENT_SIGNED_OUT,
    EVENT_TOKEN_REFRESHED,
    SCOPE_LOCAL,
    AuthService,
)
from bookmarkly.backend.errors import AuthError, BackendError
from bookmarkly.services.records import RecordShapeError, SessionRecord, UserRecord
from bookmarkly.services.token_cache import TokenCache


logger = logging.getLogger(__name__)

STORAGE_KEY = "auth_session"


class SessionAccessor:
    """Current user for one browser session.

    The backend tokens live in ``storage`` under ``STORAGE_KEY``. ``user`` is
    ``None`` until ``resolve`` runs and ``loading`` stays true until then.
    Pushed auth events for this session (refresh, sign-out elsewhere) update
    ``user`` directly.
    """

    def __init__(self, auth: AuthService, storage: MutableMapping):
        self._auth = auth
        self._storage = storage
        self.user: UserRecord | None = None
        self.loading = True
        self._subscription = auth.on_auth_state_change(self._on_auth_change)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def session_id(self) -> str | None:
        return (self._stored() or {}).get("session_id")

    def remember(self, session: SessionRecord) -> None:
        self._storage[STORAGE_KEY] = {
            "session_id": session.id,
            "access_token": session.access_token,
            "refresh_token": session.refresh_token,
        }
        self.user = session.user
        self.loading = False

    def resolve(self) -> UserRecord | None:
        stored = self._stored()
        user = None
        try:
            if stored:
                payload = self._auth.get_user(stored.get("access_token"))
                if payload is not None:
                    user = UserRecord.from_payload(payload)
                elif stored.get("refresh_token"):
                    user = self._refresh(stored["refresh_token"])
        except RecordShapeError as exc:
            logger.error("Auth service returned a malformed user: %s", exc)
            user = None
        finally:
            self.loading = False

        if user is None and stored:
            self._forget()
        self.user = user
        return user

    def sign_out(self, scope: str = SCOPE_LOCAL) -> None:
        stored = self._stored()
        try:
            if stored:
                self._auth.sign_out(stored.get("access_token"), scope=scope)
        finally:
            self._forget()
            TokenCache(self._storage).clear()
            self.user = None

    def close(self) -> None:
        self._subscription.unsubscribe()

    def _refresh(self, refresh_token: str) -> UserRecord | None:
        try:
            session = SessionRecord.from_payload(self._auth.refresh_session(refresh_token))
        except AuthError as exc:
            logger.info("Session refresh rejected: %s", exc.message)
            return None
        except BackendError as exc:
            logger.error("Session refresh failed: %s", exc.message)
            return None
        self.remember(session)
        return session.user

    def _on_auth_change(self, event: str, payload: dict | None) -> None:
        if not payload or payload.get("id") != self.session_id:
            return
        if event == EVENT_SIGNED_OUT:
            self.user = None
            self._forget()
        elif event == EVENT_TOKEN_REFRESHED:
            try:
                self.remember(SessionRecord.from_payload(payload))
            except RecordShapeError as exc:
                logger.error("Ignoring malformed refreshed session: %s", exc)

    def _stored(self) -> dict | None:
        stored = self._storage.get(STORAGE_KEY)
        return stored if isinstance(stored, dict) else None

    def _forget(self) -> None:
        self._storage.pop(STORAGE_KEY, None)
