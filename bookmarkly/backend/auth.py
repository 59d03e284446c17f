"""Backend auth service.

Owns users and sessions. Sign-in is delegated to an OAuth identity provider;
after the code exchange the service issues its own opaque access and refresh
tokens. Only SHA-256 hashes of those tokens are stored. Session payloads are
plain dicts; callers validate them into records.
"""
from __future__ import annotations

import hashlib
import logging
import secrets
import threading
from datetime import timedelta
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from bookmarkly.backend.errors import AuthError, BackendError
from bookmarkly.extensions import db
from bookmarkly.models import AuthSession, User, as_utc, utcnow


logger = logging.getLogger(__name__)

EVENT_SIGNED_IN = "SIGNED_IN"
EVENT_SIGNED_OUT = "SIGNED_OUT"
EVENT_TOKEN_REFRESHED = "TOKEN_REFRESHED"

SCOPE_LOCAL = "local"
SCOPE_GLOBAL = "global"


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _issue_token(prefix: str) -> tuple[str, str]:
    token = f"{prefix}_{secrets.token_urlsafe(32)}"
    return token, hash_token(token)


class AuthSubscription:
    def __init__(self, service: "AuthService", callback):
        self._service = service
        self.callback = callback

    def unsubscribe(self) -> None:
        self._service._remove_listener(self)


class AuthService:
    def __init__(self, providers: dict, session_ttl: int, refresh_ttl: int):
        self._providers = providers
        self._session_ttl = timedelta(seconds=session_ttl)
        self._refresh_ttl = timedelta(seconds=refresh_ttl)
        self._listeners: list[AuthSubscription] = []
        self._lock = threading.Lock()

    def sign_in_with_oauth(self, provider: str, redirect_to: str, state: str) -> str:
        return self._provider(provider).authorization_url(redirect_to, state)

    def exchange_code_for_session(
        self, provider: str, code: str, redirect_to: str
    ) -> dict:
        if not code:
            raise AuthError("Missing authorization code", code="missing_code")
        identity = self._provider(provider).exchange_code(code, redirect_to)

        user = User.query.filter_by(
            provider=identity.provider, provider_subject=identity.subject
        ).first()
        if not user:
            user = User(provider=identity.provider, provider_subject=identity.subject)
            db.session.add(user)
        if identity.email:
            user.email = identity.email
        db.session.flush()

        access_token, access_hash = _issue_token("bka")
        refresh_token, refresh_hash = _issue_token("bkr")
        now = utcnow()
        row = AuthSession(
            user_id=user.id,
            access_token_hash=access_hash,
            refresh_token_hash=refresh_hash,
            provider=identity.provider,
            provider_token=identity.access_token,
            provider_refresh_token=identity.refresh_token,
            expires_at=now + self._session_ttl,
            refresh_expires_at=now + self._refresh_ttl,
        )
        db.session.add(row)
        self._commit()

        payload = self._session_payload(row, access_token, refresh_token)
        logger.info("User %s signed in with %s", user.id, identity.provider)
        self._emit(EVENT_SIGNED_IN, payload)
        return payload

    def get_session(self, access_token: str | None) -> dict | None:
        row = self._active_session(access_token)
        if not row:
            return None
        return self._session_payload(row, access_token, None)

    def get_user(self, access_token: str | None) -> dict | None:
        row = self._active_session(access_token)
        if not row:
            return None
        return row.user.as_dict()

    def refresh_session(self, refresh_token: str | None) -> dict:
        if not refresh_token:
            raise AuthError("Missing refresh token", code="missing_refresh_token")
        row = AuthSession.query.filter_by(
            refresh_token_hash=hash_token(refresh_token)
        ).first()
        now = utcnow()
        if not row or row.revoked_at is not None or as_utc(row.refresh_expires_at) <= now:
            raise AuthError("Session expired. Please sign in again.", code="session_expired")

        access_token, row.access_token_hash = _issue_token("bka")
        new_refresh, row.refresh_token_hash = _issue_token("bkr")
        row.expires_at = now + self._session_ttl
        row.refresh_expires_at = now + self._refresh_ttl
        self._commit()

        payload = self._session_payload(row, access_token, new_refresh)
        self._emit(EVENT_TOKEN_REFRESHED, payload)
        return payload

    def sign_out(self, access_token: str | None, scope: str = SCOPE_LOCAL) -> int:
        if not access_token:
            return 0
        row = AuthSession.query.filter_by(access_token_hash=hash_token(access_token)).first()
        if not row or row.revoked_at is not None:
            return 0

        rows = [row]
        if scope == SCOPE_GLOBAL:
            rows = AuthSession.query.filter_by(user_id=row.user_id, revoked_at=None).all()
        now = utcnow()
        for item in rows:
            item.revoked_at = now
        self._commit()

        for item in rows:
            self._emit(EVENT_SIGNED_OUT, self._session_payload(item, None, None))
        return len(rows)

    def on_auth_state_change(
        self, callback: Callable[[str, dict | None], None]
    ) -> AuthSubscription:
        subscription = AuthSubscription(self, callback)
        with self._lock:
            self._listeners.append(subscription)
        return subscription

    def purge_expired(self) -> int:
        now = utcnow()
        rows = AuthSession.query.filter(
            (AuthSession.revoked_at.is_not(None))
            | (AuthSession.refresh_expires_at < now)
        ).all()
        for row in rows:
            db.session.delete(row)
        self._commit()
        return len(rows)

    def _provider(self, name: str):
        provider = self._providers.get(name)
        if provider is None:
            raise AuthError(f"Unsupported sign-in provider: {name}", code="bad_provider")
        return provider

    def _active_session(self, access_token: str | None) -> AuthSession | None:
        if not access_token:
            return None
        row = AuthSession.query.filter_by(access_token_hash=hash_token(access_token)).first()
        if not row or row.revoked_at is not None:
            return None
        if as_utc(row.expires_at) <= utcnow():
            return None
        return row

    def _session_payload(self, row: AuthSession, access_token, refresh_token) -> dict:
        return {
            "id": row.id,
            "user": row.user.as_dict(),
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_at": as_utc(row.expires_at).isoformat(),
            "provider": row.provider,
            "provider_token": row.provider_token,
            "provider_refresh_token": row.provider_refresh_token,
        }

    def _emit(self, event: str, payload: dict | None) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener.callback(event, payload)
            except Exception:
                logger.exception("Auth state listener failed for %s", event)

    def _remove_listener(self, subscription: AuthSubscription) -> None:
        with self._lock:
            if subscription in self._listeners:
                self._listeners.remove(subscription)

    def _commit(self) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Auth write failed: %s", exc)
            raise BackendError("Authentication service unavailable") from exc
