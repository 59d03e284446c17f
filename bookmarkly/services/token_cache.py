from __future__ import annotations

import json
import logging
from collections.abc import MutableMapping
from dataclasses import asdict, dataclass

from bookmarkly.models import utcnow


logger = logging.getLogger(__name__)

KEY = "oauth_tokens"


@dataclass(frozen=True)
class ProviderTokens:
    provider_access_token: str | None
    provider_refresh_token: str | None
    session_access_token: str | None
    saved_at: str


class TokenCache:
    """Client-side copy of the tokens issued at sign-in.

    ``storage`` is whatever the device keeps between requests; in the web app
    that is the signed session cookie. Nothing reads these tokens as proof of
    identity; the auth service stays authoritative.
    """

    def __init__(self, storage: MutableMapping, clock=utcnow):
        self._storage = storage
        self._clock = clock

    def save(self, session) -> ProviderTokens | None:
        if session is None:
            return None
        tokens = ProviderTokens(
            provider_access_token=session.provider_token,
            provider_refresh_token=session.provider_refresh_token,
            session_access_token=session.access_token,
            saved_at=self._clock().isoformat(),
        )
        self._storage[KEY] = json.dumps(asdict(tokens))
        return tokens

    def load(self) -> ProviderTokens | None:
        raw = self._storage.get(KEY)
        if not raw:
            return None
        try:
            return ProviderTokens(**json.loads(raw))
        except (TypeError, ValueError):
            logger.warning("Discarding unreadable token cache entry")
            self.clear()
            return None

    def clear(self) -> None:
        self._storage.pop(KEY, None)
