from __future__ import annotations

import httpx
from authlib.integrations.base_client import OAuthError

from bookmarkly.backend.errors import BackendError


LOGIN_ERROR_NETWORK = "network"
LOGIN_ERROR_TIMEOUT = "timeout"
LOGIN_ERROR_GENERIC = "generic"

LOGIN_ERROR_MESSAGES = {
    LOGIN_ERROR_NETWORK: "We couldn't reach the sign-in service. Check your connection and try again.",
    LOGIN_ERROR_TIMEOUT: "The sign-in service took too long to respond. Please try again.",
    LOGIN_ERROR_GENERIC: "Login failed. Please try again.",
}


def _error_chain(exc: BaseException | None):
    seen = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        yield exc
        exc = exc.__cause__ or exc.__context__


def classify_login_error(exc: BaseException) -> str:
    for item in _error_chain(exc):
        if isinstance(item, (httpx.TimeoutException, TimeoutError)):
            return LOGIN_ERROR_TIMEOUT
        if isinstance(item, (httpx.NetworkError, ConnectionError)):
            return LOGIN_ERROR_NETWORK
    return LOGIN_ERROR_GENERIC


def login_error_message(exc: BaseException) -> str:
    kind = classify_login_error(exc)
    if kind != LOGIN_ERROR_GENERIC:
        return LOGIN_ERROR_MESSAGES[kind]
    if isinstance(exc, BackendError) and exc.message:
        return exc.message
    if isinstance(exc, OAuthError) and exc.description:
        return exc.description
    return LOGIN_ERROR_MESSAGES[LOGIN_ERROR_GENERIC]
