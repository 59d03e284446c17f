from __future__ import annotations

from itsdangerous import BadData, URLSafeTimedSerializer


def _serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=secret_key, salt="oauth-state")


def issue_state(secret_key: str, nonce: str, provider: str) -> str:
    return _serializer(secret_key).dumps({"nonce": nonce, "provider": provider})


def verify_state(
    secret_key: str, state: str, expected_nonce: str | None, max_age: int
) -> dict | None:
    if not state or not expected_nonce:
        return None
    try:
        payload = _serializer(secret_key).loads(state, max_age=max_age)
    except BadData:
        return None
    if not isinstance(payload, dict) or payload.get("nonce") != expected_nonce:
        return None
    return payload
