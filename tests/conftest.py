from urllib.parse import parse_qs, urlencode, urlparse

import httpx
import pytest

from bookmarkly import create_app
from bookmarkly.backend.errors import AuthError
from bookmarkly.backend.providers import ProviderIdentity
from bookmarkly.config import TestConfig
from bookmarkly.extensions import db


class FakeGoogle:
    """Identity provider stand-in; the authorization code doubles as the subject."""

    name = "google"

    def __init__(self):
        self.exchanged = []

    def authorization_url(self, redirect_uri, state):
        query = urlencode({"redirect_uri": redirect_uri, "state": state})
        return f"https://accounts.example.test/authorize?{query}"

    def exchange_code(self, code, redirect_uri):
        self.exchanged.append(code)
        if code == "offline":
            raise httpx.ConnectError("connection refused")
        if code == "slow":
            raise httpx.ReadTimeout("timed out")
        if code == "rejected":
            raise AuthError("Google rejected the sign-in", code="invalid_grant")
        return ProviderIdentity(
            provider="google",
            subject=code,
            email=f"{code}@example.com",
            access_token=f"google-access-{code}",
            refresh_token=f"google-refresh-{code}",
        )


@pytest.fixture
def provider():
    return FakeGoogle()


@pytest.fixture
def app(provider):
    app = create_app(TestConfig, providers={"google": provider})
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app
    app.extensions["bookmarkly"].workspaces.close_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions["bookmarkly"]


def sign_in(client, code="alice"):
    response = client.post("/login")
    assert response.status_code == 302
    state = parse_qs(urlparse(response.headers["Location"]).query)["state"][0]
    return client.get("/auth/callback", query_string={"code": code, "state": state})


@pytest.fixture
def login():
    return sign_in
