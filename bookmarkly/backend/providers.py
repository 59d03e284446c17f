from __future__ import annotations

from dataclasses import dataclass

from authlib.integrations.httpx_client import OAuth2Client

from bookmarkly.backend.errors import AuthError


GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


@dataclass(frozen=True)
class ProviderIdentity:
    provider: str
    subject: str
    email: str | None
    access_token: str | None
    refresh_token: str | None


class GoogleProvider:
    name = "google"
    scope = "openid email profile"

    def __init__(self, client_id: str, client_secret: str, timeout: float = 10.0):
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout

    def _client(self, redirect_uri: str) -> OAuth2Client:
        return OAuth2Client(
            client_id=self.client_id,
            client_secret=self.client_secret,
            scope=self.scope,
            redirect_uri=redirect_uri,
            timeout=self.timeout,
        )

    def authorization_url(self, redirect_uri: str, state: str) -> str:
        with self._client(redirect_uri) as client:
            url, _ = client.create_authorization_url(
                GOOGLE_AUTHORIZE_URL,
                state=state,
                access_type="offline",
                prompt="consent",
            )
        return url

    def exchange_code(self, code: str, redirect_uri: str) -> ProviderIdentity:
        with self._client(redirect_uri) as client:
            token = client.fetch_token(GOOGLE_TOKEN_URL, code=code)
            response = client.get(GOOGLE_USERINFO_URL)
            response.raise_for_status()
            profile = response.json()

        subject = profile.get("sub")
        if not subject:
            raise AuthError("Google did not return an account id", code="invalid_profile")
        return ProviderIdentity(
            provider=self.name,
            subject=str(subject),
            email=profile.get("email"),
            access_token=token.get("access_token"),
            refresh_token=token.get("refresh_token"),
        )


def build_providers(config) -> dict:
    return {
        GoogleProvider.name: GoogleProvider(
            client_id=config["GOOGLE_CLIENT_ID"],
            client_secret=config["GOOGLE_CLIENT_SECRET"],
            timeout=config["OAUTH_HTTP_TIMEOUT"],
        )
    }
