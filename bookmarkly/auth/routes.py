import secrets

import httpx
from authlib.integrations.base_client import OAuthError
from flask import (
    current_app,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_login import current_user, login_required

from bookmarkly.auth import auth_bp
from bookmarkly.auth.errors import login_error_message
from bookmarkly.auth.oauth_state import issue_state, verify_state
from bookmarkly.backend.auth import SCOPE_GLOBAL, SCOPE_LOCAL
from bookmarkly.backend.errors import AuthError, BackendError
from bookmarkly.extensions import login_manager
from bookmarkly.services.app_context import get_services, get_session_accessor
from bookmarkly.services.records import RecordShapeError, SessionRecord
from bookmarkly.services.token_cache import TokenCache


PROVIDER = "google"
NONCE_KEY = "oauth_nonce"
EXPIRED_STATE_MESSAGE = "Your sign-in attempt expired. Please try again."


@login_manager.request_loader
def load_user_from_request(_request):
    return get_session_accessor().resolve()


@login_manager.unauthorized_handler
def unauthorized():
    if request.blueprint == "api":
        return jsonify({"error": "authentication required"}), 401
    return redirect(url_for("auth.login"))


def _callback_url() -> str:
    return url_for("auth.callback", _external=True)


def _callback_failed(message: str):
    return render_template("auth_callback.html", error=message), 400


@auth_bp.route("/login", methods=["GET"])
def login():
    if current_user.is_authenticated:
        return redirect(url_for("web.index"))
    return render_template("login.html", error=None)


@auth_bp.route("/login", methods=["POST"])
def start_login():
    nonce = secrets.token_urlsafe(16)
    session[NONCE_KEY] = nonce
    state = issue_state(current_app.config["SECRET_KEY"], nonce, PROVIDER)
    try:
        authorize_url = get_services().backend.auth.sign_in_with_oauth(
            PROVIDER, redirect_to=_callback_url(), state=state
        )
    except (BackendError, OAuthError, httpx.HTTPError, OSError, ValueError) as exc:
        current_app.logger.warning("Could not start %s sign-in: %s", PROVIDER, exc)
        return render_template("login.html", error=login_error_message(exc))
    return redirect(authorize_url)


@auth_bp.route("/auth/callback")
def callback():
    provider_error = request.args.get("error")
    if provider_error:
        current_app.logger.warning("Provider returned sign-in error: %s", provider_error)
        return _callback_failed(request.args.get("error_description") or provider_error)

    state = verify_state(
        current_app.config["SECRET_KEY"],
        request.args.get("state") or "",
        session.pop(NONCE_KEY, None),
        current_app.config["OAUTH_STATE_MAX_AGE"],
    )
    if state is None:
        return _callback_failed(EXPIRED_STATE_MESSAGE)

    auth = get_services().backend.auth
    try:
        signed_in = SessionRecord.from_payload(
            auth.exchange_code_for_session(
                state["provider"], request.args.get("code") or "", _callback_url()
            )
        )
        if auth.get_user(signed_in.access_token) is None:
            raise AuthError("No active session after sign-in", code="missing_session")
    except (BackendError, OAuthError, httpx.HTTPError, OSError, RecordShapeError) as exc:
        current_app.logger.warning("Sign-in callback failed: %s", exc)
        return _callback_failed(login_error_message(exc))

    get_session_accessor().remember(signed_in)
    TokenCache(session).save(signed_in)
    return redirect(url_for("web.index"))


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    scope = SCOPE_GLOBAL if request.form.get("scope") == SCOPE_GLOBAL else SCOPE_LOCAL
    try:
        get_session_accessor().sign_out(scope=scope)
    except BackendError as exc:
        current_app.logger.warning("Sign-out did not reach the auth service: %s", exc)
    return redirect(url_for("auth.login"))
