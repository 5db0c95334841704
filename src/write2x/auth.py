import secrets
import time

from flask import Blueprint, current_app, redirect, request, session, url_for

from . import x_api
from .oauth import MissingVerifier, OAuthClient, OAuthError
from .pkce import PendingVerifierStore, generate_pkce, generate_state
from .session_store import Session, SessionStore


auth_bp = Blueprint("auth", __name__)


def _build_oauth_client() -> OAuthClient:
    config = current_app.config
    return OAuthClient(
        client_id=config["X_CLIENT_ID"],
        client_secret=config["X_CLIENT_SECRET"],
        redirect_uri=config["X_REDIRECT_URL"],
        scopes=[s for s in config["X_SCOPES"].split(" ") if s],
        authorize_url=config["X_AUTHORIZE_URL"],
        token_url=config["X_TOKEN_URL"],
        timeout=config["HTTP_TIMEOUT"],
    )


def session_store() -> SessionStore:
    return current_app.extensions["write2x.sessions"]


def pending_verifiers() -> PendingVerifierStore:
    return current_app.extensions["write2x.pending_verifiers"]


def current_session() -> Session:
    """Snapshot of the server-side session bound to this browser's cookie."""

    sid = session.get("sid")
    if not sid:
        return Session()
    return session_store().get(sid)


def _consume_verifier(state, expected_state) -> str:
    """Hand out the PKCE verifier stored by /login for this browser, once."""

    if not state or state != expected_state:
        pending_verifiers().discard(state)
        pending_verifiers().discard(expected_state)
        raise MissingVerifier("Callback state does not match a login started by this browser")

    verifier = pending_verifiers().pop(state)
    if verifier is None:
        raise MissingVerifier("No pending PKCE verifier for this login")
    return verifier


@auth_bp.route("/login", methods=["POST"])
def login():
    """Start the authorization-code + PKCE flow with X."""

    previous_state = session.pop("oauth_state", None)
    pending_verifiers().discard(previous_state)

    pkce = generate_pkce()
    state = generate_state()
    pending_verifiers().put(state, pkce.verifier)
    session["oauth_state"] = state

    auth_url = _build_oauth_client().authorization_url(state, pkce.challenge)
    current_app.logger.info("Starting login flow, state=%s", state)
    return redirect(auth_url)


@auth_bp.route("/callback")
def callback():
    """Handle the redirect from X with an authorization code."""

    state = request.args.get("state")
    expected_state = session.pop("oauth_state", None)

    error = request.args.get("error")
    if error:
        pending_verifiers().discard(state)
        pending_verifiers().discard(expected_state)
        if error == "access_denied":
            current_app.logger.info("User denied access on X")
        else:
            current_app.logger.error(
                "Authentication error on callback: %s - %s",
                error,
                request.args.get("error_description"),
            )
        return redirect(url_for("main.index"))

    try:
        verifier = _consume_verifier(state, expected_state)
        code = request.args.get("code")
        if not code:
            raise OAuthError("Callback did not include an authorization code")
        tokens = _build_oauth_client().exchange_code(code, verifier)
    except MissingVerifier as exc:
        current_app.logger.warning("Rejected callback: %s", exc)
        return redirect(url_for("main.index"))
    except OAuthError as exc:
        current_app.logger.error("Failed to authenticate: %s", exc)
        return redirect(url_for("main.index"))

    # New session id on every login.
    old_sid = session.get("sid")
    if old_sid:
        session_store().clear(old_sid)
    sid = secrets.token_urlsafe(32)
    session["sid"] = sid

    authenticated = Session().with_tokens(
        tokens.access_token, tokens.refresh_token, tokens.expires_at(time.time())
    )
    session_store().save(sid, authenticated)
    current_app.logger.info(
        "Authenticated session (has_refresh=%s, expires_in=%s)",
        bool(tokens.refresh_token),
        tokens.expires_in,
    )

    # Best effort; authentication already succeeded.
    try:
        username = x_api.fetch_username(
            tokens.access_token,
            current_app.config["X_API_BASE_URL"],
            current_app.config["HTTP_TIMEOUT"],
        )
    except x_api.XApiError as exc:
        current_app.logger.warning("Could not fetch X profile: %s", exc)
    else:
        if username:
            session_store().save_if_current(
                sid, tokens.access_token, authenticated.with_username(username)
            )

    return redirect(url_for("main.index"))


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """Forget this browser's tokens. Safe to call repeatedly."""

    sid = session.get("sid")
    if sid:
        session_store().clear(sid)
    pending_verifiers().discard(session.get("oauth_state"))
    session.clear()

    current_app.logger.info("Logged out")
    return redirect(url_for("main.index"))
