import time

from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, session, url_for

from . import auth, x_api
from .oauth import OAuthError
from .session_store import Session


main_bp = Blueprint("main", __name__)


@main_bp.route("/")
def index():
    """Landing page.

    Shows a connect button for anonymous users and the post form
    for connected users.
    """

    return render_template("index.html", user_session=auth.current_session())


def _refresh_if_needed(sid: str, user_session: Session) -> Session:
    """Renew the access token before use when it is about to expire.

    Raises ``OAuthError`` when the refresh grant fails; the stored
    session is left as it was. Returns an empty ``Session`` when the
    session was cleared while the refresh was in flight.
    """

    skew = current_app.config["TOKEN_REFRESH_SKEW"]
    if not user_session.needs_refresh(time.time(), skew):
        return user_session

    if not user_session.refresh_token:
        current_app.logger.warning("Access token expired and no refresh token is stored")
        return user_session

    current_app.logger.info("Access token expires soon; refreshing")
    tokens = auth._build_oauth_client().refresh(user_session.refresh_token)
    refreshed = user_session.with_tokens(
        tokens.access_token, tokens.refresh_token, tokens.expires_at(time.time())
    )
    if not auth.session_store().save_if_current(sid, user_session.access_token, refreshed):
        current_app.logger.info("Session ended while refreshing; discarding new tokens")
        return Session()
    return refreshed


@main_bp.route("/post_home", methods=["POST"])
def post_home():
    """Publish the submitted ``content`` to X."""

    sid = session.get("sid")
    user_session = auth.current_session()
    if not user_session.is_authenticated:
        current_app.logger.info("Rejected post from unauthenticated session")
        abort(401)

    content = request.form.get("content", "")
    if not content.strip():
        return (
            render_template("error.html", title="Nothing to post", message="Write something first."),
            400,
        )

    try:
        user_session = _refresh_if_needed(sid, user_session)
    except OAuthError as exc:
        current_app.logger.error("Failed to refresh access token: %s", exc)
        return (
            render_template(
                "error.html",
                title="Error posting to X",
                message="Could not refresh your X access token. Please reconnect.",
            ),
            500,
        )
    if not user_session.is_authenticated:
        abort(401)

    try:
        x_api.publish(
            content,
            user_session.access_token,
            current_app.config["X_API_BASE_URL"],
            current_app.config["HTTP_TIMEOUT"],
        )
    except x_api.XApiError as exc:
        current_app.logger.error("Error posting to X: %s", exc)
        return render_template("error.html", title="Error posting to X", message=str(exc)), 500

    flash("Posted to X.")
    return redirect(url_for("main.index"))
