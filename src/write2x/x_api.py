"""Bearer-token calls against the X v2 REST API."""

from __future__ import annotations

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class XApiError(Exception):
    """A call to the X API failed.

    ``status_code`` is the provider's HTTP status, or None when the
    request never got a response.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _auth_headers(access_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}


def fetch_username(access_token: str, api_base: str, timeout: float = 10) -> Optional[str]:
    """Return the username of the token's owner, if X reports one."""

    try:
        response = requests.get(
            f"{api_base}/users/me", headers=_auth_headers(access_token), timeout=timeout
        )
    except requests.RequestException as exc:
        raise XApiError(f"X API unreachable: {exc}") from exc

    if response.status_code != 200:
        raise XApiError(
            f"X API error: {response.status_code}", status_code=response.status_code
        )

    try:
        payload = response.json()
    except ValueError as exc:
        raise XApiError("X API returned invalid JSON", status_code=response.status_code) from exc

    data = (payload.get("data") or {}) if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        raise XApiError("X API returned an unexpected profile", status_code=response.status_code)
    return data.get("username")


def publish(content: str, access_token: str, api_base: str, timeout: float = 10) -> Optional[str]:
    """Post ``content`` once and return the new post id.

    There is no retry and no idempotency key; a failed call is reported
    to the caller as ``XApiError``.
    """

    try:
        response = requests.post(
            f"{api_base}/tweets",
            headers=_auth_headers(access_token),
            json={"text": content},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        logger.error("Failed to send post to X: %s", exc)
        raise XApiError(f"X API unreachable: {exc}") from exc

    if not 200 <= response.status_code < 300:
        logger.error("Failed to post to X: %s - %s", response.status_code, response.text)
        raise XApiError(
            f"X API error: {response.status_code}", status_code=response.status_code
        )

    # The post went through; an odd body only loses the id.
    try:
        payload = response.json()
    except ValueError:
        payload = None
    data = payload.get("data") if isinstance(payload, dict) else None
    post_id = data.get("id") if isinstance(data, dict) else None
    logger.info("Posted to X (id=%s)", post_id)
    return post_id
