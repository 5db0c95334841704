"""OAuth2 authorization-code + PKCE client for X."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import requests

logger = logging.getLogger(__name__)


class OAuthError(Exception):
    """Base class for failures in the OAuth handshake."""


class MissingVerifier(OAuthError):
    """No pending PKCE verifier matches the callback.

    Happens on replay, on a forged or stale ``state``, or when the
    process restarted between login and callback.
    """


class TokenRequestError(OAuthError):
    """The token endpoint refused the request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class TokenSet:
    access_token: str
    refresh_token: Optional[str]
    expires_in: Optional[int]

    def expires_at(self, now: float) -> Optional[float]:
        if self.expires_in is None:
            return None
        return now + self.expires_in


class OAuthClient:
    """Talks to the provider's authorize and token endpoints.

    The client is confidential: both the code exchange and the refresh
    grant authenticate with HTTP Basic ``client_id:client_secret``.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: list[str],
        authorize_url: str,
        token_url: str,
        timeout: float = 10,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes
        self.authorize_url = authorize_url
        self.token_url = token_url
        self.timeout = timeout

    def authorization_url(self, state: str, code_challenge: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{self.authorize_url}?{urlencode(params)}"

    def exchange_code(self, code: str, verifier: str) -> TokenSet:
        """Trade an authorization code and its PKCE verifier for tokens."""
        return self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
                "code_verifier": verifier,
                "client_id": self.client_id,
            },
            previous_refresh_token=None,
        )

    def refresh(self, refresh_token: str) -> TokenSet:
        """Exchange a refresh token for a new access/refresh pair."""
        return self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
            },
            previous_refresh_token=refresh_token,
        )

    def _token_request(self, form: dict[str, str], previous_refresh_token: Optional[str]) -> TokenSet:
        grant_type = form["grant_type"]
        try:
            response = requests.post(
                self.token_url,
                data=form,
                auth=(self.client_id, self.client_secret),
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Token request (%s) failed to reach provider: %s", grant_type, exc)
            raise TokenRequestError(f"Token endpoint unreachable: {exc}") from exc

        if response.status_code != 200:
            logger.error(
                "Token request (%s) rejected: %s - %s",
                grant_type,
                response.status_code,
                response.text,
            )
            raise TokenRequestError(
                f"Token endpoint returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TokenRequestError(
                "Token endpoint returned invalid JSON", status_code=response.status_code
            ) from exc

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise TokenRequestError(
                "Token response did not include an access token",
                status_code=response.status_code,
            )

        expires_in = payload.get("expires_in")
        if expires_in is not None:
            try:
                expires_in = int(expires_in)
            except (TypeError, ValueError) as exc:
                logger.error("Token request (%s) returned expires_in=%r", grant_type, expires_in)
                raise TokenRequestError(
                    "Token endpoint returned invalid expires_in",
                    status_code=response.status_code,
                ) from exc

        logger.info(
            "Token request (%s) succeeded (expires_in=%s, has_refresh=%s)",
            grant_type,
            expires_in,
            bool(payload.get("refresh_token")),
        )
        return TokenSet(
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or previous_refresh_token,
            expires_in=expires_in,
        )
