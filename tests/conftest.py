import pathlib
import sys

import pytest


PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from write2x import create_app
from write2x.config import TestingConfig
from write2x.oauth import TokenSet


class FakeOAuthClient:
    """Stands in for OAuthClient; records every call made to the token endpoint."""

    def __init__(self):
        self.tokens = TokenSet(access_token="T", refresh_token="R", expires_in=7200)
        self.refreshed_tokens = TokenSet(access_token="T2", refresh_token="R2", expires_in=7200)
        self.exchange_error = None
        self.refresh_error = None
        self.on_refresh = None
        self.challenges = []
        self.exchanges = []
        self.refreshes = []

    def authorization_url(self, state, code_challenge):
        self.challenges.append(code_challenge)
        return f"https://x.example/authorize?state={state}"

    def exchange_code(self, code, verifier):
        self.exchanges.append((code, verifier))
        if self.exchange_error is not None:
            raise self.exchange_error
        return self.tokens

    def refresh(self, refresh_token):
        self.refreshes.append(refresh_token)
        if self.on_refresh is not None:
            self.on_refresh()
        if self.refresh_error is not None:
            raise self.refresh_error
        return self.refreshed_tokens


@pytest.fixture()
def app():
    app = create_app(config_class=TestingConfig)
    app.config.update({"TESTING": True})
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def sessions(app):
    return app.extensions["write2x.sessions"]


@pytest.fixture()
def pending(app):
    return app.extensions["write2x.pending_verifiers"]


@pytest.fixture()
def oauth_client(monkeypatch):
    import write2x.auth as auth_module

    fake = FakeOAuthClient()
    monkeypatch.setattr(auth_module, "_build_oauth_client", lambda: fake)
    return fake


@pytest.fixture()
def x_calls(monkeypatch):
    """Stub the X API module and record calls to it."""

    import write2x.x_api as x_api_module

    calls = {"publish": [], "fetch_username": [], "username": "jack", "publish_error": None, "profile_error": None}

    def fake_fetch_username(access_token, api_base, timeout=10):
        calls["fetch_username"].append(access_token)
        if calls["profile_error"] is not None:
            raise calls["profile_error"]
        return calls["username"]

    def fake_publish(content, access_token, api_base, timeout=10):
        calls["publish"].append((content, access_token))
        if calls["publish_error"] is not None:
            raise calls["publish_error"]
        return "1234"

    monkeypatch.setattr(x_api_module, "fetch_username", fake_fetch_username)
    monkeypatch.setattr(x_api_module, "publish", fake_publish)
    return calls
