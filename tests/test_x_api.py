import pytest
import requests

import write2x.x_api as x_api_module
from write2x.x_api import XApiError, fetch_username, publish


API_BASE = "https://api.twitter.com/2"


class DummyResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def test_publish_posts_text_with_bearer_token(monkeypatch):
    calls = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append((url, headers, json, timeout))
        return DummyResponse(201, {"data": {"id": "42", "text": "hello"}})

    monkeypatch.setattr(x_api_module.requests, "post", fake_post)

    post_id = publish("hello", "T", API_BASE, timeout=4)

    assert post_id == "42"
    assert calls == [
        (f"{API_BASE}/tweets", {"Authorization": "Bearer T"}, {"text": "hello"}, 4)
    ]


def test_publish_failure_carries_status(monkeypatch):
    calls = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append(url)
        return DummyResponse(401, text="Unauthorized")

    monkeypatch.setattr(x_api_module.requests, "post", fake_post)

    with pytest.raises(XApiError) as excinfo:
        publish("hello", "T", API_BASE)

    assert excinfo.value.status_code == 401
    assert "401" in str(excinfo.value)
    # No retry.
    assert len(calls) == 1


def test_publish_transport_failure(monkeypatch):
    def fake_post(url, headers=None, json=None, timeout=None):
        raise requests.Timeout("timed out")

    monkeypatch.setattr(x_api_module.requests, "post", fake_post)

    with pytest.raises(XApiError) as excinfo:
        publish("hello", "T", API_BASE)

    assert excinfo.value.status_code is None


def test_fetch_username_reads_data_username(monkeypatch):
    def fake_get(url, headers=None, timeout=None):
        assert url == f"{API_BASE}/users/me"
        assert headers == {"Authorization": "Bearer T"}
        return DummyResponse(200, {"data": {"id": "1", "name": "Jack", "username": "jack"}})

    monkeypatch.setattr(x_api_module.requests, "get", fake_get)

    assert fetch_username("T", API_BASE) == "jack"


def test_fetch_username_missing_field(monkeypatch):
    monkeypatch.setattr(
        x_api_module.requests, "get", lambda url, headers=None, timeout=None: DummyResponse(200, {})
    )

    assert fetch_username("T", API_BASE) is None


def test_fetch_username_error_status(monkeypatch):
    monkeypatch.setattr(
        x_api_module.requests,
        "get",
        lambda url, headers=None, timeout=None: DummyResponse(403, text="Forbidden"),
    )

    with pytest.raises(XApiError) as excinfo:
        fetch_username("T", API_BASE)

    assert excinfo.value.status_code == 403


def test_fetch_username_rejects_non_object_body(monkeypatch):
    monkeypatch.setattr(
        x_api_module.requests,
        "get",
        lambda url, headers=None, timeout=None: DummyResponse(200, ["x"]),
    )

    with pytest.raises(XApiError):
        fetch_username("T", API_BASE)


def test_fetch_username_rejects_non_object_data(monkeypatch):
    monkeypatch.setattr(
        x_api_module.requests,
        "get",
        lambda url, headers=None, timeout=None: DummyResponse(200, {"data": ["jack"]}),
    )

    with pytest.raises(XApiError):
        fetch_username("T", API_BASE)


@pytest.mark.parametrize("payload", [["ok"], {"data": "42"}, None])
def test_publish_success_with_unexpected_body_has_no_id(monkeypatch, payload):
    monkeypatch.setattr(
        x_api_module.requests,
        "post",
        lambda url, headers=None, json=None, timeout=None: DummyResponse(201, payload),
    )

    assert publish("hello", "T", API_BASE) is None
