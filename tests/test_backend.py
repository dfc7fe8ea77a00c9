from __future__ import annotations

import json
from types import SimpleNamespace

import pytest
import requests

from core.backend import SupabaseClient
from core.errors import BackendError


class _FakeResp:
    def __init__(self, status_code: int, payload=None, text: str | None = None) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else json.dumps(payload))

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def _client(token=None) -> SupabaseClient:
    return SupabaseClient(url="https://proj.supabase.co/", anon_key="anon", access_token=token)


def test_select_builds_postgrest_query(monkeypatch) -> None:
    seen = SimpleNamespace()

    def fake_request(method, url, headers=None, params=None, json=None, timeout=None):
        seen.method, seen.url, seen.headers, seen.params = method, url, headers, params
        return _FakeResp(200, [{"id": "p1"}])

    monkeypatch.setattr("requests.request", fake_request)

    rows = _client("user-token").select(
        "products",
        columns="id, title,\n seller:users(email)",
        filters={"status": "eq.active"},
        order="created_at.desc",
    )
    assert rows == [{"id": "p1"}]
    assert seen.method == "GET"
    assert seen.url == "https://proj.supabase.co/rest/v1/products"
    assert seen.params == {"select": "id,title,seller:users(email)", "status": "eq.active", "order": "created_at.desc"}
    assert seen.headers["apikey"] == "anon"
    assert seen.headers["Authorization"] == "Bearer user-token"


def test_anon_key_is_bearer_without_session(monkeypatch) -> None:
    seen = SimpleNamespace()

    def fake_request(method, url, headers=None, params=None, json=None, timeout=None):
        seen.headers = headers
        return _FakeResp(200, [])

    monkeypatch.setattr("requests.request", fake_request)
    assert _client().select("requests") == []
    assert seen.headers["Authorization"] == "Bearer anon"


def test_single_select_asks_for_object(monkeypatch) -> None:
    seen = SimpleNamespace()

    def fake_request(method, url, headers=None, params=None, json=None, timeout=None):
        seen.headers = headers
        return _FakeResp(200, {"role": "buyer"})

    monkeypatch.setattr("requests.request", fake_request)
    row = _client("t").select("users", columns="role", filters={"id": "eq.u1"}, single=True)
    assert row == {"role": "buyer"}
    assert seen.headers["Accept"] == "application/vnd.pgrst.object+json"


def test_insert_requests_representation(monkeypatch) -> None:
    seen = SimpleNamespace()

    def fake_request(method, url, headers=None, params=None, json=None, timeout=None):
        seen.method, seen.body, seen.headers = method, json, headers
        return _FakeResp(201, [{"id": "m1", "fee": 5}])

    monkeypatch.setattr("requests.request", fake_request)
    out = _client("t").insert("matches", [{"fee": 5}])
    assert out == [{"id": "m1", "fee": 5}]
    assert seen.method == "POST"
    assert seen.body == [{"fee": 5}]
    assert seen.headers["Prefer"] == "return=representation"


def test_update_requires_filters() -> None:
    with pytest.raises(ValueError):
        _client("t").update("matches", {"status": "accepted"}, filters={})


def test_error_message_comes_from_backend_body(monkeypatch) -> None:
    def fake_request(method, url, headers=None, params=None, json=None, timeout=None):
        return _FakeResp(400, {"error": "invalid_grant", "error_description": "Invalid login credentials"})

    monkeypatch.setattr("requests.request", fake_request)
    with pytest.raises(BackendError) as info:
        _client().sign_in_with_password("a@example.com", "bad")
    assert str(info.value) == "Invalid login credentials"
    assert info.value.status_code == 400


def test_error_message_falls_back_to_text(monkeypatch) -> None:
    def fake_request(method, url, headers=None, params=None, json=None, timeout=None):
        return _FakeResp(502, None, text="Bad gateway")

    monkeypatch.setattr("requests.request", fake_request)
    with pytest.raises(BackendError, match="Bad gateway"):
        _client().get_user()


def test_network_failure_is_backend_error(monkeypatch) -> None:
    def fake_request(method, url, headers=None, params=None, json=None, timeout=None):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr("requests.request", fake_request)
    with pytest.raises(BackendError, match="unreachable"):
        _client().select("products")


def test_sign_in_uses_password_grant(monkeypatch) -> None:
    seen = SimpleNamespace()

    def fake_request(method, url, headers=None, params=None, json=None, timeout=None):
        seen.url, seen.params, seen.body = url, params, json
        return _FakeResp(200, {"access_token": "a", "user": {"id": "u1"}})

    monkeypatch.setattr("requests.request", fake_request)
    out = _client().sign_in_with_password("a@example.com", "pw")
    assert out["access_token"] == "a"
    assert seen.url.endswith("/auth/v1/token")
    assert seen.params == {"grant_type": "password"}
    assert seen.body == {"email": "a@example.com", "password": "pw"}


def test_empty_logout_response_is_none(monkeypatch) -> None:
    monkeypatch.setattr("requests.request", lambda *a, **k: _FakeResp(204, None))
    assert _client("t").sign_out() is None
