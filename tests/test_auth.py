from __future__ import annotations

import pytest

from core.auth import AuthSession, fetch_role, resolve_session, sign_in, sign_out, sign_up
from core.errors import AuthError, BackendError, InvalidInput


def test_sign_up_creates_profile_row(fake_backend) -> None:
    session = sign_up(fake_backend, " new@example.com ", "secret", "seller")
    assert session.user_id == "u-new"
    assert session.role == "seller"
    assert session.is_authenticated
    insert = [c for c in fake_backend.calls if c[0] == "insert"][0]
    assert insert[1] == "users"
    assert insert[2] == [{"id": "u-new", "email": "new@example.com", "role": "seller"}]
    assert insert[3] == "tok-new"


def test_sign_up_rejects_admin_role(fake_backend) -> None:
    with pytest.raises(InvalidInput):
        sign_up(fake_backend, "x@example.com", "secret", "admin")
    assert fake_backend.calls == []


def test_sign_up_pending_confirmation_returns_tokenless_session(fake_backend, monkeypatch) -> None:
    monkeypatch.setattr(fake_backend, "sign_up", lambda email, password: {"id": "u-pending", "email": email})
    session = sign_up(fake_backend, "p@example.com", "secret", "buyer")
    assert session.user_id == "u-pending"
    assert not session.is_authenticated


def test_sign_in_reads_role_from_profile(fake_backend) -> None:
    session = sign_in(fake_backend, "admin@example.com", "pw")
    assert session.role == "admin"
    assert session.access_token == "tok-admin"
    role_lookup = [c for c in fake_backend.calls if c[0] == "select"][0]
    assert role_lookup[1] == "users"
    assert role_lookup[3] == {"id": "eq.u-admin"}
    assert role_lookup[5] is True


def test_sign_in_propagates_backend_message(fake_backend) -> None:
    with pytest.raises(BackendError, match="Invalid login credentials"):
        sign_in(fake_backend, "nobody@example.com", "pw")


def test_sign_in_requires_credentials(fake_backend) -> None:
    with pytest.raises(InvalidInput):
        sign_in(fake_backend, "", "pw")


def test_resolve_session_from_token(fake_backend) -> None:
    session = resolve_session(fake_backend, "tok-buyer")
    assert session == AuthSession(user_id="u-buyer", email="buyer@example.com", role="buyer", access_token="tok-buyer")


def test_resolve_session_rejects_bad_token(fake_backend) -> None:
    with pytest.raises(AuthError):
        resolve_session(fake_backend, "tok-unknown")
    with pytest.raises(AuthError):
        resolve_session(fake_backend, None)


def test_sign_out_tolerates_backend_failure(fake_backend) -> None:
    fake_backend.fail_with = BackendError("boom", status_code=500)
    assert sign_out(fake_backend, AuthSession(user_id="u1", access_token="tok-seller")) is None
    assert ("sign_out", "tok-seller") in fake_backend.calls


def test_sign_out_without_session_is_noop(fake_backend) -> None:
    assert sign_out(fake_backend, None) is None
    assert fake_backend.calls == []


def test_resolve_session_without_profile_is_auth_error(fake_backend) -> None:
    with pytest.raises(AuthError, match="No marketplace profile"):
        resolve_session(fake_backend, "tok-orphan")


def test_fetch_role_propagates_other_backend_errors(fake_backend) -> None:
    fake_backend.fail_with = BackendError("boom", status_code=500)
    with pytest.raises(BackendError):
        fetch_role(fake_backend, "u-seller")
