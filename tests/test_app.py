from __future__ import annotations

from pathlib import Path

import pytest
from streamlit.testing.v1 import AppTest

from conftest import FakeBackend
from core.auth import AuthSession
from core.backend import SupabaseClient
from core.config import load_settings
from core.errors import BackendError

APP_PATH = str(Path(__file__).resolve().parents[1] / "app.py")


@pytest.fixture
def admin_app(monkeypatch, fake_backend):
    monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    load_settings.cache_clear()
    monkeypatch.setattr(SupabaseClient, "from_settings", classmethod(lambda cls, settings: fake_backend))
    at = AppTest.from_file(APP_PATH, default_timeout=30)
    at.session_state["auth"] = AuthSession(user_id="u-admin", email="admin@example.com", role="admin", access_token="tok-admin")
    at.session_state["path"] = "/admin"
    yield at
    load_settings.cache_clear()


def test_admin_page_renders_matches(admin_app) -> None:
    admin_app.run()
    assert not admin_app.exception
    assert admin_app.selectbox(key="status_m1").value == "pending"
    assert admin_app.selectbox(key="status_m2").value == "completed"


def test_failed_status_update_is_not_retried(admin_app, fake_backend, monkeypatch) -> None:
    def failing_update(self, table, values, *, filters):
        self.calls.append(("update", table, values, dict(filters), self.access_token))
        raise BackendError("permission denied for table matches", status_code=403)

    monkeypatch.setattr(FakeBackend, "update", failing_update)
    admin_app.run()
    admin_app.selectbox(key="status_m1").set_value("accepted").run()

    updates = [c for c in fake_backend.calls if c[0] == "update"]
    assert len(updates) == 1
    assert updates[0][2] == {"status": "accepted"}
    assert "permission denied for table matches" in [e.value for e in admin_app.error]
    assert admin_app.selectbox(key="status_m1").value == "pending"

    admin_app.run()
    assert len([c for c in fake_backend.calls if c[0] == "update"]) == 1
