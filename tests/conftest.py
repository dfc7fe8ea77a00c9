"""Pytest configuration.

Ensures the flat `core` / `api` packages import from the repo root, and
provides an in-memory stand-in for the hosted backend client.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from core.errors import BackendError  # noqa: E402


class FakeBackend:
    """Records calls and serves canned rows per table."""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None, users: Optional[Dict[str, Dict[str, Any]]] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = {k: list(v) for k, v in (tables or {}).items()}
        # access token -> auth user
        self.users: Dict[str, Dict[str, Any]] = dict(users or {})
        self.access_token: Optional[str] = None
        self.calls: List[tuple] = []
        self.fail_with: Optional[BackendError] = None

    def with_token(self, access_token):
        clone = FakeBackend.__new__(FakeBackend)
        clone.__dict__ = dict(self.__dict__)
        clone.access_token = access_token
        return clone

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def sign_up(self, email, password):
        self.calls.append(("sign_up", email))
        self._maybe_fail()
        return {"access_token": "tok-new", "refresh_token": "ref-new", "user": {"id": "u-new", "email": email}}

    def sign_in_with_password(self, email, password):
        self.calls.append(("sign_in", email))
        self._maybe_fail()
        for token, user in self.users.items():
            if user.get("email") == email:
                return {"access_token": token, "refresh_token": "ref", "user": user}
        raise BackendError("Invalid login credentials", status_code=400)

    def sign_out(self):
        self.calls.append(("sign_out", self.access_token))
        self._maybe_fail()

    def get_user(self):
        self.calls.append(("get_user", self.access_token))
        user = self.users.get(self.access_token or "")
        if user is None:
            raise BackendError("invalid JWT", status_code=401)
        return user

    def select(self, table, *, columns="*", filters=None, order=None, single=False):
        self.calls.append(("select", table, columns, dict(filters or {}), order, single, self.access_token))
        self._maybe_fail()
        rows = self.tables.get(table, [])
        if single:
            wanted = (filters or {}).get("id", "")
            for row in rows:
                if f"eq.{row.get('id')}" == wanted:
                    return row
            raise BackendError("JSON object requested, multiple (or no) rows returned", status_code=406)
        return list(rows)

    def insert(self, table, rows):
        self.calls.append(("insert", table, rows, self.access_token))
        self._maybe_fail()
        out = []
        for i, row in enumerate(rows):
            stored = {"id": row.get("id") or f"{table}-{len(self.tables.get(table, [])) + i + 1}", **row}
            out.append(stored)
        self.tables.setdefault(table, []).extend(out)
        return out

    def update(self, table, values, *, filters):
        self.calls.append(("update", table, values, dict(filters), self.access_token))
        self._maybe_fail()
        return [{"id": filters.get("id", "").replace("eq.", ""), **values}]


def match_row(
    match_id: str,
    *,
    product_title: str = "Steel pipe",
    request_title: str = "Need pipes",
    product_category: str = "Metal",
    request_category: str = "Metal",
    status: str = "pending",
    fee: Optional[float] = 10.0,
    created_at: str = "2024-03-10T12:00:00+00:00",
) -> Dict[str, Any]:
    return {
        "id": match_id,
        "status": status,
        "fee": fee,
        "created_at": created_at,
        "product": {
            "id": f"p-{match_id}",
            "title": product_title,
            "price": 100.0,
            "quantity": 5,
            "unit": "pcs",
            "category": product_category,
            "seller": {"email": "seller@example.com"},
        },
        "request": {
            "id": f"r-{match_id}",
            "title": request_title,
            "budget": 500.0,
            "quantity": 5,
            "unit": "pcs",
            "category": request_category,
            "delivery_date": "2024-04-01",
            "buyer": {"email": "buyer@example.com"},
        },
    }


@pytest.fixture
def fake_backend():
    return FakeBackend(
        tables={
            "users": [
                {"id": "u-seller", "email": "seller@example.com", "role": "seller"},
                {"id": "u-buyer", "email": "buyer@example.com", "role": "buyer"},
                {"id": "u-admin", "email": "admin@example.com", "role": "admin"},
            ],
            "products": [
                {"id": "p1", "title": "Steel pipe", "price": 100.0, "quantity": 5, "unit": "pcs", "category": "Metal", "seller": {"email": "seller@example.com"}},
                {"id": "p2", "title": "Oak board", "price": 20.5, "quantity": 10, "unit": "m", "category": "Wood", "seller": {"email": "seller@example.com"}},
                {"id": "p3", "title": "Copper wire", "price": 7, "quantity": 100, "unit": "m", "category": "Metal", "seller": {"email": "seller@example.com"}},
            ],
            "requests": [
                {"id": "r1", "title": "Need pipes", "budget": 500.0, "quantity": 5, "unit": "pcs", "category": "Metal", "delivery_date": "2024-04-01", "buyer": {"email": "buyer@example.com"}},
            ],
            "matches": [
                match_row("m1", fee=10.0, status="pending"),
                match_row("m2", fee=30.0, status="completed", product_title="Oak board", product_category="Wood", request_category="Wood"),
            ],
        },
        users={
            "tok-seller": {"id": "u-seller", "email": "seller@example.com"},
            "tok-buyer": {"id": "u-buyer", "email": "buyer@example.com"},
            "tok-admin": {"id": "u-admin", "email": "admin@example.com"},
            "tok-orphan": {"id": "u-orphan", "email": "orphan@example.com"},
        },
    )
