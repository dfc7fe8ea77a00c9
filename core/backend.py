"""Hosted backend connector (Supabase auth + PostgREST tables).

Purpose
- Provide a small, testable wrapper over the REST endpoints the marketplace uses.
- Keep header / token handling and error-message extraction in one place.

This module is intentionally independent of FastAPI and Streamlit.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from core.config import Settings
from core.errors import BackendError

logger = logging.getLogger(__name__)

_ERROR_KEYS = ("message", "msg", "error_description", "error")


def _error_message(resp: requests.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in _ERROR_KEYS:
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    text = (resp.text or "").strip()
    return text or f"HTTP {resp.status_code}"


class SupabaseClient:
    def __init__(
        self,
        *,
        url: str,
        anon_key: str,
        timeout_seconds: int = 30,
        access_token: Optional[str] = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._anon_key = anon_key
        self._timeout_seconds = timeout_seconds
        self._access_token = access_token

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseClient":
        return cls(
            url=settings.supabase_url,
            anon_key=settings.supabase_anon_key,
            timeout_seconds=settings.http_timeout_seconds,
        )

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def with_token(self, access_token: Optional[str]) -> "SupabaseClient":
        """Return a copy whose requests run as the given signed-in user."""
        return SupabaseClient(
            url=self._url,
            anon_key=self._anon_key,
            timeout_seconds=self._timeout_seconds,
            access_token=access_token,
        )

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {self._access_token or self._anon_key}",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def _request_json(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = f"{self._url}{path}"
        try:
            resp = requests.request(
                method,
                url,
                headers=self._headers(headers),
                params=params,
                json=json_body,
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            raise BackendError(f"Backend unreachable: {exc}") from exc

        logger.debug("%s %s -> %s", method, path, resp.status_code)
        if resp.status_code >= 400:
            raise BackendError(_error_message(resp), status_code=resp.status_code)
        if resp.status_code == 204 or not (resp.text or "").strip():
            return None
        return resp.json()

    # ---------------- Auth ----------------
    def sign_up(self, email: str, password: str) -> Dict[str, Any]:
        return self._request_json(
            "POST", "/auth/v1/signup", json_body={"email": email, "password": password}
        ) or {}

    def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        return self._request_json(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json_body={"email": email, "password": password},
        ) or {}

    def sign_out(self) -> None:
        self._request_json("POST", "/auth/v1/logout")

    def get_user(self) -> Dict[str, Any]:
        return self._request_json("GET", "/auth/v1/user") or {}

    # ---------------- Tables ----------------
    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Optional[Dict[str, str]] = None,
        order: Optional[str] = None,
        single: bool = False,
    ) -> Any:
        """Read rows from a table.

        ``filters`` values are PostgREST operator expressions, e.g. ``{"status": "eq.active"}``.
        With ``single=True`` exactly one row is expected and a dict is returned.
        """

        params: Dict[str, str] = {"select": "".join(columns.split())}
        params.update(filters or {})
        if order:
            params["order"] = order
        headers = {"Accept": "application/vnd.pgrst.object+json"} if single else None
        data = self._request_json("GET", f"/rest/v1/{table}", params=params, headers=headers)
        if single:
            return data or {}
        return data or []

    def insert(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        data = self._request_json(
            "POST",
            f"/rest/v1/{table}",
            json_body=rows,
            headers={"Prefer": "return=representation"},
        )
        return data or []

    def update(self, table: str, values: Dict[str, Any], *, filters: Dict[str, str]) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError("update() requires at least one filter")
        data = self._request_json(
            "PATCH",
            f"/rest/v1/{table}",
            params=dict(filters),
            json_body=values,
            headers={"Prefer": "return=representation"},
        )
        return data or []
