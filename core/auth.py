from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from core.backend import SupabaseClient
from core.errors import AuthError, BackendError, InvalidInput

logger = logging.getLogger(__name__)

ROLES = ("seller", "buyer", "admin")
SIGNUP_ROLES = ("buyer", "seller")


@dataclass
class AuthSession:
    user_id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id and self.access_token)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _credentials(email: str, password: str) -> tuple[str, str]:
    email = (email or "").strip()
    if not email or not password:
        raise InvalidInput("Email and password are required.")
    return email, password


def _user_from_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    # Sign-up returns the bare user when e-mail confirmation is pending,
    # otherwise a session object wrapping it.
    user = payload.get("user")
    if isinstance(user, dict):
        return user
    if payload.get("id"):
        return payload
    return {}


def fetch_role(client: SupabaseClient, user_id: str) -> str:
    try:
        row = client.select("users", columns="role", filters={"id": f"eq.{user_id}"}, single=True)
    except BackendError as exc:
        # 406: the single-row read found no profile.
        if exc.upstream_status != 406:
            raise
        row = None
    role = (row or {}).get("role")
    if not role:
        raise AuthError("No marketplace profile found for this account.")
    return str(role)


def sign_up(client: SupabaseClient, email: str, password: str, role: str) -> AuthSession:
    email, password = _credentials(email, password)
    if role not in SIGNUP_ROLES:
        raise InvalidInput(f"Role must be one of: {', '.join(SIGNUP_ROLES)}.")

    payload = client.sign_up(email, password)
    user = _user_from_payload(payload)
    if not user.get("id"):
        raise AuthError("Sign-up did not return a user.")

    access_token = payload.get("access_token")
    client.with_token(access_token).insert("users", [{"id": user["id"], "email": email, "role": role}])
    logger.info("signed up %s as %s", email, role)
    return AuthSession(
        user_id=str(user["id"]),
        email=email,
        role=role,
        access_token=access_token,
        refresh_token=payload.get("refresh_token"),
    )


def sign_in(client: SupabaseClient, email: str, password: str) -> AuthSession:
    email, password = _credentials(email, password)
    payload = client.sign_in_with_password(email, password)
    user = _user_from_payload(payload)
    access_token = payload.get("access_token")
    if not user.get("id") or not access_token:
        raise AuthError("Invalid login credentials")

    role = fetch_role(client.with_token(access_token), str(user["id"]))
    return AuthSession(
        user_id=str(user["id"]),
        email=user.get("email") or email,
        role=role,
        access_token=access_token,
        refresh_token=payload.get("refresh_token"),
    )


def resolve_session(client: SupabaseClient, access_token: Optional[str]) -> AuthSession:
    """Turn a bearer token into a session with the user's marketplace role."""
    if not access_token:
        raise AuthError("Not signed in.")
    authed = client.with_token(access_token)
    try:
        user = authed.get_user()
    except BackendError as exc:
        raise AuthError(str(exc)) from exc
    if not user.get("id"):
        raise AuthError("Not signed in.")
    return AuthSession(
        user_id=str(user["id"]),
        email=user.get("email"),
        role=fetch_role(authed, str(user["id"])),
        access_token=access_token,
    )


def sign_out(client: SupabaseClient, session: Optional[AuthSession]) -> None:
    """Log out on the backend if possible; the caller always drops its local session."""
    if session is None or not session.access_token:
        return None
    try:
        client.with_token(session.access_token).sign_out()
    except BackendError as exc:
        logger.warning("backend sign-out failed for %s: %s", session.email, exc)
    return None
