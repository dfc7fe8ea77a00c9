from __future__ import annotations

from typing import Dict, Optional, Tuple

from core.auth import AuthSession

LOGIN_PATH = "/login"
ROOT_PATH = "/"

ROLE_HOME: Dict[str, str] = {
    "seller": "/seller",
    "buyer": "/buyer",
    "admin": "/admin",
}

PROTECTED_ROUTES: Dict[str, Tuple[str, ...]] = {
    "/seller": ("seller",),
    "/buyer": ("buyer",),
    "/admin": ("admin",),
}


def normalize_path(path: Optional[str]) -> str:
    p = (path or ROOT_PATH).strip() or ROOT_PATH
    if not p.startswith("/"):
        p = "/" + p
    if len(p) > 1:
        p = p.rstrip("/")
    return p


def home_for(session: Optional[AuthSession]) -> str:
    if session is None or not session.is_authenticated:
        return LOGIN_PATH
    # Unknown roles would bounce between "/" and a protected page forever.
    return ROLE_HOME.get(session.role or "", LOGIN_PATH)


def resolve_route(path: Optional[str], session: Optional[AuthSession]) -> str:
    """Return the page that should actually render for ``path``."""
    p = normalize_path(path)
    if p == LOGIN_PATH:
        return LOGIN_PATH

    allowed = PROTECTED_ROUTES.get(p)
    if allowed is None:
        return home_for(session)
    if session is None or not session.is_authenticated:
        return LOGIN_PATH
    if session.role not in allowed:
        return home_for(session)
    return p


def role_label(role: Optional[str]) -> str:
    if not role:
        return ""
    return role[:1].upper() + role[1:]
