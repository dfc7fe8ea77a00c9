from __future__ import annotations

from typing import Optional


class MarketplaceError(Exception):
    """Base error; ``str(exc)`` is the single message shown to the user."""

    status_code = 500


class BackendError(MarketplaceError):
    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.upstream_status = status_code
        if status_code is not None and 400 <= status_code < 600:
            self.status_code = status_code


class AuthError(MarketplaceError):
    status_code = 401


class AccessDenied(MarketplaceError):
    status_code = 403


class NotFound(MarketplaceError):
    status_code = 404


class InvalidInput(MarketplaceError):
    status_code = 422
