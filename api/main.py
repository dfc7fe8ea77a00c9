from __future__ import annotations

import logging
import math
from typing import Callable, Optional

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import (
    MatchCreateModel,
    MatchFiltersModel,
    MatchStatusModel,
    ProductCreateModel,
    RequestCreateModel,
    SignInModel,
    SignUpModel,
)
from core.auth import AuthSession, resolve_session, sign_in, sign_out, sign_up
from core.backend import SupabaseClient
from core.config import DEFAULT_CORS_ORIGINS, configure_logging, load_settings
from core.data import (
    MATCH_COLUMNS,
    create_match,
    create_product,
    create_request,
    load_admin_data,
    load_buyer_data,
    load_seller_data,
    prepare_admin_context,
    update_match_status,
)
from core.errors import AccessDenied, AuthError, MarketplaceError
from core.metrics_admin import compute_admin_dashboard
from core.metrics_buyer import compute_buyer_dashboard
from core.metrics_seller import compute_seller_dashboard
from core.routing import resolve_route

try:
    _settings = load_settings()
except ValueError:
    # Backend credentials are only needed once a request reaches the backend.
    _settings = None

configure_logging(_settings.log_level if _settings else "INFO")

app = FastAPI(title="Marketplace API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins if _settings else DEFAULT_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                type(pd.NaT): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error_response(exc: Exception) -> JSONResponse:
    status_code = exc.status_code if isinstance(exc, MarketplaceError) else 500
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    logger.exception("%s %s failed", request.method, request.url.path, exc_info=exc)
    return _error_response(exc)


# ---------------- Dependencies ----------------
def get_client() -> SupabaseClient:
    return SupabaseClient.from_settings(load_settings())


def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def optional_session(
    token: Optional[str] = Depends(bearer_token),
    client: SupabaseClient = Depends(get_client),
) -> Optional[AuthSession]:
    if not token:
        return None
    try:
        return resolve_session(client, token)
    except AuthError:
        return None


def current_session(
    token: Optional[str] = Depends(bearer_token),
    client: SupabaseClient = Depends(get_client),
) -> AuthSession:
    return resolve_session(client, token)


def require_role(*roles: str) -> Callable[..., AuthSession]:
    def _dependency(session: AuthSession = Depends(current_session)) -> AuthSession:
        if session.role not in roles:
            raise AccessDenied(f"This page requires the {' or '.join(roles)} role.")
        return session

    return _dependency


# ---------------- Auth + routing ----------------
@app.post("/auth/signup")
def auth_signup(body: SignUpModel, client: SupabaseClient = Depends(get_client)):
    try:
        session = sign_up(client, body.email, body.password, body.role)
        return _json(session.to_dict(), status_code=201)
    except Exception as exc:
        logger.exception("auth_signup failed")
        return _error_response(exc)


@app.post("/auth/signin")
def auth_signin(body: SignInModel, client: SupabaseClient = Depends(get_client)):
    try:
        session = sign_in(client, body.email, body.password)
        return _json(session.to_dict())
    except Exception as exc:
        logger.exception("auth_signin failed")
        return _error_response(exc)


@app.post("/auth/signout")
def auth_signout(token: Optional[str] = Depends(bearer_token), client: SupabaseClient = Depends(get_client)):
    sign_out(client, AuthSession(access_token=token))
    return _json({"signed_out": True})


@app.get("/auth/me")
def auth_me(session: AuthSession = Depends(current_session)):
    return _json({"user_id": session.user_id, "email": session.email, "role": session.role})


@app.get("/route")
def route(path: str = Query(default="/"), session: Optional[AuthSession] = Depends(optional_session)):
    return _json({"path": resolve_route(path, session)})


# ---------------- Seller ----------------
@app.get("/seller/dashboard")
def seller_dashboard(
    session: AuthSession = Depends(require_role("seller")),
    client: SupabaseClient = Depends(get_client),
):
    try:
        ctx = load_seller_data(client.with_token(session.access_token), session.user_id)
        return _json(compute_seller_dashboard(ctx))
    except Exception as exc:
        logger.exception("seller_dashboard failed")
        return _error_response(exc)


@app.post("/seller/products")
def seller_create_product(
    body: ProductCreateModel,
    session: AuthSession = Depends(require_role("seller")),
    client: SupabaseClient = Depends(get_client),
):
    try:
        created = create_product(client.with_token(session.access_token), body.model_dump(), session.user_id)
        return _json(created, status_code=201)
    except Exception as exc:
        logger.exception("seller_create_product failed")
        return _error_response(exc)


# ---------------- Buyer ----------------
@app.get("/buyer/dashboard")
def buyer_dashboard(
    session: AuthSession = Depends(require_role("buyer")),
    client: SupabaseClient = Depends(get_client),
):
    try:
        ctx = load_buyer_data(client.with_token(session.access_token), session.user_id)
        return _json(compute_buyer_dashboard(ctx))
    except Exception as exc:
        logger.exception("buyer_dashboard failed")
        return _error_response(exc)


@app.post("/buyer/requests")
def buyer_create_request(
    body: RequestCreateModel,
    session: AuthSession = Depends(require_role("buyer")),
    client: SupabaseClient = Depends(get_client),
):
    try:
        created = create_request(client.with_token(session.access_token), body.model_dump(), session.user_id)
        return _json(created, status_code=201)
    except Exception as exc:
        logger.exception("buyer_create_request failed")
        return _error_response(exc)


# ---------------- Admin ----------------
@app.get("/meta/categories")
def meta_categories(
    session: AuthSession = Depends(require_role("admin")),
    client: SupabaseClient = Depends(get_client),
):
    try:
        ctx = prepare_admin_context(None, load_admin_data(client.with_token(session.access_token)))
        return _json({"categories": ctx["categories"]})
    except Exception as exc:
        logger.exception("meta_categories failed")
        return _error_response(exc)


@app.post("/admin/dashboard")
def admin_dashboard(
    filters: MatchFiltersModel,
    session: AuthSession = Depends(require_role("admin")),
    client: SupabaseClient = Depends(get_client),
):
    try:
        data_ctx = load_admin_data(client.with_token(session.access_token))
        ctx = prepare_admin_context(filters.model_dump(), data_ctx)
        return _json(compute_admin_dashboard(ctx["filters"], ctx))
    except Exception as exc:
        logger.exception("admin_dashboard failed")
        return _error_response(exc)


@app.post("/admin/matches")
def admin_create_match(
    body: MatchCreateModel,
    session: AuthSession = Depends(require_role("admin")),
    client: SupabaseClient = Depends(get_client),
):
    try:
        created = create_match(client.with_token(session.access_token), body.model_dump())
        return _json(created, status_code=201)
    except Exception as exc:
        logger.exception("admin_create_match failed")
        return _error_response(exc)


@app.patch("/admin/matches/{match_id}")
def admin_update_match(
    match_id: str,
    body: MatchStatusModel,
    session: AuthSession = Depends(require_role("admin")),
    client: SupabaseClient = Depends(get_client),
):
    try:
        updated = update_match_status(client.with_token(session.access_token), match_id, body.status)
        return _json(updated)
    except Exception as exc:
        logger.exception("admin_update_match failed")
        return _error_response(exc)


@app.post("/admin/export")
def admin_export(
    filters: MatchFiltersModel,
    session: AuthSession = Depends(require_role("admin")),
    client: SupabaseClient = Depends(get_client),
):
    data_ctx = load_admin_data(client.with_token(session.access_token))
    ctx = prepare_admin_context(filters.model_dump(), data_ctx)
    export_df = ctx.get("filtered_matches")
    if export_df is None or not hasattr(export_df, "to_csv"):
        export_df = pd.DataFrame(columns=MATCH_COLUMNS)
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": "attachment; filename=matches.csv"})
