from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from core.auth import ROLES, SIGNUP_ROLES  # noqa: F401
from core.backend import SupabaseClient
from core.errors import InvalidInput
from core.filters import MatchFilters, apply_match_filters, normalize_filters

logger = logging.getLogger(__name__)

ACTIVE_STATUS = "active"
MATCH_STATUSES = ("pending", "accepted", "completed")
MATCH_STATUS_LABELS = {
    "pending": "Pending",
    "accepted": "Accepted",
    "completed": "Completed",
}

PRODUCT_COLUMNS = [
    "id",
    "seller_id",
    "title",
    "description",
    "price",
    "quantity",
    "unit",
    "category",
    "specifications",
    "status",
    "created_at",
]
REQUEST_COLUMNS = [
    "id",
    "buyer_id",
    "title",
    "description",
    "budget",
    "quantity",
    "unit",
    "category",
    "specifications",
    "delivery_date",
    "status",
    "created_at",
]
MATCH_COLUMNS = [
    "id",
    "status",
    "fee",
    "created_at",
    "product_id",
    "product_title",
    "product_price",
    "product_quantity",
    "product_unit",
    "product_category",
    "product_seller_id",
    "seller_email",
    "request_id",
    "request_title",
    "request_budget",
    "request_quantity",
    "request_unit",
    "request_category",
    "request_delivery_date",
    "request_buyer_id",
    "buyer_email",
]

SELLER_MATCHES_SELECT = """
    id, status, fee, created_at,
    product:products!inner(*),
    request:requests(id, title, budget, quantity, unit, category, delivery_date, buyer:users(email))
"""
BUYER_MATCHES_SELECT = """
    id, status, fee, created_at,
    request:requests!inner(*),
    product:products(id, title, price, quantity, unit, category, seller:users(email))
"""
ADMIN_PRODUCTS_SELECT = "id, title, price, quantity, unit, category, created_at, seller:users(email)"
ADMIN_REQUESTS_SELECT = "id, title, budget, quantity, unit, category, delivery_date, created_at, buyer:users(email)"
ADMIN_MATCHES_SELECT = """
    id, status, fee, created_at,
    product:products(id, title, price, quantity, unit, category, seller:users(email)),
    request:requests(id, title, budget, quantity, unit, category, delivery_date, buyer:users(email))
"""
NEWEST_FIRST = "created_at.desc"


# ---------------- Cleaning helpers ----------------
def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].astype("string").str.strip()
            series = series.replace({"nan": pd.NA, "None": pd.NA, "": pd.NA})
            df[col] = series
    return df


def parse_timestamps(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_datetime(df[col], utc=True, errors="coerce")
    return df


def rows_to_frame(rows: Optional[List[Dict[str, Any]]], columns: List[str]) -> pd.DataFrame:
    """Flatten backend rows (embedded objects joined with ``_``) into a frame with ``columns``."""
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.json_normalize(rows, sep="_").reindex(columns=columns)


def frame_products(rows: Optional[List[Dict[str, Any]]]) -> pd.DataFrame:
    df = rows_to_frame(rows, PRODUCT_COLUMNS)
    df = numericize(df, ["price", "quantity"])
    df = coerce_str_safe(df, ["title", "category", "unit"])
    return parse_timestamps(df, ["created_at"])


def frame_requests(rows: Optional[List[Dict[str, Any]]]) -> pd.DataFrame:
    df = rows_to_frame(rows, REQUEST_COLUMNS)
    df = numericize(df, ["budget", "quantity"])
    df = coerce_str_safe(df, ["title", "category", "unit"])
    return parse_timestamps(df, ["created_at"])


def flatten_matches(rows: Optional[List[Dict[str, Any]]]) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame(columns=MATCH_COLUMNS)
    df = pd.json_normalize(rows, sep="_")
    df = df.rename(columns={"product_seller_email": "seller_email", "request_buyer_email": "buyer_email"})
    df = df.reindex(columns=MATCH_COLUMNS)
    df = numericize(
        df,
        ["fee", "product_price", "product_quantity", "request_budget", "request_quantity"],
    )
    df = coerce_str_safe(df, ["product_title", "request_title", "product_category", "request_category", "status"])
    return parse_timestamps(df, ["created_at"])


# ---------------- Formatting ----------------
def format_currency_2(value: object) -> str:
    if value is None or pd.isna(value):
        return "N/A"
    return f"${float(value):,.2f}"


def plain_number(value: object) -> str:
    if value is None or pd.isna(value):
        return ""
    f = float(value)
    return str(int(f)) if f.is_integer() else str(f)


def _display(value: object) -> str:
    if value is None or pd.isna(value):
        return ""
    return str(value)


def product_option_label(row: Dict[str, Any]) -> str:
    return (
        f"{_display(row.get('title'))} - ${plain_number(row.get('price'))} "
        f"({plain_number(row.get('quantity'))} {_display(row.get('unit'))}) - {_display(row.get('seller_email'))}"
    )


def request_option_label(row: Dict[str, Any]) -> str:
    return (
        f"{_display(row.get('title'))} - ${plain_number(row.get('budget'))} "
        f"({plain_number(row.get('quantity'))} {_display(row.get('unit'))}) - {_display(row.get('buyer_email'))}"
    )


# ---------------- Loaders ----------------
def load_seller_data(client: SupabaseClient, seller_id: str) -> Dict[str, object]:
    products = client.select(
        "products",
        filters={"seller_id": f"eq.{seller_id}"},
        order=NEWEST_FIRST,
    )
    matches = client.select(
        "matches",
        columns=SELLER_MATCHES_SELECT,
        filters={"product.seller_id": f"eq.{seller_id}"},
        order=NEWEST_FIRST,
    )
    return {"products": frame_products(products), "matches": flatten_matches(matches)}


def load_buyer_data(client: SupabaseClient, buyer_id: str) -> Dict[str, object]:
    requests_rows = client.select(
        "requests",
        filters={"buyer_id": f"eq.{buyer_id}"},
        order=NEWEST_FIRST,
    )
    matches = client.select(
        "matches",
        columns=BUYER_MATCHES_SELECT,
        filters={"request.buyer_id": f"eq.{buyer_id}"},
        order=NEWEST_FIRST,
    )
    return {"requests": frame_requests(requests_rows), "matches": flatten_matches(matches)}


def load_admin_data(client: SupabaseClient) -> Dict[str, object]:
    products = client.select("products", columns=ADMIN_PRODUCTS_SELECT, filters={"status": f"eq.{ACTIVE_STATUS}"})
    requests_rows = client.select("requests", columns=ADMIN_REQUESTS_SELECT, filters={"status": f"eq.{ACTIVE_STATUS}"})
    matches = client.select("matches", columns=ADMIN_MATCHES_SELECT, order=NEWEST_FIRST)
    return {
        "products": rows_to_frame(products, PRODUCT_COLUMNS + ["seller_email"])
        .pipe(numericize, ["price", "quantity"])
        .pipe(coerce_str_safe, ["title", "category", "unit"]),
        "requests": rows_to_frame(requests_rows, REQUEST_COLUMNS + ["buyer_email"])
        .pipe(numericize, ["budget", "quantity"])
        .pipe(coerce_str_safe, ["title", "category", "unit"]),
        "matches": flatten_matches(matches),
    }


# ---------------- Writers ----------------
def _require_text(raw: Dict[str, Any], key: str, label: str) -> str:
    value = str(raw.get(key) or "").strip()
    if not value:
        raise InvalidInput(f"{label} is required.")
    return value


def _parse_float(value: object, label: str, *, minimum: float = 0.0) -> float:
    try:
        out = float(str(value).strip())
    except Exception:
        raise InvalidInput(f"{label} must be a number.") from None
    if out != out or out in (float("inf"), float("-inf")):
        raise InvalidInput(f"{label} must be a number.")
    if out < minimum:
        raise InvalidInput(f"{label} must be at least {plain_number(minimum)}.")
    return out


def _parse_int(value: object, label: str, *, minimum: int = 1) -> int:
    try:
        as_float = float(str(value).strip())
    except Exception:
        raise InvalidInput(f"{label} must be a whole number.") from None
    if as_float != as_float or not as_float.is_integer():
        raise InvalidInput(f"{label} must be a whole number.")
    out = int(as_float)
    if out < minimum:
        raise InvalidInput(f"{label} must be at least {minimum}.")
    return out


def _parse_iso_date(value: object, label: str) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    s = str(value or "").strip()
    if not s:
        raise InvalidInput(f"{label} is required.")
    try:
        return date.fromisoformat(s[:10]).isoformat()
    except ValueError:
        raise InvalidInput(f"{label} must be a date (YYYY-MM-DD).") from None


def _listing_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "title": _require_text(raw, "title", "Title"),
        "description": _require_text(raw, "description", "Description"),
        "quantity": _parse_int(raw.get("quantity"), "Quantity", minimum=1),
        "unit": _require_text(raw, "unit", "Unit"),
        "category": _require_text(raw, "category", "Category"),
        "specifications": str(raw.get("specifications") or "").strip(),
        "status": ACTIVE_STATUS,
    }


def build_product_row(raw: Dict[str, Any], seller_id: str) -> Dict[str, Any]:
    row = _listing_fields(raw)
    row["price"] = _parse_float(raw.get("price"), "Price", minimum=0)
    row["seller_id"] = seller_id
    return row


def build_request_row(raw: Dict[str, Any], buyer_id: str) -> Dict[str, Any]:
    row = _listing_fields(raw)
    row["budget"] = _parse_float(raw.get("budget"), "Budget", minimum=0)
    row["delivery_date"] = _parse_iso_date(raw.get("delivery_date"), "Delivery date")
    row["buyer_id"] = buyer_id
    return row


def build_match_row(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "product_id": _require_text(raw, "product_id", "Product"),
        "request_id": _require_text(raw, "request_id", "Request"),
        "fee": _parse_float(raw.get("fee"), "Fee", minimum=0),
        "status": MATCH_STATUSES[0],
    }


def _first(rows: List[Dict[str, Any]], fallback: Dict[str, Any]) -> Dict[str, Any]:
    return rows[0] if rows else fallback


def create_product(client: SupabaseClient, raw: Dict[str, Any], seller_id: str) -> Dict[str, Any]:
    row = build_product_row(raw, seller_id)
    created = _first(client.insert("products", [row]), row)
    logger.info("product created: %s", created.get("id") or row["title"])
    return created


def create_request(client: SupabaseClient, raw: Dict[str, Any], buyer_id: str) -> Dict[str, Any]:
    row = build_request_row(raw, buyer_id)
    created = _first(client.insert("requests", [row]), row)
    logger.info("request created: %s", created.get("id") or row["title"])
    return created


def create_match(client: SupabaseClient, raw: Dict[str, Any]) -> Dict[str, Any]:
    row = build_match_row(raw)
    created = _first(client.insert("matches", [row]), row)
    logger.info("match created: product=%s request=%s fee=%s", row["product_id"], row["request_id"], row["fee"])
    return created


def update_match_status(client: SupabaseClient, match_id: str, status: str) -> Dict[str, Any]:
    status = (status or "").strip()
    if status not in MATCH_STATUSES:
        raise InvalidInput(f"Status must be one of: {', '.join(MATCH_STATUSES)}.")
    if not str(match_id or "").strip():
        raise InvalidInput("Match id is required.")
    updated = client.update("matches", {"status": status}, filters={"id": f"eq.{match_id}"})
    logger.info("match %s -> %s", match_id, status)
    return _first(updated, {"id": match_id, "status": status})


# ---------------- Compute helpers ----------------
def compute_admin_stats(products: pd.DataFrame, requests: pd.DataFrame, matches: pd.DataFrame) -> Dict[str, Any]:
    total_matches = int(len(matches))
    fees = pd.to_numeric(matches["fee"], errors="coerce").fillna(0) if "fee" in matches.columns else pd.Series(dtype=float)
    total_revenue = float(fees.sum()) if total_matches else 0.0
    average_fee = total_revenue / total_matches if total_matches > 0 else 0.0
    active_products = int(len(products))
    active_requests = int(len(requests))
    match_rate = (total_matches / active_products) * 100 if active_products > 0 else 0.0

    # Running tally: categories keep first-seen order.
    category_stats: Dict[str, int] = {}
    if not products.empty and "category" in products.columns:
        for cat in products["category"].dropna().astype(str):
            category_stats[cat] = category_stats.get(cat, 0) + 1

    return {
        "total_matches": total_matches,
        "total_revenue": total_revenue,
        "average_fee": average_fee,
        "active_products": active_products,
        "active_requests": active_requests,
        "match_rate": match_rate,
        "category_stats": category_stats,
    }


# ---------------- Public API (Streamlit parity + FastAPI use) ----------------
def prepare_admin_context(filters: dict | MatchFilters | None, data_ctx: Dict[str, object]) -> Dict[str, object]:
    products: pd.DataFrame = data_ctx.get("products", pd.DataFrame())
    requests_df: pd.DataFrame = data_ctx.get("requests", pd.DataFrame())
    matches: pd.DataFrame = data_ctx.get("matches", pd.DataFrame(columns=MATCH_COLUMNS))

    filt = filters if isinstance(filters, MatchFilters) else normalize_filters(filters)
    filtered_matches = apply_match_filters(matches, filt)
    stats = compute_admin_stats(products, requests_df, matches)

    return {
        "filters": filt,
        "products": products,
        "requests": requests_df,
        "matches": matches,
        "filtered_matches": filtered_matches,
        "stats": stats,
        "categories": list(stats["category_stats"].keys()),
    }
