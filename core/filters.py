from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

import pandas as pd


@dataclass(frozen=True)
class MatchFilters:
    search_term: str = ""
    category: str = ""
    status: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None


def _as_date(value: object) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except Exception:
        return None


def normalize_filters(raw: Optional[dict]) -> MatchFilters:
    raw = raw or {}
    return MatchFilters(
        search_term=str(raw.get("search_term") or "").strip(),
        category=str(raw.get("category") or "").strip(),
        status=str(raw.get("status") or "").strip(),
        start_date=_as_date(raw.get("start_date")),
        end_date=_as_date(raw.get("end_date")),
    )


def _text(df: pd.DataFrame, col: str) -> pd.Series:
    if col not in df.columns:
        return pd.Series("", index=df.index, dtype="string")
    return df[col].astype("string").fillna("")


def apply_match_filters(matches: pd.DataFrame, filters: MatchFilters) -> pd.DataFrame:
    """Keep matches satisfying every active clause; input order is preserved."""
    if matches.empty:
        return matches

    mask = pd.Series(True, index=matches.index)

    if filters.search_term:
        q = filters.search_term.lower()
        mask &= (
            _text(matches, "product_title").str.lower().str.contains(q, regex=False)
            | _text(matches, "request_title").str.lower().str.contains(q, regex=False)
        )

    if filters.category:
        mask &= (_text(matches, "product_category") == filters.category) | (
            _text(matches, "request_category") == filters.category
        )

    if filters.status:
        mask &= _text(matches, "status") == filters.status

    if filters.start_date or filters.end_date:
        raw_created = matches["created_at"] if "created_at" in matches.columns else pd.Series(pd.NaT, index=matches.index)
        created = pd.to_datetime(raw_created, utc=True, errors="coerce")
        if filters.start_date:
            mask &= created >= pd.Timestamp(filters.start_date.isoformat(), tz="UTC")
        if filters.end_date:
            # Whole end day is included.
            mask &= created < pd.Timestamp(filters.end_date.isoformat(), tz="UTC") + pd.Timedelta(days=1)

    return matches[mask.fillna(False).astype(bool)]
