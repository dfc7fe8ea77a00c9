from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

from core.charts import count_bar_chart, to_vega_spec
from core.data import (
    MATCH_STATUS_LABELS,
    MATCH_STATUSES,
    compute_admin_stats,
    product_option_label,
    request_option_label,
)
from core.filters import MatchFilters

__all__ = ["compute_admin_dashboard", "compute_admin_stats", "category_chart", "match_records"]


def _options(df: pd.DataFrame, labeller) -> List[Dict[str, str]]:
    if df.empty or "id" not in df.columns:
        return []
    rows = df.dropna(subset=["id"]).to_dict(orient="records")
    return [{"id": str(r["id"]), "label": labeller(r)} for r in rows]


def match_records(matches: pd.DataFrame) -> List[Dict[str, Any]]:
    if matches.empty:
        return []
    out = matches.copy()
    created = pd.to_datetime(out["created_at"], utc=True, errors="coerce")
    out["created_date"] = created.dt.strftime("%Y-%m-%d")
    return out.to_dict(orient="records")


def category_chart(category_stats: Dict[str, int]) -> Optional[alt.Chart]:
    if not category_stats:
        return None
    cat_df = pd.DataFrame(
        [{"category": k, "products": v} for k, v in category_stats.items()]
    ).sort_values("products", ascending=False)
    return count_bar_chart(cat_df, "category", "products", label_title="Category", count_title="Active Products")


def compute_admin_dashboard(filters: MatchFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    products: pd.DataFrame = ctx.get("products", pd.DataFrame())
    requests_df: pd.DataFrame = ctx.get("requests", pd.DataFrame())
    filtered: pd.DataFrame = ctx.get("filtered_matches", pd.DataFrame())
    stats = ctx.get("stats") or compute_admin_stats(products, requests_df, ctx.get("matches", pd.DataFrame()))

    status_counts = {s: 0 for s in MATCH_STATUSES}
    if not filtered.empty and "status" in filtered.columns:
        for status, n in filtered["status"].dropna().astype(str).value_counts().items():
            status_counts[status] = int(n)

    chart = category_chart(stats["category_stats"])
    return {
        "filters": asdict(filters),
        "stats": stats,
        "product_options": _options(products, product_option_label),
        "request_options": _options(requests_df, request_option_label),
        "category_options": list(stats["category_stats"].keys()),
        "status_options": [{"value": s, "label": MATCH_STATUS_LABELS[s]} for s in MATCH_STATUSES],
        "status_counts": status_counts,
        "matches": match_records(filtered),
        "charts": {"category_breakdown": to_vega_spec(chart) if chart is not None else None},
    }
