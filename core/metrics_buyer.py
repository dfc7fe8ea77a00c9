from __future__ import annotations

from typing import Any, Dict

import pandas as pd

from core.metrics_admin import match_records


def compute_buyer_dashboard(ctx: Dict[str, Any]) -> Dict[str, Any]:
    requests_df: pd.DataFrame = ctx.get("requests", pd.DataFrame())
    matches: pd.DataFrame = ctx.get("matches", pd.DataFrame())

    total_fees = float(pd.to_numeric(matches["fee"], errors="coerce").fillna(0).sum()) if "fee" in matches.columns else 0.0
    return {
        "kpis": {
            "listing_count": int(len(requests_df)),
            "match_count": int(len(matches)),
            "total_fees": total_fees,
        },
        "requests": requests_df.to_dict(orient="records") if not requests_df.empty else [],
        "matches": match_records(matches),
    }
