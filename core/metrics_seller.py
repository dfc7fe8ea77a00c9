from __future__ import annotations

from typing import Any, Dict

import pandas as pd

from core.metrics_admin import match_records


def compute_seller_dashboard(ctx: Dict[str, Any]) -> Dict[str, Any]:
    products: pd.DataFrame = ctx.get("products", pd.DataFrame())
    matches: pd.DataFrame = ctx.get("matches", pd.DataFrame())

    total_fees = float(pd.to_numeric(matches["fee"], errors="coerce").fillna(0).sum()) if "fee" in matches.columns else 0.0
    return {
        "kpis": {
            "listing_count": int(len(products)),
            "match_count": int(len(matches)),
            "total_fees": total_fees,
        },
        "products": products.to_dict(orient="records") if not products.empty else [],
        "matches": match_records(matches),
    }
