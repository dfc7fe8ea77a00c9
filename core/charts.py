from __future__ import annotations

from typing import Any, Dict

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def count_bar_chart(df: pd.DataFrame, label_col: str, count_col: str, *, label_title: str, count_title: str) -> alt.Chart:
    """Bar per label, tallest first; counts are integers."""
    return (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X(f"{label_col}:N", title=label_title, sort="-y"),
            y=alt.Y(f"{count_col}:Q", title=count_title, axis=alt.Axis(format="d", tickMinStep=1)),
            color=alt.Color(f"{label_col}:N", legend=None),
            tooltip=[label_col, alt.Tooltip(f"{count_col}:Q", format=",")],
        )
    )
