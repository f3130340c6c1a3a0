from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

import altair as alt
import pandas as pd

from auditor.columns import VOLUME_GROUP_COL

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def volume_group_chart(df: pd.DataFrame, order: Optional[Sequence[str]] = None) -> Optional[alt.Chart]:
    if df.empty or VOLUME_GROUP_COL not in df.columns:
        return None
    counts = df[VOLUME_GROUP_COL].value_counts().rename_axis("volume_group").reset_index(name="rows")
    sort = list(order) if order else "ascending"
    return (
        alt.Chart(counts)
        .mark_bar()
        .encode(
            x=alt.X("volume_group:N", title="Volume Group", sort=sort),
            y=alt.Y("rows:Q", title="Rows", axis=alt.Axis(format="d", gridDash=[4, 4], domain=False, ticks=False)),
            tooltip=[alt.Tooltip("volume_group:N", title="Group"), alt.Tooltip("rows:Q", title="Rows")],
        )
        .properties(height=220)
    )
