from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from auditor.charts import to_vega_spec, volume_group_chart
from auditor.data import format_percent_columns, volume_group_labels
from auditor.filters import DashboardFilters
from auditor.metrics_comparison import comparison_metrics
from auditor.metrics_summary import summary_metrics


def compute_overview(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    tiered: pd.DataFrame = ctx.get("tiered", pd.DataFrame())
    filtered: pd.DataFrame = ctx.get("filtered", pd.DataFrame())
    flags: pd.Series = ctx.get("audit_flags", pd.Series(dtype=bool))

    shown = filtered.head(filters.row_limit)
    shown_flags = flags.reindex(shown.index, fill_value=False) if not shown.empty else pd.Series(dtype=bool)

    charts: Dict[str, Any] = {}
    chart = volume_group_chart(filtered, order=volume_group_labels(filters.volume_cutoffs))
    if chart is not None:
        charts["volume_groups"] = to_vega_spec(chart)

    return {
        "filters": asdict(filters),
        "filename": ctx.get("filename"),
        "total_rows": int(len(tiered)),
        "row_count": int(len(filtered)),
        "columns": [str(c) for c in filtered.columns],
        "metrics": [m.to_dict() for m in summary_metrics(filtered)],
        "comparison": comparison_metrics(filtered, filters.comparison),
        "rows": format_percent_columns(shown).to_dict(orient="records"),
        "audit_flags": [bool(x) for x in shown_flags.tolist()],
        "audit_fail_count": int(flags.sum()) if not flags.empty else 0,
        "charts": charts,
    }
