from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from auditor.audit import parse_number
from auditor.columns import PCT_COLS, TIER_FRAGMENTS, is_volume_col, resolve_metric_column
from auditor.data import header_rename_map, summary_row_mask
from auditor.filters import DashboardFilters


def compute_debug(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    raw: pd.DataFrame = ctx.get("raw", pd.DataFrame())
    normalized: pd.DataFrame = ctx.get("normalized", pd.DataFrame())
    filtered: pd.DataFrame = ctx.get("filtered", pd.DataFrame())
    flags: pd.Series = ctx.get("audit_flags", pd.Series(dtype=bool))

    payload = {
        "filters": asdict(filters),
        "row_counts": {
            "raw_rows": int(len(raw)),
            "summary_rows_dropped": int(summary_row_mask(raw).sum()) if not raw.empty else 0,
            "normalized_rows": int(len(normalized)),
            "filtered_rows": int(len(filtered)),
            "audit_failures": int(flags.sum()) if not flags.empty else 0,
        },
        "header_map": header_rename_map(raw.columns) if not raw.empty else {},
        "cleaning_checks": {
            "pct_cells_unparsed": {},
            "volume_cells_zeroed": {},
        },
        "volume_column": resolve_metric_column(normalized, TIER_FRAGMENTS),
        "raw_sample": [],
    }

    if raw.empty or normalized.empty:
        return payload

    payload["raw_sample"] = raw.head(3).astype(str).to_dict(orient="records")

    # Compare each normalized metric column against the raw column it came from.
    kept = raw[~summary_row_mask(raw)].reset_index(drop=True)
    for idx, col in enumerate(kept.columns):
        target = payload["header_map"][str(col)]
        source = kept.iloc[:, idx]
        present = source.notna() & (source.astype(str).str.strip() != "")
        if target in PCT_COLS:
            unparsed = int((present & normalized[target].isna()).sum())
            if unparsed:
                payload["cleaning_checks"]["pct_cells_unparsed"][target] = unparsed
        elif is_volume_col(target):
            nonzero_text = source.astype(str).str.replace(",", "", regex=False).map(parse_number) != 0
            zeroed = int((present & nonzero_text & (normalized[target] == 0)).sum())
            if zeroed:
                payload["cleaning_checks"]["volume_cells_zeroed"][target] = zeroed
    return payload
