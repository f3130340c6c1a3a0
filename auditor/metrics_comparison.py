from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

import pandas as pd

from auditor.columns import (
    CLICKED_FRAGMENTS,
    DELIVERED_FRAGMENTS,
    OPENED_FRAGMENTS,
    SENT_FRAGMENTS,
    resolve_metric_column,
)
from auditor.filters import ComparisonSpec, stringify
from auditor.metrics_summary import column_total, safe_ratio


def segment_rows(df: pd.DataFrame, column: str, term: str) -> pd.DataFrame:
    """Rows whose ``column`` contains ``term`` (case-insensitive)."""
    if df.empty or column not in df.columns or not term:
        return df.iloc[0:0]
    hit = df[column].map(stringify).str.lower().str.contains(term.lower(), regex=False, na=False)
    return df[hit]


def segment_metrics(subset: pd.DataFrame, name: str) -> Dict[str, Any]:
    sent = column_total(subset, resolve_metric_column(subset, SENT_FRAGMENTS))
    delivered = column_total(subset, resolve_metric_column(subset, DELIVERED_FRAGMENTS))
    opened = column_total(subset, resolve_metric_column(subset, OPENED_FRAGMENTS))
    clicked = column_total(subset, resolve_metric_column(subset, CLICKED_FRAGMENTS))
    return {
        "name": name,
        "sent": sent,
        "delivered": delivered,
        "opened": opened,
        "clicked": clicked,
        "open_rate": safe_ratio(opened, delivered),
        "click_rate": safe_ratio(clicked, delivered),
        "click_to_open_rate": safe_ratio(clicked, opened),
        "count": int(len(subset)),
    }


def comparison_metrics(
    df: pd.DataFrame,
    spec: Union[ComparisonSpec, Mapping[str, Any], None],
) -> Optional[Dict[str, Any]]:
    """Side-by-side metrics for segments A and B, with B-minus-A deltas.

    Segments are independent substring matches, so a row can land in both.
    Returns None unless comparison is enabled with a column and both labels.
    """
    spec = ComparisonSpec.from_raw(spec)
    if not spec.active:
        return None

    a = segment_metrics(segment_rows(df, spec.column, spec.segment_a), spec.segment_a)
    b = segment_metrics(segment_rows(df, spec.column, spec.segment_b), spec.segment_b)
    return {
        "column": spec.column,
        "segment_a": a,
        "segment_b": b,
        "deltas": {
            "open_rate": b["open_rate"] - a["open_rate"],
            "click_to_open_rate": b["click_to_open_rate"] - a["click_to_open_rate"],
        },
    }
