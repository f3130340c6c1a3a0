from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import pandas as pd

from auditor.columns import DELIVERED_FRAGMENTS, OPENED_FRAGMENTS, SENT_FRAGMENTS, resolve_metric_column


@dataclass(frozen=True)
class Metric:
    label: str
    value: float
    kind: str  # "number" | "percent"

    @property
    def display(self) -> str:
        if self.kind == "percent":
            return f"{self.value * 100:.2f}%"
        return f"{self.value:,.0f}"

    def to_dict(self) -> dict:
        return {"label": self.label, "value": self.value, "kind": self.kind, "display": self.display}


def column_total(df: pd.DataFrame, col: Optional[str]) -> float:
    """Sum a column treating NaN and unparseable cells as zero; 0 if no column."""
    if col is None or df.empty or col not in df.columns:
        return 0.0
    return float(pd.to_numeric(df[col], errors="coerce").fillna(0).sum())


def safe_ratio(num: float, den: float) -> float:
    return num / den if den > 0 else 0.0


def summary_metrics(df: pd.DataFrame) -> List[Metric]:
    if df is None or df.empty:
        return []

    total_sent = column_total(df, resolve_metric_column(df, SENT_FRAGMENTS))
    total_delivered = column_total(df, resolve_metric_column(df, DELIVERED_FRAGMENTS))
    total_opened = column_total(df, resolve_metric_column(df, OPENED_FRAGMENTS))

    return [
        Metric("Total Sent", total_sent, "number"),
        Metric("Total Delivered", total_delivered, "number"),
        Metric("Weighted Open Rate", safe_ratio(total_opened, total_delivered), "percent"),
    ]
