from __future__ import annotations

from typing import Iterable, Optional

import pandas as pd


# Canonical percentage-class headers produced by the normalizer.
PCT_COLS = ["% Delivered", "% Opened", "% Clicked Email", "Clicked to Open Ratio"]
VOLUME_KEYWORDS = ("sent", "delivered", "opened", "clicked", "clicks", "bounced")
VOLUME_GROUP_COL = "Volume Group"

SENT_FRAGMENTS = ("sent",)
DELIVERED_FRAGMENTS = ("delivered",)
OPENED_FRAGMENTS = ("opened",)
CLICKED_FRAGMENTS = ("clicked", "clicks")
TIER_FRAGMENTS = ("sent", "delivered")


def is_pct_col(col: str) -> bool:
    return col in PCT_COLS


def is_volume_col(col: str) -> bool:
    lowered = str(col).lower()
    return any(k in lowered for k in VOLUME_KEYWORDS) and not is_pct_col(col)


def resolve_column(
    df: Optional[pd.DataFrame],
    fragments: Iterable[str],
    *,
    exclude: Iterable[str] = (),
) -> Optional[str]:
    """Return the first column whose name contains any of ``fragments``.

    Matching is case-insensitive. Columns are scanned in frame order and the
    first matching column wins, regardless of which fragment matched it.
    Returns None for a missing or row-less frame.
    """
    if df is None or df.empty:
        return None
    lowered = [str(f).lower() for f in fragments]
    skip = set(exclude)
    for col in df.columns:
        if col in skip:
            continue
        name = str(col).lower()
        if any(f in name for f in lowered):
            return col
    return None


def resolve_metric_column(df: Optional[pd.DataFrame], fragments: Iterable[str]) -> Optional[str]:
    """Resolve a volume column, ignoring the percentage-class columns."""
    return resolve_column(df, fragments, exclude=PCT_COLS)
