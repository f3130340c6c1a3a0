from __future__ import annotations

import io
import logging
import math
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from auditor.audit import isolate_failures, audit_mask
from auditor.columns import (
    PCT_COLS,
    TIER_FRAGMENTS,
    VOLUME_GROUP_COL,
    is_pct_col,
    is_volume_col,
    resolve_metric_column,
)
from auditor.filters import DEFAULT_CUTOFFS, DashboardFilters, apply_filters, format_cutoff, normalize_filters


logger = logging.getLogger(__name__)

CSV_SUFFIXES = {".csv"}
EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}

SUMMARY_ROW_PATTERN = r"total|summary|grand"
CTOR_SYNONYMS = ("click to open", "ctor", "clicked to open")
# Label column the export uses to name each campaign; never stripped.
LABEL_HEADERS = {"campaign name": "Campaign Name"}

_LEADING_INT = re.compile(r"^\s*[+-]?\d+")
_PCT_JUNK = re.compile(r"[%,\s]")
_PAREN_SUFFIX = re.compile(r"\s*\([^)]*\)")
_NOISE_WORDS = re.compile(r"\b(Email|Campaign)\b", flags=re.IGNORECASE)


class UploadParseError(ValueError):
    """The uploaded file could not be decoded into rows."""


# ---------------- Upload parsing ----------------
def drop_blank_rows(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return df
    blank = df.apply(lambda c: c.isna() | (c.astype(str).str.strip() == "")).all(axis=1)
    return df[~blank].reset_index(drop=True)


def parse_upload(filename: str, content: bytes) -> pd.DataFrame:
    """Read the first sheet (or the CSV body) into a frame keyed by header text.

    CSV cells are kept as text so thousands separators and percent signs
    reach the normalizer untouched.
    """
    suffix = Path(filename or "").suffix.lower()
    if suffix not in CSV_SUFFIXES | EXCEL_SUFFIXES:
        raise UploadParseError(f"Unsupported file type: {filename!r} (expected .csv, .xlsx or .xls)")
    if not content:
        raise UploadParseError(f"{filename} is empty")

    try:
        if suffix in CSV_SUFFIXES:
            df = pd.read_csv(
                io.BytesIO(content),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                encoding="utf-8-sig",
            )
        else:
            engine = "openpyxl" if suffix != ".xls" else None
            df = pd.read_excel(io.BytesIO(content), sheet_name=0, engine=engine)
    except Exception as exc:
        logger.warning("Failed to parse upload %s: %s", filename, exc)
        raise UploadParseError(f"Error parsing {filename}: {exc}") from exc

    df = drop_blank_rows(df)
    logger.info("Parsed %s: %d rows x %d columns", filename, len(df), len(df.columns))
    return df


# ---------------- Schema normalization ----------------
def canonical_header(col: object) -> str:
    name = str(col)
    lowered = name.lower()
    if any(x in lowered for x in CTOR_SYNONYMS):
        return "Clicked to Open Ratio"
    if "% del" in lowered:
        return "% Delivered"
    if "% open" in lowered:
        return "% Opened"
    if "% click" in lowered:
        return "% Clicked Email"
    name = _PAREN_SUFFIX.sub("", name)
    label = LABEL_HEADERS.get(name.strip().lower())
    if label:
        return label
    return _NOISE_WORDS.sub("", name).strip()


def header_rename_map(columns: Iterable[object]) -> Dict[str, str]:
    return {str(c): canonical_header(c) for c in columns}


def coerce_pct_value(value: object) -> float:
    """Percent text or number -> fraction; 45.2 and "45.2%" both give 0.452."""
    if value is None or isinstance(value, bool):
        return np.nan
    if isinstance(value, str):
        try:
            num = float(_PCT_JUNK.sub("", value))
        except ValueError:
            return np.nan
    else:
        try:
            num = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return np.nan
    if math.isnan(num) or math.isinf(num):
        return np.nan
    if abs(num) > 1.0:
        num = num / 100.0
    if not 0.0 <= num <= 1.0:
        return np.nan
    return num


def coerce_volume_value(value: object) -> int:
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, str):
        match = _LEADING_INT.match(value.replace(",", ""))
        if not match:
            return 0
        num = int(match.group(0))
    else:
        try:
            f = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 0
        if math.isnan(f) or math.isinf(f):
            return 0
        num = int(f)
    return max(num, 0)


def as_frame(raw: Union[pd.DataFrame, Sequence[Mapping[str, Any]], None]) -> pd.DataFrame:
    if raw is None:
        return pd.DataFrame()
    if isinstance(raw, pd.DataFrame):
        return raw
    rows = list(raw)
    if not rows:
        return pd.DataFrame()
    return pd.DataFrame.from_records(rows)


def summary_row_mask(df: pd.DataFrame) -> pd.Series:
    """True for spreadsheet footer rows (TOTAL, Summary, Grand Total)."""
    if df.empty:
        return pd.Series(False, index=df.index, dtype=bool)
    joined = df.apply(lambda row: " ".join("" if pd.isna(v) else str(v) for v in row), axis=1).str.lower()
    return joined.str.contains(SUMMARY_ROW_PATTERN, regex=True, na=False)


def normalize(raw: Union[pd.DataFrame, Sequence[Mapping[str, Any]], None]) -> pd.DataFrame:
    """Drop summary rows, collapse header aliases and coerce metric columns.

    Percentage columns end up as fractions (NaN when unparseable) and volume
    columns as non-negative ints (0 when unparseable). Everything else is
    passed through untouched. Never raises on bad cells.
    """
    df = as_frame(raw)
    if df.empty:
        return pd.DataFrame()

    kept = df[~summary_row_mask(df)]
    if kept.empty:
        return pd.DataFrame()

    rename = header_rename_map(kept.columns)
    out: Dict[str, pd.Series] = {}
    for idx, col in enumerate(kept.columns):
        target = rename[str(col)]
        series = kept.iloc[:, idx]
        if is_pct_col(target):
            series = series.map(coerce_pct_value).astype(float)
        elif is_volume_col(target):
            series = series.map(coerce_volume_value).astype("int64")
        # Later duplicates overwrite the value but keep the first position.
        out[target] = series

    result = pd.DataFrame(out).reset_index(drop=True)
    logger.debug("Normalized %d -> %d rows; columns=%s", len(df), len(result), list(result.columns))
    return result


# ---------------- Volume tiering ----------------
def volume_group_label(value: float, breaks: Sequence[float]) -> str:
    """Bucket label for ``value``; ``breaks`` must be sorted ascending."""
    if not breaks:
        return "0+"
    if value < breaks[0]:
        return f"0-{format_cutoff(breaks[0])}"
    if value >= breaks[-1]:
        return f"{format_cutoff(breaks[-1])}+"
    for lo, hi in zip(breaks, breaks[1:]):
        if lo <= value < hi:
            return f"{format_cutoff(lo)}-{format_cutoff(hi)}"
    return ""


def volume_group_labels(breaks: Sequence[float]) -> List[str]:
    """All bucket labels in ascending order."""
    breaks = sorted(float(b) for b in breaks)
    if not breaks:
        return ["0+"]
    labels = [f"0-{format_cutoff(breaks[0])}"]
    labels += [f"{format_cutoff(lo)}-{format_cutoff(hi)}" for lo, hi in zip(breaks, breaks[1:])]
    labels.append(f"{format_cutoff(breaks[-1])}+")
    return labels


def apply_volume_tiers(df: pd.DataFrame, cutoffs: Iterable[float] = DEFAULT_CUTOFFS) -> pd.DataFrame:
    if df is None or df.empty:
        return df
    base = df.drop(columns=[VOLUME_GROUP_COL], errors="ignore")
    volume_col = resolve_metric_column(base, TIER_FRAGMENTS)
    if volume_col is None:
        logger.info("No sent/delivered column found; skipping volume tiers")
        return df

    breaks = sorted(float(c) for c in cutoffs)
    values = pd.to_numeric(base[volume_col], errors="coerce").fillna(0)
    out = base.copy()
    out[VOLUME_GROUP_COL] = values.map(lambda v: volume_group_label(v, breaks))
    return out


# ---------------- Display helpers ----------------
def format_percent_columns(df: pd.DataFrame, cols: Iterable[str] = PCT_COLS, decimals: int = 2) -> pd.DataFrame:
    formatted = df.copy()
    for c in cols:
        if c in formatted.columns:
            formatted[c] = formatted[c].apply(lambda v: f"{float(v)*100:.{decimals}f}%" if pd.notna(v) else "")
    return formatted


# ---------------- Public API (Streamlit parity + FastAPI use) ----------------
def empty_context() -> Dict[str, object]:
    return {
        "filename": None,
        "raw": pd.DataFrame(),
        "normalized": pd.DataFrame(),
        "tiered": pd.DataFrame(),
        "columns": [],
    }


@lru_cache(maxsize=4)
def _load_campaign_data_cached(filename: str, content: bytes) -> Dict[str, object]:
    raw = parse_upload(filename, content)
    normalized = normalize(raw)
    tiered = apply_volume_tiers(normalized, DEFAULT_CUTOFFS)
    logger.info("Loaded %s: %d raw rows, %d after normalization", filename, len(raw), len(normalized))
    return {
        "filename": filename,
        "raw": raw,
        "normalized": normalized,
        "tiered": tiered,
        "columns": [str(c) for c in tiered.columns],
    }


def load_campaign_data(filename: str, content: bytes) -> Dict[str, object]:
    """Parse and normalize an upload; raises UploadParseError on bad files."""
    return _load_campaign_data_cached(filename, bytes(content))


def prepare_context(filters: Optional[dict] | DashboardFilters, data_ctx: Dict[str, object]) -> Dict[str, object]:
    filt = filters if isinstance(filters, DashboardFilters) else normalize_filters(filters)
    normalized: pd.DataFrame = data_ctx.get("normalized", pd.DataFrame())

    tiered: Optional[pd.DataFrame] = data_ctx.get("tiered")
    if tiered is None or list(filt.volume_cutoffs) != list(DEFAULT_CUTOFFS):
        tiered = apply_volume_tiers(normalized, filt.volume_cutoffs)

    filtered = apply_filters(tiered, filt.columns)
    filtered = isolate_failures(filtered, filt.audit)
    flags = audit_mask(filtered, filt.audit)

    return {
        **data_ctx,
        "filters": filt,
        "tiered": tiered,
        "filtered": filtered,
        "audit_flags": flags,
    }
