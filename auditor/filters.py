from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from auditor.audit import AuditSpec, parse_number


logger = logging.getLogger(__name__)

DEFAULT_CUTOFFS = (5000.0, 10000.0)
DEFAULT_COMPARE_COL = "Volume Group"
DEFAULT_ROW_LIMIT = 50


@dataclass(frozen=True)
class FilterClause:
    equals: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None
    contains: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Union["FilterClause", Mapping[str, Any], None]) -> "FilterClause":
        if isinstance(raw, FilterClause):
            return raw
        raw = raw or {}
        return cls(
            equals=_text_or_none(stringify(raw.get("equals"))),
            min=parse_number(raw.get("min")),
            max=parse_number(raw.get("max")),
            contains=_text_or_none(raw.get("contains")),
        )

    def is_empty(self) -> bool:
        return self.equals is None and self.min is None and self.max is None and self.contains is None


@dataclass(frozen=True)
class ComparisonSpec:
    enabled: bool = False
    column: str = DEFAULT_COMPARE_COL
    segment_a: str = ""
    segment_b: str = ""

    @classmethod
    def from_raw(cls, raw: Union["ComparisonSpec", Mapping[str, Any], None]) -> "ComparisonSpec":
        if isinstance(raw, ComparisonSpec):
            return raw
        raw = raw or {}
        return cls(
            enabled=bool(raw.get("enabled", False)),
            column=str(raw.get("column") or DEFAULT_COMPARE_COL),
            segment_a=str(raw.get("segment_a") or "").strip(),
            segment_b=str(raw.get("segment_b") or "").strip(),
        )

    @property
    def active(self) -> bool:
        return bool(self.enabled and self.column and self.segment_a and self.segment_b)


@dataclass(frozen=True)
class DashboardFilters:
    columns: Dict[str, FilterClause] = field(default_factory=dict)
    audit: AuditSpec = field(default_factory=AuditSpec)
    comparison: ComparisonSpec = field(default_factory=ComparisonSpec)
    volume_cutoffs: List[float] = field(default_factory=lambda: list(DEFAULT_CUTOFFS))
    row_limit: int = DEFAULT_ROW_LIMIT


def _text_or_none(value: object) -> Optional[str]:
    if value is None:
        return None
    s = str(value)
    return s if s != "" else None


def format_cutoff(value: float) -> str:
    value = float(value)
    return str(int(value)) if value.is_integer() else str(value)


def format_cutoff_list(cutoffs: Iterable[float]) -> str:
    return ", ".join(format_cutoff(c) for c in cutoffs)


def parse_cutoffs(raw: Union[str, Iterable[object], None]) -> List[float]:
    """Parse ``"5000, 10000"`` (or a list) into sorted cutoff values."""
    if raw is None:
        return list(DEFAULT_CUTOFFS)
    if isinstance(raw, str):
        tokens = re.split(r"[,;\s]+", raw)
    elif isinstance(raw, (int, float)):
        tokens = [raw]
    else:
        tokens = list(raw)
    out: List[float] = []
    for t in tokens:
        value = parse_number(t)
        if value is None:
            continue
        out.append(value)
    if not out:
        return list(DEFAULT_CUTOFFS)
    return sorted(out)


def normalize_filters(raw: Optional[dict]) -> DashboardFilters:
    raw = raw or {}

    columns: Dict[str, FilterClause] = {}
    for col, clause_raw in (raw.get("columns") or {}).items():
        clause = FilterClause.from_raw(clause_raw)
        if not clause.is_empty():
            columns[str(col)] = clause

    audit = AuditSpec.from_raw(raw.get("audit"))

    comparison = ComparisonSpec.from_raw(raw.get("comparison"))

    row_limit = raw.get("row_limit", DEFAULT_ROW_LIMIT)
    try:
        row_limit = int(row_limit)
    except Exception:
        row_limit = DEFAULT_ROW_LIMIT
    row_limit = max(1, min(500, row_limit))

    return DashboardFilters(
        columns=columns,
        audit=audit,
        comparison=comparison,
        volume_cutoffs=parse_cutoffs(raw.get("volume_cutoffs")),
        row_limit=row_limit,
    )


def stringify(value: object) -> str:
    """Render a cell the way it reads in the table ("1200", not "1200.0")."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _column_values(df: pd.DataFrame, col: str) -> pd.Series:
    if col in df.columns:
        return df[col]
    logger.warning("Filter column %r not in table; no rows can match it", col)
    return pd.Series([None] * len(df), index=df.index, dtype=object)


def apply_filters(df: pd.DataFrame, spec: Optional[Mapping[str, Any]]) -> pd.DataFrame:
    """Keep rows satisfying every clause of every column filter."""
    clauses = {col: FilterClause.from_raw(raw) for col, raw in (spec or {}).items()}
    clauses = {col: c for col, c in clauses.items() if not c.is_empty()}
    if df.empty or not clauses:
        return df

    mask = pd.Series(True, index=df.index)
    for col, clause in clauses.items():
        values = _column_values(df, col)
        if clause.equals is not None:
            mask &= values.map(stringify) == stringify(clause.equals)
        if clause.min is not None or clause.max is not None:
            numeric = pd.to_numeric(values, errors="coerce")
            if clause.min is not None:
                mask &= (numeric >= clause.min).fillna(False)
            if clause.max is not None:
                mask &= (numeric <= clause.max).fillna(False)
        if clause.contains is not None:
            needle = clause.contains.lower()
            mask &= values.map(stringify).str.lower().str.contains(needle, regex=False, na=False)

    return df[mask.astype(bool)].reset_index(drop=True)
