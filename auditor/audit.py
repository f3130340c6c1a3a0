from __future__ import annotations

import logging
import math
import operator
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Union

import pandas as pd


logger = logging.getLogger(__name__)

AUDIT_MODES = ("AND", "OR")

OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def parse_number(value: object) -> Optional[float]:
    """Parse a cell or config value as a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            out = float(s)
        except ValueError:
            return None
    else:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
    if math.isnan(out) or math.isinf(out):
        return None
    return out


@dataclass(frozen=True)
class AuditRule:
    op: str
    threshold: Optional[float] = None

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["AuditRule"]:
        if isinstance(raw, AuditRule):
            return raw
        if isinstance(raw, (tuple, list)) and len(raw) == 2:
            op, threshold = raw
        elif isinstance(raw, Mapping):
            op = raw.get("op")
            threshold = raw.get("threshold", raw.get("val"))
        else:
            return None
        if op not in OPERATORS:
            return None
        return cls(op=str(op), threshold=parse_number(threshold))

    def fails(self, value: object) -> Optional[bool]:
        """Vote for one row value; None when the rule cannot be applied."""
        num = parse_number(value)
        if num is None or self.threshold is None:
            return None
        return OPERATORS[self.op](num, self.threshold)


@dataclass(frozen=True)
class AuditSpec:
    enabled: bool = False
    mode: str = "OR"
    rules: Dict[str, AuditRule] = field(default_factory=dict)
    isolate: bool = False

    @classmethod
    def from_raw(cls, raw: Union["AuditSpec", Mapping[str, Any], None]) -> "AuditSpec":
        if isinstance(raw, AuditSpec):
            return raw
        raw = raw or {}
        rules: Dict[str, AuditRule] = {}
        for col, rule_raw in (raw.get("rules") or {}).items():
            rule = AuditRule.from_raw(rule_raw)
            if rule is not None:
                rules[str(col)] = rule
            else:
                logger.debug("Dropping invalid audit rule for %s: %r", col, rule_raw)
        mode = str(raw.get("mode") or "OR").upper()
        return cls(
            enabled=bool(raw.get("enabled", False)),
            mode=mode if mode in AUDIT_MODES else "OR",
            rules=rules,
            isolate=bool(raw.get("isolate", False)),
        )

    @property
    def active(self) -> bool:
        return bool(self.enabled and self.rules)


def audit_fails(row: Mapping[str, Any], spec: Union[AuditSpec, Mapping[str, Any], None]) -> bool:
    """True when ``row`` fails the audit.

    Rules whose row value or threshold is not numeric are skipped for that row.
    A row with no applicable rule never fails. ``AND`` needs every applicable
    rule to fail; any other mode is treated as ``OR``.
    """
    spec = AuditSpec.from_raw(spec)
    if not spec.active:
        return False

    votes = []
    for col, rule in spec.rules.items():
        if col not in row:
            continue
        vote = rule.fails(row[col])
        if vote is not None:
            votes.append(vote)

    if not votes:
        return False
    return all(votes) if spec.mode == "AND" else any(votes)


def audit_mask(df: pd.DataFrame, spec: Union[AuditSpec, Mapping[str, Any], None]) -> pd.Series:
    spec = AuditSpec.from_raw(spec)
    if df.empty or not spec.active:
        return pd.Series(False, index=df.index, dtype=bool)
    return df.apply(lambda r: audit_fails(r, spec), axis=1).astype(bool)


def isolate_failures(df: pd.DataFrame, spec: Union[AuditSpec, Mapping[str, Any], None]) -> pd.DataFrame:
    """Restrict ``df`` to failing rows when isolation is switched on."""
    spec = AuditSpec.from_raw(spec)
    if df.empty or not (spec.active and spec.isolate):
        return df
    return df[audit_mask(df, spec)].reset_index(drop=True)
