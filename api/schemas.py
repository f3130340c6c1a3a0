from __future__ import annotations

from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class FilterClauseModel(BaseModel):
    equals: Optional[Union[str, float]] = None
    min: Optional[Union[float, str]] = None
    max: Optional[Union[float, str]] = None
    contains: Optional[str] = None


class AuditRuleModel(BaseModel):
    op: Literal["<", "<=", ">", ">="]
    threshold: Optional[Union[float, str]] = None


class AuditSpecModel(BaseModel):
    enabled: bool = False
    mode: Literal["AND", "OR"] = "OR"
    rules: Dict[str, AuditRuleModel] = Field(default_factory=dict)
    isolate: bool = False


class ComparisonSpecModel(BaseModel):
    enabled: bool = False
    column: str = "Volume Group"
    segment_a: str = ""
    segment_b: str = ""


class DashboardFiltersModel(BaseModel):
    columns: Dict[str, FilterClauseModel] = Field(default_factory=dict)
    audit: AuditSpecModel = Field(default_factory=AuditSpecModel)
    comparison: ComparisonSpecModel = Field(default_factory=ComparisonSpecModel)
    volume_cutoffs: Union[str, List[float]] = "5000, 10000"
    row_limit: int = 50


class UploadResponse(BaseModel):
    filename: str
    rows: int
    columns: List[str]


class MetaColumnsResponse(BaseModel):
    columns: List[str]
    numeric_columns: List[str]
