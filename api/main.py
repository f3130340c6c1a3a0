from __future__ import annotations

import logging
import math
from typing import Dict

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import DashboardFiltersModel, MetaColumnsResponse, UploadResponse
from auditor.data import UploadParseError, empty_context, load_campaign_data, prepare_context
from auditor.filters import DashboardFilters, normalize_filters
from auditor.metrics_debug import compute_debug
from auditor.metrics_overview import compute_overview


app = FastAPI(title="Campaign Auditor API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One dataset per process; a failed upload leaves the previous one in place.
_dataset: Dict[str, object] = {"ctx": empty_context()}


def current_data() -> Dict[str, object]:
    return _dataset["ctx"]  # type: ignore[return-value]


def _filters_from_model(model: DashboardFiltersModel) -> DashboardFilters:
    return normalize_filters(model.model_dump())


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/upload")
async def upload(request: Request, filename: str = Query(...)):
    content = await request.body()
    try:
        data_ctx = await run_in_threadpool(load_campaign_data, filename, content)
    except UploadParseError as exc:
        return _error(400, exc)
    except Exception as exc:
        logger.exception("upload failed")
        return _error(500, exc)

    _dataset["ctx"] = data_ctx
    tiered: pd.DataFrame = data_ctx["tiered"]  # type: ignore[assignment]
    return _json(UploadResponse(filename=filename, rows=len(tiered), columns=data_ctx["columns"]).model_dump())


@app.post("/reset")
def reset():
    _dataset["ctx"] = empty_context()
    return _json({"ok": True})


@app.get("/meta/columns")
def meta_columns():
    try:
        tiered: pd.DataFrame = current_data().get("tiered", pd.DataFrame())
        columns = [str(c) for c in tiered.columns]
        numeric = [str(c) for c in tiered.columns if pd.api.types.is_numeric_dtype(tiered[c])]
        return _json(MetaColumnsResponse(columns=columns, numeric_columns=numeric).model_dump())
    except Exception as exc:
        logger.exception("meta_columns failed")
        return _error(500, exc)


@app.post("/overview")
def overview(filters: DashboardFiltersModel):
    try:
        f = _filters_from_model(filters)
        ctx = prepare_context(f, current_data())
        return _json(compute_overview(f, ctx))
    except Exception as exc:
        logger.exception("overview failed")
        return _error(500, exc)


@app.post("/debug")
def debug(filters: DashboardFiltersModel):
    try:
        f = _filters_from_model(filters)
        ctx = prepare_context(f, current_data())
        return _json(compute_debug(f, ctx))
    except Exception as exc:
        logger.exception("debug failed")
        return _error(500, exc)


@app.post("/export")
def export(filters: DashboardFiltersModel):
    f = _filters_from_model(filters)
    ctx = prepare_context(f, current_data())
    export_df = ctx.get("filtered")
    if export_df is None or not hasattr(export_df, "to_csv"):
        export_df = pd.DataFrame()
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": "attachment; filename=campaigns.csv"})
