from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Dict, Optional

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, Header, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import (
    ComparisonRequest,
    DashboardRequest,
    FilterActionRequest,
    FilterSelectionModel,
    HistoricalRequest,
    MetaListResponse,
    SortToggleRequest,
)
from rates.data import SOURCE_URL, RecordSource, RecordStore, load_store, records_payload, records_to_frame
from rates.dates import parse_iso_date
from rates.filters import (
    FilterSelection,
    available_options,
    available_years,
    normalize_selection,
    reset_selection,
    select_date_range,
    select_fee_schedule_date,
    select_stage,
    select_year,
)
from rates.sorting import normalize_sort, toggle_sort
from rates.views_comparison import compute_state_comparison, normalize_filter_sets
from rates.views_dashboard import compute_dashboard, dashboard_records
from rates.views_historical import compute_historical

app = FastAPI(title="Medicaid Rates Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_remote_stores: Dict[str, RecordStore] = {}


@lru_cache(maxsize=1)
def record_source() -> Optional[RecordSource]:
    return RecordSource(SOURCE_URL) if SOURCE_URL else None


def get_store() -> RecordStore:
    """Shared record store; a failed remote fetch is not cached so a reload retries it."""
    source = record_source()
    if source is None:
        return load_store()
    store = _remote_stores.get(source.url)
    if store is None:
        store = load_store(source)
        if store.ok:
            _remote_stores[source.url] = store
    return store


def get_authorized(x_subscription_status: Optional[str] = Header(default=None)) -> bool:
    """Resolved subscription gate, set upstream by the identity/billing gateway."""
    return (x_subscription_status or "").strip().lower() == "active"


def _selection_from_model(model: FilterSelectionModel) -> FilterSelection:
    return normalize_selection(model.model_dump())


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


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/records")
def records(
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    store: RecordStore = Depends(get_store),
):
    try:
        if store.error:
            return JSONResponse(status_code=500, content={"error": "Internal Server Error"})
        rows = records_payload(
            store.records,
            start_date=parse_iso_date(start_date),
            end_date=parse_iso_date(end_date),
        )
        return _json(rows)
    except Exception as exc:
        logger.exception("Error fetching rate records")
        return _error(exc)


@app.get("/meta/categories", response_model=MetaListResponse)
def meta_categories(store: RecordStore = Depends(get_store)):
    try:
        return _json({"values": available_options(store.records, "service_category", reset_selection())})
    except Exception as exc:
        logger.exception("meta_categories failed")
        return _error(exc)


@app.get("/meta/states", response_model=MetaListResponse)
def meta_states(service_category: str = Query(default=""), store: RecordStore = Depends(get_store)):
    try:
        selection = select_stage(reset_selection(), "service_category", service_category)
        return _json({"values": available_options(store.records, "state", selection)})
    except Exception as exc:
        logger.exception("meta_states failed")
        return _error(exc)


@app.get("/meta/years")
def meta_years(store: RecordStore = Depends(get_store)):
    try:
        return _json({"years": available_years(store.records)})
    except Exception as exc:
        logger.exception("meta_years failed")
        return _error(exc)


@app.post("/filters/select")
def filters_select(body: FilterActionRequest):
    try:
        selection = _selection_from_model(body.filters)
        if body.action == "reset":
            selection = reset_selection()
        elif body.action == "year":
            selection = select_year(selection, body.year)
        elif body.action == "fee_schedule_date":
            selection = select_fee_schedule_date(selection, parse_iso_date(body.value))
        elif body.action == "date_range":
            selection = select_date_range(selection, parse_iso_date(body.start_date), parse_iso_date(body.end_date))
        else:
            if not body.stage:
                return JSONResponse(status_code=422, content={"error": "stage is required", "type": "ValueError"})
            selection = select_stage(selection, body.stage, body.value)
        return _json({"filters": selection.to_dict()})
    except ValueError as exc:
        return JSONResponse(status_code=422, content={"error": str(exc), "type": type(exc).__name__})
    except Exception as exc:
        logger.exception("filters_select failed")
        return _error(exc)


@app.post("/sort/toggle")
def sort_toggle(body: SortToggleRequest):
    try:
        spec = normalize_sort([s.model_dump() for s in body.sort])
        spec = toggle_sort(spec, body.key, body.additive)
        return _json({"sort": [{"key": s.key, "direction": s.direction} for s in spec]})
    except Exception as exc:
        logger.exception("sort_toggle failed")
        return _error(exc)


@app.post("/dashboard")
def dashboard(
    body: DashboardRequest,
    store: RecordStore = Depends(get_store),
    authorized: bool = Depends(get_authorized),
):
    try:
        selection = _selection_from_model(body.filters)
        spec = normalize_sort([s.model_dump() for s in body.sort])
        return _json(
            compute_dashboard(
                store,
                selection,
                spec,
                authorized=authorized,
                include_undated=body.include_undated,
            )
        )
    except Exception as exc:
        logger.exception("dashboard failed")
        return _error(exc)


@app.post("/historical-rates")
def historical_rates(
    body: HistoricalRequest,
    store: RecordStore = Depends(get_store),
    authorized: bool = Depends(get_authorized),
):
    try:
        selection = _selection_from_model(body.filters)
        return _json(
            compute_historical(
                store,
                selection,
                selected_entry=body.selected_entry,
                hourly=body.hourly,
                authorized=authorized,
            )
        )
    except Exception as exc:
        logger.exception("historical_rates failed")
        return _error(exc)


@app.post("/state-rate-comparison")
def state_rate_comparison(
    body: ComparisonRequest,
    store: RecordStore = Depends(get_store),
    authorized: bool = Depends(get_authorized),
):
    try:
        filter_sets = normalize_filter_sets([fs.model_dump() for fs in body.filter_sets])
        return _json(
            compute_state_comparison(
                store,
                filter_sets,
                selected_rows=body.selected_rows,
                hourly=body.hourly,
                sort_order=body.sort_order,
                authorized=authorized,
            )
        )
    except Exception as exc:
        logger.exception("state_rate_comparison failed")
        return _error(exc)


@app.post("/export/dashboard")
def export_dashboard(
    body: DashboardRequest,
    store: RecordStore = Depends(get_store),
    authorized: bool = Depends(get_authorized),
):
    if not authorized:
        return JSONResponse(status_code=403, content={"error": "Subscription required", "type": "Forbidden"})
    selection = _selection_from_model(body.filters)
    spec = normalize_sort([s.model_dump() for s in body.sort])
    rows = dashboard_records(store, selection, spec, include_undated=body.include_undated)
    csv_bytes = records_to_frame(rows).to_csv(index=False).encode("utf-8")
    return Response(
        content=csv_bytes,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=rates.csv"},
    )
