from __future__ import annotations

from typing import Any, Dict, List

from rates.aggregate import display_row, visible_columns
from rates.data import RecordStore
from rates.filters import (
    STAGE_LEVELS,
    FilterSelection,
    available_options,
    available_years,
    fee_schedule_dates,
    filter_prompt,
    filter_records,
    is_ready,
    modifier_options,
    provider_type_options,
)
from rates.records import COLUMNS, RateRecord
from rates.sorting import SortSpec, apply_sort, sort_indicator

SUBSCRIBE_PATH = "/subscribe"


def redirect_payload() -> Dict[str, Any]:
    return {"status": "redirect", "redirect": SUBSCRIBE_PATH}


def stage_options(records: List[RateRecord], selection: FilterSelection) -> Dict[str, Any]:
    """Options per cascade stage; a stage stays empty until the stage above it is chosen."""
    options: Dict[str, Any] = {stage: [] for stage in STAGE_LEVELS}
    options["provider_type"] = []
    options["service_category"] = available_options(records, "service_category", selection)
    options["state"] = available_options(records, "state", selection)
    if selection.state is not None:
        options["service_code"] = available_options(records, "service_code", selection)
        options["service_description"] = available_options(records, "service_description", selection)
    if selection.service_code or selection.service_description:
        options["program"] = available_options(records, "program", selection)
        options["location_region"] = available_options(records, "location_region", selection)
        options["modifier"] = modifier_options(records, selection)
        options["provider_type"] = provider_type_options(records, selection)
    return options


def dashboard_records(
    store: RecordStore,
    selection: FilterSelection,
    sort_spec: SortSpec = (),
    *,
    include_undated: bool = False,
) -> List[RateRecord]:
    if not is_ready(selection):
        return []
    filtered = filter_records(store.records, selection, include_undated=include_undated)
    return apply_sort(filtered, sort_spec)


def compute_dashboard(
    store: RecordStore,
    selection: FilterSelection,
    sort_spec: SortSpec = (),
    *,
    authorized: bool = True,
    include_undated: bool = False,
) -> Dict[str, Any]:
    if not authorized:
        return redirect_payload()

    records = list(store.records)
    rows = dashboard_records(store, selection, sort_spec, include_undated=include_undated)
    return {
        "status": "ok",
        "error": store.error,
        "filters": selection.to_dict(),
        "ready": is_ready(selection),
        "prompt": filter_prompt(selection.filter_step),
        "options": stage_options(records, selection),
        "fee_schedule_dates": fee_schedule_dates(records, selection),
        "years": available_years(records),
        "date_range_disabled": selection.fee_schedule_date is not None,
        "fee_schedule_disabled": selection.start_date is not None or selection.end_date is not None,
        "total_records": len(records),
        "row_count": len(rows),
        "rows": [display_row(r) for r in rows],
        "visible_columns": visible_columns(rows),
        "sort": [
            {"key": s.key, **(sort_indicator(sort_spec, s.key) or {})}
            for s in sort_spec
        ],
        "columns": COLUMNS,
    }
