from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from rates.aggregate import display_row, hourly_equivalent, visible_columns
from rates.charts import rate_history_chart
from rates.data import RecordStore, format_currency
from rates.dedupe import history_for, latest_per_key
from rates.filters import FilterSelection, SpecificState, available_options, filter_records
from rates.records import RateRecord
from rates.views_dashboard import redirect_payload


def entry_id(record: RateRecord) -> str:
    return "|".join(record.natural_key)


def historical_ready(selection: FilterSelection) -> bool:
    return bool(
        selection.service_category
        and isinstance(selection.state, SpecificState)
        and selection.service_code
    )


def _point(record: RateRecord, when: date, *, hourly: bool) -> Dict[str, Any]:
    rate = record.rate_value
    value: Optional[float] = rate
    if rate is not None and hourly:
        converted = hourly_equivalent(rate, record.duration_unit)
        value = None if isinstance(converted, str) else converted
        display = converted if isinstance(converted, str) else format_currency(converted)
    else:
        display = format_currency(rate)
    return {
        "date": when.isoformat(),
        "value": value,
        "display_value": display,
        "duration_unit": record.duration_unit or "-",
    }


def history_series(
    records: Sequence[RateRecord],
    entry: RateRecord,
    *,
    hourly: bool = False,
    today: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """One point per effective date of ``entry``'s rate line, held through ``today``."""
    history = history_for(records, entry)
    if not history:
        return []
    points = [_point(r, r.normalized_date, hourly=hourly) for r in history]  # type: ignore[arg-type]
    today = today or date.today()
    last = history[-1]
    if last.normalized_date is not None and today > last.normalized_date:
        points.append(_point(last, today, hourly=hourly))
    return points


def compute_historical(
    store: RecordStore,
    selection: FilterSelection,
    *,
    selected_entry: Optional[str] = None,
    hourly: bool = False,
    authorized: bool = True,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    if not authorized:
        return redirect_payload()

    records = list(store.records)
    options = {
        "service_category": available_options(records, "service_category", selection),
        "state": available_options(records, "state", selection) if selection.service_category else [],
        "service_code": (
            available_options(records, "service_code", selection)
            if selection.service_category and selection.state is not None
            else []
        ),
    }
    payload: Dict[str, Any] = {
        "status": "ok",
        "error": store.error,
        "filters": selection.to_dict(),
        "ready": historical_ready(selection),
        "hourly": hourly,
        "options": options,
        "rows": [],
        "visible_columns": visible_columns([]),
        "selected_entry": None,
        "series": [],
        "chart": None,
        "notice": None,
    }
    if not payload["ready"]:
        return payload

    narrowed = FilterSelection(
        service_category=selection.service_category,
        state=selection.state,
        service_code=selection.service_code,
    )
    latest = latest_per_key(filter_records(records, narrowed))
    by_id = {entry_id(r): r for r in latest}

    entry: Optional[RateRecord] = None
    if len(latest) == 1:
        entry = latest[0]
    elif selected_entry:
        entry = by_id.get(selected_entry)

    payload["rows"] = [{**display_row(r), "entry_id": entry_id(r)} for r in latest]
    payload["visible_columns"] = visible_columns(latest)
    if entry is None:
        return payload

    series = history_series(records, entry, hourly=hourly, today=today)
    payload["selected_entry"] = entry_id(entry)
    payload["series"] = series
    if hourly and series and all(p["value"] is None for p in series):
        unit = next((p["duration_unit"] for p in series if p["display_value"] == "N/A"), "Unknown")
        payload["notice"] = f'Hourly equivalent rates not available as the duration unit is "{unit}"'
    if any(p["value"] is not None for p in series):
        payload["chart"] = rate_history_chart(series, hourly=hourly)
    return payload
