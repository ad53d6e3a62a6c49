from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from rates.aggregate import SortOrder, aggregate_value, chart_bars, display_row, selection_rates, state_averages
from rates.charts import rate_bar_chart
from rates.data import RecordStore, round_half_up
from rates.dedupe import latest_per_key
from rates.filters import (
    AllStates,
    FilterSelection,
    SpecificState,
    StateSelection,
    available_options,
    filter_records,
    matches,
    reset_selection,
)
from rates.records import RateRecord
from rates.views_dashboard import redirect_payload

AVERAGE_SERIES = "average"


@dataclass(frozen=True)
class ComparisonFilterSet:
    service_category: str = ""
    state: Optional[StateSelection] = None
    service_code: str = ""

    @property
    def complete(self) -> bool:
        return bool(self.service_category and self.state is not None and self.service_code)

    def as_selection(self) -> FilterSelection:
        return FilterSelection(
            service_category=self.service_category,
            state=self.state,
            service_code=self.service_code,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service_category": self.service_category,
            "state": self.state.name if isinstance(self.state, SpecificState) else None,
            "all_states": isinstance(self.state, AllStates),
            "service_code": self.service_code,
        }


def normalize_filter_sets(raw: Optional[Sequence[Mapping[str, Any]]]) -> List[ComparisonFilterSet]:
    """Only the first set may select all states; later sets asking for it are left unset."""
    out: List[ComparisonFilterSet] = []
    for index, item in enumerate(raw or []):
        state: Optional[StateSelection] = None
        if item.get("all_states"):
            state = AllStates() if index == 0 else None
        elif str(item.get("state") or "").strip():
            state = SpecificState(str(item["state"]))
        out.append(
            ComparisonFilterSet(
                service_category=str(item.get("service_category") or "").strip(),
                state=state,
                service_code=str(item.get("service_code") or "").strip(),
            )
        )
    return out or [ComparisonFilterSet()]


def code_options(records: Sequence[RateRecord], selection: FilterSelection) -> List[Dict[str, str]]:
    """Service codes with the first description seen for each."""
    descriptions: Dict[str, str] = {}
    for code in available_options(records, "service_code", selection):
        descriptions[code] = ""
    for record in records:
        if record.service_code in descriptions and not descriptions[record.service_code] and matches(record, selection):
            descriptions[record.service_code] = record.service_description
    return [{"code": code, "description": desc} for code, desc in descriptions.items()]


def national_average(
    records: Sequence[RateRecord], filter_set: ComparisonFilterSet, *, hourly: bool = False
) -> float:
    """Mean of positive rates across every state for the set's category and code."""
    values = [
        round_half_up(aggregate_value(r, hourly=hourly), 2) or 0.0
        for r in records
        if r.service_category == filter_set.service_category and r.service_code == filter_set.service_code
    ]
    values = [v for v in values if v > 0]
    if not values:
        return 0.0
    return round_half_up(sum(values) / len(values), 2) or 0.0


def rate_stats(rates: Mapping[str, Mapping[str, float]]) -> Dict[str, Optional[float]]:
    values = [v for by_series in rates.values() for v in by_series.values() if v > 0]
    if not values:
        return {"max": None, "min": None, "average": None}
    return {
        "max": max(values),
        "min": min(values),
        "average": round_half_up(sum(values) / len(values), 2),
    }


def _set_options(records: Sequence[RateRecord], filter_set: ComparisonFilterSet) -> Dict[str, Any]:
    selection = filter_set.as_selection()
    return {
        "service_category": available_options(records, "service_category", selection),
        "state": available_options(records, "state", selection) if filter_set.service_category else [],
        "service_code": (
            code_options(records, selection)
            if filter_set.service_category and filter_set.state is not None
            else []
        ),
    }


def compute_state_comparison(
    store: RecordStore,
    filter_sets: Sequence[ComparisonFilterSet],
    *,
    selected_rows: Optional[Mapping[str, Sequence[str]]] = None,
    hourly: bool = False,
    sort_order: SortOrder = "default",
    authorized: bool = True,
) -> Dict[str, Any]:
    if not authorized:
        return redirect_payload()

    records = list(store.records)
    filter_sets = list(filter_sets) or [ComparisonFilterSet()]
    all_states = isinstance(filter_sets[0].state, AllStates)
    ready = all(fs.complete for fs in filter_sets)

    payload: Dict[str, Any] = {
        "status": "ok",
        "error": store.error,
        "filter_sets": [fs.to_dict() for fs in filter_sets],
        "options": [_set_options(records, fs) for fs in filter_sets],
        "ready": ready,
        "all_states": all_states,
        "hourly": hourly,
        "sort_order": sort_order,
        "rows_by_state": {},
        "rates": {},
        "state_details": {},
        "bars": [],
        "chart": None,
        "national_average": 0.0,
        "stats": rate_stats({}),
    }
    if not ready:
        return payload

    dated = filter_records(records, reset_selection())
    latest = latest_per_key(dated)
    selections = [fs.as_selection() for fs in filter_sets]
    matched = [r for r in latest if any(matches(r, sel) for sel in selections)]

    rows_by_state: Dict[str, List[Dict[str, Any]]] = {}
    for record in matched:
        rows_by_state.setdefault(record.state_key, []).append(display_row(record))
    payload["rows_by_state"] = rows_by_state

    if all_states:
        averages = state_averages(matched, hourly=hourly)
        rates = {state: {AVERAGE_SERIES: avg} for state, avg in averages.items()}
        payload["state_details"] = {
            state: {"average": avg, "entries": len(rows_by_state.get(state, []))}
            for state, avg in averages.items()
        }
    else:
        rates = selection_rates(matched, selected_rows or {}, hourly=hourly)
    payload["rates"] = rates

    bars = chart_bars(rates, sort_order)
    payload["bars"] = bars
    payload["stats"] = rate_stats(rates)
    payload["national_average"] = national_average(dated, filter_sets[0], hourly=hourly)
    if bars:
        payload["chart"] = rate_bar_chart(bars, hourly=hourly, averages=all_states)
    return payload
