"""Derived rates for tables and charts.

Two paths read the same rate column differently. Display keeps an unparseable
rate as absent ("-") and a non-convertible duration unit as "N/A". Aggregation
(group averages, selected-row rates) counts both as 0. Charts built from
aggregates therefore understate groups holding such rows.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Hashable, Iterable, List, Literal, Mapping, Optional, Sequence, Union

import pandas as pd

from rates.data import format_currency, round_half_up
from rates.dates import format_display_date
from rates.records import (
    COLUMNS,
    DURATION_15_MINUTES,
    DURATION_30_MINUTES,
    DURATION_PER_HOUR,
    RateRecord,
)

NOT_AVAILABLE = "N/A"

HOURLY_FACTORS = {
    DURATION_15_MINUTES: 4.0,
    DURATION_30_MINUTES: 2.0,
    DURATION_PER_HOUR: 1.0,
}

SortOrder = Literal["default", "asc", "desc"]
Hourly = Union[float, str]


def hourly_equivalent(rate: float, duration_unit: Optional[str]) -> Hourly:
    factor = HOURLY_FACTORS.get((duration_unit or "").strip().upper())
    if factor is None:
        return NOT_AVAILABLE
    return rate * factor


def record_hourly(record: RateRecord) -> Optional[Hourly]:
    """Hourly-equivalent rate of a row; None when the rate itself is unparseable."""
    if record.rate_value is None:
        return None
    return hourly_equivalent(record.rate_value, record.duration_unit)


def aggregate_value(record: RateRecord, *, hourly: bool) -> float:
    """Rate used in sums: unparseable rates and N/A hourly values count as 0."""
    rate = record.rate_value
    if rate is None:
        return 0.0
    if not hourly:
        return rate
    value = hourly_equivalent(rate, record.duration_unit)
    return 0.0 if isinstance(value, str) else value


def group_average(
    records: Sequence[RateRecord],
    key_fn: Callable[[RateRecord], Hashable],
    *,
    hourly: bool = False,
) -> Dict[Hashable, float]:
    if not records:
        return {}
    keys: List[Hashable] = []
    group_ids: Dict[Hashable, int] = {}
    ids: List[int] = []
    for record in records:
        key = key_fn(record)
        if key not in group_ids:
            group_ids[key] = len(keys)
            keys.append(key)
        ids.append(group_ids[key])
    df = pd.DataFrame({"group_id": ids, "value": [aggregate_value(r, hourly=hourly) for r in records]})
    means = df.groupby("group_id", sort=True)["value"].mean()
    return {keys[int(gid)]: float(avg) for gid, avg in means.items()}


def state_averages(records: Sequence[RateRecord], *, hourly: bool = False) -> Dict[str, float]:
    return group_average(records, lambda r: r.state_key, hourly=hourly)  # type: ignore[return-value]


def selection_rates(
    records: Iterable[RateRecord],
    selected_rows: Mapping[str, Sequence[str]],
    *,
    hourly: bool = False,
) -> Dict[str, Dict[str, float]]:
    """``{state: {modifier_key: rate}}`` for the rows a user picked per state."""
    wanted = {state.strip().upper(): set(keys) for state, keys in selected_rows.items()}
    out: Dict[str, Dict[str, float]] = {}
    for record in records:
        keys = wanted.get(record.state_key)
        if not keys or record.modifier_key not in keys:
            continue
        rate = round_half_up(aggregate_value(record, hourly=hourly), 2) or 0.0
        out.setdefault(record.state_key, {})[record.modifier_key] = rate
    return out


def chart_bars(result: Mapping[str, Mapping[str, float]], sort_order: SortOrder = "default") -> List[Dict[str, Any]]:
    bars = [
        {"state": state, "series": series, "rate": float(rate)}
        for state, by_series in result.items()
        for series, rate in by_series.items()
    ]
    if sort_order == "asc":
        bars.sort(key=lambda b: b["rate"])
    elif sort_order == "desc":
        bars.sort(key=lambda b: b["rate"], reverse=True)
    return bars


# ---------------- Display ----------------
def format_rate(record: RateRecord) -> str:
    return format_currency(record.rate_value)


def format_hourly(record: RateRecord) -> str:
    value = record_hourly(record)
    if value is None:
        return "-"
    if isinstance(value, str):
        return value
    return format_currency(value)


def format_text(value: Optional[str]) -> str:
    return value.upper() if value else "-"


def visible_columns(records: Iterable[RateRecord]) -> Dict[str, bool]:
    """Which table columns hold any value across ``records``."""
    columns = {c: False for c in COLUMNS}
    for record in records:
        hourly = record_hourly(record)
        if hourly is not None and not isinstance(hourly, str):
            columns["rate_per_hour"] = True
        for col in COLUMNS:
            if col == "rate_per_hour" or columns[col]:
                continue
            value = record.column(col)
            if value and value != "-":
                columns[col] = True
    return columns


def display_row(record: RateRecord) -> Dict[str, Any]:
    """Table row as rendered: uppercased text, formatted money, MM/DD/YYYY dates."""
    row: Dict[str, Any] = {
        "state_name": format_text(record.state),
        "service_category": format_text(record.service_category),
        "service_code": format_text(record.service_code),
        "service_description": format_text(record.service_description),
        "program": format_text(record.program),
        "location_region": format_text(record.location_region),
        "duration_unit": format_text(record.duration_unit),
        "rate": format_rate(record),
        "rate_per_hour": format_hourly(record),
        "rate_effective_date": format_display_date(record.normalized_date),
        "modifier_key": record.modifier_key,
    }
    for i, mod in enumerate(record.modifiers, start=1):
        row[f"modifier_{i}"] = format_text(mod.label if mod is not None else None)
    return row
