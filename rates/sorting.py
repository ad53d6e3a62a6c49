from __future__ import annotations

import math
from dataclasses import dataclass, replace
from functools import cmp_to_key
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from rates.aggregate import record_hourly
from rates.dates import normalize_date
from rates.records import DATE_COLUMN, RateRecord

Direction = Literal["asc", "desc"]


@dataclass(frozen=True)
class SortKey:
    key: str
    direction: Direction = "asc"

    def flipped(self) -> "SortKey":
        return replace(self, direction="desc" if self.direction == "asc" else "asc")


SortSpec = Tuple[SortKey, ...]


def toggle_sort(spec: SortSpec, key: str, additive: bool = False) -> SortSpec:
    """Next sort spec after a header click.

    A plain click cycles a column unsorted -> asc -> desc -> unsorted and
    replaces the spec when the column was unsorted. An additive click appends a
    new column as the lowest priority or flips an existing one in place.
    """
    index = next((i for i, s in enumerate(spec) if s.key == key), None)
    if index is None:
        new = SortKey(key, "asc")
        return spec + (new,) if additive else (new,)
    existing = spec[index]
    if not additive and existing.direction == "desc":
        return spec[:index] + spec[index + 1:]
    return spec[:index] + (existing.flipped(),) + spec[index + 1:]


def sort_indicator(spec: SortSpec, key: str) -> Optional[Dict[str, object]]:
    for i, s in enumerate(spec):
        if s.key == key:
            return {"direction": s.direction, "priority": i + 1 if len(spec) > 1 else None}
    return None


def _sort_value(record: RateRecord, key: str) -> str:
    if key == "rate_per_hour":
        hourly = record_hourly(record)
        return "" if hourly is None or isinstance(hourly, str) else repr(hourly)
    return record.column(key)


def _as_number(value: str) -> Optional[float]:
    text = value.strip()
    if text.startswith("$"):
        text = text[1:]
    text = text.replace(",", "")
    if not text or "_" in text:
        return None
    try:
        out = float(text)
    except ValueError:
        return None
    return out if math.isfinite(out) else None


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def compare_values(a: str, b: str, key: str) -> int:
    """Ascending comparison of two column values; empties sort lowest."""
    if a == b:
        return 0
    if not a:
        return -1
    if not b:
        return 1
    num_a, num_b = _as_number(a), _as_number(b)
    if num_a is not None and num_b is not None:
        return _cmp(num_a, num_b)
    if key == DATE_COLUMN:
        date_a, date_b = normalize_date(a), normalize_date(b)
        if date_a is None or date_b is None:
            return _cmp(date_a is not None, date_b is not None)
        return _cmp(date_a, date_b)
    return _cmp(a, b)


def apply_sort(records: Sequence[RateRecord], spec: SortSpec) -> List[RateRecord]:
    """Stable multi-key sort; returns a new list."""
    if not spec:
        return list(records)

    def compare(x: RateRecord, y: RateRecord) -> int:
        for s in spec:
            result = compare_values(_sort_value(x, s.key), _sort_value(y, s.key), s.key)
            if result:
                return result if s.direction == "asc" else -result
        return 0

    return sorted(records, key=cmp_to_key(compare))


def normalize_sort(raw: object) -> SortSpec:
    """Build a SortSpec from ``[{"key": ..., "direction": ...}]``; duplicates keep the first."""
    out: List[SortKey] = []
    seen = set()
    for item in raw or []:  # type: ignore[union-attr]
        if not isinstance(item, dict):
            continue
        key = str(item.get("key") or "").strip()
        if not key or key in seen:
            continue
        direction: Direction = "desc" if str(item.get("direction", "asc")).lower() == "desc" else "asc"
        out.append(SortKey(key, direction))
        seen.add(key)
    return tuple(out)
