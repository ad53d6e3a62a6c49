from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, List, Tuple

from rates.records import NaturalKey, RateRecord


def _date_or_min(record: RateRecord) -> date:
    return record.normalized_date or date.min


def latest_per_key(records: Iterable[RateRecord]) -> List[RateRecord]:
    """Keep the latest-effective record per natural key.

    Ties keep the first record seen; undated records only win an otherwise
    empty group. Output follows first-seen key order.
    """
    latest: Dict[NaturalKey, Tuple[RateRecord, date]] = {}
    for record in records:
        key = record.natural_key
        current = _date_or_min(record)
        existing = latest.get(key)
        if existing is None or current > existing[1]:
            latest[key] = (record, current)
    return [record for record, _ in latest.values()]


def history_for(records: Iterable[RateRecord], entry: RateRecord) -> List[RateRecord]:
    """Dated records sharing ``entry``'s natural key, oldest first."""
    key = entry.natural_key
    same = [r for r in records if r.natural_key == key and r.normalized_date is not None]
    return sorted(same, key=lambda r: r.normalized_date)  # type: ignore[arg-type, return-value]
