"""Effective-date normalization shared by every filter, sort and chart."""

from __future__ import annotations

import logging
import math
import re
from datetime import date, timedelta
from typing import Optional

logger = logging.getLogger(__name__)

# Legacy spreadsheet day-count: serial 1 is the day after this epoch.
SERIAL_EPOCH = date(1899, 12, 31)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _as_serial(raw: object) -> Optional[float]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    text = str(raw).strip()
    if not text or "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _leading_int(part: str) -> Optional[int]:
    match = _LEADING_INT.match(part)
    if not match:
        return None
    return int(match.group(1))


def normalize_date(raw: object) -> Optional[date]:
    """Parse a serial day-count or an ``M/D/Y`` string into a calendar date.

    Returns None for anything that does not resolve to a valid date. Impossible
    calendar days such as ``2/30/2024`` are rejected rather than rolled over
    into the next month.
    """
    if raw is None:
        return None

    serial = _as_serial(raw)
    if serial is not None:
        if not math.isfinite(serial):
            logger.debug("Invalid serial date: %r", raw)
            return None
        try:
            return SERIAL_EPOCH + timedelta(days=math.trunc(serial - 1))
        except OverflowError:
            logger.debug("Invalid serial date: %r", raw)
            return None

    parts = str(raw).split("/")
    if len(parts) != 3:
        logger.debug("Invalid date format: %r", raw)
        return None
    month, day, year = (_leading_int(p) for p in parts)
    if month is None or day is None or year is None:
        logger.debug("Invalid date parts: %r", raw)
        return None
    if 0 <= year <= 99:
        year += 1900
    try:
        return date(year, month, day)
    except ValueError:
        logger.debug("Invalid date: %r", raw)
        return None


def parse_iso_date(value: object) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` (API and filter input); None when blank or invalid."""
    if value is None:
        return None
    if isinstance(value, date):
        return value
    text = str(value).strip()[:10]
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        logger.debug("Invalid ISO date: %r", value)
        return None


def to_iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def format_display_date(value: Optional[date]) -> str:
    if value is None:
        return "-"
    return f"{value.month:02d}/{value.day:02d}/{value.year}"


def year_bounds(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)
