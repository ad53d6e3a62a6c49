from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
import requests

from rates.errors import RecordSourceError
from rates.records import MODIFIER_SLOTS, RateRecord, record_from_row

logger = logging.getLogger(__name__)

DATA_DIR = Path(os.environ.get("RATES_DATA_DIR", Path(__file__).resolve().parents[1]))
DATA_FILE = Path(os.environ.get("RATES_DATA_FILE", DATA_DIR / "service_data.json"))
SOURCE_URL = os.environ.get("RATES_SOURCE_URL", "")
SOURCE_TIMEOUT = 60.0

LOAD_ERROR_MESSAGE = "Failed to load data"

RECORD_COLUMNS = (
    ["state_name", "service_category", "service_code", "service_description", "program", "location_region"]
    + [c for i in range(1, MODIFIER_SLOTS + 1) for c in (f"modifier_{i}", f"modifier_{i}_details")]
    + ["rate", "duration_unit", "rate_effective_date", "provider_type"]
)


@dataclass(frozen=True)
class RecordStore:
    """Read-only record collection shared by every view."""

    records: Tuple[RateRecord, ...] = ()
    error: str = ""
    source: str = ""

    def __len__(self) -> int:
        return len(self.records)

    @property
    def ok(self) -> bool:
        return not self.error


def get_source_files() -> List[Path]:
    return [DATA_FILE] if DATA_FILE.is_file() else []


def file_signature(files: List[Path]) -> Tuple[Tuple[str, float], ...]:
    return tuple((str(f), f.stat().st_mtime) for f in files)


def drop_duplicate_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df.loc[:, ~df.columns.duplicated()]


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col]
            if isinstance(series, pd.DataFrame):
                series = series.iloc[:, 0]
            series = series.astype("string").str.strip()
            series = series.replace({"nan": pd.NA, "None": pd.NA, "": pd.NA})
            df[col] = series
    return df


def normalize_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Align a raw record frame to the wire columns, every cell a string or NA."""
    if df.empty:
        return pd.DataFrame(columns=RECORD_COLUMNS)
    df = drop_duplicate_columns(df.copy())
    for col in RECORD_COLUMNS:
        if col not in df.columns:
            df[col] = pd.NA
    df = coerce_str_safe(df, RECORD_COLUMNS)
    return df[RECORD_COLUMNS]


def frame_from_rows(rows: Sequence[Dict[str, Any]]) -> pd.DataFrame:
    return normalize_frame(pd.DataFrame.from_records(list(rows)))


def load_records_frame(path: Path) -> pd.DataFrame:
    # dtype=False keeps serial dates and codes from being coerced into floats.
    raw = pd.read_json(path, orient="records", dtype=False, convert_dates=False)
    return normalize_frame(raw)


def records_from_frame(df: pd.DataFrame) -> Tuple[RateRecord, ...]:
    if df.empty:
        return ()
    return tuple(record_from_row(row) for row in df.to_dict(orient="records"))


def records_to_frame(records: Iterable[RateRecord]) -> pd.DataFrame:
    rows = [r.to_row() for r in records]
    if not rows:
        return pd.DataFrame(columns=RECORD_COLUMNS)
    return normalize_frame(pd.DataFrame.from_records(rows))


class RecordSource:
    """HTTP client for the record endpoint.

    Constructed once per process and passed to whatever needs the records; a
    failed fetch raises RecordSourceError and is not retried.
    """

    def __init__(self, url: str, *, session: Optional[requests.Session] = None, timeout: float = SOURCE_TIMEOUT):
        self.url = url
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch(self) -> Tuple[RateRecord, ...]:
        logger.info("Fetching rate records from %s", self.url)
        try:
            response = self.session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise RecordSourceError(f"Record fetch failed: {exc}", source=self.url) from exc
        except ValueError as exc:
            raise RecordSourceError(f"Record payload is not JSON: {exc}", source=self.url) from exc
        if not isinstance(payload, list):
            raise RecordSourceError("Record payload is not a JSON array", source=self.url)
        rows = [row for row in payload if isinstance(row, dict)]
        if len(rows) != len(payload):
            logger.warning("Skipped %d non-object rows from %s", len(payload) - len(rows), self.url)
        records = records_from_frame(frame_from_rows(rows))
        logger.info("Fetched %d rate records", len(records))
        return records

    def close(self) -> None:
        self.session.close()


# ---------------- Public API ----------------
@lru_cache(maxsize=4)
def _load_store_cached(files_sig: Tuple[Tuple[str, float], ...]) -> RecordStore:
    frames = [load_records_frame(Path(name)) for name, _ in files_sig]
    df = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame(columns=RECORD_COLUMNS)
    records = records_from_frame(df)
    logger.info("Loaded %d rate records from %s", len(records), ", ".join(name for name, _ in files_sig))
    return RecordStore(records=records, source=files_sig[0][0] if files_sig else "")


def load_store(source: Optional[RecordSource] = None) -> RecordStore:
    """Load the record collection from ``source`` or the local data file.

    Failures never raise: the store comes back empty with ``error`` set so views
    can show the error banner.
    """
    if source is not None:
        try:
            return RecordStore(records=source.fetch(), source=source.url)
        except RecordSourceError:
            logger.exception("Record fetch from %s failed", source.url)
            return RecordStore(error=LOAD_ERROR_MESSAGE, source=source.url)

    files = get_source_files()
    if not files:
        logger.warning("No rate data file found at %s", DATA_FILE)
        return RecordStore(error=LOAD_ERROR_MESSAGE, source=str(DATA_FILE))
    try:
        return _load_store_cached(file_signature(files))
    except ValueError:
        logger.exception("Rate data file %s could not be parsed", DATA_FILE)
        return RecordStore(error=LOAD_ERROR_MESSAGE, source=str(DATA_FILE))


def records_payload(
    records: Sequence[RateRecord],
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """Rows served by the record endpoint: optional inclusive date bounds, ordered by state."""
    df = records_to_frame(records)
    if df.empty:
        return []
    if start_date is not None and end_date is not None:
        dates = pd.Series([r.normalized_date for r in records], index=df.index, dtype=object)
        mask = dates.apply(lambda d: d is not None and start_date <= d <= end_date)
        df = df[mask]
    df = df.sort_values("state_name", kind="stable", na_position="last")
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict(orient="records")


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def format_currency(value: object, decimals: int = 2) -> str:
    if value is None or pd.isna(value):
        return "-"
    return f"${float(value):,.{decimals}f}"
