from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from functools import cached_property
from typing import Any, Dict, Mapping, Optional, Tuple

from rates.dates import normalize_date

MODIFIER_SLOTS = 4
MODIFIER_SEPARATOR = " - "

DURATION_15_MINUTES = "15 MINUTES"
DURATION_30_MINUTES = "30 MINUTES"
DURATION_PER_HOUR = "PER HOUR"

# Wire columns of the record endpoint, in table display order.
COLUMNS = [
    "state_name",
    "service_category",
    "service_code",
    "service_description",
    "program",
    "location_region",
    "modifier_1",
    "modifier_2",
    "modifier_3",
    "modifier_4",
    "duration_unit",
    "rate",
    "rate_per_hour",
    "rate_effective_date",
]
DATE_COLUMN = "rate_effective_date"

NaturalKey = Tuple[str, ...]


def clean_text(value: object) -> str:
    """Strip a raw cell into a string; None/NaN/'None' become empty."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    s = str(value).strip()
    if s.lower() in {"nan", "none", "null", "<na>"}:
        return ""
    return s


def parse_rate(value: object) -> Optional[float]:
    """Parse ``$12.50`` style amounts; None when absent, negative or unparseable."""
    s = clean_text(value)
    if s.startswith("$"):
        s = s[1:].strip()
    s = s.replace(",", "")
    if not s or "_" in s:
        return None
    try:
        out = float(s)
    except ValueError:
        return None
    if not math.isfinite(out) or out < 0:
        return None
    return out


@dataclass(frozen=True)
class Modifier:
    code: str
    details: str = ""

    @property
    def label(self) -> str:
        if self.details:
            return f"{self.code}{MODIFIER_SEPARATOR}{self.details}"
        return self.code

    @property
    def match_code(self) -> str:
        return modifier_match_code(self.code)


def modifier_match_code(value: str) -> str:
    """Code prefix of a modifier label (``"GT - Telehealth"`` -> ``"GT"``)."""
    return (value or "").split(MODIFIER_SEPARATOR)[0]


@dataclass(frozen=True)
class RateRecord:
    state: str = ""
    service_category: str = ""
    service_code: str = ""
    service_description: str = ""
    program: str = ""
    location_region: str = ""
    modifiers: Tuple[Optional[Modifier], ...] = field(default=(None,) * MODIFIER_SLOTS)
    rate: str = ""
    duration_unit: str = ""
    effective_date: str = ""
    provider_type: str = ""

    @cached_property
    def state_key(self) -> str:
        return self.state.strip().upper()

    @cached_property
    def normalized_date(self) -> Optional[date]:
        return normalize_date(self.effective_date or None)

    @cached_property
    def rate_value(self) -> Optional[float]:
        return parse_rate(self.rate)

    @property
    def unit_key(self) -> str:
        return self.duration_unit.strip().upper()

    @property
    def modifier_codes(self) -> Tuple[str, ...]:
        return tuple(m.code if m is not None else "" for m in self.modifiers)

    @property
    def natural_key(self) -> NaturalKey:
        return (
            self.state_key,
            self.service_category,
            self.service_code,
            self.program,
            self.location_region,
        ) + self.modifier_codes

    @property
    def modifier_key(self) -> str:
        """Row key used by the comparison view to identify a rate line within a state."""
        return "|".join(list(self.modifier_codes) + [self.program, self.location_region])

    def column(self, name: str) -> str:
        """Raw string value of a wire column ('' when missing)."""
        if name == "state_name":
            return self.state
        if name == DATE_COLUMN:
            return self.effective_date
        if name.startswith("modifier_"):
            slot, _, details = name[len("modifier_"):].partition("_")
            try:
                mod = self.modifiers[int(slot) - 1]
            except (ValueError, IndexError):
                return ""
            if mod is None:
                return ""
            return mod.details if details else mod.code
        value = getattr(self, name, "")
        return value if isinstance(value, str) else ""

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "state_name": self.state,
            "service_category": self.service_category,
            "service_code": self.service_code,
            "service_description": self.service_description,
            "program": self.program,
            "location_region": self.location_region,
            "rate": self.rate,
            "duration_unit": self.duration_unit,
            "rate_effective_date": self.effective_date,
        }
        for i, mod in enumerate(self.modifiers, start=1):
            row[f"modifier_{i}"] = mod.code if mod is not None else ""
            row[f"modifier_{i}_details"] = mod.details if mod is not None else ""
        if self.provider_type:
            row["provider_type"] = self.provider_type
        return row


def record_from_row(row: Mapping[str, Any]) -> RateRecord:
    """Build a RateRecord from one flat JSON row; malformed cells become blanks."""
    modifiers = []
    for i in range(1, MODIFIER_SLOTS + 1):
        code = clean_text(row.get(f"modifier_{i}"))
        details = clean_text(row.get(f"modifier_{i}_details"))
        modifiers.append(Modifier(code, details) if code else None)
    return RateRecord(
        state=clean_text(row.get("state_name")),
        service_category=clean_text(row.get("service_category")),
        service_code=clean_text(row.get("service_code")),
        service_description=clean_text(row.get("service_description")),
        program=clean_text(row.get("program")),
        location_region=clean_text(row.get("location_region")),
        modifiers=tuple(modifiers),
        rate=clean_text(row.get("rate")),
        duration_unit=clean_text(row.get("duration_unit")),
        effective_date=clean_text(row.get("rate_effective_date")),
        provider_type=clean_text(row.get("provider_type")),
    )
