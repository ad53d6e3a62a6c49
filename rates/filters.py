from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Union

from rates.dates import parse_iso_date, to_iso, year_bounds
from rates.records import RateRecord, modifier_match_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllStates:
    """Every state; drives the per-state average chart."""


@dataclass(frozen=True)
class SpecificState:
    name: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", (self.name or "").strip().upper())


StateSelection = Union[AllStates, SpecificState]

# Cascade levels: selecting a stage clears every stage at a later level.
STAGE_LEVELS: Dict[str, int] = {
    "service_category": 0,
    "state": 1,
    "service_code": 2,
    "service_description": 2,
    "program": 3,
    "location_region": 3,
    "modifier": 3,
}
FINAL_STEP = 4

FILTER_PROMPTS = [
    "Please select a Service Line to begin filtering",
    "Now select a State to continue",
    "Select a Service Code, Service Description, or Fee Schedule Date to complete filtering",
]

_RECORD_FIELDS = {
    "service_category": "service_category",
    "service_code": "service_code",
    "service_description": "service_description",
    "program": "program",
    "location_region": "location_region",
}


@dataclass(frozen=True)
class FilterSelection:
    service_category: str = ""
    state: Optional[StateSelection] = None
    service_code: str = ""
    service_description: str = ""
    program: str = ""
    location_region: str = ""
    modifier: str = ""
    fee_schedule_date: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    year: Optional[int] = None
    provider_type: str = ""
    filter_step: int = 1

    @property
    def has_date_constraint(self) -> bool:
        return (
            self.fee_schedule_date is not None
            or self.start_date is not None
            or self.end_date is not None
            or self.year is not None
        )

    def stage_value(self, stage: str) -> object:
        return getattr(self, stage)

    def to_dict(self) -> Dict[str, object]:
        if isinstance(self.state, AllStates):
            state: Optional[str] = None
            all_states = True
        else:
            state = self.state.name if self.state is not None else None
            all_states = False
        return {
            "service_category": self.service_category,
            "state": state,
            "all_states": all_states,
            "service_code": self.service_code,
            "service_description": self.service_description,
            "program": self.program,
            "location_region": self.location_region,
            "modifier": self.modifier,
            "fee_schedule_date": to_iso(self.fee_schedule_date),
            "start_date": to_iso(self.start_date),
            "end_date": to_iso(self.end_date),
            "year": self.year,
            "provider_type": self.provider_type,
            "filter_step": self.filter_step,
        }


def _empty_for(stage: str) -> object:
    return None if stage == "state" else ""


def _as_state(value: object) -> Optional[StateSelection]:
    if value is None or isinstance(value, (AllStates, SpecificState)):
        return value
    text = str(value).strip()
    return SpecificState(text) if text else None


def reset_selection() -> FilterSelection:
    return FilterSelection()


def select_stage(selection: FilterSelection, stage: str, value: object) -> FilterSelection:
    """Set one cascade stage and clear every stage below it."""
    if stage not in STAGE_LEVELS:
        raise ValueError(f"Unknown filter stage: {stage}")
    level = STAGE_LEVELS[stage]
    changes: Dict[str, object] = {
        s: _empty_for(s) for s, lvl in STAGE_LEVELS.items() if lvl > level
    }
    if stage == "service_code":
        changes["service_description"] = ""
    elif stage == "service_description":
        changes["service_code"] = ""
    changes[stage] = _as_state(value) if stage == "state" else str(value or "")
    changes["filter_step"] = min(level + 2, FINAL_STEP)
    return replace(selection, **changes)


def select_year(selection: FilterSelection, year: Optional[int]) -> FilterSelection:
    """Select a calendar year (start/end follow it); selecting it again clears it.

    A year outside the calendar range leaves the selection unchanged.
    """
    if year is not None and _valid_year(year) is None:
        return selection
    if year is None or selection.year == year:
        return replace(selection, year=None, start_date=None, end_date=None)
    start, end = year_bounds(year)
    return replace(selection, year=year, start_date=start, end_date=end, fee_schedule_date=None)


def select_fee_schedule_date(selection: FilterSelection, value: Optional[date]) -> FilterSelection:
    if value is None:
        return replace(selection, fee_schedule_date=None)
    return replace(selection, fee_schedule_date=value, start_date=None, end_date=None, year=None)


def select_date_range(
    selection: FilterSelection, start: Optional[date], end: Optional[date]
) -> FilterSelection:
    return replace(selection, start_date=start, end_date=end, year=None, fee_schedule_date=None)


def is_ready(selection: FilterSelection) -> bool:
    return selection.state is not None


def filter_prompt(step: int) -> Optional[str]:
    if 1 <= step <= len(FILTER_PROMPTS):
        return FILTER_PROMPTS[step - 1]
    return None


# ---------------- Matching ----------------
def _state_matches(record: RateRecord, state: Optional[StateSelection]) -> bool:
    if state is None or isinstance(state, AllStates):
        return True
    return record.state_key == state.name


def _modifier_matches(record: RateRecord, modifier: str) -> bool:
    code = modifier_match_code(modifier)
    return any(m is not None and m.match_code == code for m in record.modifiers)


def date_matches(record: RateRecord, selection: FilterSelection) -> bool:
    if not selection.has_date_constraint:
        return True
    parsed = record.normalized_date
    if parsed is None:
        return False
    if selection.fee_schedule_date is not None:
        return parsed == selection.fee_schedule_date
    if selection.start_date is not None or selection.end_date is not None:
        if selection.start_date is not None and parsed < selection.start_date:
            return False
        if selection.end_date is not None and parsed > selection.end_date:
            return False
        return True
    return parsed.year == selection.year


def _matches_levels(record: RateRecord, selection: FilterSelection, below_level: int) -> bool:
    """Cascade-stage checks for every stage whose level is < ``below_level``."""
    for stage, level in STAGE_LEVELS.items():
        if level >= below_level:
            continue
        value = selection.stage_value(stage)
        if stage == "state":
            if not _state_matches(record, value):  # type: ignore[arg-type]
                return False
        elif stage == "modifier":
            if value and not _modifier_matches(record, value):  # type: ignore[arg-type]
                return False
        elif value and getattr(record, _RECORD_FIELDS[stage]) != value:
            return False
    return True


def matches(record: RateRecord, selection: FilterSelection) -> bool:
    if not _matches_levels(record, selection, FINAL_STEP):
        return False
    if selection.provider_type and record.provider_type != selection.provider_type:
        return False
    return date_matches(record, selection)


def filter_records(
    records: Sequence[RateRecord],
    selection: FilterSelection,
    *,
    include_undated: bool = False,
) -> List[RateRecord]:
    """Records matching ``selection``.

    Records whose effective date cannot be parsed are dropped unless
    ``include_undated`` is set and no date constraint is active.
    """
    out: List[RateRecord] = []
    undated = 0
    for record in records:
        if record.normalized_date is None:
            undated += 1
            if not include_undated:
                continue
        if matches(record, selection):
            out.append(record)
    if undated:
        logger.debug("%d of %d records have an unparseable effective date", undated, len(records))
    return out


# ---------------- Options ----------------
def _distinct_sorted(values: Iterable[str]) -> List[str]:
    return sorted({v for v in values if v})


def available_options(records: Sequence[RateRecord], stage: str, selection: FilterSelection) -> List[str]:
    """Distinct sorted values for ``stage`` among records matching the earlier stages."""
    if stage not in STAGE_LEVELS:
        raise ValueError(f"Unknown filter stage: {stage}")
    level = STAGE_LEVELS[stage]
    pool = [r for r in records if _matches_levels(r, selection, level)]
    if stage == "state":
        return _distinct_sorted(r.state_key for r in pool)
    if stage == "modifier":
        return _distinct_sorted(m.label for r in pool for m in r.modifiers if m is not None)
    return _distinct_sorted(getattr(r, _RECORD_FIELDS[stage]) for r in pool)


def modifier_options(records: Sequence[RateRecord], selection: FilterSelection) -> List[Dict[str, str]]:
    return [
        {"value": label, "label": label, "code": modifier_match_code(label)}
        for label in available_options(records, "modifier", selection)
    ]


def provider_type_options(records: Sequence[RateRecord], selection: FilterSelection) -> List[str]:
    """Trimmed provider types among records matching category/state/code/description."""
    pool = (r for r in records if _matches_levels(r, selection, STAGE_LEVELS["program"]))
    return _distinct_sorted(r.provider_type.strip() for r in pool)


def fee_schedule_dates(records: Sequence[RateRecord], selection: FilterSelection) -> List[str]:
    """ISO dates present among records matching category/state/code/description."""
    pool = (r for r in records if _matches_levels(r, selection, STAGE_LEVELS["program"]))
    return sorted({d.isoformat() for d in (r.normalized_date for r in pool) if d is not None})


def available_years(records: Sequence[RateRecord]) -> List[int]:
    return sorted({r.normalized_date.year for r in records if r.normalized_date is not None})


# ---------------- Normalization (API payloads) ----------------
def _valid_year(year: Optional[int]) -> Optional[int]:
    if year is None or not date.min.year <= year <= date.max.year:
        return None
    return year


def _as_int(value: object) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def normalize_selection(raw: dict) -> FilterSelection:
    """Build a FilterSelection from a loose request dict; bad values become blanks."""
    raw = raw or {}

    state: Optional[StateSelection]
    if raw.get("all_states"):
        state = AllStates()
    else:
        state = _as_state(raw.get("state"))

    service_code = str(raw.get("service_code") or "").strip()
    service_description = "" if service_code else str(raw.get("service_description") or "").strip()

    year = _valid_year(_as_int(raw.get("year")))
    start_date = parse_iso_date(raw.get("start_date"))
    end_date = parse_iso_date(raw.get("end_date"))
    if year is not None and start_date is None and end_date is None:
        start_date, end_date = year_bounds(year)

    fee_schedule_date = parse_iso_date(raw.get("fee_schedule_date"))
    if fee_schedule_date is not None:
        start_date = end_date = None
        year = None

    selection = FilterSelection(
        service_category=str(raw.get("service_category") or "").strip(),
        state=state,
        service_code=service_code,
        service_description=service_description,
        program=str(raw.get("program") or "").strip(),
        location_region=str(raw.get("location_region") or "").strip(),
        modifier=str(raw.get("modifier") or "").strip(),
        fee_schedule_date=fee_schedule_date,
        start_date=start_date,
        end_date=end_date,
        year=year,
        provider_type=str(raw.get("provider_type") or "").strip(),
    )
    return replace(selection, filter_step=_step_for(selection))


def _step_for(selection: FilterSelection) -> int:
    if selection.service_code or selection.service_description:
        return FINAL_STEP
    if selection.state is not None:
        return 3
    if selection.service_category:
        return 2
    return 1
