"""
Shared fixtures: a small rate dataset covering several states, categories,
duration units, modifier layouts and date formats (including an unparseable
date and an unparseable rate).
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from rates.data import RecordStore
from rates.records import record_from_row

BH = "Behavioral Health"
HH = "Home Health"


def make_row(**overrides):
    row = {
        "state_name": "OH",
        "service_category": BH,
        "service_code": "A1",
        "service_description": "Therapy",
        "program": "Medicaid",
        "location_region": "Statewide",
        "modifier_1": None,
        "modifier_1_details": None,
        "modifier_2": None,
        "modifier_2_details": None,
        "modifier_3": None,
        "modifier_3_details": None,
        "modifier_4": None,
        "modifier_4_details": None,
        "rate": "$10.00",
        "duration_unit": "15 MINUTES",
        "rate_effective_date": "1/1/2023",
    }
    row.update(overrides)
    return row


SAMPLE_ROWS = [
    # 0, 1: same OH/A1 rate line in two years
    make_row(modifier_1="GT", modifier_1_details="Telehealth", rate="$10.00", rate_effective_date="1/1/2023"),
    make_row(modifier_1="GT", modifier_1_details="Telehealth", rate="$12.00", rate_effective_date="1/1/2024"),
    # 2: serial date 45292 == 2024-01-01
    make_row(
        service_code="A2",
        service_description="Assessment",
        program="Waiver",
        location_region="North",
        rate="$50",
        duration_unit="PER HOUR",
        rate_effective_date="45292",
    ),
    # 3: lowercase state, different modifier
    make_row(state_name="oh", modifier_1="HN", rate="$8", duration_unit="30 MINUTES", rate_effective_date="6/15/2023"),
    # 4
    make_row(state_name="TX", modifier_1="GT", modifier_1_details="Telehealth", rate="$20", rate_effective_date="3/1/2024"),
    # 5: non-convertible unit
    make_row(
        state_name="TX",
        service_category=HH,
        service_code="H1",
        service_description="Aide Visit",
        rate="$100",
        duration_unit="DAILY",
        rate_effective_date="7/1/2022",
    ),
    # 6: unparseable rate and date
    make_row(state_name="CA", rate="abc", rate_effective_date="not a date"),
    # 7
    make_row(
        state_name="CA",
        service_category=HH,
        service_code="H1",
        service_description="Aide Visit",
        rate="$30",
        duration_unit="PER HOUR",
        rate_effective_date="2/1/2024",
    ),
]


@pytest.fixture
def rows():
    return [dict(r) for r in SAMPLE_ROWS]


@pytest.fixture
def records(rows):
    return tuple(record_from_row(r) for r in rows)


@pytest.fixture
def store(records):
    return RecordStore(records=records, source="fixture")
