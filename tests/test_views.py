"""
Integration tests for the page compute functions: dashboard, historical
rates and state comparison payloads built from the fixture store.
"""
from dataclasses import replace
from datetime import date

from conftest import BH, HH
from rates.data import RecordStore
from rates.records import record_from_row
from rates.filters import AllStates, FilterSelection, SpecificState, reset_selection, select_fee_schedule_date
from rates.sorting import SortKey
from rates.views_comparison import (
    ComparisonFilterSet,
    code_options,
    compute_state_comparison,
    normalize_filter_sets,
)
from rates.views_dashboard import compute_dashboard, dashboard_records
from rates.views_historical import compute_historical, entry_id, history_series

TODAY = date(2024, 6, 1)


# ── Dashboard ────────────────────────────────────────────────────────────────

class TestDashboard:
    def test_not_ready(self, store):
        out = compute_dashboard(store, reset_selection())
        assert out["status"] == "ok"
        assert out["ready"] is False
        assert out["rows"] == []
        assert out["row_count"] == 0
        assert out["total_records"] == 8
        assert out["prompt"] == "Please select a Service Line to begin filtering"
        assert out["options"]["service_category"] == [BH, HH]
        assert out["options"]["service_code"] == []

    def test_ready_sorted(self, store):
        selection = FilterSelection(service_category=BH, state=SpecificState("OH"), service_code="A1", filter_step=4)
        out = compute_dashboard(store, selection, (SortKey("rate", "desc"),))
        assert out["ready"] is True
        assert out["prompt"] is None
        assert [r["rate"] for r in out["rows"]] == ["$12.00", "$10.00", "$8.00"]
        assert out["row_count"] == 3
        assert out["sort"] == [{"key": "rate", "direction": "desc", "priority": None}]
        assert out["options"]["program"] == ["Medicaid"]
        assert [m["code"] for m in out["options"]["modifier"]] == ["GT", "HN"]
        assert out["visible_columns"]["modifier_1"] is True
        assert out["visible_columns"]["modifier_3"] is False

    def test_state_only_is_ready(self, store):
        out = compute_dashboard(store, FilterSelection(state=SpecificState("TX"), filter_step=3))
        assert out["row_count"] == 2
        assert out["options"]["service_code"] == ["A1", "H1"]
        assert out["options"]["program"] == []
        assert out["options"]["provider_type"] == []

    def test_provider_type_options_after_code(self, rows):
        rows[0]["provider_type"] = " Clinic "
        rows[1]["provider_type"] = "Agency"
        rows[4]["provider_type"] = "Hospital"
        store = RecordStore(records=tuple(record_from_row(r) for r in rows))
        selection = FilterSelection(state=SpecificState("OH"), filter_step=3)
        assert compute_dashboard(store, selection)["options"]["provider_type"] == []

        selection = FilterSelection(state=SpecificState("OH"), service_code="A1", filter_step=4)
        out = compute_dashboard(store, replace(selection, provider_type="Clinic"))
        assert out["options"]["provider_type"] == ["Agency", "Clinic"]
        assert [r["rate"] for r in out["rows"]] == ["$10.00"]

    def test_fee_schedule_disables_range(self, store):
        selection = select_fee_schedule_date(FilterSelection(state=SpecificState("OH")), date(2024, 1, 1))
        out = compute_dashboard(store, selection)
        assert out["date_range_disabled"] is True
        assert out["fee_schedule_disabled"] is False
        assert out["row_count"] == 2
        assert out["fee_schedule_dates"] == ["2023-01-01", "2023-06-15", "2024-01-01"]

    def test_include_undated(self, store):
        selection = FilterSelection(state=SpecificState("CA"))
        assert len(dashboard_records(store, selection)) == 1
        assert len(dashboard_records(store, selection, include_undated=True)) == 2

    def test_unauthorized_redirects(self, store):
        assert compute_dashboard(store, reset_selection(), authorized=False) == {
            "status": "redirect",
            "redirect": "/subscribe",
        }

    def test_load_error_passthrough(self):
        out = compute_dashboard(RecordStore(error="Failed to load data"), FilterSelection(state=SpecificState("OH")))
        assert out["error"] == "Failed to load data"
        assert out["rows"] == []
        assert out["total_records"] == 0


# ── Historical rates ─────────────────────────────────────────────────────────

class TestHistorical:
    def test_not_ready_without_code(self, store):
        out = compute_historical(store, FilterSelection(service_category=BH, state=SpecificState("OH")), today=TODAY)
        assert out["ready"] is False
        assert out["options"]["service_code"] == ["A1", "A2"]
        assert out["series"] == []

    def test_all_states_not_ready(self, store):
        out = compute_historical(store, FilterSelection(service_category=BH, state=AllStates(), service_code="A1"))
        assert out["ready"] is False

    def test_multiple_lines_need_a_choice(self, store, records):
        selection = FilterSelection(service_category=BH, state=SpecificState("OH"), service_code="A1")
        out = compute_historical(store, selection, today=TODAY)
        assert out["ready"] is True
        assert [r["rate"] for r in out["rows"]] == ["$12.00", "$8.00"]
        assert out["selected_entry"] is None
        assert out["chart"] is None

        chosen = entry_id(records[1])
        assert chosen == "OH|Behavioral Health|A1|Medicaid|Statewide|GT|||"
        out = compute_historical(store, selection, selected_entry=chosen, today=TODAY)
        assert out["selected_entry"] == chosen
        assert [(p["date"], p["value"]) for p in out["series"]] == [
            ("2023-01-01", 10.0),
            ("2024-01-01", 12.0),
            ("2024-06-01", 12.0),
        ]
        assert out["chart"]["layer"][0]["mark"]["type"] == "line"
        assert out["chart"]["layer"][1]["encoding"]["opacity"]["condition"]["value"] == 1

    def test_single_line_auto_selected(self, store):
        selection = FilterSelection(service_category=BH, state=SpecificState("OH"), service_code="A2")
        out = compute_historical(store, selection, hourly=True, today=TODAY)
        assert out["selected_entry"] is not None
        assert [p["display_value"] for p in out["series"]] == ["$50.00", "$50.00"]
        assert out["notice"] is None

    def test_hourly_not_available(self, store):
        selection = FilterSelection(service_category=HH, state=SpecificState("TX"), service_code="H1")
        out = compute_historical(store, selection, hourly=True, today=TODAY)
        assert all(p["value"] is None for p in out["series"])
        assert out["notice"] == 'Hourly equivalent rates not available as the duration unit is "DAILY"'
        assert out["chart"] is None

    def test_series_not_extended_into_past(self, records):
        series = history_series(records, records[1], today=date(2024, 1, 1))
        assert [p["date"] for p in series] == ["2023-01-01", "2024-01-01"]

    def test_unauthorized(self, store):
        assert compute_historical(store, reset_selection(), authorized=False)["status"] == "redirect"


# ── State comparison ─────────────────────────────────────────────────────────

class TestComparison:
    def test_all_states_averages(self, store):
        sets = normalize_filter_sets([{"service_category": BH, "all_states": True, "service_code": "A1"}])
        out = compute_state_comparison(store, sets)
        assert out["ready"] is True
        assert out["all_states"] is True
        assert out["rates"] == {"OH": {"average": 10.0}, "TX": {"average": 20.0}}
        assert out["state_details"]["OH"] == {"average": 10.0, "entries": 2}
        assert out["stats"] == {"max": 20.0, "min": 10.0, "average": 15.0}
        assert out["national_average"] == 12.5
        assert "layer" in out["chart"]

    def test_undated_records_left_out(self, store):
        # the CA row in BH/A1 has no parseable effective date
        sets = normalize_filter_sets([{"service_category": BH, "all_states": True, "service_code": "A1"}])
        out = compute_state_comparison(store, sets)
        assert "CA" not in out["rows_by_state"]
        assert "CA" not in out["rates"]
        assert "CA" not in out["state_details"]

    def test_national_average_hourly(self, store):
        sets = normalize_filter_sets([{"service_category": BH, "all_states": True, "service_code": "A1"}])
        out = compute_state_comparison(store, sets, hourly=True)
        assert out["national_average"] == 46.0
        assert out["stats"] == {"max": 80.0, "min": 32.0, "average": 56.0}

    def test_selected_rows(self, store, records):
        key = records[1].modifier_key
        sets = normalize_filter_sets(
            [
                {"service_category": BH, "state": "oh", "service_code": "A1"},
                {"service_category": BH, "state": "TX", "service_code": "A1"},
            ]
        )
        out = compute_state_comparison(store, sets, selected_rows={"OH": [key], "TX": [key]}, sort_order="desc")
        assert out["all_states"] is False
        assert sorted(out["rows_by_state"]) == ["OH", "TX"]
        assert len(out["rows_by_state"]["OH"]) == 2
        assert out["rates"] == {"OH": {key: 12.0}, "TX": {key: 20.0}}
        assert [b["state"] for b in out["bars"]] == ["TX", "OH"]
        assert out["chart"] is not None
        assert out["stats"] == {"max": 20.0, "min": 12.0, "average": 16.0}
        assert out["national_average"] == 12.5

    def test_nothing_selected_has_no_chart(self, store):
        sets = normalize_filter_sets([{"service_category": BH, "state": "OH", "service_code": "A1"}])
        out = compute_state_comparison(store, sets)
        assert out["rates"] == {}
        assert out["chart"] is None

    def test_only_first_set_may_select_all_states(self):
        sets = normalize_filter_sets(
            [
                {"service_category": BH, "state": "OH", "service_code": "A1"},
                {"service_category": BH, "all_states": True, "service_code": "A1"},
            ]
        )
        assert sets[0].state == SpecificState("OH")
        assert sets[1].state is None
        assert sets[1].complete is False

    def test_incomplete_set_not_ready(self, store):
        out = compute_state_comparison(store, normalize_filter_sets([{"service_category": BH}]))
        assert out["ready"] is False
        assert out["options"][0]["state"] == ["CA", "OH", "TX"]
        assert out["options"][0]["service_code"] == []

    def test_empty_filter_sets(self):
        assert normalize_filter_sets([]) == [ComparisonFilterSet()]

    def test_code_options(self, records):
        selection = FilterSelection(service_category=BH, state=SpecificState("OH"))
        assert code_options(records, selection) == [
            {"code": "A1", "description": "Therapy"},
            {"code": "A2", "description": "Assessment"},
        ]

    def test_unauthorized(self, store):
        assert compute_state_comparison(store, [], authorized=False)["status"] == "redirect"
