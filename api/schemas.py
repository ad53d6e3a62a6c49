from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class FilterSelectionModel(BaseModel):
    service_category: str = ""
    state: Optional[str] = None
    all_states: bool = False
    service_code: str = ""
    service_description: str = ""
    program: str = ""
    location_region: str = ""
    modifier: str = ""
    fee_schedule_date: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    year: Optional[int] = None
    provider_type: str = ""
    filter_step: Optional[int] = None


class SortKeyModel(BaseModel):
    key: str
    direction: Literal["asc", "desc"] = "asc"


class DashboardRequest(BaseModel):
    filters: FilterSelectionModel = Field(default_factory=FilterSelectionModel)
    sort: List[SortKeyModel] = Field(default_factory=list)
    include_undated: bool = False


class FilterActionRequest(BaseModel):
    filters: FilterSelectionModel = Field(default_factory=FilterSelectionModel)
    action: Literal["stage", "year", "fee_schedule_date", "date_range", "reset"] = "stage"
    stage: Optional[str] = None
    value: Optional[str] = None
    year: Optional[int] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class SortToggleRequest(BaseModel):
    sort: List[SortKeyModel] = Field(default_factory=list)
    key: str
    additive: bool = False


class HistoricalRequest(BaseModel):
    filters: FilterSelectionModel = Field(default_factory=FilterSelectionModel)
    selected_entry: Optional[str] = None
    hourly: bool = False


class ComparisonFilterSetModel(BaseModel):
    service_category: str = ""
    state: Optional[str] = None
    all_states: bool = False
    service_code: str = ""


class ComparisonRequest(BaseModel):
    filter_sets: List[ComparisonFilterSetModel] = Field(default_factory=lambda: [ComparisonFilterSetModel()])
    selected_rows: Dict[str, List[str]] = Field(default_factory=dict)
    hourly: bool = False
    sort_order: Literal["default", "asc", "desc"] = "default"


class MetaListResponse(BaseModel):
    values: List[str]
