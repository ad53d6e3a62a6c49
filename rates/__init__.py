"""Core (UI-agnostic) rate dashboard logic.

This package contains:
- record loading (JSON -> pandas -> RateRecord)
- date normalization
- filter cascade, deduplication and sorting
- aggregation (hourly equivalents, per-state averages)
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
