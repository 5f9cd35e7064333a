"""Core (transport-agnostic) portfolio engine.

This package contains:
- record normalization (raw policy records -> pandas row frame)
- role scoping, facet indexing and multi-select filtering
- calendar bucketing and KPI aggregation
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
