from __future__ import annotations

from typing import Any, Dict

import pandas as pd

from portfolio.facets import Facet, FacetIndex
from portfolio.filters import DashboardFilters
from portfolio.timebuckets import TimeBucketer


def compute_debug(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    rows: pd.DataFrame = ctx.get("rows", pd.DataFrame())
    filtered: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())
    index: FacetIndex = ctx["index"]
    bucketer: TimeBucketer = ctx.get("bucketer") or TimeBucketer()

    payload: Dict[str, Any] = {
        "filters": filters.to_dict(),
        "index_version": repr(index.version),
        "row_counts": {
            "scoped_rows": int(len(rows)),
            "filtered_rows": int(len(filtered)),
        },
        "facet_cardinality": {facet.value: len(index.keys(facet)) for facet in Facet},
        "unmatched_selection": {},
        "unbucketed": {"year": 0, "quarter": 0, "month": 0},
        "data_checks": {},
        "sample_rows": [],
    }

    # chosen values that match no row in scope
    for facet, chosen in filters.selection.active():
        missing = [v for v in chosen if index.positions(facet, v.strip().lower()).size == 0]
        if missing:
            payload["unmatched_selection"][facet.value] = missing

    if not filtered.empty:
        framed = bucketer.bucket_frame(filtered)
        payload["unbucketed"] = {
            "year": int(framed["bucket_year"].isna().sum()),
            "quarter": int(framed["bucket_quarter"].isna().sum()),
            "month": int(framed["bucket_month"].isna().sum()),
        }
        payload["data_checks"] = {
            "zero_premium_rows": int((filtered["premium"] <= 0).sum()),
            "missing_class_rows": int(filtered["k_class"].isna().sum()),
            "missing_broker_rows": int(filtered["k_broker"].isna().sum()),
            "missing_cedant_rows": int(filtered["k_cedant"].isna().sum()),
            "legacy_date_only_rows": int((filtered["inception_month"].isna() & filtered["com_date"].notna()).sum()),
        }
        payload["sample_rows"] = filtered.head(3).to_dict(orient="records")
    return payload
