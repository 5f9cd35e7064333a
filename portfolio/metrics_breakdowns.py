from __future__ import annotations

from typing import Any, Dict, Optional

import pandas as pd

from portfolio.breakdowns import facet_breakdown
from portfolio.charts import breakdown_bars, to_vega_spec
from portfolio.facets import Facet
from portfolio.filters import DashboardFilters
from portfolio.kpis import Measure


def compute_breakdown(
    filters: DashboardFilters,
    ctx: Dict[str, Any],
    by: Facet,
    sort_by: Optional[Measure] = None,
    top_n: Optional[int] = None,
) -> Dict[str, Any]:
    """KPIs per value of ``by`` over the filtered rows; every group unless ``top_n`` is given."""
    filtered: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())
    sort_by = sort_by or Measure.PREMIUM

    breakdown = facet_breakdown(filtered, by, top_n=top_n, sort_by=sort_by)
    charts: Dict[str, Any] = {}
    if breakdown.lines:
        charts[f"by_{by.value}"] = to_vega_spec(breakdown_bars(breakdown, sort_by))

    return {
        "filters": filters.to_dict(),
        "sort_by": {"measure": sort_by.value, "label": sort_by.label},
        "breakdown": breakdown.to_dict(),
        "charts": charts,
    }


def compute_clients(
    filters: DashboardFilters,
    ctx: Dict[str, Any],
    sort_by: Optional[Measure] = None,
) -> Dict[str, Any]:
    """Top-N brokers or cedants, per the filters' client type."""
    payload = compute_breakdown(filters, ctx, filters.client_type, sort_by=sort_by, top_n=filters.top_n)
    charts = payload.pop("charts")
    payload["charts"] = {"top_clients": charts[f"by_{filters.client_type.value}"]} if charts else {}
    return payload
