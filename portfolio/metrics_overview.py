from __future__ import annotations

from typing import Any, Dict

import pandas as pd

from portfolio.breakdowns import facet_breakdown
from portfolio.charts import breakdown_bars, to_vega_spec
from portfolio.facets import Facet, facet_options, subclass_options
from portfolio.filters import DashboardFilters
from portfolio.kpis import KPISnapshot, Measure, aggregate
from portfolio.roles import RoleScope, primary_role, role_display_name


# premium mix panels on the overview page
OVERVIEW_BREAKDOWNS = (Facet.CLASS, Facet.COUNTRY, Facet.EXT_TYPE)


def compute_options(rows: pd.DataFrame, filters: DashboardFilters) -> Dict[str, Any]:
    """Dropdown values for every facet; subclasses follow the chosen classes."""
    options: Dict[str, Any] = facet_options(rows)
    options[Facet.SUB_CLASS.value] = subclass_options(rows, filters.selection.get(Facet.CLASS))
    return options


def compute_overview(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    rows: pd.DataFrame = ctx.get("rows", pd.DataFrame())
    filtered: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())
    role_scope: RoleScope = ctx["scope"]
    role = primary_role(ctx.get("roles"))

    kpis = aggregate(filtered) if not filtered.empty else KPISnapshot()
    brokers = facet_breakdown(filtered, Facet.BROKER, top_n=filters.top_n)
    mixes = {facet.value: facet_breakdown(filtered, facet, top_n=None) for facet in OVERVIEW_BREAKDOWNS}

    charts: Dict[str, Any] = {}
    if brokers.lines:
        charts["top_brokers"] = to_vega_spec(breakdown_bars(brokers, Measure.PREMIUM))
    for name, mix in mixes.items():
        if mix.lines:
            charts[f"by_{name}"] = to_vega_spec(breakdown_bars(mix, Measure.PREMIUM))

    return {
        "filters": filters.to_dict(),
        "scope": {
            "role": role,
            "role_name": role_display_name(role) if role else None,
            "unrestricted": role_scope.bypass,
            "classes": sorted(role_scope.allowed_classes) if role_scope.allowed_classes is not None else None,
        },
        "row_counts": {"scoped": int(len(rows)), "filtered": int(len(filtered))},
        "kpis": kpis.to_dict(),
        "breakdowns": {name: mix.to_dict() for name, mix in mixes.items()},
        "top_brokers": brokers.to_dict(),
        "options": compute_options(rows, filters),
        "charts": charts,
    }
