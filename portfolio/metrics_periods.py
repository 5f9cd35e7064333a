from __future__ import annotations

from typing import Any, Dict, Optional

import pandas as pd

from portfolio.charts import period_bars, ratio_line, to_vega_spec
from portfolio.config import FULL_YEAR_WINDOW, REPORTING_YEAR_WINDOW, YearWindow
from portfolio.facets import Facet
from portfolio.filters import DashboardFilters
from portfolio.kpis import PeriodRollup, month_labels, rollup_by_month, rollup_by_quarter, rollup_by_year
from portfolio.timebuckets import TimeBucketer


def selected_year(filters: DashboardFilters) -> Optional[int]:
    """The single underwriting year chosen in the year facet, if exactly one."""
    years = set()
    for value in filters.selection.get(Facet.YEAR):
        try:
            years.add(int(value))
        except ValueError:
            continue
    return years.pop() if len(years) == 1 else None


def _charts(rollup: PeriodRollup, labels: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    if rollup.total.number_of_accounts == 0:
        return {}
    return {
        "premium_vs_incurred": to_vega_spec(period_bars(rollup, labels=labels)),
        "ratios": to_vega_spec(ratio_line(rollup, labels=labels)),
    }


def compute_quarterly(
    filters: DashboardFilters,
    ctx: Dict[str, Any],
    year: Optional[int] = None,
) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())
    bucketer: TimeBucketer = ctx.get("bucketer") or TimeBucketer(FULL_YEAR_WINDOW)
    year = year if year is not None else selected_year(filters)

    rollup = rollup_by_quarter(filtered, bucketer, year=year)
    return {
        "filters": filters.to_dict(),
        "year": year,
        "selected_quarters": list(filters.quarters),
        "rollup": rollup.to_dict(),
        "charts": _charts(rollup),
    }


def compute_monthly(
    filters: DashboardFilters,
    ctx: Dict[str, Any],
    year: Optional[int] = None,
) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())
    bucketer: TimeBucketer = ctx.get("bucketer") or TimeBucketer(FULL_YEAR_WINDOW)
    year = year if year is not None else selected_year(filters)

    rollup = rollup_by_month(filtered, bucketer, year=year)
    labels = month_labels(rollup)
    return {
        "filters": filters.to_dict(),
        "year": year,
        "selected_months": list(filters.months),
        "labels": labels,
        "rollup": rollup.to_dict(),
        "charts": _charts(rollup, labels),
    }


def compute_yearly(
    filters: DashboardFilters,
    ctx: Dict[str, Any],
    window: YearWindow = REPORTING_YEAR_WINDOW,
) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())
    rollup = rollup_by_year(filtered, TimeBucketer(window))
    return {
        "filters": filters.to_dict(),
        "window": {"start": window.start, "end": window.end},
        "rollup": rollup.to_dict(),
        "charts": _charts(rollup),
    }
