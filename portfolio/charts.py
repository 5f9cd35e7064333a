from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import altair as alt
import pandas as pd

from portfolio.breakdowns import Breakdown
from portfolio.kpis import Measure, PeriodRollup

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def rollup_long(rollup: PeriodRollup, measures: Iterable[Measure], labels: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    measures = tuple(measures)
    records = []
    for order, (bucket, snap) in enumerate(rollup.buckets.items()):
        name = (labels or {}).get(str(bucket), str(bucket))
        for measure in measures:
            records.append({"period": name, "order": order, "measure": measure.label, "value": measure.of(snap)})
    return pd.DataFrame(records, columns=["period", "order", "measure", "value"])


def period_bars(
    rollup: PeriodRollup,
    measures: Iterable[Measure] = (Measure.PREMIUM, Measure.INCURRED_CLAIMS),
    labels: Optional[Dict[str, str]] = None,
) -> alt.Chart:
    data = rollup_long(rollup, measures, labels)
    hover = alt.selection_point(fields=["measure"], on="mouseover", empty="all")
    return (
        alt.Chart(data)
        .mark_bar()
        .encode(
            x=alt.X("period:N", title=rollup.period.title(), sort=alt.SortField("order")),
            xOffset="measure:N",
            y=alt.Y("value:Q", title=None, axis=alt.Axis(format="~s", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("measure:N", title=None),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.3)),
            tooltip=["period", "measure", alt.Tooltip("value:Q", format=",.0f")],
        )
        .add_params(hover)
        .properties(height=260)
    )


def ratio_line(
    rollup: PeriodRollup,
    measures: Iterable[Measure] = (Measure.LOSS_RATIO_PCT, Measure.COMBINED_RATIO_PCT),
    labels: Optional[Dict[str, str]] = None,
) -> alt.Chart:
    data = rollup_long(rollup, measures, labels)
    return (
        alt.Chart(data)
        .mark_line(point={"filled": True, "size": 60})
        .encode(
            x=alt.X("period:N", title=rollup.period.title(), sort=alt.SortField("order")),
            y=alt.Y("value:Q", title="%", axis=alt.Axis(format=".0f", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("measure:N", title=None),
            tooltip=["period", "measure", alt.Tooltip("value:Q", format=".1f")],
        )
        .properties(height=220)
    )


def breakdown_bars(breakdown: Breakdown, measure: Measure = Measure.PREMIUM) -> alt.Chart:
    data = pd.DataFrame(
        [{"group": line.name, "value": measure.of(line.kpis), "share": line.share_of_premium_pct} for line in breakdown.lines],
        columns=["group", "value", "share"],
    )
    return (
        alt.Chart(data)
        .mark_bar()
        .encode(
            y=alt.Y("group:N", title=breakdown.by.value.replace("_", " ").title(), sort="-x"),
            x=alt.X("value:Q", title=measure.label, axis=alt.Axis(format="~s")),
            tooltip=["group", alt.Tooltip("value:Q", format=",.0f"), alt.Tooltip("share:Q", format=".1f", title="Share %")],
        )
        .properties(height=max(120, 28 * len(data)))
    )
