from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd

from portfolio.facets import Facet
from portfolio.kpis import KPISnapshot, Measure, aggregate


@dataclass(frozen=True)
class BreakdownLine:
    name: str
    kpis: KPISnapshot
    share_of_premium_pct: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "share_of_premium_pct": self.share_of_premium_pct, **self.kpis.to_dict()}


@dataclass(frozen=True)
class Breakdown:
    by: Facet
    lines: List[BreakdownLine] = field(default_factory=list)
    top_total: KPISnapshot = field(default_factory=KPISnapshot)
    top_share_of_premium_pct: float = 0.0
    grand_total: KPISnapshot = field(default_factory=KPISnapshot)
    group_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "by": self.by.value,
            "lines": [line.to_dict() for line in self.lines],
            "top_total": {**self.top_total.to_dict(), "share_of_premium_pct": self.top_share_of_premium_pct},
            "grand_total": {**self.grand_total.to_dict(), "share_of_premium_pct": 100.0},
            "group_count": self.group_count,
        }


def _display_name(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def facet_breakdown(
    rows: pd.DataFrame,
    by: Facet = Facet.BROKER,
    *,
    top_n: Optional[int] = 5,
    sort_by: Measure = Measure.PREMIUM,
) -> Breakdown:
    """KPIs per value of one facet, ranked by a measure; ``top_n=None`` keeps every group."""
    if rows.empty:
        return Breakdown(by=by)

    labels = rows[by.column]
    named = rows[labels.notna() & labels.astype(str).str.strip().ne("")]
    lines: List[BreakdownLine] = []
    members: Dict[str, pd.DataFrame] = {}
    for value, group in named.groupby(by.column, sort=True):
        name = _display_name(value)
        members[name] = group
        lines.append(BreakdownLine(name=name, kpis=aggregate(group)))

    grand_total = aggregate(named)
    lines.sort(key=lambda line: sort_by.of(line.kpis), reverse=True)
    top = lines if top_n is None else lines[: max(1, top_n)]

    def share(premium: float) -> float:
        return premium / grand_total.premium * 100 if grand_total.premium > 0 else 0.0

    top_rows = pd.concat([members[line.name] for line in top]) if top else named.iloc[0:0]
    top_total = aggregate(top_rows)
    return Breakdown(
        by=by,
        lines=[BreakdownLine(name=line.name, kpis=line.kpis, share_of_premium_pct=share(line.kpis.premium)) for line in top],
        top_total=top_total,
        top_share_of_premium_pct=share(top_total.premium),
        grand_total=grand_total,
        group_count=len(lines),
    )
