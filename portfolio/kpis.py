from __future__ import annotations

from dataclasses import asdict, dataclass, field, is_dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional, Union

import pandas as pd

from portfolio.filters import QUARTERS
from portfolio.timebuckets import TimeBucketer, month_name


RowsLike = Union[pd.DataFrame, Iterable[Any]]


@dataclass(frozen=True)
class KPISnapshot:
    premium: float = 0.0
    acquisition: float = 0.0
    paid_claims: float = 0.0
    outstanding_claims: float = 0.0
    incurred_claims: float = 0.0
    technical_result: float = 0.0
    loss_ratio_pct: float = 0.0
    acquisition_pct: float = 0.0
    combined_ratio_pct: float = 0.0
    number_of_accounts: int = 0
    avg_max_liability: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def ratio_pct(numerator: float, premium: float) -> float:
    return numerator / premium * 100 if premium > 0 else 0.0


def _as_frame(rows: RowsLike) -> pd.DataFrame:
    if isinstance(rows, pd.DataFrame):
        return rows
    records = [asdict(r) if is_dataclass(r) else dict(r) for r in rows]
    return pd.DataFrame(records)


def _column_sum(df: pd.DataFrame, col: str) -> float:
    if df.empty or col not in df.columns:
        return 0.0
    return float(pd.to_numeric(df[col], errors="coerce").fillna(0.0).sum())


def aggregate(rows: RowsLike) -> KPISnapshot:
    df = _as_frame(rows)
    count = int(len(df))
    premium = _column_sum(df, "premium")
    acquisition = _column_sum(df, "acquisition")
    paid = _column_sum(df, "paid_claims")
    outstanding = _column_sum(df, "outstanding_claims")
    incurred = paid + outstanding
    loss_ratio = ratio_pct(incurred, premium)
    acquisition_pct = ratio_pct(acquisition, premium)
    return KPISnapshot(
        premium=premium,
        acquisition=acquisition,
        paid_claims=paid,
        outstanding_claims=outstanding,
        incurred_claims=incurred,
        technical_result=premium - incurred - acquisition,
        loss_ratio_pct=loss_ratio,
        acquisition_pct=acquisition_pct,
        combined_ratio_pct=loss_ratio + acquisition_pct,
        number_of_accounts=count,
        avg_max_liability=_column_sum(df, "max_liability") / count if count > 0 else 0.0,
    )


class Measure(str, Enum):
    PREMIUM = "premium"
    ACQUISITION = "acquisition"
    PAID_CLAIMS = "paid_claims"
    OUTSTANDING_CLAIMS = "outstanding_claims"
    INCURRED_CLAIMS = "incurred_claims"
    TECHNICAL_RESULT = "technical_result"
    LOSS_RATIO_PCT = "loss_ratio_pct"
    ACQUISITION_PCT = "acquisition_pct"
    COMBINED_RATIO_PCT = "combined_ratio_pct"
    NUMBER_OF_ACCOUNTS = "number_of_accounts"
    AVG_MAX_LIABILITY = "avg_max_liability"

    def of(self, snapshot: KPISnapshot) -> float:
        return MEASURE_ACCESSORS[self](snapshot)

    @property
    def label(self) -> str:
        return MEASURE_LABELS[self]

    @property
    def is_ratio(self) -> bool:
        return self in (Measure.LOSS_RATIO_PCT, Measure.ACQUISITION_PCT, Measure.COMBINED_RATIO_PCT)


MEASURE_ACCESSORS: Dict[Measure, Callable[[KPISnapshot], float]] = {
    Measure.PREMIUM: lambda s: s.premium,
    Measure.ACQUISITION: lambda s: s.acquisition,
    Measure.PAID_CLAIMS: lambda s: s.paid_claims,
    Measure.OUTSTANDING_CLAIMS: lambda s: s.outstanding_claims,
    Measure.INCURRED_CLAIMS: lambda s: s.incurred_claims,
    Measure.TECHNICAL_RESULT: lambda s: s.technical_result,
    Measure.LOSS_RATIO_PCT: lambda s: s.loss_ratio_pct,
    Measure.ACQUISITION_PCT: lambda s: s.acquisition_pct,
    Measure.COMBINED_RATIO_PCT: lambda s: s.combined_ratio_pct,
    Measure.NUMBER_OF_ACCOUNTS: lambda s: float(s.number_of_accounts),
    Measure.AVG_MAX_LIABILITY: lambda s: s.avg_max_liability,
}

MEASURE_LABELS = {
    Measure.PREMIUM: "Premium",
    Measure.ACQUISITION: "Acquisition",
    Measure.PAID_CLAIMS: "Paid Claims",
    Measure.OUTSTANDING_CLAIMS: "Outstanding Claims",
    Measure.INCURRED_CLAIMS: "Incurred Claims",
    Measure.TECHNICAL_RESULT: "Technical Result",
    Measure.LOSS_RATIO_PCT: "Loss Ratio %",
    Measure.ACQUISITION_PCT: "Acquisition %",
    Measure.COMBINED_RATIO_PCT: "Combined Ratio %",
    Measure.NUMBER_OF_ACCOUNTS: "Accounts",
    Measure.AVG_MAX_LIABILITY: "Avg Max Liability",
}


# ---------------- Period rollups ----------------
@dataclass(frozen=True)
class PeriodRollup:
    period: str
    buckets: Dict[Any, KPISnapshot] = field(default_factory=dict)
    total: KPISnapshot = field(default_factory=KPISnapshot)
    unbucketed: int = 0

    def to_frame(self) -> pd.DataFrame:
        records = [{self.period: k, **snap.to_dict()} for k, snap in self.buckets.items()]
        return pd.DataFrame(records)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "buckets": {str(k): snap.to_dict() for k, snap in self.buckets.items()},
            "order": [str(k) for k in self.buckets],
            "total": self.total.to_dict(),
            "unbucketed": self.unbucketed,
        }


def _year_mask(framed: pd.DataFrame, year: Optional[int]) -> pd.Series:
    if year is None:
        return pd.Series(True, index=framed.index)
    return framed["bucket_year"].eq(year).fillna(False).astype(bool)


def _rollup(framed: pd.DataFrame, column: str, keys: Iterable[Any], period: str, year: Optional[int]) -> PeriodRollup:
    in_scope = framed[_year_mask(framed, year)]
    # quarter and month views only count rows with a resolved year
    placed = in_scope[column].notna() & in_scope["bucket_year"].notna()
    bucketed = in_scope[placed.astype(bool)]
    groups = {k: g for k, g in bucketed.groupby(column)} if not bucketed.empty else {}
    empty = bucketed.iloc[0:0]
    return PeriodRollup(
        period=period,
        buckets={k: aggregate(groups.get(k, empty)) for k in keys},
        total=aggregate(in_scope),
        unbucketed=int(len(in_scope) - len(bucketed)),
    )


def rollup_by_quarter(rows: RowsLike, bucketer: TimeBucketer, year: Optional[int] = None) -> PeriodRollup:
    return _rollup(bucketer.bucket_frame(_as_frame(rows)), "bucket_quarter", QUARTERS, "quarter", year)


def rollup_by_month(rows: RowsLike, bucketer: TimeBucketer, year: Optional[int] = None) -> PeriodRollup:
    return _rollup(bucketer.bucket_frame(_as_frame(rows)), "bucket_month", range(1, 13), "month", year)


def rollup_by_year(rows: RowsLike, bucketer: TimeBucketer) -> PeriodRollup:
    framed = bucketer.bucket_frame(_as_frame(rows))
    years = sorted(int(y) for y in framed["bucket_year"].dropna().unique()) if not framed.empty else []
    return _rollup(framed, "bucket_year", years, "year", None)


def month_labels(rollup: PeriodRollup) -> Dict[str, str]:
    return {str(k): month_name(int(k)) or str(k) for k in rollup.buckets}
