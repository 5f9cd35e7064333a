"""Calendar bucketing for policy rows.

Year, quarter and month are derived from a fallback chain of date-ish fields.
A bucket is never invented: when no field yields a value the resolver returns
``None`` and the row drops out of that bucketed view only.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Optional

import pandas as pd

from portfolio.config import FULL_YEAR_WINDOW, YearWindow
from portfolio.normalize import as_int, norm, resolve_year


MONTH_NAMES = ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC")
MONTH_NUMBERS = {name: i for i, name in enumerate(MONTH_NAMES, start=1)}

DMY_PATTERN = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$")
ISO_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")


def month_name(month: Optional[int]) -> Optional[str]:
    if month is None or not 1 <= month <= 12:
        return None
    return MONTH_NAMES[month - 1]


def month_number(name: Any) -> Optional[int]:
    return MONTH_NUMBERS.get(norm(name).upper()[:3])


def quarter_of_month(month: Optional[int]) -> Optional[str]:
    if month is None or not 1 <= month <= 12:
        return None
    return f"Q{(month - 1) // 3 + 1}"


def parse_legacy_date(value: Any) -> Optional[date]:
    """Parse the free-text commencement date of older exports."""
    text = norm(value)
    if not text:
        return None
    dmy = DMY_PATTERN.match(text)
    iso = ISO_PATTERN.match(text)
    try:
        if dmy:
            day, month, year = (int(g) for g in dmy.groups())
            return date(year, month, day)
        if iso:
            year, month, day = (int(g) for g in iso.groups())
            return date(year, month, day)
    except ValueError:
        return None
    # a bare number carries no month
    if text.isdigit():
        return None
    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.date()


def _field(row: Any, name: str) -> Any:
    if isinstance(row, dict):
        return row.get(name)
    return getattr(row, name, None)


class TimeBucketer:
    def __init__(self, window: YearWindow = FULL_YEAR_WINDOW):
        self.window = window

    def resolve_year(self, row: Any) -> Optional[int]:
        return resolve_year(_field(row, "uw_year_code"), _field(row, "inception_year"), self.window)

    def resolve_quarter(self, row: Any) -> Optional[str]:
        quarter = as_int(_field(row, "inception_quarter"))
        if quarter is not None and 1 <= quarter <= 4:
            return f"Q{quarter}"
        from_month = quarter_of_month(as_int(_field(row, "inception_month")))
        if from_month:
            return from_month
        legacy = parse_legacy_date(_field(row, "com_date"))
        return quarter_of_month(legacy.month) if legacy else None

    def resolve_month(self, row: Any) -> Optional[int]:
        month = as_int(_field(row, "inception_month"))
        if month is not None and 1 <= month <= 12:
            return month
        legacy = parse_legacy_date(_field(row, "com_date"))
        return legacy.month if legacy else None

    def bucket_frame(self, rows: pd.DataFrame) -> pd.DataFrame:
        out = rows.copy()
        if out.empty:
            out["bucket_year"] = pd.Series(dtype="Int64")
            out["bucket_quarter"] = pd.Series(dtype=object)
            out["bucket_month"] = pd.Series(dtype="Int64")
            return out
        records = out.to_dict(orient="records")
        out["bucket_year"] = pd.array([self.resolve_year(r) for r in records], dtype="Int64")
        out["bucket_quarter"] = [self.resolve_quarter(r) for r in records]
        out["bucket_month"] = pd.array([self.resolve_month(r) for r in records], dtype="Int64")
        return out
