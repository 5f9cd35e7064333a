from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


ROOT_DIR = Path(__file__).resolve().parents[1]
DEFAULT_DATA_FILE = ROOT_DIR / "Ultimate Gross and Net Data.csv"


@dataclass(frozen=True)
class YearWindow:
    """Inclusive range of underwriting years a report accepts.

    ``start`` bounds years read from the UY code. The inception-year fallback
    is bounded by ``fallback_start`` instead when one is set.
    """

    start: int
    end: int
    fallback_start: Optional[int] = None

    def contains(self, year: Optional[int]) -> bool:
        return year is not None and self.start <= year <= self.end

    def contains_fallback(self, year: Optional[int]) -> bool:
        start = self.start if self.fallback_start is None else self.fallback_start
        return year is not None and start <= year <= self.end


# Row-level normalization and the filterable year facet.
FULL_YEAR_WINDOW = YearWindow(1900, 2100)
# The yearly performance report only charts UY codes from 2019 on; the
# inception-year fallback keeps the full range.
REPORTING_YEAR_WINDOW = YearWindow(2019, 2100, fallback_start=1900)

YEAR_WINDOWS = {
    "full": FULL_YEAR_WINDOW,
    "reporting": REPORTING_YEAR_WINDOW,
}


@dataclass(frozen=True)
class Settings:
    data_path: Path = DEFAULT_DATA_FILE
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"])
    default_top_n: int = 5


def _split_csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def load_settings() -> Settings:
    defaults = Settings()
    data_path = os.environ.get("PORTFOLIO_DATA_PATH")
    origins = os.environ.get("PORTFOLIO_CORS_ORIGINS")
    top_n = os.environ.get("PORTFOLIO_DEFAULT_TOP_N", "")
    try:
        default_top_n = max(1, int(top_n)) if top_n else defaults.default_top_n
    except ValueError:
        default_top_n = defaults.default_top_n
    return Settings(
        data_path=Path(data_path) if data_path else defaults.data_path,
        cors_origins=_split_csv(origins) if origins else defaults.cors_origins,
        default_top_n=default_top_n,
    )
