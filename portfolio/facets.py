from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd


class Facet(str, Enum):
    COUNTRY = "country"
    REGION = "region"
    HUB = "hub"
    BROKER = "broker"
    CEDANT = "cedant"
    INSURED = "insured"
    YEAR = "year"
    EXT_TYPE = "ext_type"
    CLASS = "class"
    SUB_CLASS = "sub_class"

    @property
    def column(self) -> str:
        return FACET_COLUMNS[self][0]

    @property
    def key_column(self) -> str:
        return FACET_COLUMNS[self][1]


# facet -> (display column, key column) in the normalized row frame
FACET_COLUMNS = {
    Facet.COUNTRY: ("country", "k_country"),
    Facet.REGION: ("region", "k_region"),
    Facet.HUB: ("hub", "k_hub"),
    Facet.BROKER: ("broker", "k_broker"),
    Facet.CEDANT: ("cedant", "k_cedant"),
    Facet.INSURED: ("insured", "k_insured"),
    Facet.YEAR: ("year", "k_year"),
    Facet.EXT_TYPE: ("ext_type", "k_ext_type"),
    Facet.CLASS: ("class_name", "k_class"),
    Facet.SUB_CLASS: ("sub_class", "k_sub_class"),
}

FACET_ALIASES = {
    "countryname": Facet.COUNTRY,
    "exttype": Facet.EXT_TYPE,
    "ext_type": Facet.EXT_TYPE,
    "classname": Facet.CLASS,
    "class_name": Facet.CLASS,
    "subclass": Facet.SUB_CLASS,
    "sub_class": Facet.SUB_CLASS,
    "uy": Facet.YEAR,
    "policyname": Facet.INSURED,
}


def parse_facet(name: object) -> Optional[Facet]:
    if isinstance(name, Facet):
        return name
    s = str(name or "").strip()
    try:
        return Facet(s)
    except ValueError:
        return FACET_ALIASES.get(s.lower())


EMPTY_POSITIONS = np.empty(0, dtype=np.int64)


@dataclass(frozen=True)
class FacetIndex:
    row_count: int
    version: object = None
    by_facet: Dict[Facet, Dict[str, np.ndarray]] = field(default_factory=dict)

    def positions(self, facet: Facet, value_key: str) -> np.ndarray:
        return self.by_facet.get(facet, {}).get(value_key, EMPTY_POSITIONS)

    def keys(self, facet: Facet) -> List[str]:
        return sorted(self.by_facet.get(facet, {}))


def build_index(rows: pd.DataFrame, version: object = None) -> FacetIndex:
    """Invert every facet column into value -> ascending row positions."""
    positions = pd.Series(np.arange(len(rows), dtype=np.int64), index=rows.index)
    by_facet: Dict[Facet, Dict[str, np.ndarray]] = {}
    for facet in Facet:
        keys = rows[facet.key_column] if facet.key_column in rows.columns else pd.Series(dtype=object)
        mask = keys.notna() & keys.astype(str).ne("")
        if not mask.any():
            by_facet[facet] = {}
            continue
        grouped = positions[mask].groupby(keys[mask].astype(str), sort=True)
        by_facet[facet] = {k: grp.to_numpy() for k, grp in grouped}
    return FacetIndex(row_count=len(rows), version=version, by_facet=by_facet)


def _distinct_display(rows: pd.DataFrame, facet: Facet) -> List[str]:
    if rows.empty or facet.column not in rows.columns:
        return []
    values = rows[facet.column].dropna()
    if facet is Facet.YEAR:
        return [str(int(y)) for y in sorted(values.astype(int).unique())]
    values = values.astype(str)
    return sorted(v for v in values.unique() if v.strip())


def facet_options(rows: pd.DataFrame) -> Dict[str, List[str]]:
    return {facet.value: _distinct_display(rows, facet) for facet in Facet}


def subclass_options(rows: pd.DataFrame, classes: Iterable[str]) -> List[str]:
    """Subclasses available under the chosen classes (all when none chosen)."""
    wanted = {str(c).strip().lower() for c in classes if str(c).strip()}
    if wanted and not rows.empty:
        rows = rows[rows["k_class"].isin(wanted)]
    return _distinct_display(rows, Facet.SUB_CLASS)
