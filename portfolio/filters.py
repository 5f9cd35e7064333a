from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import numpy as np

from portfolio.facets import Facet, FacetIndex, parse_facet


QUARTERS = ("Q1", "Q2", "Q3", "Q4")
CLIENT_DIMENSIONS = (Facet.BROKER, Facet.CEDANT)


def _as_str_tuple(values: object) -> Tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, (str, int, float)):
        values = [values]
    out: List[str] = []
    for v in values:  # type: ignore[union-attr]
        if v is None:
            continue
        if isinstance(v, float) and v.is_integer():
            v = int(v)
        s = str(v).strip()
        if s and s.lower() != "all" and s not in out:
            out.append(s)
    return tuple(out)


def _as_int_list(values: Optional[Iterable[object]]) -> List[int]:
    if values is None:
        return []
    if isinstance(values, (str, int, float)):
        values = [values]
    out: List[int] = []
    for v in values:
        try:
            out.append(int(v))  # type: ignore[arg-type]
        except Exception:
            continue
    return out


@dataclass(frozen=True)
class FilterSelection:
    """Chosen raw values per facet; a missing or empty facet is unconstrained."""

    values: Mapping[Facet, Tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Optional[Mapping[str, object]]) -> "FilterSelection":
        merged: Dict[Facet, Tuple[str, ...]] = {}
        for name, vals in (raw or {}).items():
            facet = parse_facet(name)
            if facet is None:
                continue
            chosen = _as_str_tuple(vals)
            if chosen:
                merged[facet] = tuple(dict.fromkeys(merged.get(facet, ()) + chosen))
        return cls(values=merged)

    def get(self, facet: Facet) -> Tuple[str, ...]:
        return tuple(self.values.get(facet, ()))

    def active(self) -> Iterator[Tuple[Facet, Tuple[str, ...]]]:
        for facet in Facet:
            chosen = self.get(facet)
            if chosen:
                yield facet, chosen

    def is_empty(self) -> bool:
        return not any(True for _ in self.active())

    def to_dict(self) -> Dict[str, List[str]]:
        return {facet.value: list(self.get(facet)) for facet in Facet}


def apply_selection(index: FacetIndex, selection: FilterSelection) -> np.ndarray:
    """Row positions matching the selection: union within a facet, intersection across facets."""
    pool = np.arange(index.row_count, dtype=np.int64)
    for facet, chosen in selection.active():
        hits = [index.positions(facet, v.strip().lower()) for v in chosen]
        facet_matches = np.unique(np.concatenate(hits)) if hits else np.empty(0, dtype=np.int64)
        pool = np.intersect1d(pool, facet_matches, assume_unique=True)
        if pool.size == 0:
            break
    return pool


@dataclass(frozen=True)
class DashboardFilters:
    selection: FilterSelection = field(default_factory=FilterSelection)
    quarters: List[str] = field(default_factory=list)
    months: List[int] = field(default_factory=list)
    top_n: int = 5
    client_type: Facet = Facet.BROKER

    def to_dict(self) -> Dict[str, object]:
        return {
            "selection": self.selection.to_dict(),
            "quarters": list(self.quarters),
            "months": list(self.months),
            "top_n": self.top_n,
            "client_type": self.client_type.value,
        }


def _as_quarters(values: object) -> List[str]:
    out: List[str] = []
    for v in _as_str_tuple(values):
        q = v.upper()
        if not q.startswith("Q"):
            q = f"Q{q}"
        if q in QUARTERS and q not in out:
            out.append(q)
    return out


def normalize_filters(raw: Mapping[str, object], *, default_top_n: int = 5) -> DashboardFilters:
    selection_raw = raw.get("selection")
    if not isinstance(selection_raw, Mapping):
        selection_raw = {k: v for k, v in raw.items() if parse_facet(k) is not None}
    selection = FilterSelection.from_raw(selection_raw)

    quarters = _as_quarters(raw.get("quarters", raw.get("quarter")))
    months = sorted({m for m in _as_int_list(raw.get("months", raw.get("month"))) if 1 <= m <= 12})

    top_n = raw.get("top_n", default_top_n)
    try:
        top_n = int(top_n)  # type: ignore[arg-type]
    except Exception:
        top_n = default_top_n
    top_n = max(1, min(200, top_n))

    client_type = parse_facet(raw.get("client_type") or Facet.BROKER.value)
    if client_type not in CLIENT_DIMENSIONS:
        client_type = Facet.BROKER

    return DashboardFilters(
        selection=selection,
        quarters=quarters,
        months=months,
        top_n=top_n,
        client_type=client_type,
    )
