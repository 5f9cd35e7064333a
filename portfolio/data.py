from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from portfolio.facets import FacetIndex, build_index
from portfolio.filters import DashboardFilters, apply_selection, normalize_filters
from portfolio.normalize import norm, normalize_records
from portfolio.roles import RoleScope, apply_scope
from portfolio.timebuckets import TimeBucketer, month_number


logger = logging.getLogger(__name__)

# Export header -> raw record field. Both the KD (base currency) layout and the
# older "Ultimate Gross and Net Data" layout are recognised.
SOURCE_COLUMNS = {
    "UY": "uy",
    "Srl": "srl",
    "Loc": "loc",
    "Office": "office",
    "Ext Type": "ext_type",
    "Class": "class_name",
    "UW_CLASS": "class_name",
    "Sub Class": "sub_class",
    "SUB_CLASS": "sub_class",
    "Brk Name": "broker",
    "Broker": "broker",
    "Ced Name": "cedant",
    "Cedant": "cedant",
    "Org.Insured/Trty Name": "org_insured_trty_name",
    "Policy Name": "org_insured_trty_name",
    "Country": "country_name",
    "Country Name": "country_name",
    "Region": "region",
    "Hub": "hub",
    "Bp Scope": "bp_scope",
    "GRS_PREM (KD)": "grs_prem_kd",
    "ACQ_COST (KD)": "acq_cost_kd",
    "PAID_CLAIMS (KD)": "paid_claims_kd",
    "OS_CLAIM (KD)": "os_claim_kd",
    "MaxLiability (KD)": "max_liability_kd",
    "Gross UW Prem": "gross_uw_prem",
    "Gross Actual Acq.": "gross_actual_acq",
    "Gross paid claims": "gross_paid_claims",
    "Gross os loss": "gross_os_loss",
    "Max Liability (FC)": "max_liability_fc",
    "Inception Day": "inception_day",
    "Inception Month": "inception_month",
    "Inception Quarter": "inception_quarter",
    "Inception Year": "inception_year",
    "Com date": "com_date",
}
SOURCE_COLUMNS_LOWER = {k.lower(): v for k, v in SOURCE_COLUMNS.items()}

GCC_COUNTRIES = ["kuwait", "saudi arabia", "uae", "united arab emirates", "qatar", "bahrain", "oman"]
REGION_BY_COUNTRY = [
    (GCC_COUNTRIES, "GCC"),
    (["jordan", "lebanon", "syria", "iraq", "yemen"], "Middle East"),
    (["algeria", "egypt", "morocco", "tunisia", "libya"], "North Africa"),
    (["turkey", "czech", "poland", "germany", "france", "uk", "spain", "italy"], "Europe"),
    (["china", "india", "japan", "singapore", "malaysia", "thailand", "indonesia"], "Asia"),
]
REGION_BY_SCOPE = [
    (("world", "11-"), "World-Wide"),
    (("gcc", "1-"), "GCC"),
    (("14", "arab"), "Arab"),
    (("13",), "Middle East"),
    (("3-", "north"), "North Africa"),
    (("8-", "cee"), "CEE Region"),
]


def file_signature(path: Path) -> Tuple[str, float, int]:
    stat = path.stat()
    return (path.name, stat.st_mtime, stat.st_size)


def derive_region(bp_scope: Any, country: Any) -> Optional[str]:
    """Region (also used as hub) for exports that only carry a business-partner scope."""
    scope_text = norm(bp_scope).lower()
    if scope_text:
        for tokens, region in REGION_BY_SCOPE:
            if any(t in scope_text for t in tokens):
                return region
    # whole-word match so "Romania" is not read as "Oman"
    words = " ".join(re.findall(r"[a-z]+", norm(country).lower()))
    if words:
        padded = f" {words} "
        for names, region in REGION_BY_COUNTRY:
            if any(f" {n} " in padded for n in names):
                return region
    return None


def _coerce_month(value: Any) -> Any:
    text = norm(value)
    if not text:
        return None
    named = month_number(text)
    return named if named is not None else text


def clean_source_frame(df: pd.DataFrame) -> pd.DataFrame:
    df = df.rename(columns=lambda c: SOURCE_COLUMNS_LOWER.get(str(c).strip().lower(), str(c).strip()))
    df = df.loc[:, ~df.columns.duplicated()]
    keep = sorted(set(SOURCE_COLUMNS.values()))
    df = df[[c for c in keep if c in df.columns]].copy()

    if "org_insured_trty_name" in df.columns:
        fronting = df["org_insured_trty_name"].astype("string").str.contains("fronting", case=False, na=False)
        df = df[~fronting.astype(bool)].copy()
    if "sub_class" in df.columns:
        df["sub_class"] = df["sub_class"].replace({"0": "Other", "0.0": "Other"})
    if "inception_month" in df.columns:
        df["inception_month"] = df["inception_month"].map(_coerce_month)

    for col in ("region", "hub"):
        if col not in df.columns:
            df[col] = None
        blank = df[col].isna() | df[col].astype("string").str.strip().eq("").fillna(True)
        if blank.any():
            derived = [
                derive_region(scope, country)
                for scope, country in zip(df.get("bp_scope", pd.Series(index=df.index, dtype=object)), df.get("country_name", pd.Series(index=df.index, dtype=object)))
            ]
            df.loc[blank, col] = pd.Series(derived, index=df.index)[blank]
    return df.reset_index(drop=True)


def load_raw_records(path: Path) -> List[Dict[str, Any]]:
    if path.suffix.lower() in {".xlsx", ".xls"}:
        raw = pd.read_excel(path, dtype=str)
    else:
        raw = pd.read_csv(path, dtype=str, skipinitialspace=True)
    df = clean_source_frame(raw)
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict(orient="records")


# ---------------- Dataset snapshot + scoped views ----------------
@dataclass(frozen=True)
class ScopedView:
    """Role-scoped rows and the facet index built from exactly those rows."""

    scope: RoleScope
    rows: pd.DataFrame
    index: FacetIndex


class PolicyDataset:
    def __init__(self, rows: pd.DataFrame, *, version: Hashable = None, source: Optional[Path] = None):
        self.rows = rows
        self.version = version
        self.source = source
        self._views: Dict[Any, ScopedView] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]], *, version: Hashable = None, source: Optional[Path] = None) -> "PolicyDataset":
        return cls(normalize_records(records), version=version, source=source)

    def view(self, role_scope: RoleScope) -> ScopedView:
        cache_key = role_scope.cache_key
        with self._lock:
            cached = self._views.get(cache_key)
            if cached is not None:
                return cached
            rows = apply_scope(self.rows, role_scope)
            view = ScopedView(scope=role_scope, rows=rows, index=build_index(rows, version=(self.version, cache_key)))
            self._views[cache_key] = view
            return view


class DatasetCache:
    """Single-slot cache of the most recently loaded dataset, keyed by file signature."""

    def __init__(self, loader: Callable[[Path], List[Dict[str, Any]]] = load_raw_records):
        self._loader = loader
        self._lock = threading.Lock()
        self._signature: Optional[Tuple[str, float, int]] = None
        self._dataset: Optional[PolicyDataset] = None

    @property
    def signature(self) -> Optional[Tuple[str, float, int]]:
        return self._signature

    def get(self, path: Path) -> PolicyDataset:
        path = Path(path)
        signature = file_signature(path)
        with self._lock:
            if self._dataset is not None and self._signature == signature:
                logger.debug("dataset cache hit for %s", path.name)
                return self._dataset
            logger.info("loading policy data from %s", path)
            dataset = PolicyDataset.from_records(self._loader(path), version=signature, source=path)
            logger.info("loaded %d policy rows", len(dataset.rows))
            self._signature = signature
            self._dataset = dataset
            return dataset

    def invalidate(self) -> None:
        with self._lock:
            self._signature = None
            self._dataset = None


# ---------------- Per-request context ----------------
def prepare_context(
    filters: Mapping[str, Any] | DashboardFilters,
    view: ScopedView,
    bucketer: Optional[TimeBucketer] = None,
) -> Dict[str, Any]:
    filt = filters if isinstance(filters, DashboardFilters) else normalize_filters(filters)
    bucketer = bucketer or TimeBucketer()

    positions = apply_selection(view.index, filt.selection)
    filtered_rows = view.rows.iloc[positions]

    if (filt.quarters or filt.months) and not filtered_rows.empty:
        framed = bucketer.bucket_frame(filtered_rows)
        mask = pd.Series(True, index=framed.index)
        if filt.quarters:
            mask &= framed["bucket_quarter"].isin(filt.quarters)
        if filt.months:
            mask &= framed["bucket_month"].isin(filt.months).fillna(False).astype(bool)
        filtered_rows = filtered_rows[mask.to_numpy()]
        positions = positions[mask.to_numpy()]

    return {
        "filters": filt,
        "scope": view.scope,
        "rows": view.rows,
        "index": view.index,
        "positions": np.asarray(positions, dtype=np.int64),
        "filtered_rows": filtered_rows,
        "bucketer": bucketer,
    }
