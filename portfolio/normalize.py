from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from portfolio.config import FULL_YEAR_WINDOW, YearWindow


# Names used by the legacy JSON export of the policy table.
RAW_FIELD_ALIASES = {
    "extType": "ext_type",
    "className": "class_name",
    "subClass": "sub_class",
    "orgInsuredTrtyName": "org_insured_trty_name",
    "countryName": "country_name",
    "grsPremKD": "grs_prem_kd",
    "acqCostKD": "acq_cost_kd",
    "paidClaimsKD": "paid_claims_kd",
    "osClaimKD": "os_claim_kd",
    "maxLiabilityKD": "max_liability_kd",
    "grossUWPrem": "gross_uw_prem",
    "grossActualAcq": "gross_actual_acq",
    "grossPaidClaims": "gross_paid_claims",
    "grossOsLoss": "gross_os_loss",
    "maxLiabilityFC": "max_liability_fc",
    "inceptionDay": "inception_day",
    "inceptionMonth": "inception_month",
    "inceptionQuarter": "inception_quarter",
    "inceptionYear": "inception_year",
    "comDate": "com_date",
}

# (current field, deprecated alias) per monetary measure.
MONETARY_FIELDS = {
    "premium": ("grs_prem_kd", "gross_uw_prem"),
    "acquisition": ("acq_cost_kd", "gross_actual_acq"),
    "paid_claims": ("paid_claims_kd", "gross_paid_claims"),
    "outstanding_claims": ("os_claim_kd", "gross_os_loss"),
    "max_liability": ("max_liability_kd", "max_liability_fc"),
}

COUNTRY_ALIASES = {
    "ksa": "Saudi Arabia",
    "saudi": "Saudi Arabia",
    "kingdom of saudi arabia": "Saudi Arabia",
    "uae": "United Arab Emirates",
    "u.a.e": "United Arab Emirates",
    "kurdistan": "Iraq",
    "state of qatar": "Qatar",
    "usa": "United States of America",
    "us": "United States of America",
    "united states": "United States of America",
    "america": "United States of America",
    "uk": "United Kingdom",
    "england": "United Kingdom",
    "ivory coast": "Côte d'Ivoire",
    "cote divoire": "Côte d'Ivoire",
    "cote d ivoire": "Côte d'Ivoire",
    "drc": "Democratic Republic of the Congo",
    "korea republic of": "South Korea",
    "peoples republic of china": "China",
    "hongkong": "Hong Kong",
    "hk": "Hong Kong",
    "burma": "Myanmar",
}

YEAR_PATTERN = re.compile(r"\b(?:19|20)\d{2}\b")
LEADING_INT = re.compile(r"^[+-]?\d+")


@dataclass(frozen=True)
class NormalizedRow:
    # display
    uw_year_code: str
    serial: str
    loc: str
    office: str
    country: str
    region: str
    hub: str
    broker: Optional[str]
    cedant: Optional[str]
    insured: Optional[str]
    ext_type: Optional[str]
    class_name: Optional[str]
    sub_class: Optional[str]
    # lowercase keys for indexing
    k_country: str
    k_region: str
    k_hub: str
    k_broker: Optional[str]
    k_cedant: Optional[str]
    k_insured: Optional[str]
    k_year: Optional[str]
    k_ext_type: Optional[str]
    k_class: Optional[str]
    k_sub_class: Optional[str]
    year: Optional[int]
    # measures
    premium: float
    acquisition: float
    paid_claims: float
    outstanding_claims: float
    max_liability: float
    # date-ish fields kept for calendar bucketing
    inception_day: Optional[int]
    inception_month: Optional[int]
    inception_quarter: Optional[int]
    inception_year: Optional[int]
    com_date: Optional[str]


ROW_COLUMNS: List[str] = [f.name for f in fields(NormalizedRow)]
MEASURE_COLUMNS = list(MONETARY_FIELDS)
INT_COLUMNS = ["year", "inception_day", "inception_month", "inception_quarter", "inception_year"]


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def norm(value: Any) -> str:
    if _is_missing(value):
        return ""
    return str(value).strip()


def key(value: Any) -> str:
    return norm(value).lower()


def safe_num(value: Any) -> float:
    """Coerce to a finite, non-negative float; anything else becomes 0."""
    if _is_missing(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.replace('"', "").replace("'", "").replace(",", "").strip()
        if not value:
            return 0.0
    try:
        out = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(out) or math.isinf(out) or out < 0:
        return 0.0
    return out


def as_int(value: Any) -> Optional[int]:
    if _is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(out) or math.isinf(out):
        return None
    return int(out)


def optional_text(value: Any) -> Optional[str]:
    s = norm(value)
    return s or None


def normalize_country_name(value: Any) -> str:
    s = norm(value)
    if not s:
        return ""
    cleaned = re.sub(r"\s+", " ", re.sub(r"[().,']", "", s.lower()))
    return COUNTRY_ALIASES.get(cleaned, s)


def resolve_year(code: Any, inception_year: Any = None, window: YearWindow = FULL_YEAR_WINDOW) -> Optional[int]:
    text = norm(code)
    if text:
        leading = LEADING_INT.match(text)
        if leading:
            year = int(leading.group(0))
            if window.contains(year):
                return year
        match = YEAR_PATTERN.search(text)
        if match and window.contains(int(match.group(0))):
            return int(match.group(0))
    fallback = as_int(inception_year)
    if window.contains_fallback(fallback):
        return fallback
    return None


def canonical_fields(raw: Mapping[str, Any]) -> Dict[str, Any]:
    # snake_case names win over their legacy aliases
    out: Dict[str, Any] = {RAW_FIELD_ALIASES[k]: v for k, v in raw.items() if k in RAW_FIELD_ALIASES}
    out.update({k: v for k, v in raw.items() if k not in RAW_FIELD_ALIASES})
    return out


def _first_present(raw: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        value = raw.get(name)
        if not _is_missing(value):
            return value
    return None


def normalize_record(raw: Optional[Mapping[str, Any]]) -> NormalizedRow:
    rec = canonical_fields(raw) if isinstance(raw, Mapping) else {}

    broker = optional_text(rec.get("broker"))
    cedant = optional_text(rec.get("cedant"))
    insured = optional_text(rec.get("org_insured_trty_name"))
    ext_type = optional_text(rec.get("ext_type"))
    class_name = optional_text(rec.get("class_name"))
    sub_class = optional_text(rec.get("sub_class"))
    country = normalize_country_name(rec.get("country_name"))
    region = norm(rec.get("region"))
    hub = norm(rec.get("hub"))

    inception_year = as_int(rec.get("inception_year"))
    year = resolve_year(rec.get("uy"), inception_year)
    measures = {name: safe_num(_first_present(rec, *cols)) for name, cols in MONETARY_FIELDS.items()}

    return NormalizedRow(
        uw_year_code=norm(rec.get("uy")),
        serial=norm(rec.get("srl")),
        loc=norm(rec.get("loc")),
        office=norm(rec.get("office")),
        country=country,
        region=region,
        hub=hub,
        broker=broker,
        cedant=cedant,
        insured=insured,
        ext_type=ext_type,
        class_name=class_name,
        sub_class=sub_class,
        k_country=key(country),
        k_region=key(region),
        k_hub=key(hub),
        k_broker=key(broker) if broker else None,
        k_cedant=key(cedant) if cedant else None,
        k_insured=key(insured) if insured else None,
        k_year=str(year) if year is not None else None,
        k_ext_type=key(ext_type) if ext_type else None,
        k_class=key(class_name) if class_name else None,
        k_sub_class=key(sub_class) if sub_class else None,
        year=year,
        inception_day=as_int(rec.get("inception_day")),
        inception_month=as_int(rec.get("inception_month")),
        inception_quarter=as_int(rec.get("inception_quarter")),
        inception_year=inception_year,
        com_date=optional_text(rec.get("com_date")),
        **measures,
    )


def ensure_row_dtypes(df: pd.DataFrame) -> pd.DataFrame:
    for col in INT_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce").astype("Int64")
    for col in MEASURE_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0).astype(float)
    return df


def normalize_records(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    rows = [asdict(normalize_record(r)) for r in records]
    df = pd.DataFrame(rows, columns=ROW_COLUMNS)
    return ensure_row_dtypes(df.reset_index(drop=True))
