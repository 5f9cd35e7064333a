"""Shared fixtures: a small book of five policies covering the awkward cases.

Row 0  FI, 2021, explicit quarter/month (Q1, Feb), KSA alias
Row 1  EN, 2021, month only (May -> Q2), UAE alias
Row 2  FI, "2022-A", legacy com_date only (Aug -> Q3), premium with thousands separator
Row 3  CA, "UW 2020", legacy monetary fields only, quarter 4 / Nov
Row 4  AC, no UY code (inception year 2018), negative premium, no broker, no dates
"""

import pytest

from portfolio.config import FULL_YEAR_WINDOW, Settings
from portfolio.data import PolicyDataset
from portfolio.normalize import normalize_records
from portfolio.roles import UNRESTRICTED
from portfolio.timebuckets import TimeBucketer


SAMPLE_RECORDS = [
    {
        "uy": "2021", "srl": "1", "loc": "KW", "office": "HQ",
        "ext_type": "Facultative", "class_name": "FI", "sub_class": "Property",
        "broker": "Aon", "cedant": "GIG", "org_insured_trty_name": "Tower A",
        "country_name": "KSA", "region": "GCC", "hub": "Riyadh",
        "grs_prem_kd": 1000, "acq_cost_kd": 100, "paid_claims_kd": 200, "os_claim_kd": 100,
        "max_liability_kd": 5000,
        "inception_month": 2, "inception_quarter": 1, "inception_year": 2021,
    },
    {
        "uy": "2021", "srl": "2", "loc": "KW", "office": "HQ",
        "ext_type": "Treaty", "class_name": "EN", "sub_class": "CAR",
        "broker": "Marsh", "cedant": "Tawuniya", "org_insured_trty_name": "Metro Line",
        "country_name": "UAE", "region": "GCC", "hub": "Dubai",
        "grs_prem_kd": 500, "acq_cost_kd": 50, "paid_claims_kd": 0, "os_claim_kd": 50,
        "max_liability_kd": 1000,
        "inception_month": 5, "inception_year": 2021,
    },
    {
        "uy": "2022-A", "srl": "3", "loc": "KW", "office": "HQ",
        "ext_type": "Facultative", "class_name": "FI", "sub_class": "Other",
        "broker": "Aon", "cedant": "Tawuniya", "org_insured_trty_name": "Mall B",
        "country_name": "Kuwait", "region": "GCC", "hub": "Kuwait",
        "grs_prem_kd": "1,500", "acq_cost_kd": 150, "paid_claims_kd": 300, "os_claim_kd": 0,
        "max_liability_kd": 3000,
        "com_date": "15/08/2022",
    },
    {
        "uy": "UW 2020", "srl": "4", "loc": "EG", "office": "Cairo",
        "ext_type": "Facultative", "class_name": "CA", "sub_class": "Cargo",
        "broker": "Willis", "cedant": "AXA", "org_insured_trty_name": "Ship C",
        "country_name": "Egypt", "region": "North Africa", "hub": "Cairo",
        "gross_uw_prem": 800, "gross_actual_acq": 80, "gross_paid_claims": 0, "gross_os_loss": 0,
        "max_liability_fc": 2000,
        "inception_month": 11, "inception_quarter": 4,
    },
    {
        "uy": "", "srl": "5", "loc": "", "office": "",
        "ext_type": "Treaty", "class_name": "AC", "sub_class": "",
        "broker": None, "cedant": "AXA", "org_insured_trty_name": "Liability Pool",
        "country_name": "", "region": "", "hub": "",
        "grs_prem_kd": -5, "acq_cost_kd": 0, "paid_claims_kd": 0, "os_claim_kd": 0,
        "inception_year": 2018,
    },
]

CSV_TEXT = (
    "UY,Class,Sub Class,Brk Name,Ced Name,Org.Insured/Trty Name,Country,Bp Scope,"
    "Gross UW Prem,Gross Actual Acq.,Gross paid claims,Gross os loss,Max Liability (FC),Com date,Inception Month\n"
    '2021,FI,0,Aon,GIG,Tower A,KSA,1- GCC,"1,000",100,50,25,5000,15/02/2021,\n'
    "2021,EN,CAR,Marsh,AXA,Fronting deal,UAE,,500,50,0,0,100,,MAR\n"
    "2022,CA,Cargo,Willis,AXA,Ship B,Egypt,,800,80,0,0,200,,JAN\n"
)


@pytest.fixture
def sample_records():
    return [dict(r) for r in SAMPLE_RECORDS]


@pytest.fixture
def rows(sample_records):
    return normalize_records(sample_records)


@pytest.fixture
def bucketer():
    return TimeBucketer(FULL_YEAR_WINDOW)


@pytest.fixture
def dataset(sample_records):
    return PolicyDataset.from_records(sample_records, version="test")


@pytest.fixture
def view(dataset):
    return dataset.view(UNRESTRICTED)


@pytest.fixture
def csv_path(tmp_path):
    path = tmp_path / "policies.csv"
    path.write_text(CSV_TEXT, encoding="utf-8")
    return path


@pytest.fixture
def settings(csv_path):
    return Settings(data_path=csv_path, cors_origins=["http://localhost:3000"], default_top_n=5)
