"""
Tests for portfolio.data

Validates:
- CSV export loading (header mapping, fronting rows, sub class "0", month names, region derivation)
- Single-slot dataset cache keyed by file signature
- Role-scoped views and per-request context
"""

import os

import numpy as np
import pandas as pd
import pytest

from portfolio.data import (
    DatasetCache,
    PolicyDataset,
    clean_source_frame,
    derive_region,
    file_signature,
    load_raw_records,
    prepare_context,
)
from portfolio.facets import Facet
from portfolio.filters import normalize_filters
from portfolio.roles import UNRESTRICTED, scope


# ============================================================================
# Loading
# ============================================================================

class TestLoadRawRecords:
    def test_csv_export(self, csv_path):
        records = load_raw_records(csv_path)
        assert len(records) == 2
        first, second = records
        assert first["uy"] == "2021"
        assert first["class_name"] == "FI"
        assert first["sub_class"] == "Other"
        assert first["gross_uw_prem"] == "1,000"
        assert first["inception_month"] is None
        assert second["inception_month"] == 1

    def test_region_derived_when_missing(self, csv_path):
        first, second = load_raw_records(csv_path)
        assert first["region"] == "GCC"
        assert first["hub"] == "GCC"
        assert second["region"] == "North Africa"

    def test_loaded_records_normalize(self, csv_path):
        dataset = PolicyDataset.from_records(load_raw_records(csv_path))
        assert dataset.rows["premium"].tolist() == [1000.0, 800.0]
        assert dataset.rows["year"].tolist() == [2021, 2022]

    def test_xlsx_export(self, tmp_path):
        path = tmp_path / "policies.xlsx"
        pd.DataFrame(
            [{"UY": "2023", "Class": "EN", "Brk Name": "Aon", "GRS_PREM (KD)": "10", "Region": "Asia", "Hub": "Singapore"}]
        ).to_excel(path, index=False)
        records = load_raw_records(path)
        assert records == [
            {
                "uy": "2023",
                "class_name": "EN",
                "broker": "Aon",
                "grs_prem_kd": "10",
                "region": "Asia",
                "hub": "Singapore",
            }
        ]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_raw_records(tmp_path / "missing.csv")


class TestCleanSourceFrame:
    def test_unknown_columns_dropped_and_headers_case_insensitive(self):
        df = pd.DataFrame({"uy": ["2021"], "SUB CLASS": ["0"], "Notes": ["x"], "Region": ["GCC"], "Hub": ["Kuwait"]})
        out = clean_source_frame(df)
        assert "Notes" not in out.columns
        assert out.loc[0, "sub_class"] == "Other"

    def test_fronting_rows_removed(self):
        df = pd.DataFrame({"Org.Insured/Trty Name": ["A FRONTING cover", "Plain"], "Region": ["x", "y"], "Hub": ["x", "y"]})
        out = clean_source_frame(df)
        assert out["org_insured_trty_name"].tolist() == ["Plain"]


class TestDeriveRegion:
    @pytest.mark.parametrize(
        "bp_scope, country, expected",
        [
            ("1- GCC", None, "GCC"),
            ("11- World Wide", None, "World-Wide"),
            ("14- Arab Countries", None, "Arab"),
            (None, "Jordan", "Middle East"),
            ("", "Egypt", "North Africa"),
            (None, "Atlantis", None),
            (None, "Romania", None),
            (None, "Oman", "GCC"),
            (None, "Sultanate of Oman", "GCC"),
            (None, "Czech Republic", "Europe"),
        ],
    )
    def test_lookup(self, bp_scope, country, expected):
        assert derive_region(bp_scope, country) == expected


# ============================================================================
# Cache
# ============================================================================

class CountingLoader:
    def __init__(self):
        self.calls = 0

    def __call__(self, path):
        self.calls += 1
        return load_raw_records(path)


class TestDatasetCache:
    def test_reuses_dataset_while_signature_unchanged(self, csv_path):
        loader = CountingLoader()
        cache = DatasetCache(loader)
        first = cache.get(csv_path)
        second = cache.get(csv_path)
        assert first is second
        assert loader.calls == 1
        assert cache.signature == file_signature(csv_path)

    def test_reloads_when_file_changes(self, csv_path):
        loader = CountingLoader()
        cache = DatasetCache(loader)
        first = cache.get(csv_path)
        stat = csv_path.stat()
        os.utime(csv_path, (stat.st_atime, stat.st_mtime + 10))
        second = cache.get(csv_path)
        assert loader.calls == 2
        assert first is not second
        assert second.version == file_signature(csv_path)

    def test_invalidate(self, csv_path):
        loader = CountingLoader()
        cache = DatasetCache(loader)
        cache.get(csv_path)
        cache.invalidate()
        assert cache.signature is None
        cache.get(csv_path)
        assert loader.calls == 2

    def test_missing_file_propagates(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DatasetCache().get(tmp_path / "missing.csv")


# ============================================================================
# Views and context
# ============================================================================

class TestPolicyDatasetView:
    def test_view_is_memoized_per_scope(self, dataset):
        assert dataset.view(scope(["fi"])) is dataset.view(scope(["FI"]))
        assert dataset.view(UNRESTRICTED) is not dataset.view(scope(["fi"]))

    def test_view_index_matches_rows(self, dataset):
        view = dataset.view(scope(["fi"]))
        assert len(view.rows) == 2
        assert view.index.row_count == 2
        assert view.index.keys(Facet.CLASS) == ["fi"]

    def test_no_role_view_is_empty(self, dataset):
        view = dataset.view(scope([]))
        assert view.rows.empty
        assert view.index.keys(Facet.BROKER) == []


class TestPrepareContext:
    def test_selection(self, view):
        ctx = prepare_context({"broker": ["Aon"]}, view)
        np.testing.assert_array_equal(ctx["positions"], [0, 2])
        assert ctx["filtered_rows"]["premium"].sum() == 2500.0
        assert len(ctx["rows"]) == 5

    def test_quarter_filter(self, view):
        ctx = prepare_context({"quarters": ["Q1", "Q3"]}, view)
        np.testing.assert_array_equal(ctx["positions"], [0, 2])

    def test_month_filter(self, view):
        ctx = prepare_context({"months": [11]}, view)
        np.testing.assert_array_equal(ctx["positions"], [3])

    def test_accepts_dashboard_filters(self, view):
        f = normalize_filters({"year": ["2021"]})
        ctx = prepare_context(f, view)
        assert ctx["filters"] is f
        assert len(ctx["filtered_rows"]) == 2

    def test_empty_selection_keeps_scope(self, view):
        ctx = prepare_context({}, view)
        assert len(ctx["filtered_rows"]) == len(view.rows)
