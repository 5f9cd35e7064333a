"""
Tests for portfolio.breakdowns
"""

import pytest

from portfolio.breakdowns import facet_breakdown
from portfolio.facets import Facet
from portfolio.kpis import Measure


class TestClientBreakdown:
    def test_brokers_ranked_by_premium(self, rows):
        b = facet_breakdown(rows, Facet.BROKER, top_n=5)
        assert [line.name for line in b.lines] == ["Aon", "Willis", "Marsh"]
        assert b.group_count == 3
        assert b.lines[0].kpis.premium == 2500.0
        assert b.lines[0].kpis.number_of_accounts == 2

    def test_rows_without_client_are_excluded(self, rows):
        b = facet_breakdown(rows, Facet.BROKER)
        assert b.grand_total.number_of_accounts == 4

    def test_top_n_and_totals(self, rows):
        b = facet_breakdown(rows, Facet.BROKER, top_n=2)
        assert [line.name for line in b.lines] == ["Aon", "Willis"]
        assert b.top_total.premium == 3300.0
        assert b.top_total.number_of_accounts == 3
        assert b.top_share_of_premium_pct == pytest.approx(3300 / 3800 * 100)
        assert b.lines[0].share_of_premium_pct == pytest.approx(2500 / 3800 * 100)

    def test_top_total_ratios_are_recomputed(self, rows):
        b = facet_breakdown(rows, Facet.BROKER, top_n=2)
        incurred = 300 + 300 + 0
        assert b.top_total.loss_ratio_pct == pytest.approx(incurred / 3300 * 100)
        assert b.top_total.combined_ratio_pct == b.top_total.loss_ratio_pct + b.top_total.acquisition_pct

    def test_cedants(self, rows):
        b = facet_breakdown(rows, Facet.CEDANT)
        assert [line.name for line in b.lines] == ["Tawuniya", "GIG", "AXA"]
        assert b.grand_total.number_of_accounts == 5

    def test_sort_by_other_measure(self, rows):
        b = facet_breakdown(rows, Facet.BROKER, sort_by=Measure.LOSS_RATIO_PCT)
        assert b.lines[0].name == "Aon"
        assert b.lines[-1].name == "Willis"

    def test_empty_rows(self, rows):
        b = facet_breakdown(rows.iloc[0:0], Facet.CEDANT)
        assert b.lines == []
        assert b.group_count == 0

    def test_to_dict(self, rows):
        out = facet_breakdown(rows, Facet.BROKER, top_n=1).to_dict()
        assert out["by"] == "broker"
        assert out["lines"][0]["name"] == "Aon"
        assert out["grand_total"]["share_of_premium_pct"] == 100.0


class TestOtherFacets:
    def test_country_breakdown_skips_blank_country(self, rows):
        b = facet_breakdown(rows, Facet.COUNTRY, top_n=None)
        assert [line.name for line in b.lines] == ["Kuwait", "Saudi Arabia", "Egypt", "United Arab Emirates"]
        assert [line.kpis.premium for line in b.lines] == [1500.0, 1000.0, 800.0, 500.0]
        assert b.group_count == 4
        assert b.grand_total.number_of_accounts == 4
        assert b.grand_total.premium == 3800.0

    def test_ext_type_breakdown(self, rows):
        b = facet_breakdown(rows, Facet.EXT_TYPE, top_n=None)
        assert [line.name for line in b.lines] == ["Facultative", "Treaty"]
        assert b.lines[0].kpis.premium == 3300.0
        assert b.lines[0].kpis.number_of_accounts == 3
        assert b.lines[1].kpis.premium == 500.0
        assert b.lines[1].kpis.number_of_accounts == 2
        assert b.lines[0].share_of_premium_pct == pytest.approx(3300 / 3800 * 100)

    def test_top_n_none_keeps_every_group(self, rows):
        b = facet_breakdown(rows, Facet.CLASS, top_n=None)
        assert b.group_count == len(b.lines) == 4
        assert b.top_total.premium == b.grand_total.premium
        assert b.top_share_of_premium_pct == pytest.approx(100.0)
