"""Tests for core/coverage.py."""

from __future__ import annotations

from itertools import combinations

import pytest

from cismapper.core.catalog import build_catalog
from cismapper.core.coverage import (
    available_tools,
    compute_coverage,
    coverage_for,
    heat_level,
    heatmap_safeguards,
    natural_key,
    summarize_coverage,
)
from cismapper.models.filters import HeatmapFilters


@pytest.fixture
def duplicate_catalog():
    return build_catalog(
        [{"id": "4.1", "title": "Establish and Maintain a Secure Configuration Process",
          "ControlNumber": 4, "IGNumber": 1, "TierNumber": 1}],
        [{"id": "t1", "name": "Acme EDR", "Cost": "$$, $$$"}],
        [{"tool_id": "t1", "safeguard_id": "4.1"}, {"tool_id": "t1", "safeguard_id": "4.1"}],
    )


class TestComputeCoverage:
    def test_counts_and_names(self, catalog):
        coverage = compute_coverage(catalog, ["t1", "t3"])
        assert coverage["1.1"].count == 2
        assert sorted(coverage["1.1"].tools) == ["Acme EDR", "Inventory Pro"]
        assert coverage["10.1"].count == 1
        assert coverage["1.2"].tools == ["Inventory Pro"]

    def test_empty_selection(self, catalog):
        assert compute_coverage(catalog, set()) == {}

    def test_uncovered_safeguard_reads_as_zero(self, catalog):
        coverage = compute_coverage(catalog, {"t1", "t2", "t3"})
        assert "4.1" not in coverage
        entry = coverage_for(coverage, "4.1")
        assert entry.count == 0
        assert entry.tools == []

    def test_unknown_selected_tool_ignored(self, catalog):
        assert compute_coverage(catalog, ["retired-tool"]) == {}

    def test_duplicate_rows_count_twice(self, duplicate_catalog):
        coverage = compute_coverage(duplicate_catalog, {"t1"})
        assert coverage["4.1"].count == 2
        assert coverage["4.1"].tools == ["Acme EDR", "Acme EDR"]

    def test_distinct_counts_pair_once(self, duplicate_catalog):
        coverage = compute_coverage(duplicate_catalog, {"t1"}, distinct=True)
        assert coverage["4.1"].count == 1

    def test_count_equals_surviving_rows(self, catalog, raw_mappings):
        selected = {"t1", "t3"}
        coverage = compute_coverage(catalog, selected)
        for sg_id in catalog.safeguard_map:
            rows = [
                m for m in raw_mappings
                if (m.get("tool_id") or m.get("ToolID") or m.get("toolId")) in selected
                and (m.get("safeguard_id") or m.get("SafeguardID") or m.get("safeguardId")) == sg_id
            ]
            assert coverage_for(coverage, sg_id).count == len(rows)

    def test_monotonic_in_selection(self, catalog):
        tool_ids = list(catalog.tool_map)
        subsets = [set(c) for n in range(len(tool_ids) + 1) for c in combinations(tool_ids, n)]
        for small in subsets:
            for large in subsets:
                if not small <= large:
                    continue
                cov_small = compute_coverage(catalog, small)
                cov_large = compute_coverage(catalog, large)
                for sg_id in catalog.safeguard_map:
                    assert coverage_for(cov_small, sg_id).count <= coverage_for(cov_large, sg_id).count

    def test_recompute_does_not_mutate_previous_result(self, catalog):
        first = compute_coverage(catalog, ["t1"])
        compute_coverage(catalog, ["t1", "t3"])
        assert first["1.1"].count == 1


class TestHeatLevel:
    @pytest.mark.parametrize("count,level", [(0, 0), (1, 1), (2, 2), (3, 3), (4, 4), (9, 4)])
    def test_buckets(self, count, level):
        assert heat_level(count) == level


class TestHeatmapSafeguards:
    def test_natural_id_order(self, catalog):
        visible = heatmap_safeguards(catalog, {}, HeatmapFilters())
        assert [sg.id for sg in visible] == ["1.1", "1.2", "4.1", "10.1", "11.2"]

    def test_min_count_excludes_uncovered(self, duplicate_catalog):
        visible = heatmap_safeguards(duplicate_catalog, {}, HeatmapFilters(min_count=1))
        assert visible == []

    def test_min_count_over_selection(self, catalog):
        coverage = compute_coverage(catalog, ["t1", "t3"])
        visible = heatmap_safeguards(catalog, coverage, HeatmapFilters(min_count=2))
        assert [sg.id for sg in visible] == ["1.1"]

    def test_facets_compose_with_and(self, catalog):
        coverage = compute_coverage(catalog, ["t1", "t2", "t3"])
        visible = heatmap_safeguards(catalog, coverage, HeatmapFilters(ig=["1"], tier=["2"], min_count=1))
        assert [sg.id for sg in visible] == ["1.2"]

    def test_natural_key(self):
        ids = ["4.10", "4.2", "SG 4.1", "10.1"]
        assert sorted(ids, key=natural_key) == ["4.2", "4.10", "10.1", "SG 4.1"]


class TestAvailableTools:
    def test_excludes_selected_and_sorts(self, catalog):
        names = [t.name for t in available_tools(catalog, {"t3"})]
        assert names == ["Acme EDR", "backup buddy"]

    def test_name_filter(self, catalog):
        assert [t.id for t in available_tools(catalog, set(), "BACK")] == ["t2"]


class TestSummarizeCoverage:
    def test_totals(self, catalog):
        coverage = compute_coverage(catalog, ["t3"])
        summary = summarize_coverage(catalog, coverage, ["t3"])
        assert summary.selected_tools == ["Inventory Pro"]
        assert summary.total_safeguards == 5
        assert summary.covered_safeguards == 2
        assert summary.gap_safeguards == 3
        assert summary.coverage_percent == 40.0

    def test_by_control(self, catalog):
        coverage = compute_coverage(catalog, ["t3"])
        summary = summarize_coverage(catalog, coverage)
        assert list(summary.by_control) == ["1", "4", "10", "11"]
        assert summary.by_control["1"].covered == 2
        assert summary.by_control["1"].coverage == 100.0
        assert summary.by_control["4"].gaps == 1

    def test_empty_catalog(self):
        summary = summarize_coverage(build_catalog([], [], []), {})
        assert summary.coverage_percent == 0.0
        assert summary.by_control == {}
