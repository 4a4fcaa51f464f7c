"""Tests for core/query.py."""

from __future__ import annotations

from cismapper.core.catalog import build_catalog
from cismapper.core.query import filter_safeguards, filter_tools, group_by_control, matches_text
from cismapper.models.filters import SafeguardFilters, ToolFilters


def _ids(groups):
    return {g.control_number: [sg.id for sg in g.safeguards] for g in groups}


class TestMatchesText:
    def test_empty_term_matches(self):
        assert matches_text("", "anything") is True

    def test_case_insensitive(self):
        assert matches_text("BACKUP", "Perform automated backups") is True

    def test_any_field(self):
        assert matches_text("4.1", "title", "desc", "4.1") is True
        assert matches_text("zzz", "title", "desc") is False


class TestFilterSafeguards:
    def test_no_filters_returns_everything_grouped(self, catalog):
        groups = filter_safeguards(catalog, SafeguardFilters())
        assert [g.control_number for g in groups] == [1, 4, 10, 11]
        assert _ids(groups)[1] == ["1.1", "1.2"]
        assert sum(len(g.safeguards) for g in groups) == len(catalog.safeguard_map)

    def test_search_matches_description(self, catalog):
        groups = filter_safeguards(catalog, SafeguardFilters(search="data recovery"))
        assert _ids(groups) == {11: ["11.2"]}

    def test_search_matches_id(self, catalog):
        groups = filter_safeguards(catalog, SafeguardFilters(search="10.1"))
        assert _ids(groups) == {10: ["10.1"]}

    def test_empty_groups_omitted(self, catalog):
        groups = filter_safeguards(catalog, SafeguardFilters(ig={"2"}))
        assert _ids(groups) == {11: ["11.2"]}

    def test_ig_facet_accepts_ints(self, catalog):
        groups = filter_safeguards(catalog, SafeguardFilters(ig=[1]))
        assert _ids(groups) == {1: ["1.1", "1.2"], 4: ["4.1"]}

    def test_tier_facet(self, catalog):
        groups = filter_safeguards(catalog, SafeguardFilters(tier={"2"}))
        assert _ids(groups) == {1: ["1.2"], 10: ["10.1"]}

    def test_facets_compose_with_and(self, catalog):
        groups = filter_safeguards(catalog, SafeguardFilters(search="asset", ig={"1"}, tier={"1"}))
        assert _ids(groups) == {1: ["1.1"]}

    def test_scenario_secure_configuration(self, catalog):
        groups = filter_safeguards(catalog, SafeguardFilters(search="secure configuration"))
        assert _ids(groups) == {4: ["4.1"]}

    def test_unparseable_control_sorts_last(self):
        index = build_catalog(
            [
                {"id": "x.1", "ControlNumber": "n/a"},
                {"id": "2.1", "ControlNumber": "2"},
                {"id": "1.1", "ControlNumber": "1"},
            ],
            [],
            [],
        )
        groups = filter_safeguards(index, SafeguardFilters())
        assert [g.control_number for g in groups] == [1, 2, None]

    def test_deterministic(self, catalog):
        filters = SafeguardFilters(search="a", ig={"1", "2"})
        assert filter_safeguards(catalog, filters) == filter_safeguards(catalog, filters)


class TestGroupByControl:
    def test_members_keep_order(self, catalog):
        groups = group_by_control(catalog.safeguards)
        assert [sg.id for sg in groups[0].safeguards] == ["1.1", "1.2"]


class TestFilterTools:
    def test_sorted_case_insensitively(self, catalog):
        tools = filter_tools(catalog, ToolFilters())
        assert [t.name for t in tools] == ["Acme EDR", "backup buddy", "Inventory Pro"]

    def test_search_name_or_desc(self, catalog):
        assert [t.id for t in filter_tools(catalog, ToolFilters(search="schools"))] == ["t2"]
        assert [t.id for t in filter_tools(catalog, ToolFilters(search="acme"))] == ["t1"]

    def test_education_filter(self, catalog):
        tools = filter_tools(catalog, ToolFilters(education_only=True))
        assert [t.id for t in tools] == ["t1", "t2"]

    def test_education_missing_field_excluded(self):
        index = build_catalog([], [{"id": "t9", "name": "No flag"}], [])
        assert filter_tools(index, ToolFilters(education_only=True)) == []

    def test_cost_filter_excludes(self, catalog):
        tools = filter_tools(catalog, ToolFilters(cost={"$$$$"}))
        assert [t.id for t in tools] == ["t3"]

    def test_cost_filter_any_token(self, catalog):
        assert [t.id for t in filter_tools(catalog, ToolFilters(cost={"$$"}))] == ["t1"]
        assert [t.id for t in filter_tools(catalog, ToolFilters(cost={"$$$"}))] == ["t1"]

    def test_cost_filter_union(self, catalog):
        tools = filter_tools(catalog, ToolFilters(cost={"$", "$$$$"}))
        assert [t.id for t in tools] == ["t2", "t3"]

    def test_removing_facets_leaves_search_only(self, catalog):
        filtered = filter_tools(catalog, ToolFilters(search="e", education_only=True, cost={"$"}))
        unfaceted = filter_tools(catalog, ToolFilters(search="e"))
        assert set(t.id for t in filtered) <= set(t.id for t in unfaceted)
        assert [t.id for t in unfaceted] == [t.id for t in filter_tools(catalog, ToolFilters()) if "e" in (t.name + t.desc).lower()]
