"""View state controllers.

Each controller owns the selection and filter state of one view and
recomputes its results from the read-only catalog on demand.
"""

from __future__ import annotations

from typing import Literal, Union

from ..models.catalog import Safeguard, Tool
from ..models.coverage import ControlGroup, CoverageEntry, CoverageSummary
from ..models.filters import HeatmapFilters, SafeguardFilters, ToolFilters
from .coverage import available_tools, compute_coverage, heatmap_safeguards, summarize_coverage
from .index import CatalogIndex
from .query import filter_safeguards, filter_tools

ViewMode = Literal["control", "tool"]


def _toggle(values: set[str], value: str) -> set[str]:
    value = str(value)
    return values - {value} if value in values else values | {value}


class MapperSession:
    """Browse safeguards by control or tools by name."""

    def __init__(self, index: CatalogIndex, view_mode: ViewMode = "control"):
        self.index = index
        self.view_mode: ViewMode = view_mode
        self.safeguard_filters = SafeguardFilters()
        self.tool_filters = ToolFilters()

    def set_view_mode(self, view_mode: ViewMode) -> None:
        if view_mode not in ("control", "tool"):
            raise ValueError(f"Unknown view mode: {view_mode}")
        self.view_mode = view_mode

    def set_search(self, term: str) -> None:
        # One search box drives whichever view is active
        self.safeguard_filters = self.safeguard_filters.model_copy(update={"search": term})
        self.tool_filters = self.tool_filters.model_copy(update={"search": term})

    def set_safeguard_filters(self, **updates) -> None:
        self.safeguard_filters = SafeguardFilters(**{**self.safeguard_filters.model_dump(), **updates})

    def set_tool_filters(self, **updates) -> None:
        self.tool_filters = ToolFilters(**{**self.tool_filters.model_dump(), **updates})

    def toggle_ig(self, ig: str) -> None:
        ig_set = _toggle(self.safeguard_filters.ig, ig)
        self.safeguard_filters = self.safeguard_filters.model_copy(update={"ig": ig_set})

    def toggle_tier(self, tier: str) -> None:
        tier_set = _toggle(self.safeguard_filters.tier, tier)
        self.safeguard_filters = self.safeguard_filters.model_copy(update={"tier": tier_set})

    def toggle_cost(self, cost: str) -> None:
        cost_set = _toggle(self.tool_filters.cost, cost)
        self.tool_filters = self.tool_filters.model_copy(update={"cost": cost_set})

    def toggle_education(self) -> None:
        self.tool_filters = self.tool_filters.model_copy(
            update={"education_only": not self.tool_filters.education_only}
        )

    def results(self) -> Union[list[ControlGroup], list[Tool]]:
        if self.view_mode == "control":
            return filter_safeguards(self.index, self.safeguard_filters)
        return filter_tools(self.index, self.tool_filters)


class AggregatorSession:
    """Build a candidate tool set and read back its safeguard coverage."""

    def __init__(self, index: CatalogIndex, distinct: bool = False):
        self.index = index
        self.distinct = distinct
        # dict keys keep insertion order, so chips render in selection order
        self._selected: dict[str, None] = {}
        self.filters = HeatmapFilters()

    @property
    def selected(self) -> list[str]:
        return list(self._selected)

    def toggle_tool(self, tool_id: str) -> bool:
        """Add or remove a tool. Returns True if the tool is now selected."""
        if tool_id in self._selected:
            del self._selected[tool_id]
            return False
        if tool_id not in self.index.tool_map:
            raise KeyError(f"Unknown tool: {tool_id}")
        self._selected[tool_id] = None
        return True

    def clear(self) -> None:
        self._selected.clear()

    def set_filters(self, **updates) -> None:
        self.filters = HeatmapFilters(**{**self.filters.model_dump(), **updates})

    def coverage(self) -> dict[str, CoverageEntry]:
        return compute_coverage(self.index, self._selected, distinct=self.distinct)

    def heatmap(self) -> list[tuple[Safeguard, CoverageEntry]]:
        coverage = self.coverage()
        return [
            (sg, coverage.get(sg.id) or CoverageEntry())
            for sg in heatmap_safeguards(self.index, coverage, self.filters)
        ]

    def summary(self) -> CoverageSummary:
        return summarize_coverage(self.index, self.coverage(), self._selected)

    def available_tools(self, term: str = "") -> list[Tool]:
        return available_tools(self.index, self._selected, term)
