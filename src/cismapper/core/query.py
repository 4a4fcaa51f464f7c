"""Search and facet filtering for the safeguard and tool views.

Every function here is pure: identical inputs give identically ordered
results, and a record passes only if it passes every active facet.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Optional

from ..models.catalog import Safeguard, Tool
from ..models.coverage import ControlGroup
from ..models.filters import SafeguardFilters, ToolFilters
from .index import CatalogIndex


def control_sort_key(control_number: Optional[int]) -> tuple[int, int]:
    """Numbered controls ascending, then safeguards with no parseable control."""
    return (1, 0) if control_number is None else (0, control_number)


def matches_text(term: str, *fields: str) -> bool:
    """Case-insensitive substring match. An empty term matches everything."""
    if not term:
        return True
    needle = term.lower()
    return any(needle in (field or "").lower() for field in fields)


def passes_facets(safeguard: Safeguard, ig: set[str], tier: set[str]) -> bool:
    """IG and tier facets. An empty facet set lets everything through."""
    ig_match = not ig or safeguard.ig in ig
    tier_match = not tier or safeguard.tier in tier
    return ig_match and tier_match


def safeguard_matches(safeguard: Safeguard, filters: SafeguardFilters) -> bool:
    text_match = matches_text(
        filters.search, safeguard.title, safeguard.description, safeguard.id
    )
    return text_match and passes_facets(safeguard, filters.ig, filters.tier)


def tool_matches(tool: Tool, filters: ToolFilters) -> bool:
    text_match = matches_text(filters.search, tool.name, tool.desc)
    edu_match = not filters.education_only or tool.education_use
    cost_match = not filters.cost or any(c in filters.cost for c in tool.cost_tiers)
    return text_match and edu_match and cost_match


def group_by_control(safeguards: list[Safeguard]) -> list[ControlGroup]:
    """Group safeguards by control number, keeping member order."""
    groups: dict[Optional[int], list[Safeguard]] = defaultdict(list)
    for sg in safeguards:
        groups[sg.control_number].append(sg)
    return [
        ControlGroup(control_number=number, safeguards=groups[number])
        for number in sorted(groups, key=control_sort_key)
    ]


def filter_safeguards(index: CatalogIndex, filters: SafeguardFilters) -> list[ControlGroup]:
    """Safeguard view: matching safeguards grouped by control.

    Controls with no matching safeguard are left out entirely.
    """
    groups = group_by_control(list(index.safeguard_map.values()))
    result: list[ControlGroup] = []
    for group in groups:
        visible = [sg for sg in group.safeguards if safeguard_matches(sg, filters)]
        if visible:
            result.append(ControlGroup(control_number=group.control_number, safeguards=visible))
    return result


def filter_tools(index: CatalogIndex, filters: ToolFilters) -> list[Tool]:
    """Tool view: matching tools sorted by name."""
    ordered = sorted(index.tool_map.values(), key=lambda t: (t.name.casefold(), t.name))
    return [tool for tool in ordered if tool_matches(tool, filters)]
