"""Coverage aggregation over a selected tool set.

Counts, for every safeguard, how many selected tools are mapped to it and
which ones. By default every mapping row counts, so a duplicated row counts
twice; ``distinct=True`` counts each (tool, safeguard) pair once.
"""

from __future__ import annotations

import re
from collections import defaultdict
from typing import Iterable, Optional

from ..models.catalog import Safeguard, Tool
from ..models.coverage import ControlCoverage, CoverageEntry, CoverageSummary
from ..models.filters import HeatmapFilters
from .index import CatalogIndex
from .query import control_sort_key, passes_facets

MAX_HEAT_LEVEL = 4

_CHUNKS = re.compile(r"(\d+)")


def compute_coverage(
    index: CatalogIndex,
    selected: Iterable[str],
    distinct: bool = False,
) -> dict[str, CoverageEntry]:
    """Aggregate coverage for the selected tool ids.

    Safeguards no selected tool covers are absent from the result; use
    ``coverage_for`` to read them as zero. Unknown tool ids contribute
    nothing. ``tools`` follows the iteration order of ``selected``.
    """
    counts: dict[str, CoverageEntry] = {}

    for tool_id in selected:
        tool = index.tool_map.get(tool_id)
        if tool is None:
            continue
        safeguard_ids = index.tool_to_safeguards.get(tool_id, [])
        if distinct:
            safeguard_ids = list(dict.fromkeys(safeguard_ids))
        for safeguard_id in safeguard_ids:
            entry = counts.setdefault(safeguard_id, CoverageEntry())
            entry.count += 1
            entry.tools.append(tool.name)

    return counts


def coverage_for(coverage: dict[str, CoverageEntry], safeguard_id: str) -> CoverageEntry:
    return coverage.get(safeguard_id) or CoverageEntry()


def heat_level(count: int) -> int:
    """Heatmap bucket: 0 for uncovered, then 1, 2, 3 and 4 for four or more."""
    return max(0, min(count, MAX_HEAT_LEVEL))


def natural_key(value: str) -> tuple:
    """Sort key comparing digit runs numerically, so 4.2 < 4.10."""
    return tuple(
        (0, int(chunk), "") if chunk.isdecimal() else (1, 0, chunk.casefold())
        for chunk in _CHUNKS.split(value)
        if chunk
    )


def heatmap_safeguards(
    index: CatalogIndex,
    coverage: dict[str, CoverageEntry],
    filters: HeatmapFilters,
) -> list[Safeguard]:
    """Safeguards passing the IG, tier and minimum-coverage facets, in id order."""
    visible = [
        sg for sg in index.safeguard_map.values()
        if passes_facets(sg, filters.ig, filters.tier)
        and coverage_for(coverage, sg.id).count >= filters.min_count
    ]
    return sorted(visible, key=lambda sg: natural_key(sg.id))


def available_tools(
    index: CatalogIndex,
    selected: Iterable[str],
    term: str = "",
) -> list[Tool]:
    """Tools that can still be added to the selection, filtered by name."""
    chosen = set(selected)
    needle = term.lower()
    candidates = [
        t for t in index.tool_map.values()
        if t.id not in chosen and needle in t.name.lower()
    ]
    return sorted(candidates, key=lambda t: (t.name.casefold(), t.name))


def _control_key(control_number: Optional[int]) -> str:
    return str(control_number) if control_number is not None else "unassigned"


def summarize_coverage(
    index: CatalogIndex,
    coverage: dict[str, CoverageEntry],
    selected: Iterable[str] = (),
) -> CoverageSummary:
    """Overall and per-control coverage of the safeguard set."""
    safeguards = list(index.safeguard_map.values())
    covered_ids = {sg.id for sg in safeguards if coverage_for(coverage, sg.id).count > 0}

    total = len(safeguards)
    covered = len(covered_ids)
    percent = round((covered / total) * 100, 1) if total > 0 else 0.0

    control_groups: dict[Optional[int], list[Safeguard]] = defaultdict(list)
    for sg in safeguards:
        control_groups[sg.control_number].append(sg)

    by_control: dict[str, ControlCoverage] = {}
    for control_number in sorted(control_groups, key=control_sort_key):
        members = control_groups[control_number]
        c_total = len(members)
        c_covered = sum(1 for sg in members if sg.id in covered_ids)
        by_control[_control_key(control_number)] = ControlCoverage(
            total=c_total,
            covered=c_covered,
            gaps=c_total - c_covered,
            coverage=round((c_covered / c_total) * 100, 1) if c_total > 0 else 0.0,
        )

    selected_names = [
        index.tool_map[t].name for t in selected if t in index.tool_map
    ]

    return CoverageSummary(
        selected_tools=selected_names,
        total_safeguards=total,
        covered_safeguards=covered,
        gap_safeguards=total - covered,
        coverage_percent=percent,
        by_control=by_control,
    )
