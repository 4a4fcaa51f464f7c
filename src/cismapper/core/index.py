"""Lookup and adjacency indices over the normalized catalog."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from ..models.catalog import MappingEdge, NormalizationWarning, Safeguard, Tool


class CatalogIndex(BaseModel):
    """Read-only snapshot of the catalog for one session.

    ``tool_map`` and ``safeguard_map`` preserve normalizer order.
    ``tool_to_safeguards`` lists safeguard ids per tool in mapping-row order,
    duplicates included.
    """

    tool_map: dict[str, Tool] = {}
    safeguard_map: dict[str, Safeguard] = {}
    tool_to_safeguards: dict[str, list[str]] = {}
    edges: list[MappingEdge] = []
    dropped_edges: int = 0
    warnings: list[NormalizationWarning] = []

    @property
    def tools(self) -> list[Tool]:
        return list(self.tool_map.values())

    @property
    def safeguards(self) -> list[Safeguard]:
        return list(self.safeguard_map.values())

    def get_tool(self, tool_id: str) -> Optional[Tool]:
        return self.tool_map.get(tool_id)

    def get_safeguard(self, safeguard_id: str) -> Optional[Safeguard]:
        return self.safeguard_map.get(safeguard_id)

    def find_tool(self, ref: str) -> Optional[Tool]:
        """Resolve a tool by id, falling back to a case-insensitive name match."""
        tool = self.tool_map.get(ref)
        if tool:
            return tool
        wanted = ref.casefold()
        return next((t for t in self.tool_map.values() if t.name.casefold() == wanted), None)

    def related_tools(self, safeguard_id: str) -> list[tuple[Tool, Optional[str]]]:
        """Tools mapped to a safeguard, with the rationale of each mapping row."""
        related: list[tuple[Tool, Optional[str]]] = []
        for edge in self.edges:
            if edge.safeguard_id != safeguard_id:
                continue
            tool = self.tool_map.get(edge.tool_id)
            if tool:
                related.append((tool, edge.rationale))
        return related

    def related_safeguards(self, tool_id: str) -> list[tuple[Safeguard, Optional[str]]]:
        """Safeguards a tool is mapped to, with the rationale of each mapping row."""
        related: list[tuple[Safeguard, Optional[str]]] = []
        for edge in self.edges:
            if edge.tool_id != tool_id:
                continue
            safeguard = self.safeguard_map.get(edge.safeguard_id)
            if safeguard:
                related.append((safeguard, edge.rationale))
        return related


def build_index(
    tools: list[Tool],
    safeguards: list[Safeguard],
    edges: list[MappingEdge],
) -> CatalogIndex:
    """Build the tool, safeguard and tool->safeguards indices in one pass each.

    Mapping rows naming an unknown tool are left out of ``tool_to_safeguards``
    without error: the mapping document is expected to lag behind the tool
    list. Unknown safeguard ids are kept in the adjacency as-is.
    """
    tool_map: dict[str, Tool] = {}
    tool_to_safeguards: dict[str, list[str]] = {}
    for tool in tools:
        tool_map[tool.id] = tool
        tool_to_safeguards[tool.id] = []

    safeguard_map: dict[str, Safeguard] = {}
    for safeguard in safeguards:
        safeguard_map[safeguard.id] = safeguard

    dropped = 0
    for edge in edges:
        adjacency = tool_to_safeguards.get(edge.tool_id)
        if adjacency is None:
            dropped += 1
            continue
        adjacency.append(edge.safeguard_id)

    return CatalogIndex(
        tool_map=tool_map,
        safeguard_map=safeguard_map,
        tool_to_safeguards=tool_to_safeguards,
        edges=list(edges),
        dropped_edges=dropped,
    )
