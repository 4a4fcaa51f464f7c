"""JSON and markdown renderings of catalog views."""

from __future__ import annotations

import json
from typing import Optional

from ..models.catalog import NormalizationWarning, Safeguard, Tool
from ..models.coverage import ControlGroup, CoverageEntry, CoverageSummary


def _escape_cell(text: str) -> str:
    return (text or "").replace("|", "\\|").replace("\n", " ")


def _control_label(control_number: Optional[int]) -> str:
    return f"Control {control_number}" if control_number is not None else "Unassigned"


def dump_json(payload: object) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def safeguard_groups_payload(groups: list[ControlGroup]) -> list[dict]:
    return [group.model_dump() for group in groups]


def tools_payload(tools: list[Tool]) -> list[dict]:
    return [{**tool.model_dump(), "cost_tiers": tool.cost_tiers} for tool in tools]


def related_payload(
    subject: Safeguard | Tool,
    related: list[tuple[Safeguard | Tool, Optional[str]]],
) -> dict:
    return {
        "subject": subject.model_dump(),
        "related": [
            {"item": item.model_dump(), "rationale": rationale}
            for item, rationale in related
        ],
    }


def heatmap_payload(
    cells: list[tuple[Safeguard, CoverageEntry]],
    summary: CoverageSummary,
) -> dict:
    return {
        "summary": summary.model_dump(),
        "safeguards": [
            {"id": sg.id, "title": sg.title, "ig": sg.ig, "tier": sg.tier, **entry.model_dump()}
            for sg, entry in cells
        ],
    }


def warnings_payload(warnings: list[NormalizationWarning]) -> list[dict]:
    return [w.model_dump() for w in warnings]


def safeguard_groups_markdown(groups: list[ControlGroup]) -> str:
    lines: list[str] = []
    for group in groups:
        lines.append(f"## {_control_label(group.control_number)}")
        lines.append("")
        lines.append("| ID | Title | IG | Tier |")
        lines.append("|----|-------|----|------|")
        for sg in group.safeguards:
            lines.append(f"| {sg.id} | {_escape_cell(sg.title)} | {sg.ig} | {sg.tier} |")
        lines.append("")
    return "\n".join(lines)


def tools_markdown(tools: list[Tool]) -> str:
    lines = [
        "| ID | Name | Cost | K-12 Education Use |",
        "|----|------|------|--------------------|",
    ]
    for tool in tools:
        edu = "Yes" if tool.education_use else "No"
        lines.append(
            f"| {tool.id} | {_escape_cell(tool.name)} | {_escape_cell(tool.cost)} | {edu} |"
        )
    return "\n".join(lines) + "\n"


def related_markdown(
    heading: str,
    related: list[tuple[Safeguard | Tool, Optional[str]]],
) -> str:
    lines = [f"# {heading}", ""]
    if not related:
        lines.append("_No mappings._")
    for item, rationale in related:
        label = item.name if isinstance(item, Tool) else f"{item.id} - {item.title}"
        lines.append(f"- **{label}**")
        if rationale:
            lines.append(f"  > {rationale}")
    return "\n".join(lines) + "\n"


def heatmap_markdown(
    cells: list[tuple[Safeguard, CoverageEntry]],
    summary: CoverageSummary,
) -> str:
    lines = [
        "# Coverage Heatmap",
        "",
        f"**Selected tools:** {', '.join(summary.selected_tools) or 'none'}",
        f"**Coverage:** {summary.covered_safeguards}/{summary.total_safeguards} "
        f"safeguards ({summary.coverage_percent}%)",
        "",
        "| Safeguard | Title | Count | Covered By |",
        "|-----------|-------|-------|------------|",
    ]
    for sg, entry in cells:
        covered_by = ", ".join(entry.tools) if entry.tools else "Missing Coverage"
        lines.append(
            f"| {sg.short_id} | {_escape_cell(sg.title)} | {entry.count} | {_escape_cell(covered_by)} |"
        )
    return "\n".join(lines) + "\n"
