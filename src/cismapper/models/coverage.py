"""Coverage aggregation data models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from .catalog import Safeguard


class CoverageEntry(BaseModel):
    """How many selected tools cover one safeguard, and which ones."""

    count: int = 0
    tools: list[str] = []


class ControlGroup(BaseModel):
    """Safeguards of one CIS Control that survived filtering."""

    control_number: Optional[int] = None
    safeguards: list[Safeguard] = []


class ControlCoverage(BaseModel):
    """Coverage stats for one control."""

    total: int
    covered: int
    gaps: int
    coverage: float


class CoverageSummary(BaseModel):
    """Coverage of the whole safeguard set by the selected tools."""

    selected_tools: list[str] = []
    total_safeguards: int = 0
    covered_safeguards: int = 0
    gap_safeguards: int = 0
    coverage_percent: float = 0.0
    by_control: dict[str, ControlCoverage] = {}
