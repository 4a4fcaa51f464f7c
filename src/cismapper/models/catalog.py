"""Canonical catalog data models."""

from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict

_SG_PREFIX = re.compile(r"^SG\s?", re.IGNORECASE)


class Safeguard(BaseModel):
    """A single CIS Safeguard, identified by a dotted id such as ``4.1``."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    description: str = ""
    tier: str = "N/A"
    ig: str = "3"
    control_number: Optional[int] = None

    @property
    def short_id(self) -> str:
        """Id without a leading ``SG`` label, for compact display."""
        return _SG_PREFIX.sub("", self.id)


class Tool(BaseModel):
    """A catalog tool that may satisfy one or more safeguards."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    desc: str = ""
    education_use: bool = False
    cost: str = ""

    @property
    def cost_tiers(self) -> list[str]:
        """Cost brackets encoded in ``cost`` (e.g. ``"$$, $$$"`` -> ``["$$", "$$$"]``)."""
        return [c.strip() for c in self.cost.split(",") if c.strip()]


class MappingEdge(BaseModel):
    """Directed association asserting that a tool satisfies a safeguard."""

    model_config = ConfigDict(frozen=True)

    tool_id: str
    safeguard_id: str
    rationale: Optional[str] = None


class NormalizationWarning(BaseModel):
    """A non-fatal data-quality issue found while normalizing a source record."""

    collection: str
    index: int
    field: str = ""
    message: str
    rejected: bool = False

    def __str__(self) -> str:
        where = f"{self.collection}[{self.index}]"
        if self.field:
            where += f".{self.field}"
        suffix = " (record skipped)" if self.rejected else ""
        return f"{where}: {self.message}{suffix}"
