"""Search and facet state for the safeguard, tool and heatmap views."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


def _as_facet(value: Any) -> set[str]:
    if value is None:
        return set()
    if isinstance(value, (str, int)):
        value = [value]
    return {str(v).strip() for v in value if str(v).strip()}


class SafeguardFilters(BaseModel):
    search: str = ""
    ig: set[str] = set()
    tier: set[str] = set()

    @field_validator("ig", "tier", mode="before")
    @classmethod
    def _normalize_facet(cls, value: Any) -> set[str]:
        return _as_facet(value)


class ToolFilters(BaseModel):
    search: str = ""
    education_only: bool = False
    cost: set[str] = set()

    @field_validator("cost", mode="before")
    @classmethod
    def _normalize_facet(cls, value: Any) -> set[str]:
        return _as_facet(value)


class HeatmapFilters(BaseModel):
    ig: set[str] = set()
    tier: set[str] = set()
    min_count: int = Field(default=0, ge=0)

    @field_validator("ig", "tier", mode="before")
    @classmethod
    def _normalize_facet(cls, value: Any) -> set[str]:
        return _as_facet(value)
