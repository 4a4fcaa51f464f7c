"""Source record normalization.

The safeguards, tools and mapping documents have drifted over time and spell
the same field several ways. Each canonical field has an ordered tuple of
accepted raw keys; the first key holding a value wins.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Optional

from ..models.catalog import MappingEdge, NormalizationWarning, Safeguard, Tool

TOOL_FIELDS: dict[str, tuple[str, ...]] = {
    "id": ("id", "ID", "ToolID"),
    "name": ("name", "Name", "ToolName"),
    "desc": ("description", "Description", "desc"),
    "education_use": ("EducationUse", "educationUse", "education_use"),
    "cost": ("Cost", "cost"),
}

SAFEGUARD_FIELDS: dict[str, tuple[str, ...]] = {
    "id": ("id", "ID", "SafeguardID", "number"),
    "title": ("title", "Title", "name"),
    "description": ("description", "Description"),
    "tier": ("TierNumber", "tier", "Tier"),
    "ig": ("IGNumber", "ig"),
    "control_number": ("ControlNumber", "controlNumber", "control_number"),
}

MAPPING_FIELDS: dict[str, tuple[str, ...]] = {
    "tool_id": ("tool_id", "ToolID", "toolId"),
    "safeguard_id": ("safeguard_id", "SafeguardID", "safeguardId"),
    "rationale": ("Rationale", "rationale"),
}

# Legacy per-IG boolean flags, in priority order. No flag set means IG3.
LEGACY_IG_FLAGS: tuple[tuple[str, str], ...] = (("ig1", "1"), ("ig2", "2"))
DEFAULT_IG = "3"
DEFAULT_TIER = "N/A"

_INTEGER = re.compile(r"[+-]?\d+")


class NormalizationError(ValueError):
    """A source record cannot be turned into a canonical entity."""

    def __init__(self, collection: str, index: int, field: str, message: str):
        super().__init__(f"{collection}[{index}].{field}: {message}")
        self.collection = collection
        self.index = index
        self.field = field
        self.message = message

    def to_warning(self) -> NormalizationWarning:
        return NormalizationWarning(
            collection=self.collection,
            index=self.index,
            field=self.field,
            message=self.message,
            rejected=True,
        )


def first_value(record: dict, keys: Iterable[str]) -> Any:
    """Return the value of the first key that is present, non-null and non-empty."""
    for key in keys:
        value = record.get(key)
        if value is None or value == "":
            continue
        return value
    return None


def as_text(value: Any, default: str = "") -> str:
    """Render a scalar JSON value as text (``2`` and ``2.0`` both become ``"2"``)."""
    if value is None:
        return default
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def parse_control_number(value: Any) -> Optional[int]:
    """Parse a base-10 control number. Returns None for anything non-numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and _INTEGER.fullmatch(value.strip()):
        return int(value.strip())
    return None


def is_education_use(value: Any) -> bool:
    """Only a real ``True`` or the string ``"true"`` counts."""
    return value is True or value == "true"


def derive_ig(record: dict) -> tuple[str, list[str]]:
    """Return the implementation group and the legacy flags that were set.

    An explicit IG field wins. Otherwise the first true legacy flag decides,
    and a record with no flag set falls into IG3. More than one set flag is a
    data-quality problem the caller should surface.
    """
    explicit = first_value(record, SAFEGUARD_FIELDS["ig"])
    if explicit is not None:
        return as_text(explicit), []

    set_flags = [flag for flag, _ in LEGACY_IG_FLAGS if record.get(flag)]
    for flag, ig in LEGACY_IG_FLAGS:
        if flag in set_flags:
            return ig, set_flags
    return DEFAULT_IG, set_flags


def _require_id(record: Any, fields: dict[str, tuple[str, ...]], collection: str, index: int) -> str:
    if not isinstance(record, dict):
        raise NormalizationError(collection, index, "", f"expected an object, got {type(record).__name__}")
    value = first_value(record, fields["id"])
    entity_id = as_text(value).strip()
    if not entity_id:
        raise NormalizationError(
            collection, index, "id", f"no id under any of {', '.join(fields['id'])}"
        )
    return entity_id


def normalize_tool(raw: dict, index: int = 0) -> Tool:
    """Turn one raw tools-document record into a canonical Tool."""
    tool_id = _require_id(raw, TOOL_FIELDS, "tools", index)
    return Tool(
        id=tool_id,
        name=as_text(first_value(raw, TOOL_FIELDS["name"])),
        desc=as_text(first_value(raw, TOOL_FIELDS["desc"])),
        education_use=is_education_use(first_value(raw, TOOL_FIELDS["education_use"])),
        cost=as_text(first_value(raw, TOOL_FIELDS["cost"])),
    )


def normalize_safeguard(
    raw: dict,
    index: int = 0,
    warnings: Optional[list[NormalizationWarning]] = None,
) -> Safeguard:
    """Turn one raw safeguards-document record into a canonical Safeguard.

    Non-fatal anomalies (ambiguous legacy IG flags, unparseable control
    number) are appended to ``warnings`` when a list is given.
    """
    safeguard_id = _require_id(raw, SAFEGUARD_FIELDS, "safeguards", index)

    ig, set_flags = derive_ig(raw)
    if len(set_flags) > 1 and warnings is not None:
        warnings.append(NormalizationWarning(
            collection="safeguards",
            index=index,
            field="ig",
            message=f"{safeguard_id} has legacy flags {', '.join(set_flags)} set; using IG{ig}",
        ))

    raw_control = first_value(raw, SAFEGUARD_FIELDS["control_number"])
    control_number = parse_control_number(raw_control)
    if control_number is None and warnings is not None:
        shown = "missing" if raw_control is None else f"not a number: {raw_control!r}"
        warnings.append(NormalizationWarning(
            collection="safeguards",
            index=index,
            field="control_number",
            message=f"{safeguard_id} control number {shown}",
        ))

    return Safeguard(
        id=safeguard_id,
        title=as_text(first_value(raw, SAFEGUARD_FIELDS["title"])),
        description=as_text(first_value(raw, SAFEGUARD_FIELDS["description"])),
        tier=as_text(first_value(raw, SAFEGUARD_FIELDS["tier"]), DEFAULT_TIER),
        ig=ig,
        control_number=control_number,
    )


def normalize_mapping(raw: dict, index: int = 0) -> MappingEdge:
    """Turn one raw mapping row into a MappingEdge."""
    if not isinstance(raw, dict):
        raise NormalizationError("mappings", index, "", f"expected an object, got {type(raw).__name__}")
    tool_id = as_text(first_value(raw, MAPPING_FIELDS["tool_id"])).strip()
    safeguard_id = as_text(first_value(raw, MAPPING_FIELDS["safeguard_id"])).strip()
    if not tool_id:
        raise NormalizationError("mappings", index, "tool_id", "no tool reference")
    if not safeguard_id:
        raise NormalizationError("mappings", index, "safeguard_id", "no safeguard reference")
    rationale = first_value(raw, MAPPING_FIELDS["rationale"])
    return MappingEdge(
        tool_id=tool_id,
        safeguard_id=safeguard_id,
        rationale=as_text(rationale) if rationale is not None else None,
    )


def _reject_duplicate(collection: str, index: int, entity_id: str) -> NormalizationWarning:
    return NormalizationWarning(
        collection=collection,
        index=index,
        field="id",
        message=f"duplicate id {entity_id!r}; first occurrence kept",
        rejected=True,
    )


def normalize_tools(records: list) -> tuple[list[Tool], list[NormalizationWarning]]:
    """Normalize the tools document, dropping records without a usable id."""
    tools: list[Tool] = []
    warnings: list[NormalizationWarning] = []
    seen: set[str] = set()

    for index, raw in enumerate(records):
        try:
            tool = normalize_tool(raw, index)
        except NormalizationError as e:
            warnings.append(e.to_warning())
            continue
        if tool.id in seen:
            warnings.append(_reject_duplicate("tools", index, tool.id))
            continue
        seen.add(tool.id)
        tools.append(tool)

    return tools, warnings


def normalize_safeguards(records: list) -> tuple[list[Safeguard], list[NormalizationWarning]]:
    """Normalize the safeguards document, dropping records without a usable id."""
    safeguards: list[Safeguard] = []
    warnings: list[NormalizationWarning] = []
    seen: set[str] = set()

    for index, raw in enumerate(records):
        record_warnings: list[NormalizationWarning] = []
        try:
            safeguard = normalize_safeguard(raw, index, record_warnings)
        except NormalizationError as e:
            warnings.append(e.to_warning())
            continue
        if safeguard.id in seen:
            warnings.append(_reject_duplicate("safeguards", index, safeguard.id))
            continue
        warnings.extend(record_warnings)
        seen.add(safeguard.id)
        safeguards.append(safeguard)

    return safeguards, warnings


def normalize_mappings(records: list) -> tuple[list[MappingEdge], list[NormalizationWarning]]:
    """Normalize mapping rows. Duplicate rows are kept."""
    edges: list[MappingEdge] = []
    warnings: list[NormalizationWarning] = []

    for index, raw in enumerate(records):
        try:
            edges.append(normalize_mapping(raw, index))
        except NormalizationError as e:
            warnings.append(e.to_warning())

    return edges, warnings
