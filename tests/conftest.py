"""Shared fixtures for CIS Tool Mapper tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cismapper.core.catalog import build_catalog
from cismapper.core.index import CatalogIndex


@pytest.fixture
def raw_safeguards() -> list[dict]:
    """Safeguard records using the several key spellings seen in the wild."""
    return [
        {
            "SafeguardID": "1.1",
            "Title": "Establish and Maintain Detailed Enterprise Asset Inventory",
            "Description": "Maintain an accurate inventory of all enterprise assets.",
            "TierNumber": 1,
            "IGNumber": 1,
            "ControlNumber": "1",
        },
        {
            "id": "1.2",
            "title": "Address Unauthorized Assets",
            "description": "Ensure that a process exists to address unauthorized assets.",
            "tier": "2",
            "ig1": True,
            "ControlNumber": 1,
        },
        {
            "ID": "4.1",
            "name": "Establish and Maintain a Secure Configuration Process",
            "description": "Establish and maintain a secure configuration process.",
            "Tier": "1",
            "IGNumber": "1",
            "ControlNumber": "4",
        },
        {
            "number": "11.2",
            "title": "Perform Automated Backups",
            "description": "Perform automated backups of in-scope enterprise assets. Supports data recovery.",
            "TierNumber": "3",
            "ig2": True,
            "ControlNumber": "11",
        },
        {
            "id": "10.1",
            "title": "Deploy and Maintain Anti-Malware Software",
            "description": "Deploy and maintain anti-malware software on all enterprise assets.",
            "TierNumber": 2,
            "ControlNumber": "10",
        },
    ]


@pytest.fixture
def raw_tools() -> list[dict]:
    return [
        {
            "ToolID": "t1",
            "ToolName": "Acme EDR",
            "Description": "Endpoint detection and response.",
            "EducationUse": "true",
            "Cost": "$$, $$$",
        },
        {
            "id": "t2",
            "name": "backup buddy",
            "description": "Cloud backup for schools.",
            "EducationUse": True,
            "Cost": "$",
        },
        {
            "ID": "t3",
            "Name": "Inventory Pro",
            "Description": "Asset inventory and discovery.",
            "Cost": "$$$$",
        },
    ]


@pytest.fixture
def raw_mappings() -> list[dict]:
    return [
        {"ToolID": "t1", "SafeguardID": "10.1", "Rationale": "Includes anti-malware engine."},
        {"tool_id": "t3", "safeguard_id": "1.1", "Rationale": "Discovers assets on the network."},
        {"toolId": "t3", "safeguardId": "1.2"},
        {"ToolID": "t2", "SafeguardID": "11.2", "Rationale": "Automated nightly backups."},
        {"ToolID": "t1", "SafeguardID": "1.1"},
        {"ToolID": "retired-tool", "SafeguardID": "4.1", "Rationale": "Stale row."},
    ]


@pytest.fixture
def catalog(raw_safeguards, raw_tools, raw_mappings) -> CatalogIndex:
    return build_catalog(raw_safeguards, raw_tools, raw_mappings)


@pytest.fixture
def source_dir(tmp_path: Path, raw_safeguards, raw_tools, raw_mappings) -> Path:
    """Directory of local JSON mirrors of the three source documents."""
    directory = tmp_path / "sources"
    directory.mkdir()
    (directory / "safeguards.json").write_text(json.dumps(raw_safeguards), encoding="utf-8")
    (directory / "tools.json").write_text(json.dumps(raw_tools), encoding="utf-8")
    (directory / "mapping.json").write_text(json.dumps(raw_mappings), encoding="utf-8")
    return directory


@pytest.fixture
def initialized_project(tmp_path: Path, source_dir: Path) -> Path:
    """Project with a .cis-mapper/config.yaml pointing at local sources."""
    project = tmp_path / "district"
    project.mkdir()
    cfg_dir = project / ".cis-mapper"
    cfg_dir.mkdir()
    (cfg_dir / "config.yaml").write_text(
        "sources:\n"
        f"  safeguards: {source_dir / 'safeguards.json'}\n"
        f"  tools: {source_dir / 'tools.json'}\n"
        f"  mapping: {source_dir / 'mapping.json'}\n"
        "fetch:\n"
        "  timeout_seconds: 5\n"
        "coverage:\n"
        "  distinct_edges: true\n",
        encoding="utf-8",
    )
    return project
