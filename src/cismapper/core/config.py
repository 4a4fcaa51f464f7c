"""3-layer configuration system for CIS Tool Mapper.

Loads and merges configuration from:
1. Default settings (built-in)
2. Project config (.cis-mapper/config.yaml) or an explicit config file
3. CLI parameters (override)
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Optional

import yaml

SOURCE_BASE_URL = "https://raw.githubusercontent.com/MidwestCyberLLC/CIS-Tool-Mapping/refs/heads/main"

CONFIG_DIR = ".cis-mapper"

DEFAULT_CONFIG: dict = {
    "sources": {
        "safeguards": f"{SOURCE_BASE_URL}/safeguards.json",
        "tools": f"{SOURCE_BASE_URL}/tools.json",
        "mapping": f"{SOURCE_BASE_URL}/mapping.json",
    },
    "fetch": {
        "timeout_seconds": 30,
        "retry_attempts": 3,
        "retry_delay_seconds": 2,
    },
    "coverage": {
        # Count each (tool, safeguard) pair once instead of once per mapping row
        "distinct_edges": False,
    },
    "output": {
        "format": "table",
    },
}

SOURCE_FILENAMES = {
    "safeguards": "safeguards.json",
    "tools": "tools.json",
    "mapping": "mapping.json",
}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts. Arrays are replaced, not merged."""
    result = {}
    for key in base:
        result[key] = base[key]
    for key, value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            result[key] = deep_merge(base_value, value)
        else:
            result[key] = value
    return result


def load_config_file(config_path: Path) -> dict:
    """Load a YAML config file. Missing or unreadable files yield {}."""
    if not config_path.exists():
        return {}
    try:
        content = config_path.read_text(encoding="utf-8-sig")  # utf-8-sig strips BOM
        loaded = yaml.safe_load(content)
    except (OSError, yaml.YAMLError):
        return {}
    return loaded if isinstance(loaded, dict) else {}


def load_project_config(project_path: Path) -> dict:
    """Load project configuration from .cis-mapper/config.yaml."""
    return load_config_file(project_path / CONFIG_DIR / "config.yaml")


def local_sources(source_dir: Path) -> dict[str, str]:
    """Source locations for a directory holding local JSON mirrors."""
    return {name: str(source_dir / filename) for name, filename in SOURCE_FILENAMES.items()}


def get_effective_config(
    project_path: Optional[Path] = None,
    config_file: Optional[Path] = None,
    source_dir: Optional[Path] = None,
    cli_overrides: Optional[dict] = None,
) -> dict:
    """Get the fully resolved configuration for a session."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_file is not None:
        file_config = load_config_file(config_file)
    elif project_path is not None:
        file_config = load_project_config(project_path)
    else:
        file_config = {}
    if file_config:
        config = deep_merge(config, file_config)

    if source_dir is not None:
        config = deep_merge(config, {"sources": local_sources(source_dir)})

    if cli_overrides:
        config = deep_merge(config, cli_overrides)

    return config
