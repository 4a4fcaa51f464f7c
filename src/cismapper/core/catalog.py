"""Catalog loading: fetch, normalize and index the three source documents."""

from __future__ import annotations

from typing import Optional

import httpx

from ..sources.fetcher import fetch_sources
from .index import CatalogIndex, build_index
from .normalizer import normalize_mappings, normalize_safeguards, normalize_tools


def build_catalog(
    raw_safeguards: list,
    raw_tools: list,
    raw_mappings: list,
) -> CatalogIndex:
    """Normalize the raw documents and build the session index.

    Normalization warnings are attached to the returned index in
    safeguards, tools, mappings order.
    """
    safeguards, sg_warnings = normalize_safeguards(raw_safeguards)
    tools, tool_warnings = normalize_tools(raw_tools)
    edges, edge_warnings = normalize_mappings(raw_mappings)

    index = build_index(tools, safeguards, edges)
    index.warnings = sg_warnings + tool_warnings + edge_warnings
    return index


async def load_catalog(
    config: dict,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> CatalogIndex:
    """Fetch all sources named in ``config`` and build the catalog.

    Raises SourceError if any document cannot be fetched or parsed.
    """
    fetch_config = config.get("fetch") or {}
    documents = await fetch_sources(
        config.get("sources") or {},
        timeout=fetch_config.get("timeout_seconds", 30),
        retry_attempts=fetch_config.get("retry_attempts", 3),
        retry_delay=fetch_config.get("retry_delay_seconds", 2),
        transport=transport,
    )
    return build_catalog(documents["safeguards"], documents["tools"], documents["mapping"])
