"""Raw source document fetching with timeout and retry.

Fetches the safeguards, tools and mapping documents concurrently. A source
location is either an http(s) URL or a path to a local JSON mirror.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import httpx

from ..utils.sanitize import sanitize_error

SOURCE_NAMES = ("safeguards", "tools", "mapping")

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class SourceError(Exception):
    """A source document could not be loaded. Fatal for the session."""

    def __init__(self, source: str, location: str, message: str):
        self.source = source
        self.location = sanitize_error(location)
        self.message = sanitize_error(message)
        super().__init__(f"{source}: {self.message} ({self.location})")


class SourceFetchError(SourceError):
    """Network or HTTP failure, after retries were exhausted."""


class SourceFormatError(SourceError):
    """The document is not valid JSON or is not a JSON array."""


def _is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def parse_document(source: str, location: str, text: str) -> list:
    """Parse a source document body, which must be a JSON array."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SourceFormatError(source, location, f"invalid JSON: {e}") from e
    if not isinstance(data, list):
        raise SourceFormatError(
            source, location, f"expected a JSON array, got {type(data).__name__}"
        )
    return data


def read_local_document(source: str, location: str) -> list:
    path = Path(location)
    try:
        text = path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise SourceFormatError(source, location, f"not UTF-8: {e}") from e
    except OSError as e:
        raise SourceFetchError(source, location, str(e)) from e
    return parse_document(source, location, text)


async def fetch_document(
    client: httpx.AsyncClient,
    source: str,
    location: str,
    retry_attempts: int = 3,
    retry_delay: float = 2,
) -> list:
    """Fetch one source document, retrying transient failures.

    Transport errors, timeouts and 429/5xx responses are retried with a
    linear backoff capped at three times ``retry_delay``. Other HTTP errors
    and malformed bodies fail immediately.
    """
    if not _is_url(location):
        return read_local_document(source, location)

    attempts = max(retry_attempts, 1)
    last_error = "no attempt made"

    for attempt in range(1, attempts + 1):
        try:
            response = await client.get(location)
        except httpx.TransportError as e:
            last_error = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
        else:
            if response.status_code < 400:
                return parse_document(source, location, response.text)
            last_error = f"HTTP {response.status_code}"
            if response.status_code not in RETRYABLE_STATUS:
                raise SourceFetchError(source, location, last_error)

        if attempt < attempts:
            await asyncio.sleep(retry_delay * min(attempt, 3))

    raise SourceFetchError(
        source, location, f"{last_error} after {attempts} attempt(s)"
    )


async def fetch_sources(
    sources: dict[str, str],
    timeout: float = 30,
    retry_attempts: int = 3,
    retry_delay: float = 2,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[str, list]:
    """Fetch every configured source document concurrently.

    Returns the parsed arrays keyed by source name. The first failure is
    raised as a SourceError and the fetches still in flight are cancelled;
    no partial result is returned.
    """
    missing = [name for name in SOURCE_NAMES if not sources.get(name)]
    if missing:
        raise SourceFetchError(missing[0], "", "no location configured")

    async with httpx.AsyncClient(
        timeout=timeout, follow_redirects=True, transport=transport
    ) as client:
        tasks = [
            asyncio.ensure_future(
                fetch_document(client, name, sources[name], retry_attempts, retry_delay)
            )
            for name in SOURCE_NAMES
        ]
        try:
            documents = await asyncio.gather(*tasks)
        except BaseException:
            # Stop sibling fetches before the client closes under them
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    return dict(zip(SOURCE_NAMES, documents))
