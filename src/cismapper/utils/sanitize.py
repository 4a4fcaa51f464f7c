"""Error message sanitization to prevent credential leakage."""

from __future__ import annotations

import os
import re


def sanitize_error(message: str) -> str:
    """Sanitize error text to prevent token and path leakage.

    Source URLs for private mirrors may carry credentials in the userinfo
    part or in a ``token`` query parameter.
    """
    if not message:
        return message

    sanitized = message
    # Credentials embedded in URLs
    sanitized = re.sub(r"(https?://)[^/\s:@]+:[^/\s@]+@", r"\1[REDACTED]@", sanitized)
    sanitized = re.sub(
        r"([?&](?:token|access_token|api_key|key|sig)=)[^&\s]+",
        r"\1[REDACTED]",
        sanitized,
        flags=re.IGNORECASE,
    )
    # Common token shapes and headers
    sanitized = re.sub(r"gh[pousr]_[A-Za-z0-9]{20,}", "[REDACTED_TOKEN]", sanitized)
    sanitized = re.sub(r"Bearer\s+\S+", "Bearer [REDACTED]", sanitized)
    sanitized = re.sub(r"Authorization:\s*\S+", "Authorization: [REDACTED]", sanitized)

    # Redact user home paths
    home = os.environ.get("USERPROFILE") or os.environ.get("HOME") or ""
    if home and home != "/":
        sanitized = sanitized.replace(home, "[USER_HOME]")

    return sanitized
