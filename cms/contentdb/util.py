"""Small helpers shared by the schema and content modules."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_id(prefix: str = "") -> str:
    """Generate a fresh identifier.

    Args:
        prefix: Optional prefix, e.g. "fld_" for field ids

    Returns:
        prefix + 12 hex characters when prefixed, else a full uuid4 hex
    """
    if prefix:
        return f"{prefix}{uuid.uuid4().hex[:12]}"
    return uuid.uuid4().hex
