"""Miscellaneous helper functions."""

from __future__ import annotations

import datetime as dt
from typing import Optional


def parse_iso_datetime(value: str | None) -> Optional[dt.datetime]:
    """Parse an ISO8601 date or datetime string into a :class:`datetime` object.

    Query strings such as ``startDate=2024-05-01`` arrive as bare dates,
    which parse to midnight.  Some clients send timestamps that end with
    a lowercase ``z`` instead of the canonical ``Z``; this function
    normalises that case.  Timezone-aware values are converted to naive
    UTC to match the stored ``created_at`` column.  Returns ``None`` if
    the value cannot be parsed.
    """
    if not value:
        return None
    value = value.strip()
    if value.endswith(("z", "Z")):
        value = value[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return parsed
