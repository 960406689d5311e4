"""Input sanitation and date helpers shared by portal services."""

from __future__ import annotations

import re
from datetime import UTC, datetime

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)


def sanitize_text(value: str) -> str:
    """Trim text and strip embedded script blocks."""
    return _SCRIPT_BLOCK.sub("", value.strip()).strip()


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 timestamp as an aware UTC datetime; None when unparseable."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()
