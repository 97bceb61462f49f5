"""
Timestamp parsing for GitHub payloads.
"""

from datetime import datetime, timezone
from typing import Optional, Tuple

def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC3339 timestamp. Returns None when missing, malformed or not a string."""
    if not value or not isinstance(value, str):
        return None

    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None

    # RFC3339 requires an offset
    if parsed.tzinfo is None:
        return None

    return parsed

def normalize_timestamps(created: Optional[str], updated: Optional[str]) -> Tuple[datetime, datetime]:
    """
    Parse the created/updated pair of a workflow run.
    Each value falls back to the current time independently when it can't be parsed.
    """
    created_at = parse_timestamp(created) or datetime.now(timezone.utc)
    updated_at = parse_timestamp(updated) or datetime.now(timezone.utc)
    return created_at, updated_at
