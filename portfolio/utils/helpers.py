"""Shared parsing helpers used by services and blueprints.

parse_date:      lenient, returns None on bad input
parse_date_input: strict, raises ValueError on bad input
parse_id_list:   "1,2,3" → [1, 2, 3]
"""
import logging
from datetime import date, datetime

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string (ISO date or ISO-8601 timestamp) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD
    - YYYY-MM-DDTHH:MM:SS[.fff][Z|±HH:MM] (timestamp → .date())
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    try:
        return date.fromisoformat(text)
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Same as parse_date() but raises ValueError instead of returning None,
    so callers can turn it into a 400/422 response.
    """
    if value in (None, ""):
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(f"Invalid date {value!r}. Use ISO-8601 (YYYY-MM-DD).")
    return parsed


def parse_id_list(raw):
    """Parse a comma-separated id list. Raises ValueError on a non-integer item."""
    if not raw:
        return []
    ids = []
    for part in str(raw).split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(int(part))
        except ValueError as exc:
            raise ValueError(f"Invalid id: {part}") from exc
    return ids
