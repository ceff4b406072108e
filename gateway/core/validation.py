"""Input validation shared by the REST routes and tool executors."""

import re
from datetime import date, timedelta
from typing import Any, Optional, Tuple

from gateway.core.exceptions import BadRequestError

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Size limits (UTF-8 bytes)
MAX_ENTRY_BYTES = 100 * 1024
MAX_APPEND_BYTES = 5 * 1024

# Listing
DEFAULT_RANGE_DAYS = 30
MAX_RANGE_DAYS = 90
DEFAULT_LIST_LIMIT = 30
MAX_LIST_LIMIT = 100

# Search
MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 200
DEFAULT_SEARCH_LIMIT = 10
MAX_SEARCH_LIMIT = 10


def parse_entry_date(value: Any, field: str = "date") -> date:
    """
    Parse a strict YYYY-MM-DD date.

    Args:
        value: Raw value from a query string, body or tool arguments
        field: Name used in the error message

    Returns:
        Parsed date

    Raises:
        BadRequestError: If the value is missing, mis-shaped or not a real date
    """
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        raise BadRequestError(f"Invalid {field} format. Expected: YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise BadRequestError(f"Invalid {field}: {value} is not a calendar date")


def parse_limit(value: Optional[Any], default: int, maximum: int) -> int:
    """Parse an optional positive integer limit and cap it at ``maximum``."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise BadRequestError("limit must be a positive integer")
    # JSON bodies may carry 2.5, 1e999 or Infinity
    if isinstance(value, float) and not value.is_integer():
        raise BadRequestError("limit must be a positive integer")
    try:
        limit = int(value)
    except (TypeError, ValueError, OverflowError):
        raise BadRequestError("limit must be a positive integer")
    if limit < 1:
        raise BadRequestError("limit must be a positive integer")
    return min(limit, maximum)


def resolve_date_range(
    start: Optional[str],
    end: Optional[str],
    max_days: int = MAX_RANGE_DAYS,
    today: Optional[date] = None,
) -> Tuple[date, date]:
    """Resolve an optional start/end pair, defaulting to the last 30 days."""
    today = today or date.today()
    end_date = parse_entry_date(end, "end_date") if end else today
    start_date = (
        parse_entry_date(start, "start_date") if start else end_date - timedelta(days=DEFAULT_RANGE_DAYS)
    )
    if start_date > end_date:
        raise BadRequestError("start_date must not be after end_date")
    if (end_date - start_date).days > max_days:
        raise BadRequestError(f"Date range cannot exceed {max_days} days")
    return start_date, end_date


def validate_content_size(content: str, max_bytes: int, label: str) -> str:
    if len(content.encode("utf-8")) > max_bytes:
        raise BadRequestError(f"Content exceeds {max_bytes // 1024}KB limit{label}")
    return content


def validate_search_query(query: Any) -> str:
    if not query or not isinstance(query, str):
        raise BadRequestError("Missing required query parameter: q")
    if len(query) < MIN_QUERY_LENGTH:
        raise BadRequestError(f"Search query must be at least {MIN_QUERY_LENGTH} characters")
    if len(query) > MAX_QUERY_LENGTH:
        raise BadRequestError(f"Search query cannot exceed {MAX_QUERY_LENGTH} characters")
    return query
