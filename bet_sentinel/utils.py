"""
Utility functions for Bet Sentinel.

This module provides helper functions for common operations
like timestamp handling, data formatting, and conversions.
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


def safe_float(value: Any, default: float = 0.0) -> float:
    """
    Safely convert a value to float.

    Args:
        value: Value to convert.
        default: Default value if conversion fails.

    Returns:
        Float value or default.
    """
    if value is None:
        return default
    try:
        return float(value)
    except (ValueError, TypeError):
        return default


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(
    value: Union[str, int, float, datetime, None],
    default: Optional[datetime] = None
) -> Optional[datetime]:
    """
    Parse various timestamp formats to a UTC datetime.

    Handles:
    - datetime instances (naive values are taken as UTC)
    - ISO format strings
    - Unix timestamps (seconds or milliseconds)

    Args:
        value: Timestamp value to parse.
        default: Default value if parsing fails.

    Returns:
        Parsed timezone-aware datetime or default.
    """
    if value is None or isinstance(value, bool):
        return default

    if isinstance(value, datetime):
        return ensure_utc(value)

    try:
        # Try ISO format first
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return default
            try:
                return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
            except ValueError:
                # Numeric strings fall through to the Unix timestamp branch
                pass

        # Try Unix timestamp
        ts = float(value)
        if ts > 1e12:  # Milliseconds
            ts = ts / 1000
        return datetime.fromtimestamp(ts, tz=timezone.utc)

    except (ValueError, TypeError, OSError, OverflowError):
        return default


def truncate_id(identifier: str, length: int = 8) -> str:
    """
    Truncate a long identifier for display.

    Args:
        identifier: Full identifier.
        length: Number of characters to show on each side.

    Returns:
        Truncated identifier like "user_123...xyz_9876".
    """
    if not identifier or len(identifier) <= length * 2 + 3:
        return identifier
    return f"{identifier[:length]}...{identifier[-length:]}"


def format_amount(amount: float) -> str:
    """
    Format a wagered amount for display.

    Args:
        amount: Amount in currency units.

    Returns:
        Formatted string like "$1.23M" or "$123.45K".
    """
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.2f}M"
    elif amount >= 1_000:
        return f"${amount / 1_000:.2f}K"
    else:
        return f"${amount:.2f}"


def json_dumps_safe(obj: Any, indent: Optional[int] = None) -> str:
    """
    Safely serialize an object to JSON.

    Handles Decimal, datetime, sets and other non-serializable types.

    Args:
        obj: Object to serialize.
        indent: Optional indentation for pretty output.

    Returns:
        JSON string.
    """
    def default_serializer(o):
        if isinstance(o, Decimal):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, (set, frozenset)):
            return sorted(o)
        raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")

    return json.dumps(obj, default=default_serializer, indent=indent)


def chunk_list(lst: list, chunk_size: int) -> list[list]:
    """
    Split a list into chunks.

    Args:
        lst: List to split.
        chunk_size: Maximum items per chunk.

    Returns:
        List of chunks.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [lst[i:i + chunk_size] for i in range(0, len(lst), chunk_size)]
