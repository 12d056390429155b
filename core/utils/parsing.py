"""
Lenient Field Parsing

Exchange payloads mix numbers, numeric strings, empty strings and nulls for
the same field. These helpers turn any of those into a value or None so that
a single bad record can be dropped instead of failing a whole fetch.
"""

import math
from datetime import datetime
from typing import Any, Optional

from core.utils.time import to_utc_datetime


def parse_float(value: Any) -> Optional[float]:
    """
    Parse a finite float from a number or numeric string.

    Examples:
        >>> parse_float("0.00010000")
        0.0001
        >>> parse_float("") is None
        True
        >>> parse_float("NaN") is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an epoch timestamp (seconds or milliseconds) into a UTC datetime.

    Non-positive values are treated as absent; some exchanges report 0 for
    instruments without a scheduled settlement.

    Examples:
        >>> parse_timestamp("1704110400000")
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
        >>> parse_timestamp(0) is None
        True
    """
    number = parse_float(value)
    if number is None or number <= 0:
        return None
    try:
        return to_utc_datetime(number)
    except ValueError:
        return None
