"""Type safety utilities for robust data handling.

This module provides type-safe conversion functions and validators for values
that reach the ledger from untrusted sources (CSV files, form input, database
rows).
"""

import math
import re
from typing import Any, Optional
import logging

import pandas as pd

logger = logging.getLogger('bet_ledger')

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


def is_uuid(value: Any) -> bool:
    """Check whether a value is a UUID in canonical 8-4-4-4-12 hex form.

    Examples:
        >>> is_uuid("11111111-1111-1111-1111-111111111111")
        True
        >>> is_uuid("AAAAAAAA-BBBB-CCCC-DDDD-EEEEEEEEEEEE")
        True
        >>> is_uuid("not-a-uuid")
        False
    """
    if not isinstance(value, str):
        return False
    return UUID_PATTERN.match(value.strip()) is not None


def parse_finite_number(value: Any) -> Optional[float]:
    """Convert a value to a finite float.

    Returns None for anything that is not a finite number, including blank
    strings, NaN and infinities.

    Examples:
        >>> parse_finite_number(" 1.95 ")
        1.95
        >>> parse_finite_number("1e2")
        100.0
        >>> parse_finite_number("abc") is None
        True
        >>> parse_finite_number("inf") is None
        True
    """
    if isinstance(value, bool) or value is None:
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text or "_" in text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None

    return number if math.isfinite(number) else None


def normalize_timestamp(value: Any) -> Optional[str]:
    """Parse a date or datetime and render it as ISO-8601 UTC with milliseconds.

    Naive values are taken to be UTC; values with an offset are converted.

    Args:
        value: String, datetime or pandas Timestamp

    Returns:
        String like '2024-01-01T10:00:00.000Z', or None if the value does not
        parse to a calendar timestamp

    Examples:
        >>> normalize_timestamp("2024-01-01T10:00:00Z")
        '2024-01-01T10:00:00.000Z'
        >>> normalize_timestamp("2024-01-01T12:00:00+02:00")
        '2024-01-01T10:00:00.000Z'
        >>> normalize_timestamp("2024-02-30") is None
        True
        >>> normalize_timestamp("now") is None
        True
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        # Relative keywords like "now" and "today" are not calendar timestamps
        if not ISO_DATE_PREFIX.match(value):
            return None

    try:
        timestamp = pd.to_datetime(value, utc=True, format="ISO8601")
    except (ValueError, TypeError, OverflowError):
        return None

    if not isinstance(timestamp, pd.Timestamp) or pd.isna(timestamp):
        return None

    millis = timestamp.microsecond // 1000
    return f"{timestamp.strftime('%Y-%m-%dT%H:%M:%S')}.{millis:03d}Z"


def safe_float(value: Any, default: float = 0.0) -> float:
    """Safely convert value to float.

    None is treated as "no amount yet" and maps to the default silently,
    which is how unsettled result amounts are read.

    Args:
        value: Value to convert
        default: Default if conversion fails

    Returns:
        Float value or default

    Examples:
        >>> safe_float("123.45")
        123.45
        >>> safe_float(None)
        0.0
        >>> safe_float("invalid", default=-1.0)
        -1.0
    """
    if value is None:
        return default

    if isinstance(value, bool):
        return float(value)

    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else default

    if isinstance(value, str):
        clean_value = value.strip()
        try:
            return float(clean_value)
        except ValueError:
            logger.warning(f"Cannot convert to float: {value}")
            return default

    logger.warning(f"Unexpected type for float conversion: {type(value)}: {value}")
    return default


def validate_stake(stake: Any) -> float:
    """Validate bet stake amount.

    Args:
        stake: Stake amount to validate

    Returns:
        The stake as a float if valid

    Raises:
        ValueError: If stake is not a finite number greater than 0

    Examples:
        >>> validate_stake(10.0)
        10.0
        >>> validate_stake(0.0)
        Traceback (most recent call last):
        ...
        ValueError: Stake must be greater than 0, got 0.0
    """
    stake_value = parse_finite_number(stake)
    if stake_value is None:
        raise ValueError(f"Stake must be a number, got {stake}")

    if stake_value <= 0:
        raise ValueError(f"Stake must be greater than 0, got {stake_value}")

    return stake_value


def validate_odds(odds: Any) -> float:
    """Validate decimal odds.

    Raises:
        ValueError: If odds are not a finite number greater than 0

    Examples:
        >>> validate_odds("1.90")
        1.9
        >>> validate_odds(-110)
        Traceback (most recent call last):
        ...
        ValueError: Odds must be greater than 0, got -110.0
    """
    odds_value = parse_finite_number(odds)
    if odds_value is None:
        raise ValueError(f"Odds must be a number, got {odds}")

    if odds_value <= 0:
        raise ValueError(f"Odds must be greater than 0, got {odds_value}")

    return odds_value
