"""Row validation for CSV bet imports.

Each CSV row is turned into a bet-insert payload or rejected with a
RowValidationError whose message is shown to the user next to the row number.
Optional columns that are empty are left out of the payload entirely so the
storage defaults apply.
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Tuple
import logging

from .models import BetStatus, BetType
from .type_safety import is_uuid, parse_finite_number, normalize_timestamp

logger = logging.getLogger('bet_ledger')

TAG_SEPARATORS = re.compile(r"[|;,]")

# Accepted spellings per payload field, in lookup order
COLUMN_ALIASES = {
    "bankroll_id": ("bankroll_id", "bankrollId"),
    "placed_at": ("placed_at", "placedAt"),
    "bet_type": ("wager_type", "bet_type", "betType"),
    "implied_probability": ("probability", "implied_probability", "impliedProbability"),
    "result_amount": ("result_amount", "resultAmount"),
    "bookmaker_id": ("bookmaker_id", "bookmakerId"),
    "event_id": ("event_id", "eventId"),
    "market_id": ("market_id", "marketId"),
    "user_id": ("user_id", "userId"),
    "tags": ("tags", "Tags"),
}

REFERENCE_UUID_FIELDS = ("bookmaker_id", "event_id", "market_id", "user_id")


class RowValidationError(ValueError):
    """Raised when a single CSV row cannot be turned into a bet payload."""
    pass


def _cell(row: Mapping[str, Any], field: str) -> Optional[str]:
    """Return the raw cell for a field, trying each accepted column spelling.

    The first spelling present as a column wins, even when its cell is empty.
    """
    for column in COLUMN_ALIASES.get(field, (field,)):
        if column in row:
            value = row[column]
            return None if value is None else str(value)
    return None


def has_content(row: Mapping[str, Any]) -> bool:
    """Check whether any cell in the row holds non-whitespace text.

    Examples:
        >>> has_content({"stake": " ", "odds": ""})
        False
        >>> has_content({"stake": "10", "odds": ""})
        True
    """
    return any(str(value if value is not None else "").strip() for value in row.values())


def require_uuid(value: Optional[str], field: str) -> str:
    trimmed = (value or "").strip()
    if not is_uuid(trimmed):
        raise RowValidationError(f"{field} must be a valid UUID")
    return trimmed


def optional_uuid(value: Optional[str], field: str) -> Optional[str]:
    trimmed = (value or "").strip()
    if not trimmed:
        return None
    if not is_uuid(trimmed):
        raise RowValidationError(f"{field} must be a valid UUID")
    return trimmed


def require_number(value: Optional[str], field: str) -> float:
    number = parse_finite_number(value)
    if number is None:
        raise RowValidationError(f"{field} must be a numeric value")
    return number


def optional_number(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    number = parse_finite_number(value)
    if number is None:
        raise RowValidationError(f"Invalid numeric value: {value}")
    return number


def require_date(value: Optional[str], field: str) -> str:
    normalized = normalize_timestamp(value)
    if normalized is None:
        raise RowValidationError(f"{field} must be a valid ISO date")
    return normalized


def optional_string(value: Optional[str]) -> Optional[str]:
    trimmed = (value or "").strip()
    return trimmed or None


def normalize_status(value: Optional[str]) -> Optional[str]:
    """Normalize a status cell, returning None when the cell is blank.

    Examples:
        >>> normalize_status("Cashed Out")
        'cashed_out'
        >>> normalize_status("") is None
        True
    """
    if value is None or not value.strip():
        return None
    try:
        return BetStatus.parse(value).value
    except ValueError as e:
        raise RowValidationError(str(e)) from e


def normalize_bet_type(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    try:
        return BetType.parse(value).value
    except ValueError as e:
        raise RowValidationError(str(e)) from e


def parse_tags(value: Optional[str]) -> List[str]:
    """Split a tags cell on '|', ';' or ',' and drop empty tokens.

    Order and duplicates are preserved.

    Examples:
        >>> parse_tags("value| live ;;tennis,value")
        ['value', 'live', 'tennis', 'value']
        >>> parse_tags("  ")
        []
    """
    if not value:
        return []
    return [tag.strip() for tag in TAG_SEPARATORS.split(value) if tag.strip()]


def to_bet_payload(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate one CSV row and build the bet-insert payload.

    Required fields are checked first (bankroll_id, stake, odds, placed_at),
    then the optional ones. The first failing rule aborts the row.

    Args:
        row: Mapping of header name to raw cell text

    Returns:
        Payload dictionary with keys bankroll_id, stake, odds, placed_at and
        whichever optional fields were present and non-empty

    Raises:
        RowValidationError: With a user-facing message for the first rule
            the row breaks

    Examples:
        >>> to_bet_payload({
        ...     "bankroll_id": "11111111-1111-1111-1111-111111111111",
        ...     "stake": "10",
        ...     "odds": "1.9",
        ...     "placed_at": "2024-01-01T10:00:00Z",
        ... })
        {'bankroll_id': '11111111-1111-1111-1111-111111111111', 'stake': 10.0, 'odds': 1.9, 'placed_at': '2024-01-01T10:00:00.000Z'}
    """
    payload: Dict[str, Any] = {
        "bankroll_id": require_uuid(_cell(row, "bankroll_id"), "bankroll_id"),
        "stake": require_number(_cell(row, "stake"), "stake"),
        "odds": require_number(_cell(row, "odds"), "odds"),
        "placed_at": require_date(_cell(row, "placed_at"), "placed_at"),
    }

    status = normalize_status(_cell(row, "status"))
    if status:
        payload["status"] = status

    bet_type = normalize_bet_type(_cell(row, "bet_type"))
    if bet_type:
        payload["bet_type"] = bet_type

    probability = optional_number(_cell(row, "implied_probability"))
    if probability is not None:
        payload["implied_probability"] = probability

    result_amount = optional_number(_cell(row, "result_amount"))
    if result_amount is not None:
        payload["result_amount"] = result_amount

    notes = optional_string(_cell(row, "notes"))
    if notes:
        payload["notes"] = notes

    for field in REFERENCE_UUID_FIELDS:
        value = optional_uuid(_cell(row, field), field)
        if value:
            payload[field] = value

    tags = parse_tags(_cell(row, "tags"))
    if tags:
        payload["tags"] = tags

    incoming_id = optional_uuid(_cell(row, "id"), "id")
    if incoming_id:
        payload["id"] = incoming_id

    return payload


def validate_rows(
    rows: List[Tuple[int, Mapping[str, Any]]],
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Validate every row before anything is inserted.

    Args:
        rows: (row_number, row) pairs; row_number is what gets reported

    Returns:
        Tuple of (payloads, errors). errors holds {"row", "message"} dicts for
        every failing row; payloads is only meaningful when errors is empty.
    """
    payloads = []
    errors = []

    for row_number, row in rows:
        try:
            payloads.append(to_bet_payload(row))
        except RowValidationError as e:
            errors.append({"row": row_number, "message": str(e)})

    if errors:
        logger.warning(f"CSV validation rejected {len(errors)} of {len(rows)} rows")

    return payloads, errors
