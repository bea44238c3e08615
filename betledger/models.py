"""Closed vocabularies for bet records.

Bet status and bet type are stored as plain strings, but every value that
enters the ledger goes through one of the ``parse`` functions below so the
set of accepted values stays closed.
"""

from enum import Enum
from typing import Optional


class BetStatus(str, Enum):
    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    VOID = "void"
    CASHED_OUT = "cashed_out"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: str) -> "BetStatus":
        """Parse a free-form status label.

        Matching is case-insensitive and spaces or hyphens count as
        underscores, so "Cashed Out" and "cashed-out" both parse.

        Raises:
            ValueError: If the label is not a known status

        Examples:
            >>> BetStatus.parse("Cashed Out")
            <BetStatus.CASHED_OUT: 'cashed_out'>
            >>> BetStatus.parse("unknown")
            Traceback (most recent call last):
            ...
            ValueError: Invalid status: unknown
        """
        normalized = str(value).strip().lower().replace("-", "_").replace(" ", "_")
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Invalid status: {value}")


# Statuses that extend a losing streak; only WON resets it
LOSING_STATUSES = frozenset({
    BetStatus.LOST,
    BetStatus.VOID,
    BetStatus.CASHED_OUT,
    BetStatus.CANCELLED,
})


class BetType(str, Enum):
    SINGLE = "single"
    MULTI = "multi"
    SYSTEM = "system"
    LIVE = "live"

    @classmethod
    def parse(cls, value: str) -> "BetType":
        """Parse a bet type label (case-insensitive, "parlay" means multi).

        Raises:
            ValueError: If the label is not a known bet type

        Examples:
            >>> BetType.parse("Single")
            <BetType.SINGLE: 'single'>
            >>> BetType.parse("parlay")
            <BetType.MULTI: 'multi'>
        """
        normalized = str(value).strip().lower()
        normalized = BET_TYPE_ALIASES.get(normalized, normalized)
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Invalid wager_type: {value}")


BET_TYPE_ALIASES = {
    "parlay": "multi",
}


class PeriodGrouping(str, Enum):
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"


class BreakdownDimension(str, Enum):
    BANKROLL = "bankroll_id"
    BOOKMAKER = "bookmaker_id"
    EVENT = "event_id"


class InsightTone(str, Enum):
    POSITIVE = "positive"
    WARNING = "warning"
    INFO = "info"


def status_of(bet: dict) -> Optional[BetStatus]:
    """Return the bet's status as a BetStatus, or None when missing or unknown."""
    raw = bet.get("status") if isinstance(bet, dict) else None
    if raw is None:
        return None
    if isinstance(raw, BetStatus):
        return raw
    try:
        return BetStatus.parse(raw)
    except ValueError:
        return None
