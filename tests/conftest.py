"""
Shared pytest fixtures for Bet Ledger tests.

This module provides fixtures for:
- Database files (with automatic cleanup)
- Sample bets and CSV content
- Reference data (bankrolls, bookmakers)
"""

import os
import tempfile
from typing import Any, Dict, Generator, List

import pytest

BANKROLL_ID = "11111111-1111-1111-1111-111111111111"
OTHER_BANKROLL_ID = "22222222-2222-2222-2222-222222222222"
BOOKMAKER_ID = "33333333-3333-3333-3333-333333333333"


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def temp_db() -> Generator[str, None, None]:
    """
    Create a temporary database file for testing.

    Yields:
        Path to temporary database file

    Cleanup:
        Restores DATABASE_PATH and removes the database file
    """
    fd, path = tempfile.mkstemp(suffix='.db')
    os.close(fd)

    import betledger.config
    original_config_path = betledger.config.DATABASE_PATH
    betledger.config.DATABASE_PATH = path

    # The db module holds its own reference
    import betledger.db
    betledger.db.DATABASE_PATH = path

    yield path

    betledger.config.DATABASE_PATH = original_config_path
    betledger.db.DATABASE_PATH = original_config_path

    try:
        os.unlink(path)
    except OSError:
        pass


@pytest.fixture
def initialized_db(temp_db: str) -> Generator[str, None, None]:
    """
    Provide a database path with all tables initialized.

    Yields:
        Database path with initialized schema
    """
    from betledger import db
    db.initialize_db()

    yield temp_db


# ============================================================================
# Sample Data Fixtures
# ============================================================================

@pytest.fixture
def bankroll_id() -> str:
    return BANKROLL_ID


@pytest.fixture
def sample_bets() -> List[Dict[str, Any]]:
    """
    Bets as returned by db.fetch_bets, deliberately out of chronological order.

    Returns:
        Five bets across two bankrolls: two won, two lost, one pending
    """
    return [
        {
            "id": "b3",
            "bankroll_id": BANKROLL_ID,
            "bookmaker_id": BOOKMAKER_ID,
            "event_id": None,
            "stake": 10.0,
            "odds": 2.0,
            "status": "lost",
            "placed_at": "2024-01-10T18:00:00.000Z",
            "result_amount": -10.0,
            "tags": ["live"],
            "updated_at": "2024-01-11T09:00:00.000Z",
        },
        {
            "id": "b1",
            "bankroll_id": BANKROLL_ID,
            "bookmaker_id": BOOKMAKER_ID,
            "event_id": None,
            "stake": 10.0,
            "odds": 1.9,
            "status": "won",
            "placed_at": "2024-01-01T10:00:00.000Z",
            "result_amount": 9.0,
            "tags": ["value", "tennis"],
            "updated_at": "2024-01-02T09:00:00.000Z",
        },
        {
            "id": "b2",
            "bankroll_id": BANKROLL_ID,
            "bookmaker_id": None,
            "event_id": None,
            "stake": 20.0,
            "odds": 2.5,
            "status": "won",
            "placed_at": "2024-01-05T12:00:00.000Z",
            "result_amount": 30.0,
            "tags": ["value"],
            "updated_at": "2024-01-06T09:00:00.000Z",
        },
        {
            "id": "b4",
            "bankroll_id": OTHER_BANKROLL_ID,
            "bookmaker_id": BOOKMAKER_ID,
            "event_id": None,
            "stake": 5.0,
            "odds": 3.0,
            "status": "lost",
            "placed_at": "2024-02-03T20:00:00.000Z",
            "result_amount": -5.0,
            "tags": [],
            "updated_at": "2024-02-04T09:00:00.000Z",
        },
        {
            "id": "b5",
            "bankroll_id": OTHER_BANKROLL_ID,
            "bookmaker_id": None,
            "event_id": None,
            "stake": 5.0,
            "odds": 1.5,
            "status": "pending",
            "placed_at": "2024-04-15T20:00:00.000Z",
            "result_amount": None,
            "tags": [],
            "updated_at": "2024-04-15T20:00:00.000Z",
        },
    ]


@pytest.fixture
def valid_csv() -> str:
    """CSV export with two valid rows, one blank line and alias headers."""
    return (
        "bankrollId,stake,odds,placedAt,status,wager_type,tags,notes\n"
        f"{BANKROLL_ID},10,1.9,2024-01-01T10:00:00Z,Won,single,value|tennis,Early line\n"
        ",,,,,,,\n"
        f"{BANKROLL_ID},5.5,2.1,2024-01-02,pending,multi,,\n"
    )


@pytest.fixture
def sample_payload() -> Dict[str, Any]:
    """A validated bet-insert payload ready for db.insert_bets_batch."""
    return {
        "bankroll_id": BANKROLL_ID,
        "stake": 10.0,
        "odds": 1.9,
        "placed_at": "2024-01-01T10:00:00.000Z",
    }
