"""Database connection and query management for the bet ledger."""

import json
import os
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from .config import DATABASE_PATH, logger
from .models import BetStatus, BetType
from .type_safety import normalize_timestamp, parse_finite_number, validate_odds, validate_stake

BET_COLUMNS = (
    "id",
    "user_id",
    "bankroll_id",
    "event_id",
    "market_id",
    "bookmaker_id",
    "stake",
    "odds",
    "implied_probability",
    "status",
    "bet_type",
    "placed_at",
    "settled_at",
    "result_amount",
    "notes",
    "tags",
    "created_at",
    "updated_at",
)

# Fields a sparse update may touch
UPDATABLE_BET_FIELDS = (
    "stake",
    "odds",
    "status",
    "bet_type",
    "settled_at",
    "result_amount",
    "notes",
    "tags",
)


class StorageError(Exception):
    """Raised when the storage layer rejects a write.

    Carries the driver message plus optional details and a hint, mirroring
    what is sent back to API callers.
    """

    def __init__(self, message: str, details: Optional[str] = None, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        self.hint = hint


def _now_iso() -> str:
    return normalize_timestamp(datetime.now(timezone.utc))


def get_connection() -> sqlite3.Connection:
    """Create and return a database connection with row factory enabled.

    Returns:
        SQLite connection object with row_factory configured and foreign
        keys left unenforced (bankrolls and bookmakers are reference data)

    Examples:
        >>> conn = get_connection()
        >>> row = conn.execute("SELECT * FROM bets LIMIT 1").fetchone()
        >>> print(row["stake"])  # Access by column name
    """
    directory = os.path.dirname(DATABASE_PATH)
    if directory:
        os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def initialize_db() -> None:
    """Initialize the database schema with all required tables and indexes.

    Creates the following tables if they don't exist:
    - app_users: Dashboard accounts
    - bankrolls: Named pools of funds bets are staked against
    - bookmakers: Reference list of bookmakers
    - bets: The ledger itself

    This function is idempotent and safe to call multiple times.
    """
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS app_users (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            display_name TEXT,
            password_hash TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS bankrolls (
            id TEXT PRIMARY KEY,
            user_id TEXT,
            name TEXT NOT NULL,
            currency TEXT NOT NULL DEFAULT 'EUR',
            balance REAL NOT NULL DEFAULT 0.0,
            target_stake_unit REAL NOT NULL DEFAULT 0.0,
            created_at TEXT NOT NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS bookmakers (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            country TEXT
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS bets (
            id TEXT PRIMARY KEY,
            user_id TEXT,
            bankroll_id TEXT NOT NULL,
            event_id TEXT,
            market_id TEXT,
            bookmaker_id TEXT,
            stake REAL NOT NULL,
            odds REAL NOT NULL,
            implied_probability REAL,
            status TEXT NOT NULL DEFAULT 'pending',
            bet_type TEXT NOT NULL DEFAULT 'single',
            placed_at TEXT NOT NULL,
            settled_at TEXT,
            result_amount REAL,
            notes TEXT,
            tags TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_bets_bankroll_placed
        ON bets(bankroll_id, placed_at DESC)
    """)
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_bets_status
        ON bets(status)
    """)
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_bankrolls_user
        ON bankrolls(user_id, created_at)
    """)

    conn.commit()
    conn.close()


def _row_to_bet(row: sqlite3.Row) -> dict:
    bet = dict(row)
    raw_tags = bet.get("tags")
    if raw_tags:
        try:
            bet["tags"] = json.loads(raw_tags)
        except (TypeError, ValueError):
            logger.warning(f"Unreadable tags on bet {bet.get('id')}: {raw_tags}")
            bet["tags"] = []
    else:
        bet["tags"] = []
    return bet


def _bet_row_values(payload: dict, now: str) -> dict:
    """Build the full column mapping for one insert, filling storage defaults."""
    record = {column: payload.get(column) for column in BET_COLUMNS}
    record["id"] = payload.get("id") or str(uuid.uuid4())
    record["status"] = payload.get("status") or BetStatus.PENDING.value
    record["bet_type"] = payload.get("bet_type") or BetType.SINGLE.value
    tags = payload.get("tags")
    record["tags"] = json.dumps(list(tags)) if tags else None
    record["created_at"] = now
    record["updated_at"] = now
    return record


def insert_bets_batch(payloads: list[dict]) -> int:
    """Insert multiple bet payloads in a single transaction.

    Either the whole batch is stored or none of it is. Missing ids are
    generated, and status/bet_type default to pending/single.

    Args:
        payloads: Validated bet-insert payloads (see validation.to_bet_payload)

    Returns:
        Number of records inserted

    Raises:
        StorageError: If SQLite rejects the batch (duplicate id, missing
            required column, locked database, ...)

    Examples:
        >>> count = insert_bets_batch([
        ...     {"bankroll_id": "...", "stake": 10.0, "odds": 1.9,
        ...      "placed_at": "2024-01-01T10:00:00.000Z"},
        ... ])
    """
    if not payloads:
        return 0

    # Ensure tables exist before inserting
    initialize_db()

    now = _now_iso()
    records = [_bet_row_values(payload, now) for payload in payloads]
    placeholders = ", ".join(f":{column}" for column in BET_COLUMNS)

    conn = get_connection()
    try:
        cursor = conn.cursor()
        cursor.executemany(
            f"INSERT INTO bets ({', '.join(BET_COLUMNS)}) VALUES ({placeholders})",
            records,
        )
        conn.commit()
        return len(records)
    except sqlite3.Error as e:
        conn.rollback()
        logger.error(f"Failed to insert batch of {len(records)} bets: {e}", exc_info=True)
        raise StorageError(
            str(e),
            details=f"Batch of {len(records)} rows was rolled back",
            hint=_hint_for(e),
        ) from e
    finally:
        conn.close()


def _hint_for(error: sqlite3.Error) -> Optional[str]:
    message = str(error)
    if "UNIQUE constraint failed: bets.id" in message:
        return "A bet with the same id already exists; leave the id column empty to generate one"
    if "NOT NULL constraint failed" in message:
        return "A required column is missing from the payload"
    if "locked" in message:
        return "The database is busy; retry the import"
    return None


def create_bet(payload: dict) -> dict:
    """Insert a single bet and return the stored record.

    Raises:
        StorageError: If the insert is rejected
    """
    record = dict(payload)
    record["id"] = record.get("id") or str(uuid.uuid4())
    insert_bets_batch([record])
    return get_bet(record["id"])


def get_bet(bet_id: str) -> Optional[dict]:
    """Fetch one bet by id, or None when it does not exist."""
    conn = get_connection()
    try:
        row = conn.execute("SELECT * FROM bets WHERE id = ?", (bet_id,)).fetchone()
    except sqlite3.OperationalError as e:
        logger.error(f"Database operation failed in get_bet: {e}", exc_info=True)
        return None
    finally:
        conn.close()
    return _row_to_bet(row) if row else None


def update_bet(bet_id: str, changes: dict) -> Optional[dict]:
    """Apply a sparse update to a bet.

    Only keys present in ``changes`` are written; a key mapped to None clears
    that column. status and bet_type are parsed through their enums and
    settled_at is normalized to ISO-8601 UTC.

    Args:
        bet_id: Id of the bet to update
        changes: Any subset of UPDATABLE_BET_FIELDS

    Returns:
        The updated bet, or None if no bet has that id

    Raises:
        ValueError: For unknown fields or invalid values

    Examples:
        >>> update_bet(bet_id, {"status": "won", "result_amount": 9.0})
    """
    unknown = set(changes) - set(UPDATABLE_BET_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    values = dict(changes)
    if values.get("status") is not None:
        values["status"] = BetStatus.parse(values["status"]).value
    elif "status" in values:
        raise ValueError("status cannot be empty")
    if values.get("bet_type") is not None:
        values["bet_type"] = BetType.parse(values["bet_type"]).value
    elif "bet_type" in values:
        raise ValueError("bet_type cannot be empty")
    if "stake" in values:
        values["stake"] = validate_stake(values["stake"])
    if "odds" in values:
        values["odds"] = validate_odds(values["odds"])
    if values.get("result_amount") is not None:
        result_amount = parse_finite_number(values["result_amount"])
        if result_amount is None:
            raise ValueError(f"result_amount must be a number, got {values['result_amount']}")
        values["result_amount"] = result_amount
    if values.get("settled_at") is not None:
        settled_at = normalize_timestamp(values["settled_at"])
        if settled_at is None:
            raise ValueError(f"settled_at must be a valid ISO date, got {values['settled_at']}")
        values["settled_at"] = settled_at
    if "tags" in values:
        values["tags"] = json.dumps(list(values["tags"])) if values["tags"] else None

    if not values:
        return get_bet(bet_id)

    values["updated_at"] = _now_iso()
    assignments = ", ".join(f"{column} = :{column}" for column in values)
    values["bet_id"] = bet_id

    conn = get_connection()
    cursor = conn.cursor()
    cursor.execute(f"UPDATE bets SET {assignments} WHERE id = :bet_id", values)
    success = cursor.rowcount > 0
    conn.commit()
    conn.close()

    return get_bet(bet_id) if success else None


def delete_bet(bet_id: str) -> bool:
    """Delete a bet by id. Returns True if a row was removed."""
    conn = get_connection()
    cursor = conn.cursor()
    cursor.execute("DELETE FROM bets WHERE id = ?", (bet_id,))
    success = cursor.rowcount > 0
    conn.commit()
    conn.close()
    return success


def fetch_bets(filters: Optional[dict] = None) -> list[dict]:
    """Fetch bets matching the dashboard filters, newest first.

    Args:
        filters: Optional dict with any of:
            - bankroll_id: only bets of this bankroll
            - status: exact status
            - date_from / date_to: inclusive bounds on placed_at (ISO strings)
            - search: case-insensitive substring of notes
            - tags: list of tags the bet must all carry

    Returns:
        List of bet dicts (tags decoded to lists). Empty list if the table
        does not exist yet.
    """
    filters = filters or {}
    clauses = []
    params: list[Any] = []

    if filters.get("bankroll_id"):
        clauses.append("bankroll_id = ?")
        params.append(filters["bankroll_id"])
    if filters.get("status"):
        clauses.append("status = ?")
        params.append(BetStatus.parse(filters["status"]).value)
    if filters.get("date_from"):
        clauses.append("placed_at >= ?")
        params.append(filters["date_from"])
    if filters.get("date_to"):
        clauses.append("placed_at <= ?")
        params.append(filters["date_to"])
    if filters.get("search"):
        clauses.append("LOWER(COALESCE(notes, '')) LIKE ?")
        params.append(f"%{filters['search'].strip().lower()}%")

    query = "SELECT * FROM bets"
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += " ORDER BY placed_at DESC"

    conn = get_connection()
    try:
        rows = conn.execute(query, params).fetchall()
    except sqlite3.OperationalError as e:
        logger.error(f"Database operation failed in fetch_bets: {e}", exc_info=True)
        return []
    finally:
        conn.close()

    bets = [_row_to_bet(row) for row in rows]

    required_tags = filters.get("tags") or []
    if required_tags:
        bets = [bet for bet in bets if all(tag in bet["tags"] for tag in required_tags)]

    return bets


def fetch_tags() -> list[str]:
    """Return every tag used on any bet, unique and sorted."""
    conn = get_connection()
    try:
        rows = conn.execute("SELECT tags FROM bets WHERE tags IS NOT NULL").fetchall()
    except sqlite3.OperationalError as e:
        logger.error(f"Database operation failed in fetch_tags: {e}", exc_info=True)
        return []
    finally:
        conn.close()

    tag_set = set()
    for row in rows:
        try:
            tag_set.update(json.loads(row["tags"]))
        except (TypeError, ValueError):
            continue
    return sorted(tag_set, key=str.lower)


# ==================== REFERENCE DATA ====================

def create_bankroll(
    name: str,
    currency: str = "EUR",
    balance: float = 0.0,
    target_stake_unit: float = 0.0,
    user_id: Optional[str] = None,
) -> dict:
    """Create a bankroll and return it.

    Raises:
        ValueError: If the name is empty
    """
    if not name or not name.strip():
        raise ValueError("Bankroll name is required")

    initialize_db()
    bankroll = {
        "id": str(uuid.uuid4()),
        "user_id": user_id,
        "name": name.strip(),
        "currency": (currency or "EUR").strip().upper(),
        "balance": float(balance),
        "target_stake_unit": float(target_stake_unit),
        "created_at": _now_iso(),
    }

    conn = get_connection()
    conn.execute(
        """
        INSERT INTO bankrolls (id, user_id, name, currency, balance, target_stake_unit, created_at)
        VALUES (:id, :user_id, :name, :currency, :balance, :target_stake_unit, :created_at)
        """,
        bankroll,
    )
    conn.commit()
    conn.close()
    return bankroll


def fetch_bankrolls(user_id: Optional[str] = None) -> list[dict]:
    """List bankrolls, oldest first. With a user_id, only that user's bankrolls."""
    query = "SELECT id, user_id, name, currency, balance, target_stake_unit, created_at FROM bankrolls"
    params: tuple = ()
    if user_id:
        query += " WHERE user_id = ?"
        params = (user_id,)
    query += " ORDER BY created_at ASC, rowid ASC"

    conn = get_connection()
    try:
        rows = conn.execute(query, params).fetchall()
    except sqlite3.OperationalError as e:
        logger.error(f"Database operation failed in fetch_bankrolls: {e}", exc_info=True)
        return []
    finally:
        conn.close()
    return [dict(row) for row in rows]


def create_bookmaker(name: str, country: Optional[str] = None) -> dict:
    if not name or not name.strip():
        raise ValueError("Bookmaker name is required")

    initialize_db()
    bookmaker = {"id": str(uuid.uuid4()), "name": name.strip(), "country": country}

    conn = get_connection()
    conn.execute(
        "INSERT INTO bookmakers (id, name, country) VALUES (:id, :name, :country)",
        bookmaker,
    )
    conn.commit()
    conn.close()
    return bookmaker


def fetch_bookmakers() -> list[dict]:
    conn = get_connection()
    try:
        rows = conn.execute("SELECT id, name, country FROM bookmakers ORDER BY name ASC").fetchall()
    except sqlite3.OperationalError as e:
        logger.error(f"Database operation failed in fetch_bookmakers: {e}", exc_info=True)
        return []
    finally:
        conn.close()
    return [dict(row) for row in rows]


# ==================== ACCOUNTS ====================

def create_user(email: str, password_hash: str, display_name: Optional[str] = None) -> dict:
    """Store a dashboard account.

    Raises:
        ValueError: If the email is already registered
    """
    initialize_db()
    user = {
        "id": str(uuid.uuid4()),
        "email": email.strip().lower(),
        "display_name": display_name,
        "password_hash": password_hash,
        "created_at": _now_iso(),
    }

    conn = get_connection()
    try:
        conn.execute(
            """
            INSERT INTO app_users (id, email, display_name, password_hash, created_at)
            VALUES (:id, :email, :display_name, :password_hash, :created_at)
            """,
            user,
        )
        conn.commit()
    except sqlite3.IntegrityError as e:
        conn.rollback()
        raise ValueError(f"An account for {user['email']} already exists") from e
    finally:
        conn.close()
    return user


def get_user_by_email(email: str) -> Optional[dict]:
    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT id, email, display_name, password_hash FROM app_users WHERE email = ?",
            (email.strip().lower(),),
        ).fetchone()
    except sqlite3.OperationalError as e:
        logger.error(f"Database operation failed in get_user_by_email: {e}", exc_info=True)
        return None
    finally:
        conn.close()
    return dict(row) if row else None
