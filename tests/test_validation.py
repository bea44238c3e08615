"""Tests for betledger/validation.py.

Tests cover:
- to_bet_payload() rule order and user-facing messages
- Column aliases and optional field handling
- parse_tags() and has_content()
- validate_rows() aggregation and logging
"""

import logging

import pytest

from betledger.validation import (
    RowValidationError,
    has_content,
    parse_tags,
    to_bet_payload,
    validate_rows,
)

BANKROLL_ID = "11111111-1111-1111-1111-111111111111"
OTHER_ID = "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee"


def make_row(**overrides):
    row = {
        "bankroll_id": BANKROLL_ID,
        "stake": "10",
        "odds": "1.9",
        "placed_at": "2024-01-01T10:00:00Z",
    }
    row.update(overrides)
    return row


@pytest.mark.unit
class TestRequiredFields:
    """Tests for the four required columns."""

    def test_minimal_row(self):
        """Test a row with only required fields yields exactly those keys."""
        payload = to_bet_payload(make_row())
        assert payload == {
            "bankroll_id": BANKROLL_ID,
            "stake": 10.0,
            "odds": 1.9,
            "placed_at": "2024-01-01T10:00:00.000Z",
        }

    def test_bankroll_id_must_be_uuid(self):
        """Test a non-UUID bankroll id is rejected."""
        with pytest.raises(RowValidationError, match="bankroll_id must be a valid UUID"):
            to_bet_payload(make_row(bankroll_id="bankroll-1"))

    def test_missing_bankroll_id(self):
        """Test a row without a bankroll column is rejected."""
        row = make_row()
        del row["bankroll_id"]
        with pytest.raises(RowValidationError, match="bankroll_id must be a valid UUID"):
            to_bet_payload(row)

    def test_stake_must_be_numeric(self):
        """Test non-numeric stakes are rejected."""
        with pytest.raises(RowValidationError, match="stake must be a numeric value"):
            to_bet_payload(make_row(stake="abc"))

    def test_empty_stake_is_rejected(self):
        """Test an empty stake cell is not read as zero."""
        with pytest.raises(RowValidationError, match="stake must be a numeric value"):
            to_bet_payload(make_row(stake="  "))

    def test_infinite_odds_are_rejected(self):
        """Test non-finite odds are rejected."""
        with pytest.raises(RowValidationError, match="odds must be a numeric value"):
            to_bet_payload(make_row(odds="Infinity"))

    def test_invalid_date(self):
        """Test an impossible calendar date is rejected."""
        with pytest.raises(RowValidationError, match="placed_at must be a valid ISO date"):
            to_bet_payload(make_row(placed_at="2024-13-01"))

    @pytest.mark.parametrize("stake, odds", [("0", "1.9"), ("-5", "1.9"), ("10", "0"), ("10", "-110")])
    def test_stake_and_odds_are_not_range_checked(self, stake, odds):
        """Test import accepts any finite stake and odds, including <= 0."""
        payload = to_bet_payload(make_row(stake=stake, odds=odds))
        assert payload["stake"] == float(stake)
        assert payload["odds"] == float(odds)

    @pytest.mark.parametrize("placed_at", ["now", "today", "tomorrow", "Today"])
    def test_relative_date_words_are_rejected(self, placed_at):
        """Test relative words are not read as the current time."""
        with pytest.raises(RowValidationError, match="placed_at must be a valid ISO date"):
            to_bet_payload(make_row(placed_at=placed_at))

    def test_date_with_offset_is_normalized_to_utc(self):
        """Test offsets are converted to UTC."""
        payload = to_bet_payload(make_row(placed_at="2024-01-01T12:30:00+02:00"))
        assert payload["placed_at"] == "2024-01-01T10:30:00.000Z"

    def test_first_failing_rule_wins(self):
        """Test bankroll_id is checked before stake."""
        with pytest.raises(RowValidationError) as exc_info:
            to_bet_payload(make_row(bankroll_id="x", stake="abc"))
        assert str(exc_info.value) == "bankroll_id must be a valid UUID"

    def test_uppercase_uuid_accepted(self):
        """Test UUID matching is case-insensitive."""
        payload = to_bet_payload(make_row(bankroll_id=OTHER_ID.upper()))
        assert payload["bankroll_id"] == OTHER_ID.upper()


@pytest.mark.unit
class TestOptionalFields:
    """Tests for optional columns."""

    def test_status_is_normalized(self):
        """Test status is lower-cased with spaces and hyphens as underscores."""
        assert to_bet_payload(make_row(status=" Cashed Out "))["status"] == "cashed_out"
        assert to_bet_payload(make_row(status="cashed-out"))["status"] == "cashed_out"

    def test_unknown_status(self):
        """Test the raw value appears in the message."""
        with pytest.raises(RowValidationError, match="Invalid status: maybe"):
            to_bet_payload(make_row(status="maybe"))

    def test_empty_status_is_omitted(self):
        """Test an empty status leaves the storage default in charge."""
        assert "status" not in to_bet_payload(make_row(status=""))

    def test_wager_type(self):
        """Test wager_type is accepted case-insensitively."""
        assert to_bet_payload(make_row(wager_type="LIVE"))["bet_type"] == "live"

    def test_unknown_wager_type(self):
        """Test unknown bet types are rejected."""
        with pytest.raises(RowValidationError, match="Invalid wager_type: teaser"):
            to_bet_payload(make_row(wager_type="teaser"))

    def test_numeric_optionals(self):
        """Test probability and result amount are parsed."""
        payload = to_bet_payload(make_row(probability="0.52", result_amount="-10"))
        assert payload["implied_probability"] == 0.52
        assert payload["result_amount"] == -10.0

    def test_invalid_numeric_optional(self):
        """Test non-numeric optional numbers report the raw value."""
        with pytest.raises(RowValidationError, match="Invalid numeric value: n/a"):
            to_bet_payload(make_row(result_amount="n/a"))

    def test_empty_numeric_optional_is_omitted(self):
        """Test empty optional numbers are left out."""
        payload = to_bet_payload(make_row(probability="", result_amount=" "))
        assert "implied_probability" not in payload
        assert "result_amount" not in payload

    def test_notes_are_trimmed(self):
        """Test notes are trimmed and blank notes omitted."""
        assert to_bet_payload(make_row(notes="  derby  "))["notes"] == "derby"
        assert "notes" not in to_bet_payload(make_row(notes="   "))

    def test_reference_ids(self):
        """Test reference UUID columns are validated and kept."""
        payload = to_bet_payload(make_row(bookmaker_id=OTHER_ID, event_id=""))
        assert payload["bookmaker_id"] == OTHER_ID
        assert "event_id" not in payload

    def test_invalid_reference_id(self):
        """Test the field name appears in the message."""
        with pytest.raises(RowValidationError, match="market_id must be a valid UUID"):
            to_bet_payload(make_row(market_id="42"))

    def test_incoming_id(self):
        """Test a supplied bet id is kept."""
        assert to_bet_payload(make_row(id=OTHER_ID))["id"] == OTHER_ID

    def test_invalid_incoming_id(self):
        """Test a malformed bet id is rejected."""
        with pytest.raises(RowValidationError, match="id must be a valid UUID"):
            to_bet_payload(make_row(id="7"))

    def test_tags(self):
        """Test tags are split and empty tags omitted."""
        assert to_bet_payload(make_row(tags="value|live"))["tags"] == ["value", "live"]
        assert "tags" not in to_bet_payload(make_row(tags=" | ; "))


@pytest.mark.unit
class TestColumnAliases:
    """Tests for alternate header spellings."""

    def test_camel_case_headers(self):
        """Test camelCase spellings are accepted."""
        row = {
            "bankrollId": BANKROLL_ID,
            "stake": "10",
            "odds": "2",
            "placedAt": "2024-01-01",
            "betType": "multi",
            "impliedProbability": "0.5",
            "resultAmount": "10",
            "bookmakerId": OTHER_ID,
            "Tags": "a",
        }
        payload = to_bet_payload(row)
        assert payload["bankroll_id"] == BANKROLL_ID
        assert payload["placed_at"] == "2024-01-01T00:00:00.000Z"
        assert payload["bet_type"] == "multi"
        assert payload["implied_probability"] == 0.5
        assert payload["result_amount"] == 10.0
        assert payload["bookmaker_id"] == OTHER_ID
        assert payload["tags"] == ["a"]

    def test_first_present_alias_wins_even_if_empty(self):
        """Test wager_type shadows bet_type when both columns exist."""
        payload = to_bet_payload(make_row(wager_type="", bet_type="live"))
        assert "bet_type" not in payload

    def test_parlay_alias(self):
        """Test 'parlay' is read as a multi bet."""
        assert to_bet_payload(make_row(bet_type="Parlay"))["bet_type"] == "multi"


@pytest.mark.unit
class TestParseTags:
    """Tests for parse_tags()."""

    def test_mixed_separators(self):
        assert parse_tags("value| live ;;tennis,value") == ["value", "live", "tennis", "value"]

    def test_empty(self):
        assert parse_tags("") == []
        assert parse_tags(None) == []


@pytest.mark.unit
class TestHasContent:
    """Tests for has_content()."""

    def test_blank_row(self):
        assert has_content({"a": "", "b": "  ", "c": None}) is False

    def test_row_with_value(self):
        assert has_content({"a": "", "b": "x"}) is True


@pytest.mark.unit
class TestValidateRows:
    """Tests for validate_rows() aggregation."""

    def test_all_valid(self):
        """Test every row becomes a payload."""
        payloads, errors = validate_rows([(2, make_row()), (3, make_row(stake="5"))])
        assert errors == []
        assert [payload["stake"] for payload in payloads] == [10.0, 5.0]

    def test_collects_every_error(self):
        """Test every failing row is reported with its row number."""
        rows = [
            (2, make_row(stake="abc")),
            (3, make_row()),
            (5, make_row(odds="")),
        ]
        payloads, errors = validate_rows(rows)
        assert errors == [
            {"row": 2, "message": "stake must be a numeric value"},
            {"row": 5, "message": "odds must be a numeric value"},
        ]
        assert len(payloads) == 1

    def test_logs_warning_on_errors(self, caplog):
        """Test rejected rows are logged."""
        with caplog.at_level(logging.WARNING, logger="bet_ledger"):
            validate_rows([(2, make_row(stake="abc"))])
        assert "rejected 1 of 1 rows" in caplog.text
