"""CSV bet import: parse, validate every row, then insert in batches.

Nothing is written unless every row validates. Batches are inserted in
order and the import stops at the first batch the storage layer rejects;
batches committed before that point stay committed.
"""

import io
import warnings
from typing import Callable, Optional

import pandas as pd

from . import db
from .config import CSV_IMPORT_BATCH_SIZE, DEFAULT_BATCH_SIZE, logger
from .validation import has_content, validate_rows


class CsvImportError(Exception):
    """Base class for import failures reported back to the uploader."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class MissingFileError(CsvImportError):
    def __init__(self, message: str = "Missing CSV file"):
        super().__init__(message)


class EmptyCsvError(CsvImportError):
    def __init__(self, message: str = "Empty CSV"):
        super().__init__(message)


class MalformedCsvError(CsvImportError):
    pass


class NoDataRowsError(CsvImportError):
    def __init__(self, message: str = "CSV without data rows"):
        super().__init__(message)


class CsvValidationError(CsvImportError):
    """One or more rows failed validation; carries every row diagnostic."""

    def __init__(self, errors: list[dict]):
        super().__init__("Invalid CSV data")
        self.errors = errors

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.errors}


class CsvStorageError(CsvImportError):
    """The storage layer rejected a batch. Earlier batches are not rolled back."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None, hint: Optional[str] = None):
        super().__init__(message)
        self.details = details
        self.hint = hint

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        if self.hint is not None:
            body["hint"] = self.hint
        return body


def parse_csv_text(text: str) -> list[tuple[int, dict]]:
    """Parse CSV text with a header row into numbered, non-blank rows.

    Every cell is kept as text. Blank rows are dropped before numbering.
    Row numbers count the header as row 1, so the first non-blank data row is
    row 2.

    Args:
        text: Raw CSV content

    Returns:
        List of (row_number, {header: cell}) for rows with any content

    Raises:
        EmptyCsvError: If the text is blank
        MalformedCsvError: If pandas cannot parse the text or a row has more
            cells than the header

    Examples:
        >>> parse_csv_text("stake,odds\\n10,1.9\\n,\\n5,2.1\\n")
        [(2, {'stake': '10', 'odds': '1.9'}), (3, {'stake': '5', 'odds': '2.1'})]
    """
    if text is None or not text.strip():
        raise EmptyCsvError()

    text = text.lstrip("\ufeff")

    try:
        with warnings.catch_warnings():
            # pandas only warns when it drops cells beyond the header
            warnings.simplefilter("error", pd.errors.ParserWarning)
            frame = pd.read_csv(
                io.StringIO(text),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=False,
                index_col=False,
            )
    except pd.errors.EmptyDataError as e:
        raise EmptyCsvError() from e
    except (pd.errors.ParserError, pd.errors.ParserWarning, ValueError) as e:
        raise MalformedCsvError(f"Unable to parse CSV: {e}") from e

    frame.columns = [str(column).strip() for column in frame.columns]
    frame = frame.fillna("")

    records = [record for record in frame.to_dict(orient="records") if has_content(record)]
    return [(position + 2, record) for position, record in enumerate(records)]


def chunk(items: list, size: int) -> list[list]:
    """Split items into consecutive lists of at most ``size`` elements.

    Examples:
        >>> chunk([1, 2, 3, 4, 5], 2)
        [[1, 2], [3, 4], [5]]
    """
    return [items[start:start + size] for start in range(0, len(items), size)]


def import_csv(
    text: str,
    insert_batch: Optional[Callable[[list[dict]], int]] = None,
    batch_size: Optional[int] = None,
) -> int:
    """Validate a CSV export of bets and store it.

    Args:
        text: CSV content with a header row
        insert_batch: Storage call for one batch (default: db.insert_bets_batch)
        batch_size: Rows per insert call (default: CSV_IMPORT_BATCH_SIZE);
            non-positive values fall back to the default

    Returns:
        Number of imported bets

    Raises:
        EmptyCsvError, MalformedCsvError, NoDataRowsError: Input problems
        CsvValidationError: One or more rows are invalid; nothing was inserted
        CsvStorageError: A batch insert failed; earlier batches stay stored

    Examples:
        >>> import_csv(
        ...     "bankroll_id,stake,odds,placed_at\\n"
        ...     "11111111-1111-1111-1111-111111111111,10,1.9,2024-01-01T10:00:00Z\\n"
        ... )
        1
    """
    insert_batch = insert_batch or db.insert_bets_batch
    size = batch_size if batch_size and batch_size > 0 else (CSV_IMPORT_BATCH_SIZE or DEFAULT_BATCH_SIZE)

    rows = parse_csv_text(text)
    if not rows:
        raise NoDataRowsError()

    payloads, errors = validate_rows(rows)
    if errors:
        raise CsvValidationError(errors)

    committed = 0
    for batch in chunk(payloads, size):
        try:
            insert_batch(batch)
        except db.StorageError as e:
            logger.error(
                f"CSV import stopped after {committed} of {len(payloads)} rows: {e.message}"
            )
            raise CsvStorageError(e.message, details=e.details, hint=e.hint) from e
        committed += len(batch)

    logger.info(f"Imported {committed} bets from CSV in batches of {size}")
    return committed
