"""Client for the CSV import endpoint, used by the dashboard upload card."""

from typing import Optional, Union

import requests

from .config import IMPORT_API_URL, logger


class ImportClientError(Exception):
    """Raised when the import endpoint cannot be reached or rejects the file."""

    def __init__(self, message: str, status_code: Optional[int] = None, details=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


def upload_csv(
    file_name: str,
    content: Union[bytes, str],
    url: Optional[str] = IMPORT_API_URL,
) -> dict:
    """Send a CSV file to the import endpoint.

    Args:
        file_name: Name reported in the multipart upload
        content: File content; text is sent UTF-8 encoded
        url: Endpoint URL (default: IMPORT_API_URL)

    Returns:
        Response body, e.g. {"imported": 12}

    Raises:
        ImportClientError: If the URL is unset, the request fails, or the
            endpoint answers with a non-2xx status. ``details`` holds the row
            diagnostics for validation failures.

    Examples:
        >>> result = upload_csv("bets.csv", open("bets.csv", "rb").read())
        >>> print(f"Imported {result['imported']} bets")
    """
    if not url:
        raise ImportClientError("IMPORT_API_URL is not set. Please set it in your .env file.")

    if isinstance(content, str):
        content = content.encode("utf-8")

    try:
        response = requests.post(
            url,
            files={"file": (file_name, content, "text/csv")},
            timeout=30,
        )
    except requests.exceptions.Timeout as e:
        raise ImportClientError(f"Import request timed out: {e}") from e
    except requests.exceptions.RequestException as e:
        raise ImportClientError(f"Import service unreachable: {e}") from e

    try:
        body = response.json()
    except ValueError:
        body = {"error": response.text}

    if not 200 <= response.status_code < 300:
        message = body.get("error") if isinstance(body, dict) else None
        details = body.get("details") if isinstance(body, dict) else None
        logger.warning(f"CSV upload of {file_name} failed with status {response.status_code}")
        raise ImportClientError(
            message or f"Import failed with status {response.status_code}",
            status_code=response.status_code,
            details=details,
        )

    return body


def format_import_errors(details, limit: int = 10) -> list[str]:
    """Render import diagnostics as display lines.

    Row diagnostics become "Row N: message"; a plain string (storage details)
    is returned as a single line. At most ``limit`` rows are listed.

    Examples:
        >>> format_import_errors([{"row": 2, "message": "stake must be a numeric value"}])
        ['Row 2: stake must be a numeric value']
        >>> format_import_errors(None)
        []
    """
    if not details:
        return []
    if isinstance(details, str):
        return [details]

    lines = [f"Row {item.get('row')}: {item.get('message')}" for item in details[:limit]]
    if len(details) > limit:
        lines.append(f"... and {len(details) - limit} more rows")
    return lines
