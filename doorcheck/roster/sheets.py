"""Fetch roster tables from Google Sheets CSV exports.

Sheets must be shared as "Anyone with the link can view"; the fetch is a
plain unauthenticated GET of the CSV export URL.
"""
import logging
import re

import httpx

from doorcheck.core.config import settings
from doorcheck.errors import RosterImportError

logger = logging.getLogger(__name__)

EXPORT_URL = "https://docs.google.com/spreadsheets/d/{sheet_id}/export?format=csv&gid={gid}"

BARE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{20,}$")
ID_PATTERNS = [
    re.compile(r"/spreadsheets/d/([a-zA-Z0-9_-]+)"),  # .../spreadsheets/d/ID/edit, /u/0/ variants
    re.compile(r"/d/([a-zA-Z0-9_-]+)"),
    re.compile(r"spreadsheets/([a-zA-Z0-9_-]+)"),
]
GID_PATTERN = re.compile(r"[#&?]gid=([0-9]+)")

ACCEPT_HEADER = "text/csv,text/plain,text/*"


def to_csv_export_url(sheet_url: str) -> str:
    """
    Convert a Google Sheets URL (or bare spreadsheet id) to its CSV export URL.

    Supported inputs:
        https://docs.google.com/spreadsheets/d/ID/edit
        https://docs.google.com/spreadsheets/d/ID/edit#gid=123
        https://docs.google.com/spreadsheets/u/1/d/ID/edit
        ID
    """
    cleaned = (sheet_url or "").strip()
    if not cleaned:
        raise RosterImportError("invalid_source", "Please provide a Google Sheets URL.")

    sheet_id = None
    if BARE_ID_PATTERN.match(cleaned):
        sheet_id = cleaned
    elif "docs.google.com" in cleaned or "sheets.google.com" in cleaned:
        for pattern in ID_PATTERNS:
            match = pattern.search(cleaned)
            if match:
                sheet_id = match.group(1)
                break

    if not sheet_id:
        raise RosterImportError(
            "invalid_source",
            f"Could not extract a spreadsheet ID from {cleaned!r}.",
        )

    gid_match = GID_PATTERN.search(cleaned)
    gid = gid_match.group(1) if gid_match else "0"

    return EXPORT_URL.format(sheet_id=sheet_id, gid=gid)


def fetch_roster_csv(
    sheet_url: str,
    client: httpx.Client | None = None,
    timeout: float | None = None,
) -> str:
    """
    Download the CSV export of a sheet.

    Transport failures are mapped to RosterImportError kinds so the
    organizer gets the right remediation: timeout, unreachable,
    access_denied (401/403), not_found (404), http_error (anything else),
    empty_source (200 with no content).
    """
    csv_url = to_csv_export_url(sheet_url)
    timeout = timeout if timeout is not None else settings.import_timeout_seconds
    logger.info(f"Fetching roster CSV from {csv_url}")

    own_client = client is None
    client = client or httpx.Client(timeout=httpx.Timeout(timeout), follow_redirects=True)
    try:
        response = client.get(csv_url, headers={"Accept": ACCEPT_HEADER}, timeout=timeout)
    except httpx.TimeoutException as e:
        raise RosterImportError(
            "timeout", f"Request timed out after {timeout:g} seconds."
        ) from e
    except httpx.RequestError as e:
        raise RosterImportError(
            "unreachable", f"Unable to access the Google Sheet: {e}"
        ) from e
    finally:
        if own_client:
            client.close()

    status = response.status_code
    if status in (401, 403):
        raise RosterImportError("access_denied", f"Access denied (HTTP {status}).")
    if status == 404:
        raise RosterImportError("not_found", "Sheet not found (HTTP 404).")
    if status == 400 and "text/html" in response.headers.get("content-type", ""):
        raise RosterImportError(
            "http_error",
            "Invalid request (HTTP 400). The URL may be malformed or the sheet may not exist.",
        )
    if status >= 400:
        raise RosterImportError("http_error", f"Failed to fetch data (HTTP {status}).")

    text = response.text
    if not text.strip():
        raise RosterImportError(
            "empty_source", "The sheet appears to be empty or contains no data."
        )
    logger.debug(f"Roster CSV received: {text[:200]!r}")
    return text
