"""Typed failures raised by the doorcheck core.

Row-level import problems and "already admitted" scans are not errors and
never show up here. Everything in this module is meant to reach the caller
(and from there the HTTP layer) with a message a person can act on.
"""


class DoorcheckError(Exception):
    """Base class for all doorcheck failures."""


class StorageError(DoorcheckError):
    """The durable store could not be read from or written to."""

    def __init__(self, operation: str, key: str, cause: Exception | None = None):
        self.operation = operation
        self.key = key
        self.cause = cause
        super().__init__(f"Storage {operation} failed for key {key!r}: {cause}")


IMPORT_HINTS = {
    "invalid_source": (
        "Use a Google Sheets URL such as "
        "https://docs.google.com/spreadsheets/d/SPREADSHEET_ID/edit, "
        "or the spreadsheet ID itself."
    ),
    "timeout": "Check your internet connection and try again.",
    "unreachable": (
        "Make sure the sheet is shared as 'Anyone with the link' (Viewer) "
        "and that the device is online."
    ),
    "access_denied": (
        "Open the sheet, click Share, change access to 'Anyone with the link' "
        "and set the permission to Viewer."
    ),
    "not_found": "Check that the URL is complete and the sheet has not been deleted.",
    "http_error": "Verify the URL and the sheet's sharing permissions.",
    "empty_source": "Add a header row and at least one attendee row to the sheet.",
    "too_few_rows": "The sheet must have a header row and at least one data row.",
    "missing_column": (
        "Add the missing column: a Name (or First Name and Last Name), an Email "
        "and a Student ID or Grade column are required."
    ),
    "no_valid_rows": (
        "Every row needs a name, a valid email address and a student ID."
    ),
}


class RosterImportError(DoorcheckError):
    """A roster could not be imported.

    Attributes:
        kind: Machine-readable failure kind, one of the keys of IMPORT_HINTS.
        hint: Remediation text for the organizer.
    """

    def __init__(self, kind: str, message: str):
        self.kind = kind
        self.hint = IMPORT_HINTS.get(kind, "")
        super().__init__(message)

    @property
    def is_transport(self) -> bool:
        return self.kind in {"timeout", "unreachable", "access_denied", "not_found", "http_error"}


class ValidationCommitError(DoorcheckError):
    """Persisting a validation failed. The scan may be retried.

    ``ledger_committed`` tells whether the shared ledger write landed before
    the failure (only the local roster copy is stale in that case).
    """

    retryable = True

    def __init__(self, message: str, ledger_committed: bool = False):
        self.ledger_committed = ledger_committed
        super().__init__(message)


class ShareError(DoorcheckError):
    """An event bundle could not be stored for sharing."""


class LoadError(DoorcheckError):
    """A share code could not be turned back into an event.

    Kinds: ``not_found`` (no bundle under that code) and ``unsupported``
    (bundle format or version this build cannot read).
    """

    def __init__(self, kind: str, message: str):
        self.kind = kind
        super().__init__(message)


class UnknownEventError(DoorcheckError):
    """No event with the given id exists on this installation."""


class UnknownAttendeeError(DoorcheckError):
    """No attendee with the given id exists in the event roster."""
