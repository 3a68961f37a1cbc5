"""Translation of doorcheck failures into HTTP responses."""
import logging

from fastapi import HTTPException

from doorcheck.errors import (
    DoorcheckError,
    LoadError,
    RosterImportError,
    ShareError,
    StorageError,
    UnknownAttendeeError,
    UnknownEventError,
    ValidationCommitError,
)

logger = logging.getLogger(__name__)


def http_error(error: DoorcheckError) -> HTTPException:
    """Map a doorcheck failure to the HTTPException the routes raise."""
    if isinstance(error, (UnknownEventError, UnknownAttendeeError)):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, RosterImportError):
        if error.kind == "timeout":
            status = 504
        elif error.is_transport:
            status = 502
        else:
            status = 400
        return HTTPException(
            status_code=status,
            detail={"kind": error.kind, "message": str(error), "hint": error.hint},
        )
    if isinstance(error, LoadError):
        status = 404 if error.kind == "not_found" else 422
        return HTTPException(status_code=status, detail={"kind": error.kind, "message": str(error)})
    if isinstance(error, ValidationCommitError):
        return HTTPException(
            status_code=503,
            detail={
                "message": str(error),
                "retryable": error.retryable,
                "ledger_committed": error.ledger_committed,
            },
        )
    if isinstance(error, (StorageError, ShareError)):
        logger.error(f"Storage failure: {error}")
        return HTTPException(status_code=503, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
