from typing import Dict
from fastapi import HTTPException, status
import logging

from ..services.results import ErrorKind, Failure

logger = logging.getLogger(__name__)


class ConflictError(Exception):
    """A conditional write matched no row because the stored state moved on."""


class SlotTakenError(ConflictError):
    """Another active booking already holds this service and time."""


STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_TRANSITION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_ELIGIBLE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.ALREADY_PROCESSED: status.HTTP_409_CONFLICT,
    ErrorKind.GATEWAY_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.INVALID_RATING: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INVALID_BOOKING_TIME: status.HTTP_400_BAD_REQUEST,
    ErrorKind.SLOT_UNAVAILABLE: status.HTTP_409_CONFLICT,
}


def error_response(
    message: str,
    field_errors: Dict[str, str],
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> HTTPException:
    """Return an HTTPException with a consistent structure and log details."""
    logger.error("%s %s", message, field_errors)
    detail = {"message": message, "field_errors": field_errors}
    return HTTPException(status_code=code, detail=detail)


def failure_response(failure: Failure) -> HTTPException:
    """Translate a business-rule ``Failure`` into the API error shape."""
    field_errors = dict(failure.field_errors)
    field_errors.setdefault("code", failure.kind.value)
    return error_response(failure.message, field_errors, STATUS_BY_KIND[failure.kind])
