"""Typed outcomes for booking, review and payment operations.

Expected business-rule failures are returned as :class:`Failure` values
instead of raised, so callers can branch on ``result.ok`` without a
try/except around every call. Infrastructure errors still propagate.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_TRANSITION = "invalid_transition"
    NOT_ELIGIBLE = "not_eligible"
    ALREADY_PROCESSED = "already_processed"
    GATEWAY_ERROR = "gateway_error"
    INVALID_RATING = "invalid_rating"
    INVALID_BOOKING_TIME = "invalid_booking_time"
    SLOT_UNAVAILABLE = "slot_unavailable"


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    field_errors: Dict[str, Any] = field(default_factory=dict)
    ok: bool = field(default=False, init=False)


Result = Union[Success[T], Failure]


def not_found(what: str = "Booking", key: str = "booking_id") -> Failure:
    return Failure(ErrorKind.NOT_FOUND, f"{what} not found.", {key: "not_found"})


def unauthorized(message: str) -> Failure:
    return Failure(ErrorKind.UNAUTHORIZED, message)
