"""Result and error types returned by the booking core."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    VALIDATION_ERROR = "validation_error"
    INVALID_DATE = "invalid_date"
    INVALID_OR_EXPIRED_CODE = "invalid_or_expired_code"
    RATE_LIMITED = "rate_limited"
    LOCKED_OUT = "locked_out"
    SLOT_UNAVAILABLE = "slot_unavailable"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    INTERNAL_ERROR = "internal_error"


HTTP_STATUS = {
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.INVALID_DATE: 400,
    ErrorKind.INVALID_OR_EXPIRED_CODE: 400,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.LOCKED_OUT: 429,
    ErrorKind.SLOT_UNAVAILABLE: 409,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.INTERNAL_ERROR: 500,
}


@dataclass(frozen=True)
class Outcome:
    ok: bool
    error: Optional[ErrorKind] = None
    booking: Any = None
    retry_after: int = 0
    # finer reason for VALIDATION_ERROR, e.g. "invalid_phone"
    detail: Optional[str] = None

    @classmethod
    def success(cls, booking=None) -> "Outcome":
        return cls(ok=True, booking=booking)

    @classmethod
    def failure(cls, error: ErrorKind, retry_after: int = 0, detail: Optional[str] = None) -> "Outcome":
        return cls(ok=False, error=error, retry_after=retry_after, detail=detail)


class Rejected(Exception):
    """Raised inside a core operation to stop at the current step."""

    def __init__(self, error: ErrorKind, retry_after: int = 0, detail: Optional[str] = None):
        super().__init__(error.value if detail is None else f"{error.value}:{detail}")
        self.error = error
        self.retry_after = retry_after
        self.detail = detail

    def to_outcome(self) -> Outcome:
        return Outcome.failure(self.error, retry_after=self.retry_after, detail=self.detail)


class CancellationStatus(str, Enum):
    CANCELLED = "cancelled"
    NOT_CANCELLABLE = "not_cancellable"
    UNRECOGNIZED = "unrecognized"
    FAILED = "failed"


@dataclass(frozen=True)
class CancellationOutcome:
    status: CancellationStatus
    booking: Any = None

    @property
    def cancelled(self) -> bool:
        return self.status is CancellationStatus.CANCELLED
