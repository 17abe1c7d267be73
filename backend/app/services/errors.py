"""
Reservation error taxonomy.

Every expected business failure is a ReservationError carrying a stable
ErrorCode, a user-facing message and structured context. The HTTP boundary
maps codes to statuses through ERROR_HTTP_STATUS; nothing else inspects
subtypes.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Stable error codes exposed to API consumers"""
    INVALID_DATE = "INVALID_DATE"
    INVALID_DATE_FORMAT = "INVALID_DATE_FORMAT"
    RESOURCE_UNAVAILABLE = "RESOURCE_UNAVAILABLE"
    DATE_CONFLICT = "DATE_CONFLICT"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_HTTP_STATUS: Dict[ErrorCode, int] = {
    ErrorCode.INVALID_DATE: 400,
    ErrorCode.INVALID_DATE_FORMAT: 400,
    ErrorCode.RESOURCE_UNAVAILABLE: 409,
    ErrorCode.DATE_CONFLICT: 409,
    ErrorCode.INVALID_STATUS_TRANSITION: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INTERNAL_ERROR: 500,
}


class ReservationError(Exception):
    """
    Base class for reservation engine failures.

    Attributes:
        code: Stable error code
        message: Human-readable, actionable message
        context: Structured details (ids, dates) for clients and logs
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    @property
    def http_status(self) -> int:
        return ERROR_HTTP_STATUS[self.code]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the error body returned by the API"""
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value}, message={self.message})"


class InvalidDateError(ReservationError):
    """Interval violates a business rule (order, past check-in, stay length)"""
    code = ErrorCode.INVALID_DATE


class DateFormatError(InvalidDateError):
    """A check-in or check-out value could not be parsed"""
    code = ErrorCode.INVALID_DATE_FORMAT

    def __init__(self, field_name: str, value: Any):
        super().__init__(
            f"Invalid {field_name.replace('_', '-')} date format: {value!r}",
            {"field": field_name, "value": str(value)},
        )


class ResourceUnavailableError(ReservationError):
    """Resource does not exist, is inactive or is under maintenance"""
    code = ErrorCode.RESOURCE_UNAVAILABLE

    def __init__(self, resource_id: Any, reason: Optional[str] = None):
        super().__init__(
            reason or f"Resource {resource_id} is not available",
            {"resource_id": resource_id},
        )


class DateConflictError(ReservationError):
    """Candidate interval overlaps an active reservation of the same resource"""
    code = ErrorCode.DATE_CONFLICT


class InvalidStatusTransitionError(ReservationError):
    """Requested lifecycle transition is not in the transition table"""
    code = ErrorCode.INVALID_STATUS_TRANSITION

    def __init__(self, current_status: Any, requested_status: Any):
        current = getattr(current_status, "value", current_status)
        requested = getattr(requested_status, "value", requested_status)
        super().__init__(
            f"Cannot transition from {current} to {requested}",
            {"current_status": current, "requested_status": requested},
        )


class ValidationError(ReservationError):
    """Missing or malformed input"""
    code = ErrorCode.VALIDATION_ERROR


class NotFoundError(ReservationError):
    """Reservation, resource or occupant is absent"""
    code = ErrorCode.NOT_FOUND

    def __init__(self, entity: str, identifier: Any):
        super().__init__(f"{entity} not found", {"entity": entity, "id": identifier})


class InternalError(ReservationError):
    """Storage or transaction failure; reported generically"""
    code = ErrorCode.INTERNAL_ERROR


class TransactionTimeoutError(InternalError):
    """A unit of work exceeded its maximum duration and was rolled back"""

    def __init__(self, elapsed: float, limit: float):
        super().__init__(
            "The operation took too long and was rolled back",
            {"elapsed_seconds": round(elapsed, 3), "limit_seconds": limit},
        )
