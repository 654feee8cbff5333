from typing import Any, Optional, Dict, Iterable, List


class BaseError(Exception):
    """Base exception class for the application"""

    def __init__(
        self,
        message: str = "An error occurred",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(BaseError):
    """Exception raised when an entity is not found"""

    def __init__(self, entity: str, id: Any):
        super().__init__(
            message=f"{entity} with id {id} not found",
            status_code=404,
            details={"entity": entity, "id": id}
        )


class ValidationError(BaseError):
    """Exception raised for validation errors. Nothing has been written."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            status_code=400,
            details=details
        )


class AuthenticationError(BaseError):
    """Exception raised for authentication errors"""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message=message, status_code=401)


class AuthorizationError(BaseError):
    """Exception raised for authorization errors"""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message=message, status_code=403)


class ConflictError(BaseError):
    """Exception raised for conflict errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=409, details=details)


class SeatConflictError(ConflictError):
    """Requested seats are already held by a confirmed booking.

    Carries the refreshed availability so the caller can re-render the seat
    map without another round trip.
    """

    def __init__(self, trip_id: int, taken: Iterable[int], available: Iterable[int]):
        self.taken = sorted(taken)
        self.available = sorted(available)
        seats = ", ".join(str(s) for s in self.taken)
        super().__init__(
            f"Seats no longer available: {seats}",
            details={
                "trip_id": trip_id,
                "taken_seats": self.taken,
                "available_seats": self.available,
                "stage": "selecting",
            }
        )


class OversoldError(ConflictError):
    """The ledger refused a reservation larger than the remaining seats"""

    def __init__(self, trip_id: int, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Seats no longer available: requested {requested}, {available} left",
            details={
                "trip_id": trip_id,
                "requested": requested,
                "available": available,
                "stage": "selecting",
            }
        )


class LockTimeoutError(ConflictError):
    """Another booking for the same trip held the seat lock for too long"""

    def __init__(self, trip_id: int):
        super().__init__(
            "Another user is currently booking seats on this trip, please retry in a moment",
            details={"trip_id": trip_id}
        )


class PersistenceError(BaseError):
    """The booking could not be stored. Any reservation has been released."""

    def __init__(self, message: str, trip_id: Optional[int] = None):
        details: Dict[str, Any] = {"stage": "failed"}
        if trip_id is not None:
            details["trip_id"] = trip_id
        super().__init__(message=message, status_code=500, details=details)


class BusinessLogicError(BaseError):
    """Exception raised for business logic violations"""

    def __init__(self, message: str, rule: Optional[str] = None):
        details = {"rule": rule} if rule else {}
        super().__init__(
            message=message,
            status_code=422,
            details=details
        )


class ExternalServiceError(BaseError):
    """Exception raised when external service fails"""

    def __init__(self, service: str, message: str):
        super().__init__(
            message=f"External service error: {message}",
            status_code=503,
            details={"service": service}
        )


class NotificationError(ExternalServiceError):
    """Booking confirmation could not be delivered"""

    def __init__(self, message: str, recipients: Optional[List[str]] = None):
        super().__init__("email", message)
        if recipients:
            self.details["recipients"] = recipients
