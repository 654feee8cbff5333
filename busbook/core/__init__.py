from .base import BaseRepository, BaseService
from .exceptions import (
    BaseError,
    NotFoundError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    SeatConflictError,
    OversoldError,
    LockTimeoutError,
    PersistenceError,
    BusinessLogicError,
    ExternalServiceError,
    NotificationError,
)
from .config import Settings, get_settings

__all__ = [
    # Base classes
    "BaseRepository",
    "BaseService",

    # Exceptions
    "BaseError",
    "NotFoundError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "SeatConflictError",
    "OversoldError",
    "LockTimeoutError",
    "PersistenceError",
    "BusinessLogicError",
    "ExternalServiceError",
    "NotificationError",

    # Config
    "Settings",
    "get_settings"
]
