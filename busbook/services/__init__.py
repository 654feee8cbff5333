from .ledger_service import InventoryLedger
from .booking_service import (
    BookingService, BookingRequest, BookingOutcome, BookingStage, RequestContext
)
from .trip_service import TripService
from .email_service import EmailService
from .notification_service import NotificationService

__all__ = [
    "InventoryLedger",
    "BookingService",
    "BookingRequest",
    "BookingOutcome",
    "BookingStage",
    "RequestContext",
    "TripService",
    "EmailService",
    "NotificationService",
]
