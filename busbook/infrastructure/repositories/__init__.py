from .trip_repository import TripRepository
from .booking_repository import BookingRepository

__all__ = [
    "TripRepository",
    "BookingRepository",
]
