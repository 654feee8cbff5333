from .trip_schemas import TripIn, TripUpdate, TripOut, SeatMapOut, ReconcileOut
from .booking_schemas import BookingIn, BookingOut, BookingResult

__all__ = [
    "TripIn",
    "TripUpdate",
    "TripOut",
    "SeatMapOut",
    "ReconcileOut",
    "BookingIn",
    "BookingOut",
    "BookingResult",
]
