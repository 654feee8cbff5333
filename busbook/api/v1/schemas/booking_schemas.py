from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field

from .trip_schemas import TripOut


class BookingIn(BaseModel):
    """Schema for a booking attempt.

    Seat selection and contact details are checked by the booking service
    against the current seat map, so only shapes are enforced here.
    """
    trip_id: int = Field(..., gt=0)
    seat_numbers: List[int] = Field(default_factory=list, max_length=100)
    passenger_name: str = Field("", max_length=120)
    passenger_email: str = Field("", max_length=254)
    passenger_phone: str = Field("", max_length=32)


class BookingOut(BaseModel):
    """Schema for booking responses"""
    id: str
    trip_id: int
    passenger_name: str
    passenger_email: str
    passenger_phone: str
    seat_numbers: List[int]
    total_amount: Decimal
    status: str
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    trip: Optional[TripOut] = None

    model_config = {
        "from_attributes": True,
    }


class BookingResult(BaseModel):
    """Outcome of a booking or cancellation"""
    booking: BookingOut
    stage: str
    seats_left: int
    warnings: List[str] = []
