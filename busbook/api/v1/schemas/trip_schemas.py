from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, model_validator


class TripIn(BaseModel):
    """Schema for creating trips"""
    bus_number: str = Field(..., min_length=1, max_length=32)
    origin: str = Field(..., min_length=1, max_length=120)
    destination: str = Field(..., min_length=1, max_length=120)
    departs_at: datetime
    arrives_at: datetime
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    total_seats: int = Field(40, gt=0, le=100)
    is_uncertain: bool = False

    @model_validator(mode="after")
    def _arrival_after_departure(self):
        if self.arrives_at <= self.departs_at:
            raise ValueError("arrives_at must be after departs_at")
        return self


class TripUpdate(BaseModel):
    """Schema for administrative trip edits"""
    bus_number: Optional[str] = Field(None, min_length=1, max_length=32)
    origin: Optional[str] = Field(None, min_length=1, max_length=120)
    destination: Optional[str] = Field(None, min_length=1, max_length=120)
    departs_at: Optional[datetime] = None
    arrives_at: Optional[datetime] = None
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    total_seats: Optional[int] = Field(None, gt=0, le=100)
    is_uncertain: Optional[bool] = None


class TripOut(BaseModel):
    """Schema for trip responses"""
    id: int
    bus_number: str
    origin: str
    destination: str
    departs_at: datetime
    arrives_at: datetime
    duration: str
    price: Decimal
    total_seats: int
    available_seats: int
    is_uncertain: bool

    model_config = {
        "from_attributes": True,
    }


class SeatMapOut(BaseModel):
    """Seat availability for one trip"""
    trip_id: int
    total_seats: int
    available_seats: List[int]
    booked_seats: List[int]


class ReconcileOut(BaseModel):
    trip_id: int
    available_seats: int
