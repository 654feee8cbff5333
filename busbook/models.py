import uuid

from sqlalchemy import (
    String, Integer, ForeignKey, Numeric, DateTime, Boolean, JSON,
    CheckConstraint, Index, func
)
from sqlalchemy.orm import mapped_column, relationship, DeclarativeBase


# Helper to generate a booking reference
def new_booking_reference() -> str:
    """Return random 10-char upper-case booking reference."""
    return uuid.uuid4().hex[:10].upper()


class Base(DeclarativeBase): ...


BOOKING_CONFIRMED = "confirmed"
BOOKING_CANCELLED = "cancelled"


# ---------- Trips (one scheduled bus departure) ----------
class Trip(Base):
    __tablename__ = "trips"
    id              = mapped_column(Integer, primary_key=True)
    bus_number      = mapped_column(String(32), nullable=False)
    origin          = mapped_column(String(120), nullable=False)
    destination     = mapped_column(String(120), nullable=False)
    departs_at      = mapped_column(DateTime, nullable=False)   # naive UTC
    arrives_at      = mapped_column(DateTime, nullable=False)   # naive UTC
    price           = mapped_column(Numeric(10, 2), nullable=False, comment="Price per seat")
    total_seats     = mapped_column(Integer, nullable=False)
    # Denormalised: total_seats minus seats held by confirmed bookings.
    # Written only by the inventory ledger.
    available_seats = mapped_column(Integer, nullable=False)
    is_uncertain    = mapped_column(Boolean, default=False, nullable=False, comment="Departure not guaranteed")
    created         = mapped_column(DateTime, server_default=func.now())

    bookings = relationship("Booking", back_populates="trip", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("total_seats > 0", name="ck_trip_total_positive"),
        CheckConstraint(
            "available_seats >= 0 AND available_seats <= total_seats",
            name="ck_trip_available_range",
        ),
        CheckConstraint("arrives_at > departs_at", name="ck_trip_arrival_after_departure"),
        Index("ix_trip_route_departure", "origin", "destination", "departs_at"),
    )

    @property
    def duration(self) -> str:
        """Travel time as ``"2h 30m"``."""
        minutes = int((self.arrives_at - self.departs_at).total_seconds() // 60)
        hours, minutes = divmod(minutes, 60)
        if hours and minutes:
            return f"{hours}h {minutes}m"
        if hours:
            return f"{hours}h"
        return f"{minutes}m"


# ---------- Bookings ----------
class Booking(Base):
    __tablename__ = "bookings"
    id              = mapped_column(String(16), primary_key=True, default=new_booking_reference)
    trip_id         = mapped_column(ForeignKey("trips.id"), nullable=False)
    owner_id        = mapped_column(String(64), nullable=True, comment="JWT subject of the user who booked")
    passenger_name  = mapped_column(String(120), nullable=False)
    passenger_email = mapped_column(String(254), nullable=False)
    passenger_phone = mapped_column(String(32), nullable=False)
    seat_numbers    = mapped_column(JSON, nullable=False, comment="Sorted list of seat numbers")
    total_amount    = mapped_column(Numeric(10, 2), nullable=False)
    status          = mapped_column(String(16), default=BOOKING_CONFIRMED, nullable=False, comment="confirmed | cancelled")
    created_at      = mapped_column(DateTime, server_default=func.now(), nullable=False)
    cancelled_at    = mapped_column(DateTime, nullable=True)

    trip = relationship("Trip", back_populates="bookings")

    # Seat map rebuilds read every confirmed booking of a trip
    __table_args__ = (
        CheckConstraint("status IN ('confirmed', 'cancelled')", name="ck_booking_status"),
        Index("ix_booking_trip_status", "trip_id", "status"),
        Index("ix_booking_owner_created", "owner_id", "created_at"),
    )

    @property
    def seat_count(self) -> int:
        return len(self.seat_numbers or [])

    @property
    def is_confirmed(self) -> bool:
        return self.status == BOOKING_CONFIRMED
