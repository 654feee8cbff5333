from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

import pytz

from ..core.config import Settings
from ..core.exceptions import NotificationError
from ..models import Booking, Trip
from .email_service import EmailService

logger = logging.getLogger(__name__)

# Plain-text booking confirmation
BOOKING_TEMPLATE = (
    "Dear {passenger_name},\n"
    "\n"
    "Your bus ticket has been confirmed!\n"
    "\n"
    "Booking ID: {booking_id}\n"
    "Bus Number: {bus_number}\n"
    "Route: {origin} → {destination}\n"
    "Departure: {departure}\n"
    "Arrival: {arrival}\n"
    "Seats: {seats}\n"
    "Total Amount: {total_amount}\n"
    "Booked On: {booked_at}\n"
    "\n"
    "Please arrive at the bus stop 15 minutes before departure.\n"
    "\n"
    "Thank you for choosing BusBook!"
)


def trip_summary(trip: Trip) -> Dict[str, Any]:
    """Fields of a trip the confirmation needs"""
    return {
        "bus_number": trip.bus_number,
        "origin": trip.origin,
        "destination": trip.destination,
        "departs_at": trip.departs_at,
        "arrives_at": trip.arrives_at,
    }


class NotificationService:
    """Passenger notifications. Currently email-only."""

    def __init__(self, email: EmailService, *, currency: str = "NPR", timezone: str = "UTC"):
        self._email = email
        self.currency = currency
        self._tz = pytz.timezone(timezone)

    @classmethod
    def from_settings(cls, settings: Settings) -> "NotificationService":
        email = EmailService(
            settings.RESEND_API_KEY or None,
            sender=settings.EMAIL_FROM,
            api_base=settings.RESEND_API_URL,
            timeout=settings.EMAIL_TIMEOUT,
        )
        return cls(email, currency=settings.CURRENCY, timezone=settings.TIMEZONE)

    def _local(self, value: Optional[datetime]) -> str:
        if value is None:
            return "-"
        return pytz.utc.localize(value).astimezone(self._tz).strftime("%d %b %Y, %I:%M %p")

    def _money(self, amount: Decimal) -> str:
        return f"{self.currency} {Decimal(amount):.2f}"

    def render_confirmation(
        self,
        passenger_name: str,
        booking_id: str,
        trip: Dict[str, Any],
        seat_numbers: Iterable[int],
        total_amount: Decimal,
        booked_at: datetime,
    ) -> str:
        return BOOKING_TEMPLATE.format(
            passenger_name=passenger_name,
            booking_id=booking_id,
            bus_number=trip.get("bus_number", "-"),
            origin=trip.get("origin", "-"),
            destination=trip.get("destination", "-"),
            departure=self._local(trip.get("departs_at")),
            arrival=self._local(trip.get("arrives_at")),
            seats=", ".join(str(s) for s in seat_numbers),
            total_amount=self._money(total_amount),
            booked_at=self._local(booked_at),
        )

    async def send_booking_confirmation(
        self,
        passenger_email: str,
        passenger_name: str,
        booking_id: str,
        trip: Dict[str, Any],
        seat_numbers: Iterable[int],
        total_amount: Decimal,
        booked_at: datetime,
    ) -> None:
        """Email the passenger their confirmation.

        Raises:
            NotificationError: delivery failed. The booking itself is unaffected.
        """
        seats = list(seat_numbers)
        text = self.render_confirmation(
            passenger_name, booking_id, trip, seats, total_amount, booked_at
        )
        subject = f"Booking Confirmed - {booking_id}"
        try:
            await self._email.send([passenger_email], subject, text)
        except NotificationError:
            raise
        except Exception as exc:
            raise NotificationError(f"Unexpected email failure: {exc}", recipients=[passenger_email]) from exc

    async def notify_booking(self, booking: Booking, trip: Trip) -> None:
        """Convenience wrapper taking ORM objects"""
        await self.send_booking_confirmation(
            passenger_email=booking.passenger_email,
            passenger_name=booking.passenger_name,
            booking_id=booking.id,
            trip=trip_summary(trip),
            seat_numbers=booking.seat_numbers,
            total_amount=booking.total_amount,
            booked_at=booking.created_at,
        )
