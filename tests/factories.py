from datetime import datetime, timedelta
from decimal import Decimal

from busbook.models import Trip
from busbook.services import BookingRequest


async def make_trip(session, *, total_seats=40, available_seats=None, price="500", departs_in=timedelta(days=1)) -> Trip:
    departs_at = datetime.utcnow().replace(microsecond=0) + departs_in
    trip = Trip(
        bus_number="KTM-001",
        origin="Kathmandu",
        destination="Palung",
        departs_at=departs_at,
        arrives_at=departs_at + timedelta(hours=2, minutes=30),
        price=Decimal(price),
        total_seats=total_seats,
        available_seats=total_seats if available_seats is None else available_seats,
    )
    session.add(trip)
    await session.commit()
    return trip


def booking_request(trip_id, seats, **overrides) -> BookingRequest:
    data = {
        "trip_id": trip_id,
        "seat_numbers": list(seats),
        "passenger_name": "Ram Shrestha",
        "passenger_email": "ram@example.com",
        "passenger_phone": "+977 9841234567",
    }
    data.update(overrides)
    return BookingRequest(**data)
