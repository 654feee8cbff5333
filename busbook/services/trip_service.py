import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Optional, List, Dict, Any

import pytz

from busbook.core import BaseService, NotFoundError, ValidationError, ConflictError
from busbook.infrastructure.repositories import TripRepository, BookingRepository
from busbook.locks import TripLockManager
from busbook.models import Trip
from busbook.services.ledger_service import InventoryLedger

logger = logging.getLogger(__name__)

TIME_OF_DAY = ("morning", "afternoon")

# Kathmandu -> Palung daily timetable: (bus number, local departure, uncertain)
DEFAULT_SCHEDULE = [
    ("KTM-001", time(6, 0), True),
    ("KTM-002", time(7, 0), False),
    ("KTM-003", time(8, 0), False),
    ("KTM-004", time(9, 0), False),
    ("KTM-005", time(10, 0), False),
    ("KTM-006", time(11, 0), False),
    ("KTM-007", time(12, 0), False),
    ("KTM-008", time(13, 0), False),
    ("KTM-009", time(14, 0), False),
    ("KTM-010", time(15, 0), False),
    ("KTM-011", time(16, 0), True),
]
DEFAULT_ORIGIN = "Kathmandu"
DEFAULT_DESTINATION = "Palung"
DEFAULT_DURATION = timedelta(hours=2, minutes=30)
DEFAULT_PRICE = Decimal("500")
DEFAULT_SEATS = 40

# Fields an administrator may edit directly; capacity goes through the ledger
EDITABLE_FIELDS = ("bus_number", "origin", "destination", "departs_at", "arrives_at", "price", "is_uncertain")


class TripService(BaseService):
    """Trip search and administration"""

    def __init__(
        self,
        session,
        locks: Optional[TripLockManager] = None,
        *,
        timezone: str = "UTC",
        trip_repo: Optional[TripRepository] = None,
        booking_repo: Optional[BookingRepository] = None,
    ):
        super().__init__(session)
        self.locks = locks
        self.tz = pytz.timezone(timezone)
        self.trip_repo = trip_repo or TripRepository(session)
        self.booking_repo = booking_repo or BookingRepository(session)
        self.ledger = InventoryLedger(session, self.trip_repo, self.booking_repo)

    # ------------------------------------------------------------------
    #  Time helpers (storage is naive UTC, people think in local time)
    # ------------------------------------------------------------------

    def to_utc(self, value: datetime) -> datetime:
        """Aware -> naive UTC; naive values are taken as local time"""
        if value.tzinfo is None:
            value = self.tz.localize(value)
        return value.astimezone(pytz.utc).replace(tzinfo=None)

    def to_local(self, value: datetime) -> datetime:
        return pytz.utc.localize(value).astimezone(self.tz)

    def _day_window(self, day: date):
        start = self.to_utc(datetime.combine(day, time.min))
        end = self.to_utc(datetime.combine(day + timedelta(days=1), time.min))
        return start, end

    # ------------------------------------------------------------------
    #  Search
    # ------------------------------------------------------------------

    async def search_trips(
        self,
        *,
        origin: Optional[str] = None,
        destination: Optional[str] = None,
        travel_date: Optional[date] = None,
        time_of_day: Optional[str] = None,
        only_available: bool = False,
        skip: int = 0,
        limit: int = 100
    ) -> List[Trip]:
        """Search trips; *time_of_day* splits the local day at noon"""
        if time_of_day and time_of_day not in TIME_OF_DAY:
            raise ValidationError("time_of_day must be 'morning' or 'afternoon'", field="time_of_day")

        departs_from = departs_to = None
        if travel_date:
            departs_from, departs_to = self._day_window(travel_date)

        trips = await self.trip_repo.search(
            origin=origin,
            destination=destination,
            departs_from=departs_from,
            departs_to=departs_to,
            only_available=only_available,
            skip=skip,
            limit=limit
        )

        if time_of_day == "morning":
            trips = [t for t in trips if self.to_local(t.departs_at).hour < 12]
        elif time_of_day == "afternoon":
            trips = [t for t in trips if self.to_local(t.departs_at).hour >= 12]

        logger.debug("Trip search %s -> %s on %s (%s): %s found",
                     origin, destination, travel_date, time_of_day, len(trips))
        return trips

    async def get_trip(self, trip_id: int) -> Trip:
        trip = await self.trip_repo.get_fresh(trip_id)
        if not trip:
            raise NotFoundError("Trip", trip_id)
        return trip

    # ------------------------------------------------------------------
    #  Administration
    # ------------------------------------------------------------------

    def _validate_schedule(self, departs_at: datetime, arrives_at: datetime) -> None:
        if arrives_at <= departs_at:
            raise ValidationError("Arrival must be after departure", field="arrives_at")

    def _validate_price(self, price: Decimal) -> None:
        if Decimal(price) <= 0:
            raise ValidationError("Price must be greater than 0", field="price")

    async def create_trip(
        self,
        *,
        bus_number: str,
        origin: str,
        destination: str,
        departs_at: datetime,
        arrives_at: datetime,
        price: Decimal,
        total_seats: int = DEFAULT_SEATS,
        is_uncertain: bool = False
    ) -> Trip:
        """Create trip with every seat available"""
        if total_seats <= 0:
            raise ValidationError("Total seats must be greater than 0", field="total_seats")
        self._validate_price(price)

        departs_at = self.to_utc(departs_at)
        arrives_at = self.to_utc(arrives_at)
        self._validate_schedule(departs_at, arrives_at)

        trip = await self.trip_repo.create(obj_in={
            "bus_number": bus_number.strip(),
            "origin": origin.strip(),
            "destination": destination.strip(),
            "departs_at": departs_at,
            "arrives_at": arrives_at,
            "price": Decimal(price),
            "total_seats": total_seats,
            "available_seats": total_seats,
            "is_uncertain": is_uncertain,
        })
        logger.info("Trip %s created: %s %s -> %s at %s",
                    trip.id, trip.bus_number, trip.origin, trip.destination, trip.departs_at)
        return trip

    async def update_trip(self, trip_id: int, changes: Dict[str, Any]) -> Trip:
        """Apply an administrative edit.

        A capacity change is routed through the ledger under the trip lock so
        it cannot interleave with a live booking, and re-derives the
        available seats from the confirmed bookings.
        """
        trip = await self.get_trip(trip_id)

        update_data = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS and v is not None}
        if "departs_at" in update_data:
            update_data["departs_at"] = self.to_utc(update_data["departs_at"])
        if "arrives_at" in update_data:
            update_data["arrives_at"] = self.to_utc(update_data["arrives_at"])
        if "price" in update_data:
            self._validate_price(update_data["price"])
        self._validate_schedule(
            update_data.get("departs_at", trip.departs_at),
            update_data.get("arrives_at", trip.arrives_at),
        )

        if update_data:
            await self.trip_repo.update(id=trip_id, obj_in=update_data)

        total_seats = changes.get("total_seats")
        if total_seats is not None and total_seats != trip.total_seats:
            if self.locks is None:
                raise RuntimeError("Capacity edits need a TripLockManager")
            async with self.locks.for_trip(trip_id):
                await self.ledger.resize(trip_id, total_seats)
                await self.session.commit()
        else:
            await self.session.commit()

        return await self.get_trip(trip_id)

    async def delete_trip(self, trip_id: int) -> bool:
        """Delete a trip that has no confirmed bookings"""
        await self.get_trip(trip_id)

        if await self.booking_repo.count_confirmed(trip_id) > 0:
            raise ConflictError("Cannot delete a trip with confirmed bookings")

        deleted = await self.trip_repo.delete(id=trip_id)
        await self.session.commit()
        logger.info("Trip %s deleted", trip_id)
        return deleted

    async def reconcile_trip(self, trip_id: int) -> int:
        """Rebuild a trip's available-seat counter from its bookings"""
        if self.locks is None:
            raise RuntimeError("Reconciliation needs a TripLockManager")
        async with self.locks.for_trip(trip_id):
            available = await self.ledger.reconcile(trip_id)
            await self.session.commit()
        return available

    async def seed_default_schedule(self, service_date: Optional[date] = None) -> int:
        """Insert the default daily timetable when there are no trips yet"""
        if await self.trip_repo.count() > 0:
            return 0

        service_date = service_date or datetime.now(self.tz).date()
        for bus_number, departs, uncertain in DEFAULT_SCHEDULE:
            departs_at = datetime.combine(service_date, departs)
            await self.create_trip(
                bus_number=bus_number,
                origin=DEFAULT_ORIGIN,
                destination=DEFAULT_DESTINATION,
                departs_at=departs_at,
                arrives_at=departs_at + DEFAULT_DURATION,
                price=DEFAULT_PRICE,
                total_seats=DEFAULT_SEATS,
                is_uncertain=uncertain,
            )
        await self.session.commit()
        logger.info("Seeded %s default trips for %s", len(DEFAULT_SCHEDULE), service_date)
        return len(DEFAULT_SCHEDULE)
