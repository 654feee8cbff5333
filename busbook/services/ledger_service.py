from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.base import BaseService
from ..core.exceptions import NotFoundError, ValidationError, OversoldError, BusinessLogicError
from ..infrastructure.repositories import TripRepository, BookingRepository

logger = logging.getLogger(__name__)


class InventoryLedger(BaseService):
    """Sole writer of ``Trip.available_seats``.

    Each mutation is a single-row conditional UPDATE, so the precondition
    check and the write are indivisible at the database. Callers must also
    hold the trip's lock (see :mod:`busbook.locks`) so the seat map they
    validated against cannot change before the booking row lands.
    The ledger never commits; transaction boundaries belong to the caller.
    """

    def __init__(
        self,
        session: AsyncSession,
        trip_repo: Optional[TripRepository] = None,
        booking_repo: Optional[BookingRepository] = None,
    ):
        super().__init__(session)
        self.trip_repo = trip_repo or TripRepository(session)
        self.booking_repo = booking_repo or BookingRepository(session)

    async def available(self, trip_id: int) -> int:
        available = await self.trip_repo.get_available(trip_id)
        if available is None:
            raise NotFoundError("Trip", trip_id)
        return available

    async def reserve(self, trip_id: int, seat_count: int) -> int:
        """Take *seat_count* seats off the counter and return what is left.

        Raises:
            OversoldError: fewer than *seat_count* seats remain; nothing changed
        """
        if seat_count <= 0:
            raise ValidationError("Seat count must be greater than 0", field="seat_count")

        if not await self.trip_repo.try_decrement(trip_id, seat_count):
            available = await self.available(trip_id)
            logger.info(
                "Reservation of %s seats on trip %s refused, %s left",
                seat_count, trip_id, available
            )
            raise OversoldError(trip_id, seat_count, available)

        remaining = await self.available(trip_id)
        logger.debug("Reserved %s seats on trip %s, %s left", seat_count, trip_id, remaining)
        return remaining

    async def release(self, trip_id: int, seat_count: int) -> int:
        """Give *seat_count* seats back, capped at the trip's capacity"""
        if seat_count <= 0:
            raise ValidationError("Seat count must be greater than 0", field="seat_count")

        if not await self.trip_repo.increment_capped(trip_id, seat_count):
            raise NotFoundError("Trip", trip_id)

        remaining = await self.available(trip_id)
        logger.debug("Released %s seats on trip %s, %s left", seat_count, trip_id, remaining)
        return remaining

    async def committed_count(self, trip_id: int) -> int:
        return len(await self.booking_repo.confirmed_seat_numbers(trip_id))

    async def resize(self, trip_id: int, new_total: int) -> int:
        """Change a trip's capacity and re-derive its available seats.

        Seat numbers are positions on the bus, so the new capacity must still
        contain every committed seat, not just their count.
        """
        if new_total <= 0:
            raise ValidationError("Total seats must be greater than 0", field="total_seats")

        trip = await self.trip_repo.lock_for_update(trip_id)
        if not trip:
            raise NotFoundError("Trip", trip_id)

        committed = await self.booking_repo.confirmed_seat_numbers(trip_id)
        highest = max(committed, default=0)
        if highest > new_total:
            raise BusinessLogicError(
                f"Cannot set capacity to {new_total}, seat {highest} is already booked",
                rule="capacity_below_committed_seats"
            )

        available = new_total - len(committed)
        await self.trip_repo.set_capacity(trip_id, new_total, available)
        logger.info("Trip %s resized to %s seats, %s available", trip_id, new_total, available)
        return available

    async def reconcile(self, trip_id: int) -> int:
        """Rebuild the cached counter from confirmed bookings"""
        trip = await self.trip_repo.lock_for_update(trip_id)
        if not trip:
            raise NotFoundError("Trip", trip_id)

        committed = await self.booking_repo.confirmed_seat_numbers(trip_id)
        available = trip.total_seats - len(committed)
        if available < 0:
            raise BusinessLogicError(
                f"Trip {trip_id} has more committed seats than capacity",
                rule="committed_exceeds_capacity"
            )
        if available != trip.available_seats:
            logger.warning(
                "Trip %s counter drifted: cached %s, derived %s",
                trip_id, trip.available_seats, available
            )
            await self.trip_repo.set_capacity(trip_id, trip.total_seats, available)
        return available
