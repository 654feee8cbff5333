from typing import Optional, List
from datetime import datetime
from sqlalchemy import select, update, case, func
from sqlalchemy.ext.asyncio import AsyncSession

from busbook.core import BaseRepository
from busbook.models import Trip


class TripRepository(BaseRepository[Trip]):
    """Trip repository implementation"""

    def __init__(self, session: AsyncSession):
        super().__init__(Trip, session)

    async def search(
        self,
        *,
        origin: Optional[str] = None,
        destination: Optional[str] = None,
        departs_from: Optional[datetime] = None,
        departs_to: Optional[datetime] = None,
        only_available: bool = False,
        skip: int = 0,
        limit: int = 100
    ) -> List[Trip]:
        """List trips ordered by departure, filtered by route and UTC window"""
        query = select(Trip)

        if origin:
            query = query.where(func.lower(Trip.origin) == origin.strip().lower())
        if destination:
            query = query.where(func.lower(Trip.destination) == destination.strip().lower())
        if departs_from:
            query = query.where(Trip.departs_at >= departs_from)
        if departs_to:
            query = query.where(Trip.departs_at < departs_to)
        if only_available:
            query = query.where(Trip.available_seats > 0)

        query = query.order_by(Trip.departs_at, Trip.id).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_fresh(self, trip_id: int) -> Optional[Trip]:
        """Get trip, overwriting any copy already held by the session"""
        query = (
            select(Trip)
            .where(Trip.id == trip_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def lock_for_update(self, trip_id: int) -> Optional[Trip]:
        """Get trip with exclusive row lock (no-op on SQLite)"""
        query = (
            select(Trip)
            .where(Trip.id == trip_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_available(self, trip_id: int) -> Optional[int]:
        """Read the cached available-seat counter straight from the row"""
        result = await self.session.execute(
            select(Trip.available_seats).where(Trip.id == trip_id)
        )
        return result.scalar_one_or_none()

    async def try_decrement(self, trip_id: int, seat_count: int) -> bool:
        """Compare-and-swap decrement; False when fewer than *seat_count* seats remain"""
        stmt = (
            update(Trip)
            .where(Trip.id == trip_id, Trip.available_seats >= seat_count)
            .values(available_seats=Trip.available_seats - seat_count)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def increment_capped(self, trip_id: int, seat_count: int) -> bool:
        """Increment available seats, never past total_seats"""
        stmt = (
            update(Trip)
            .where(Trip.id == trip_id)
            .values(
                available_seats=case(
                    (Trip.available_seats + seat_count > Trip.total_seats, Trip.total_seats),
                    else_=Trip.available_seats + seat_count,
                )
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def set_capacity(self, trip_id: int, total_seats: int, available_seats: int) -> bool:
        """Write both counters in one statement so the range check always holds"""
        stmt = (
            update(Trip)
            .where(Trip.id == trip_id)
            .values(total_seats=total_seats, available_seats=available_seats)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
