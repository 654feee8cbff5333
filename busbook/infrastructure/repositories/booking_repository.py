from typing import Optional, List, Set
from datetime import datetime
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from busbook.core import BaseRepository
from busbook.models import Booking, BOOKING_CONFIRMED, BOOKING_CANCELLED


class BookingRepository(BaseRepository[Booking]):
    """Booking repository implementation"""

    def __init__(self, session: AsyncSession):
        super().__init__(Booking, session)

    async def confirmed_seat_numbers(self, trip_id: int) -> Set[int]:
        """Union of seat numbers held by confirmed bookings of a trip"""
        query = select(Booking.seat_numbers).where(
            Booking.trip_id == trip_id,
            Booking.status == BOOKING_CONFIRMED
        )
        result = await self.session.execute(query)
        seats: Set[int] = set()
        for seat_numbers in result.scalars().all():
            seats.update(int(s) for s in seat_numbers or [])
        return seats

    async def count_confirmed(self, trip_id: int) -> int:
        """Number of confirmed bookings for a trip"""
        return await self.count(trip_id=trip_id, status=BOOKING_CONFIRMED)

    async def get_with_trip(self, booking_id: str) -> Optional[Booking]:
        """Get booking with its trip loaded"""
        query = (
            select(Booking)
            .options(selectinload(Booking.trip))
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_bookings(
        self,
        *,
        owner_id: Optional[str] = None,
        trip_id: Optional[int] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Booking]:
        """List bookings newest first with their trips loaded"""
        query = select(Booking).options(selectinload(Booking.trip))

        if owner_id is not None:
            query = query.where(Booking.owner_id == owner_id)
        if trip_id is not None:
            query = query.where(Booking.trip_id == trip_id)
        if status:
            query = query.where(Booking.status == status)

        query = query.order_by(Booking.created_at.desc(), Booking.id).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def mark_cancelled(self, booking_id: str) -> bool:
        """Flip confirmed -> cancelled; False when the booking was not confirmed"""
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == BOOKING_CONFIRMED)
            .values(status=BOOKING_CANCELLED, cancelled_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
