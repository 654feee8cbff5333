from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

import phonenumbers
from email_validator import validate_email, EmailNotValidError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from ..core.base import BaseService
from ..core.exceptions import (
    NotFoundError, ValidationError, BusinessLogicError, OversoldError, PersistenceError,
    NotificationError
)
from ..infrastructure.repositories import TripRepository, BookingRepository
from ..locks import TripLockManager
from ..models import Booking, Trip, BOOKING_CONFIRMED, new_booking_reference
from ..roles import Role
from ..seat_map import SeatMap, build_seat_map
from .ledger_service import InventoryLedger
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

EMAIL_WARNING = "Booking confirmed, but the confirmation email could not be sent"


class BookingStage(str, Enum):
    """Where a booking attempt ended up"""

    selecting = "selecting"
    validating = "validating"
    reserving = "reserving"
    persisting = "persisting"
    notifying = "notifying"
    done = "done"
    failed = "failed"


@dataclass(frozen=True)
class RequestContext:
    """Who is acting in this request. Built per request, never stored globally."""

    user_id: Optional[str] = None
    role: Optional[str] = None
    client_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin.value

    @classmethod
    def from_claims(cls, claims: dict, client_id: Optional[str] = None) -> "RequestContext":
        return cls(user_id=claims.get("sub"), role=claims.get("role"), client_id=client_id)


@dataclass(frozen=True)
class BookingRequest:
    trip_id: int
    seat_numbers: List[int]
    passenger_name: str
    passenger_email: str
    passenger_phone: str


@dataclass
class BookingOutcome:
    booking: Booking
    stage: BookingStage
    seats_left: int
    warnings: List[str] = field(default_factory=list)
    changed: bool = True


class BookingService(BaseService):
    """Booking workflow: validate, reserve, persist, notify; and cancellation.

    A booking attempt moves through selecting -> validating -> reserving ->
    persisting -> notifying -> done. Recoverable failures (bad input, seat
    conflicts, an oversold ledger) surface as exceptions with nothing
    written. A failed insert after a successful reservation rolls the
    reservation back with it before :class:`PersistenceError` is raised.
    """

    def __init__(
        self,
        session: AsyncSession,
        locks: TripLockManager,
        notifier: Optional[NotificationService] = None,
        *,
        phone_region: str = "NP",
        trip_repo: Optional[TripRepository] = None,
        booking_repo: Optional[BookingRepository] = None,
        ledger: Optional[InventoryLedger] = None,
    ):
        super().__init__(session)
        self.locks = locks
        self.notifier = notifier
        self.phone_region = phone_region
        self.trip_repo = trip_repo or TripRepository(session)
        self.booking_repo = booking_repo or BookingRepository(session)
        self.ledger = ledger or InventoryLedger(session, self.trip_repo, self.booking_repo)

    # ------------------------------------------------------------------
    #  Selecting
    # ------------------------------------------------------------------

    async def _load_seat_map(self, trip_id: int) -> Tuple[Trip, SeatMap]:
        trip = await self.trip_repo.get_fresh(trip_id)
        if not trip:
            raise NotFoundError("Trip", trip_id)
        committed = await self.booking_repo.confirmed_seat_numbers(trip_id)
        return trip, build_seat_map(trip.id, trip.total_seats, committed)

    async def get_seat_map(self, trip_id: int) -> SeatMap:
        """Seat map rebuilt from the confirmed bookings as of now"""
        _, seat_map = await self._load_seat_map(trip_id)
        return seat_map

    # ------------------------------------------------------------------
    #  Validating
    # ------------------------------------------------------------------

    def validate_passenger(self, request: BookingRequest) -> BookingRequest:
        """Check contact fields and return the request with them normalised"""
        name = (request.passenger_name or "").strip()
        email = (request.passenger_email or "").strip()
        phone = (request.passenger_phone or "").strip()

        missing = [
            label for label, value in (("name", name), ("email", email), ("phone", phone))
            if not value
        ]
        if missing:
            raise ValidationError(
                f"Please fill all passenger details (missing: {', '.join(missing)})",
                field="passenger"
            )

        try:
            email = validate_email(email, check_deliverability=False).normalized.lower()
        except EmailNotValidError as exc:
            raise ValidationError(f"Invalid email address: {exc}", field="passenger_email")

        try:
            parsed = phonenumbers.parse(phone, self.phone_region)
        except phonenumbers.NumberParseException:
            raise ValidationError("Invalid phone number format", field="passenger_phone")
        if not phonenumbers.is_valid_number(parsed):
            raise ValidationError("Invalid phone number", field="passenger_phone")

        return replace(
            request,
            passenger_name=name,
            passenger_email=email,
            passenger_phone=phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164),
        )

    # ------------------------------------------------------------------
    #  Booking
    # ------------------------------------------------------------------

    async def create_booking(self, ctx: RequestContext, request: BookingRequest) -> BookingOutcome:
        """Run one booking attempt end to end.

        The reservation and the booking row share one transaction, so a
        failure or cancellation anywhere before the commit rolls both back.

        Raises:
            ValidationError: bad seat selection or passenger details
            SeatConflictError: a requested seat was taken since the page loaded
            OversoldError: the ledger has fewer seats left than requested
            LockTimeoutError: the trip stayed locked by another booking
            PersistenceError: the booking could not be stored; no seats taken
        """
        request = self.validate_passenger(request)

        async with self.locks.for_trip(request.trip_id):
            trip, seat_map = await self._load_seat_map(request.trip_id)
            if trip.departs_at <= datetime.utcnow():
                raise BusinessLogicError("This bus has already departed", rule="trip_departed")

            seats = seat_map.check(request.seat_numbers)

            trip_id = trip.id
            total_amount = Decimal(trip.price) * len(seats)

            try:
                seats_left = await self.ledger.reserve(trip_id, len(seats))
                booking = await self.booking_repo.create(obj_in={
                    "id": new_booking_reference(),
                    "trip_id": trip_id,
                    "owner_id": ctx.user_id,
                    "passenger_name": request.passenger_name,
                    "passenger_email": request.passenger_email,
                    "passenger_phone": request.passenger_phone,
                    "seat_numbers": seats,
                    "total_amount": total_amount,
                    "status": BOOKING_CONFIRMED,
                    "created_at": datetime.utcnow(),
                    "cancelled_at": None,
                })
                booking_id = booking.id
                await self.session.commit()
            except OversoldError:
                await self.session.rollback()
                raise
            except Exception as exc:
                logger.exception("Failed to persist booking on trip %s: %s", trip_id, exc)
                await self.session.rollback()
                raise PersistenceError(
                    "Your booking could not be saved and no seats were taken, please try again",
                    trip_id=trip_id
                ) from exc
            except BaseException:
                logger.warning("Booking attempt on trip %s interrupted, rolling back", trip_id)
                await self.session.rollback()
                raise

        logger.info(
            "Booking %s confirmed: trip %s seats %s amount %s",
            booking_id, trip_id, seats, total_amount
        )

        try:
            booking = await self.booking_repo.get_with_trip(booking_id)
        except Exception:
            # Confirmed already; answer with what was written
            logger.exception("Reloading booking %s failed", booking_id)
            set_committed_value(booking, "trip", trip)

        warnings = await self._notify(booking, booking.trip)
        return BookingOutcome(booking, BookingStage.done, seats_left, warnings)

    async def _notify(self, booking: Booking, trip: Trip) -> List[str]:
        if self.notifier is None:
            return []
        try:
            await self.notifier.notify_booking(booking, trip)
        except NotificationError as exc:
            # Log but do not fail the booking if the email fails
            logger.warning("Confirmation email for booking %s failed: %s", booking.id, exc.message)
            return [EMAIL_WARNING]
        except Exception:
            logger.exception("Confirmation email for booking %s could not be prepared", booking.id)
            return [EMAIL_WARNING]
        return []

    # ------------------------------------------------------------------
    #  Cancellation
    # ------------------------------------------------------------------

    async def _get_owned(self, ctx: RequestContext, booking_id: str) -> Booking:
        booking = await self.booking_repo.get_with_trip(booking_id)
        if not booking:
            raise NotFoundError("Booking", booking_id)
        # Hide other passengers' bookings
        if not ctx.is_admin and booking.owner_id != ctx.user_id:
            raise NotFoundError("Booking", booking_id)
        return booking

    async def cancel_booking(self, ctx: RequestContext, booking_id: str) -> BookingOutcome:
        """Cancel a confirmed booking and give its seats back.

        Cancelling a booking that is already cancelled changes nothing.
        """
        booking = await self._get_owned(ctx, booking_id)
        trip_id = booking.trip_id
        seat_count = booking.seat_count

        async with self.locks.for_trip(trip_id):
            changed = await self.booking_repo.mark_cancelled(booking_id)
            if changed:
                seats_left = await self.ledger.release(trip_id, seat_count)
            else:
                seats_left = await self.ledger.available(trip_id)
            await self.session.commit()

        booking = await self.booking_repo.get_with_trip(booking_id)
        if changed:
            logger.info("Booking %s cancelled, %s seats released on trip %s", booking_id, seat_count, trip_id)
            return BookingOutcome(booking, BookingStage.done, seats_left)

        logger.info("Booking %s was already cancelled", booking_id)
        return BookingOutcome(
            booking, BookingStage.done, seats_left,
            warnings=["Booking was already cancelled"], changed=False
        )

    # ------------------------------------------------------------------
    #  Queries
    # ------------------------------------------------------------------

    async def get_booking(self, ctx: RequestContext, booking_id: str) -> Booking:
        return await self._get_owned(ctx, booking_id)

    async def list_bookings(
        self,
        ctx: RequestContext,
        *,
        status: Optional[str] = None,
        trip_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Booking]:
        """Own bookings for passengers, every booking for admins"""
        owner_id = None if ctx.is_admin else ctx.user_id
        if owner_id is None and not ctx.is_admin:
            return []
        return await self.booking_repo.list_bookings(
            owner_id=owner_id,
            trip_id=trip_id,
            status=status,
            skip=skip,
            limit=limit
        )
