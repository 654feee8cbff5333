from typing import List, Optional
from fastapi import APIRouter, Query, status

from busbook.api.v1.schemas import BookingIn, BookingOut, BookingResult
from busbook.deps import BookingServiceDep, ContextDep
from busbook.services import BookingRequest, BookingOutcome


router = APIRouter()


def _result(outcome: BookingOutcome) -> BookingResult:
    return BookingResult(
        booking=BookingOut.model_validate(outcome.booking),
        stage=outcome.stage.value,
        seats_left=outcome.seats_left,
        warnings=outcome.warnings
    )


@router.post("/", response_model=BookingResult, status_code=status.HTTP_201_CREATED)
async def create_booking(payload: BookingIn, service: BookingServiceDep, ctx: ContextDep):
    """Book seats on a trip.

    Recoverable failures answer 400/409 with the refreshed availability in
    ``details``; an email problem is reported in ``warnings`` only.
    """
    outcome = await service.create_booking(
        ctx,
        BookingRequest(
            trip_id=payload.trip_id,
            seat_numbers=payload.seat_numbers,
            passenger_name=payload.passenger_name,
            passenger_email=payload.passenger_email,
            passenger_phone=payload.passenger_phone,
        )
    )
    return _result(outcome)


@router.get("/", response_model=List[BookingOut])
async def list_bookings(
    service: BookingServiceDep,
    ctx: ContextDep,
    status: Optional[str] = Query(None, enum=["confirmed", "cancelled"]),
    trip_id: Optional[int] = Query(None, gt=0),
    limit: int = Query(50, gt=0, le=100),
    offset: int = Query(0, ge=0),
):
    """List the caller's bookings (all bookings for admins)"""
    bookings = await service.list_bookings(
        ctx,
        status=status,
        trip_id=trip_id,
        skip=offset,
        limit=limit
    )
    return [BookingOut.model_validate(b) for b in bookings]


@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(booking_id: str, service: BookingServiceDep, ctx: ContextDep):
    """Get a single booking"""
    booking = await service.get_booking(ctx, booking_id)
    return BookingOut.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResult)
async def cancel_booking(booking_id: str, service: BookingServiceDep, ctx: ContextDep):
    """Cancel a booking; repeating the call changes nothing"""
    outcome = await service.cancel_booking(ctx, booking_id)
    return _result(outcome)
