from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Query

from busbook.api.v1.schemas import TripOut, SeatMapOut
from busbook.deps import TripServiceDep, BookingServiceDep


router = APIRouter()


@router.get("/", response_model=List[TripOut])
async def search_trips(
    service: TripServiceDep,
    origin: Optional[str] = Query(None, max_length=120),
    destination: Optional[str] = Query(None, max_length=120),
    travel_date: Optional[date] = Query(None, alias="date", description="Local travel date (YYYY-MM-DD)"),
    time_of_day: Optional[str] = Query(None, enum=["morning", "afternoon"]),
    only_available: bool = Query(False),
    limit: int = Query(50, gt=0, le=100),
    offset: int = Query(0, ge=0),
):
    """Search scheduled trips"""
    trips = await service.search_trips(
        origin=origin,
        destination=destination,
        travel_date=travel_date,
        time_of_day=time_of_day,
        only_available=only_available,
        skip=offset,
        limit=limit
    )
    return [TripOut.model_validate(t) for t in trips]


@router.get("/{trip_id}", response_model=TripOut)
async def get_trip(trip_id: int, service: TripServiceDep):
    """Get a single trip"""
    trip = await service.get_trip(trip_id)
    return TripOut.model_validate(trip)


@router.get("/{trip_id}/seats", response_model=SeatMapOut)
async def get_seat_map(trip_id: int, service: BookingServiceDep):
    """Seat map rebuilt from confirmed bookings"""
    seat_map = await service.get_seat_map(trip_id)
    return SeatMapOut(**seat_map.as_dict())
