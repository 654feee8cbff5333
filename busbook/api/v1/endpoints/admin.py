from fastapi import APIRouter, status

from busbook.api.v1.schemas import TripIn, TripUpdate, TripOut, ReconcileOut
from busbook.deps import TripServiceDep


router = APIRouter()


@router.post("/trips", response_model=TripOut, status_code=status.HTTP_201_CREATED)
async def create_trip(payload: TripIn, service: TripServiceDep):
    """Create a new trip"""
    trip = await service.create_trip(**payload.model_dump())
    await service.session.commit()
    trip = await service.get_trip(trip.id)
    return TripOut.model_validate(trip)


@router.patch("/trips/{trip_id}", response_model=TripOut)
async def update_trip(trip_id: int, payload: TripUpdate, service: TripServiceDep):
    """Edit a trip; capacity changes re-derive available seats"""
    trip = await service.update_trip(trip_id, payload.model_dump(exclude_unset=True))
    return TripOut.model_validate(trip)


@router.delete("/trips/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip(trip_id: int, service: TripServiceDep):
    """Delete a trip without confirmed bookings"""
    await service.delete_trip(trip_id)
    return None


@router.post("/trips/{trip_id}/reconcile", response_model=ReconcileOut)
async def reconcile_trip(trip_id: int, service: TripServiceDep):
    """Rebuild the available-seat counter from confirmed bookings"""
    available = await service.reconcile_trip(trip_id)
    return ReconcileOut(trip_id=trip_id, available_seats=available)
