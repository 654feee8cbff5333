from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from busbook.core import BusinessLogicError, ConflictError, NotFoundError, ValidationError
from busbook.services import TripService
from busbook.services.trip_service import DEFAULT_SCHEDULE

from factories import make_trip, booking_request

SERVICE_DATE = date.today() + timedelta(days=3)


@pytest.fixture
def trip_service(session, locks):
    return TripService(session, locks, timezone="Asia/Kathmandu")


async def test_seed_default_schedule(trip_service):
    assert await trip_service.seed_default_schedule(SERVICE_DATE) == len(DEFAULT_SCHEDULE) == 11
    assert await trip_service.seed_default_schedule(SERVICE_DATE) == 0

    trips = await trip_service.search_trips(travel_date=SERVICE_DATE)
    assert [t.bus_number for t in trips] == [f"KTM-{n:03d}" for n in range(1, 12)]
    assert trips[0].is_uncertain and trips[-1].is_uncertain
    assert not any(t.is_uncertain for t in trips[1:-1])

    first = trips[0]
    assert first.origin == "Kathmandu"
    assert first.destination == "Palung"
    assert first.total_seats == first.available_seats == 40
    assert first.price == Decimal("500")
    assert first.duration == "2h 30m"
    # 06:00 in Kathmandu is 00:15 UTC
    assert first.departs_at == datetime.combine(SERVICE_DATE, datetime.min.time()) + timedelta(minutes=15)
    assert trip_service.to_local(first.departs_at).hour == 6


async def test_search_by_time_of_day(trip_service):
    await trip_service.seed_default_schedule(SERVICE_DATE)

    morning = await trip_service.search_trips(travel_date=SERVICE_DATE, time_of_day="morning")
    afternoon = await trip_service.search_trips(travel_date=SERVICE_DATE, time_of_day="afternoon")

    assert len(morning) == 6
    assert len(afternoon) == 5
    assert morning[-1].bus_number == "KTM-006"
    assert afternoon[0].bus_number == "KTM-007"


async def test_search_other_day_and_route(trip_service):
    await trip_service.seed_default_schedule(SERVICE_DATE)

    assert await trip_service.search_trips(travel_date=SERVICE_DATE + timedelta(days=1)) == []
    assert len(await trip_service.search_trips(origin="kathmandu", destination="PALUNG")) == 11
    assert await trip_service.search_trips(origin="Pokhara") == []


async def test_search_rejects_unknown_time_of_day(trip_service):
    with pytest.raises(ValidationError):
        await trip_service.search_trips(time_of_day="evening")


async def test_only_available_hides_full_trips(session, trip_service):
    await make_trip(session, total_seats=10, available_seats=0)
    open_trip = await make_trip(session, total_seats=10)

    trips = await trip_service.search_trips(only_available=True)
    assert [t.id for t in trips] == [open_trip.id]


async def test_create_trip_takes_local_times(trip_service):
    trip = await trip_service.create_trip(
        bus_number=" KTM-100 ",
        origin="Kathmandu",
        destination="Palung",
        departs_at=datetime(2030, 1, 1, 9, 0),
        arrives_at=datetime(2030, 1, 1, 11, 45),
        price=Decimal("650"),
        total_seats=30,
    )
    assert trip.bus_number == "KTM-100"
    assert trip.available_seats == 30
    assert trip.departs_at == datetime(2030, 1, 1, 3, 15)
    assert trip.duration == "2h 45m"


@pytest.mark.parametrize("overrides", [
    {"total_seats": 0},
    {"price": Decimal("0")},
    {"arrives_at": datetime(2030, 1, 1, 8, 0)},
])
async def test_create_trip_rejects_bad_input(trip_service, overrides):
    data = {
        "bus_number": "KTM-100",
        "origin": "Kathmandu",
        "destination": "Palung",
        "departs_at": datetime(2030, 1, 1, 9, 0),
        "arrives_at": datetime(2030, 1, 1, 11, 30),
        "price": Decimal("500"),
    }
    data.update(overrides)
    with pytest.raises(ValidationError):
        await trip_service.create_trip(**data)


async def test_update_capacity_goes_through_the_ledger(session, trip_service, booking_service, passenger):
    trip = await make_trip(session, total_seats=40)
    await booking_service.create_booking(passenger, booking_request(trip.id, [1, 2]))

    updated = await trip_service.update_trip(trip.id, {"total_seats": 50, "price": Decimal("550")})
    assert updated.total_seats == 50
    assert updated.available_seats == 48
    assert updated.price == Decimal("550")


async def test_update_capacity_below_booked_seat(session, trip_service, booking_service, passenger):
    trip = await make_trip(session, total_seats=40)
    await booking_service.create_booking(passenger, booking_request(trip.id, [40]))

    with pytest.raises(BusinessLogicError):
        await trip_service.update_trip(trip.id, {"total_seats": 39})

    assert (await trip_service.get_trip(trip.id)).total_seats == 40


async def test_update_ignores_counter_fields(session, trip_service):
    trip = await make_trip(session, total_seats=40)
    updated = await trip_service.update_trip(trip.id, {"available_seats": 1, "origin": "Kathmandu Ratnapark"})
    assert updated.available_seats == 40
    assert updated.origin == "Kathmandu Ratnapark"


async def test_delete_trip(session, trip_service, booking_service, passenger):
    empty = await make_trip(session)
    booked = await make_trip(session)
    await booking_service.create_booking(passenger, booking_request(booked.id, [1]))

    assert await trip_service.delete_trip(empty.id)
    with pytest.raises(NotFoundError):
        await trip_service.get_trip(empty.id)

    with pytest.raises(ConflictError):
        await trip_service.delete_trip(booked.id)


async def test_reconcile_trip(session, trip_service, booking_service, passenger):
    trip = await make_trip(session, total_seats=10)
    await booking_service.create_booking(passenger, booking_request(trip.id, [1, 2]))
    assert await trip_service.reconcile_trip(trip.id) == 8
