import pytest

from busbook.core import BusinessLogicError, ValidationError, SeatConflictError
from busbook.seat_map import build_seat_map


def test_available_is_total_minus_committed():
    seat_map = build_seat_map(1, 6, {2, 5})
    assert seat_map.available == [1, 3, 4, 6]
    assert seat_map.available_count == 4
    assert seat_map.is_free(1)
    assert not seat_map.is_free(2)
    assert not seat_map.is_free(7)


def test_check_returns_sorted_seats():
    seat_map = build_seat_map(1, 40, {1, 2})
    assert seat_map.check([7, 3, 40]) == [3, 7, 40]


@pytest.mark.parametrize("requested", [[], [0], [41], [-3, 5]])
def test_invalid_requests_are_rejected(requested):
    seat_map = build_seat_map(1, 40, set())
    with pytest.raises(ValidationError):
        seat_map.check(requested)


def test_duplicate_seats_in_one_request_are_rejected():
    seat_map = build_seat_map(1, 40, set())
    with pytest.raises(ValidationError) as exc:
        seat_map.check([4, 4])
    assert exc.value.details["field"] == "seat_numbers"


def test_conflict_names_taken_seats_and_fresh_availability():
    seat_map = build_seat_map(9, 4, {1, 3})
    with pytest.raises(SeatConflictError) as exc:
        seat_map.check([2, 3])
    err = exc.value
    assert err.status_code == 409
    assert err.taken == [3]
    assert err.details["available_seats"] == [2, 4]
    assert err.details["trip_id"] == 9
    assert "3" in err.message


def test_committed_seats_outside_capacity_are_an_error():
    with pytest.raises(BusinessLogicError) as exc:
        build_seat_map(1, 10, {11})
    assert exc.value.status_code == 422
    assert exc.value.details["rule"] == "committed_outside_capacity"


def test_capacity_must_be_positive():
    with pytest.raises(ValidationError):
        build_seat_map(1, 0, set())


def test_as_dict():
    assert build_seat_map(3, 4, {4}).as_dict() == {
        "trip_id": 3,
        "total_seats": 4,
        "available_seats": [1, 2, 3],
        "booked_seats": [4],
    }
