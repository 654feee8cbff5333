"""Seat availability computed from capacity and committed seat numbers.

The committed set must come from the confirmed bookings read at decision
time, never from the trip's cached ``available_seats`` counter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, FrozenSet, Iterable, List

from .core.exceptions import ValidationError, SeatConflictError, BusinessLogicError


@dataclass(frozen=True)
class SeatMap:
    trip_id: int
    total_seats: int
    committed: FrozenSet[int]

    @property
    def available(self) -> List[int]:
        """Free seat numbers in ascending order"""
        return [s for s in range(1, self.total_seats + 1) if s not in self.committed]

    @property
    def available_count(self) -> int:
        return self.total_seats - len(self.committed)

    def is_free(self, seat: int) -> bool:
        return 1 <= seat <= self.total_seats and seat not in self.committed

    def check(self, requested: Iterable[int]) -> List[int]:
        """Validate *requested* against this map and return it sorted.

        Raises:
            ValidationError: empty selection, duplicates or seats out of range
            SeatConflictError: any requested seat is already committed
        """
        seats = list(requested)
        if not seats:
            raise ValidationError("Please select at least one seat", field="seat_numbers")

        if len(set(seats)) != len(seats):
            raise ValidationError("Each seat can only be selected once", field="seat_numbers")

        out_of_range = sorted(s for s in seats if not 1 <= s <= self.total_seats)
        if out_of_range:
            raise ValidationError(
                f"Seats {', '.join(map(str, out_of_range))} do not exist on this bus "
                f"(1-{self.total_seats})",
                field="seat_numbers"
            )

        taken = self.committed.intersection(seats)
        if taken:
            raise SeatConflictError(self.trip_id, taken, self.available)

        return sorted(seats)

    def as_dict(self) -> dict:
        return {
            "trip_id": self.trip_id,
            "total_seats": self.total_seats,
            "available_seats": self.available,
            "booked_seats": sorted(self.committed),
        }


def build_seat_map(trip_id: int, total_seats: int, committed_seats: AbstractSet[int]) -> SeatMap:
    """Return the seat map of a trip.

    Committed seats outside ``1..total_seats`` can only exist after a bad
    capacity edit; they are reported rather than silently dropped.
    """
    if total_seats <= 0:
        raise ValidationError("Total seats must be greater than 0", field="total_seats")

    stray = sorted(s for s in committed_seats if not 1 <= s <= total_seats)
    if stray:
        raise BusinessLogicError(
            f"Committed seats {stray} outside 1..{total_seats} on trip {trip_id}",
            rule="committed_outside_capacity"
        )

    return SeatMap(trip_id=trip_id, total_seats=total_seats, committed=frozenset(committed_seats))
