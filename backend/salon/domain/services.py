from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Iterable, Optional

from ..config import Settings
from .errors import DuplicateBookingError, NoCapacityError, OutOfHoursError, ScheduleConflictError


@dataclass(frozen=True)
class BusinessHours:
    opening: time
    closing: time

    @classmethod
    def from_settings(cls, settings: Settings) -> "BusinessHours":
        return cls(opening=settings.opening_time, closing=settings.closing_time)

    def contains(self, start: time, end: time) -> bool:
        return start >= self.opening and end <= self.closing


@dataclass(frozen=True)
class ProposedBooking:
    slot_id: int
    date: date
    start: time
    end: time
    remaining: int


@dataclass(frozen=True)
class ActiveBooking:
    """A pending or confirmed reservation already held by the user."""

    reservation_id: int
    slot_id: Optional[int]
    date: date
    start: time
    end: time


def intervals_overlap(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    """Half-open [start, end) intersection; shared endpoints do not overlap."""
    return a_start < b_end and a_end > b_start


class ReservationValidator:
    """
    Pure eligibility checks for a proposed booking.

    Rules run in a fixed order and stop at the first failure, so the error
    raised always names the first violated rule:
    business hours, remaining capacity, duplicate booking, overlap.
    """

    def __init__(self, hours: BusinessHours) -> None:
        self.hours = hours

    def ensure_within_hours(self, start: time, end: time) -> None:
        if not self.hours.contains(start, end):
            raise OutOfHoursError(
                f"bookings are only allowed between {self.hours.opening:%H:%M} and "
                f"{self.hours.closing:%H:%M}; requested {start:%H:%M}-{end:%H:%M}"
            )

    def validate(
        self,
        proposed: ProposedBooking,
        existing: Iterable[ActiveBooking],
        *,
        exclude_reservation_id: Optional[int] = None,
    ) -> None:
        self.ensure_within_hours(proposed.start, proposed.end)
        if proposed.remaining <= 0:
            raise NoCapacityError(
                f"no seats left on {proposed.date.isoformat()} at {proposed.start:%H:%M}"
            )

        others = [b for b in existing if b.reservation_id != exclude_reservation_id]
        if any(b.slot_id == proposed.slot_id for b in others):
            raise DuplicateBookingError("user already holds an active reservation for this slot")
        for booking in others:
            if booking.date != proposed.date:
                continue
            if intervals_overlap(booking.start, booking.end, proposed.start, proposed.end):
                raise ScheduleConflictError(
                    f"overlaps reservation {booking.reservation_id} "
                    f"({booking.start:%H:%M}-{booking.end:%H:%M})"
                )
