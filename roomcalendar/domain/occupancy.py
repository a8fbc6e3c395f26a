"""
Occupancy of the half-hour grid for one room and date.

The resolver works on a snapshot of bookings that was already fetched. It
has no side effects and may be queried any number of times per render.

The check is advisory only: two bookers can still race for the same slot.
The storage layer makes the final decision when a booking is created.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from .models import Booking
from .slot_grid import normalize_time, selectable_slots

logger = logging.getLogger(__name__)


def bookings_overlap(
    first_start: str,
    first_end: str,
    second_start: str,
    second_end: str
) -> bool:
    """Half-open interval overlap: touching ranges (10:00 end, 10:00 start) do not overlap."""
    return first_start < second_end and second_start < first_end


class OccupancyResolver:
    """
    Answers "is this slot taken, and by whom" for a room/date snapshot.

    A booking occupies slot ``t`` when ``start_time <= t < end_time``, so a
    booking ending at 10:30 leaves the 10:30 slot free. Bookings with
    missing or malformed times occupy nothing.
    """

    def __init__(self, bookings: Iterable[Booking] = ()):
        self._bookings: Tuple[Booking, ...] = tuple(bookings)
        self._intervals: List[Tuple[str, str, Booking]] = []

        for booking in self._bookings:
            if booking.has_valid_interval():
                self._intervals.append((booking.start_time, booking.end_time, booking))
            else:
                logger.debug("Ignoring booking %s without a usable interval", booking.id)

    @property
    def bookings(self) -> Tuple[Booking, ...]:
        return self._bookings

    def occupying_booking(self, slot: str) -> Optional[Booking]:
        """Return the booking covering ``slot``, or None if the slot is free."""
        t = normalize_time(slot)
        if t is None:
            return None

        for start, end, booking in self._intervals:
            if start <= t < end:
                return booking
        return None

    def is_occupied(self, slot: str) -> bool:
        return self.occupying_booking(slot) is not None

    def any_occupied(self, slots: Sequence[str]) -> bool:
        return any(self.is_occupied(slot) for slot in slots)

    def occupied_slots(self) -> List[str]:
        """Selectable slots covered by some booking, in grid order."""
        return [slot for slot in selectable_slots() if self.is_occupied(slot)]
