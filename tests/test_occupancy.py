"""
Tests for the occupancy resolver.
"""

import pendulum
import pytest

from roomcalendar.domain.models import Booking
from roomcalendar.domain.occupancy import OccupancyResolver, bookings_overlap
from roomcalendar.domain.slot_grid import SLOT_GRID


def _booking(start, end, booking_id=1):
    return Booking(
        id=booking_id,
        room_id=1,
        date=pendulum.date(2024, 11, 25),
        start_time=start,
        end_time=end,
        booker_name="Anna",
        department="Sales",
    )


class TestIsOccupied:
    """Tests for the half-open occupancy test."""

    def test_booking_occupies_start_but_not_end_boundary(self):
        """A 10:00-10:30 booking occupies 10:00 but not 10:30."""
        resolver = OccupancyResolver([_booking("10:00", "10:30")])

        assert resolver.is_occupied("10:00")
        assert not resolver.is_occupied("10:30")
        assert not resolver.is_occupied("09:30")

    def test_matches_predicate_for_every_grid_slot(self):
        """is_occupied(t) holds iff some booking has start <= t < end."""
        bookings = [_booking("09:00", "10:30", 1), _booking("14:00", "15:00", 2)]
        resolver = OccupancyResolver(bookings)

        for slot in SLOT_GRID:
            expected = any(b.start_time <= slot < b.end_time for b in bookings)
            assert resolver.is_occupied(slot) == expected, slot

    def test_no_bookings_means_all_free(self):
        resolver = OccupancyResolver()

        assert resolver.occupied_slots() == []

    def test_accepts_backend_time_format(self):
        """Slots may be given with seconds, only HH:MM is compared."""
        resolver = OccupancyResolver([_booking("10:00", "11:00")])

        assert resolver.is_occupied("10:30:00.000")

    def test_occupied_slots(self):
        resolver = OccupancyResolver([_booking("14:00", "15:00")])

        assert resolver.occupied_slots() == ["14:00", "14:30"]


class TestOccupyingBooking:
    """Tests for finding the booking behind a slot."""

    def test_returns_the_covering_booking(self):
        first = _booking("09:00", "10:00", 1)
        second = _booking("10:00", "11:00", 2)
        resolver = OccupancyResolver([first, second])

        assert resolver.occupying_booking("09:30") is first
        assert resolver.occupying_booking("10:00") is second
        assert resolver.occupying_booking("11:00") is None


class TestMalformedBookings:
    """Bad data from the backend must not break slot computation."""

    def test_missing_times_do_not_occupy(self):
        resolver = OccupancyResolver([_booking(None, None), _booking("10:00", None, 2)])

        assert resolver.occupied_slots() == []
        assert resolver.occupying_booking("10:00") is None

    def test_malformed_api_payload_does_not_occupy(self):
        booking = Booking.from_api(
            {"id": 7, "date": "2024-11-25", "startTime": "garbage", "endTime": "11:00:00.000"}
        )
        resolver = OccupancyResolver([booking, _booking("15:00", "16:00", 2)])

        assert not resolver.is_occupied("10:00")
        assert resolver.is_occupied("15:00")

    def test_inverted_interval_does_not_occupy(self):
        resolver = OccupancyResolver([_booking("12:00", "11:00")])

        assert not resolver.is_occupied("11:30")

    def test_malformed_slot_is_free(self):
        resolver = OccupancyResolver([_booking("10:00", "11:00")])

        assert not resolver.is_occupied("not a time")


class TestBookingsOverlap:
    """Tests for interval overlap."""

    @pytest.mark.parametrize(
        "first, second, expected",
        [
            (("09:00", "10:00"), ("09:30", "11:00"), True),
            (("09:00", "10:00"), ("10:00", "11:00"), False),
            (("09:00", "12:00"), ("10:00", "11:00"), True),
            (("13:00", "14:00"), ("09:00", "10:00"), False),
        ],
    )
    def test_overlap(self, first, second, expected):
        assert bookings_overlap(*first, *second) is expected
        assert bookings_overlap(*second, *first) is expected
