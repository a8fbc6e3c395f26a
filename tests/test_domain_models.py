"""
Tests for domain models.
"""

import pendulum
import pytest

from roomcalendar.domain.models import Booking, BookingRequest, Room, Session, User


class TestBookingFromApi:
    """Tests for parsing backend booking payloads."""

    def test_parse_full_payload(self):
        booking = Booking.from_api(
            {
                "id": 3,
                "documentId": "abc123",
                "date": "2024-11-25",
                "startTime": "09:00:00.000",
                "endTime": "10:30:00.000",
                "bookerName": "Anna",
                "department": "Sales",
                "topic": "Planning",
                "cancelCode": "A1B2C3",
                "userId": None,
                "room": {"id": 2, "name": "Room 2"},
            }
        )

        assert booking.room_id == 2
        assert booking.date == pendulum.date(2024, 11, 25)
        assert booking.start_time == "09:00"
        assert booking.end_time == "10:30"
        assert booking.key == "abc123"
        assert booking.has_valid_interval()

    def test_room_wrapped_in_data(self):
        booking = Booking.from_api({"id": 1, "room": {"data": {"id": 5}}})

        assert booking.room_id == 5

    def test_malformed_fields_do_not_raise(self):
        """Missing or broken values become None instead of failing."""
        booking = Booking.from_api({"id": 4, "date": "someday", "startTime": None, "endTime": "xx"})

        assert booking.date is None
        assert booking.start_time is None
        assert booking.end_time is None
        assert booking.room_id is None
        assert not booking.has_valid_interval()
        assert booking.key == "4"

    def test_format_display(self):
        booking = Booking.from_api(
            {
                "id": 1,
                "date": "2024-11-25",
                "startTime": "09:00",
                "endTime": "10:00",
                "bookerName": "Anna",
                "department": "Sales",
            }
        )

        assert booking.format_display("Room 1") == (
            "Mon, 25.11.2024 | 09:00 – 10:00 | Room 1 | No topic · Anna · Sales"
        )


class TestBookingRequest:
    """Tests for the booking request invariant."""

    def _request(self, start, end):
        return BookingRequest(
            room_id=1,
            date=pendulum.date(2024, 11, 25),
            start_time=start,
            end_time=end,
            booker_name="Anna",
            department="Sales",
        )

    def test_valid_request(self):
        request = self._request("09:00", "11:30")

        assert request.start_time == "09:00"

    def test_start_must_be_before_end(self):
        with pytest.raises(ValueError, match="must be before end time"):
            self._request("10:00", "10:00")

    def test_times_must_be_on_grid(self):
        with pytest.raises(ValueError, match="half-hour grid"):
            self._request("09:15", "10:00")

        with pytest.raises(ValueError, match="half-hour grid"):
            self._request("19:30", "20:30")


class TestRoom:
    def test_from_api(self):
        room = Room.from_api({"id": 1, "documentId": "r1", "name": "Room 1", "capacity": 10})

        assert room.name == "Room 1"
        assert room.capacity == 10
        assert room.document_id == "r1"


class TestSession:
    """Tests for the explicit session context."""

    def test_anonymous_session(self):
        session = Session.anonymous()

        assert not session.is_authenticated
        assert session.user_id is None

    def test_authenticated_session_round_trips_through_dict(self):
        session = Session(token="jwt", user=User(id=7, username="anna", email="anna@example.com"))

        restored = Session.from_dict(session.to_dict())

        assert restored == session
        assert restored.is_authenticated
        assert restored.user_id == 7

    def test_token_without_user_is_not_authenticated(self):
        assert not Session(token="jwt").is_authenticated
