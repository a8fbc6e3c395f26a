"""
Application services for viewing, creating and cancelling bookings.

The service wraps a blocking booking client behind async methods so the
presentation layer can issue fetches without waiting on each one. It never
retries: remote failures surface as ``BookingAPIError`` and the caller
decides what to do with them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Protocol, Sequence, Tuple

import pendulum
from pendulum import Date, DateTime

from ..domain.exceptions import (
    AuthenticationError,
    BookingNotFoundError,
    BookingValidationError,
)
from ..domain.models import Booking, BookingRequest, Room, Session

logger = logging.getLogger(__name__)


class BookingClientProtocol(Protocol):
    """Protocol describing the backend operations needed by the service."""

    def list_rooms(self) -> List[Room]:
        """Return all rooms."""

    def fetch_bookings(
        self,
        *,
        room_id: Optional[int] = None,
        date_from: Optional[Date] = None,
        date_to: Optional[Date] = None,
        user_id: Optional[int] = None,
        cancel_code: Optional[str] = None,
    ) -> List[Booking]:
        """Return bookings matching all given filters, date bounds inclusive."""

    def create_booking(self, request: BookingRequest) -> Booking:
        """Persist a booking or raise BookingAPIError."""

    def delete_booking(self, key: str) -> None:
        """Delete a booking by document id."""


def week_bounds(anchor: Date) -> Tuple[Date, Date]:
    """Monday and Sunday of the week containing ``anchor``."""
    monday = anchor.start_of("week")
    return monday, monday.add(days=6)


def upcoming_bookings(
    bookings: Sequence[Booking],
    now: DateTime,
    limit: int = 10,
) -> List[Booking]:
    """
    Bookings that have not ended yet, soonest first.

    A booking today counts as upcoming while its end time is still ahead.
    Bookings with unusable dates or times are left out.
    """
    today = now.date()
    current_time = now.format("HH:mm")

    pending = [
        booking for booking in bookings
        if booking.date is not None
        and (
            booking.date > today
            or (booking.date == today and (booking.end_time or "") > current_time)
        )
    ]
    pending.sort(key=lambda b: (b.date, b.start_time or ""))
    return pending[:limit]


def split_user_bookings(
    bookings: Sequence[Booking],
    today: Date,
) -> Tuple[List[Booking], List[Booking]]:
    """Split a personal list into (upcoming, past) by date."""
    upcoming: List[Booking] = []
    past: List[Booking] = []

    for booking in bookings:
        if booking.date is not None and booking.date >= today:
            upcoming.append(booking)
        else:
            past.append(booking)

    return upcoming, past


class BookingService:
    """
    Orchestrates booking retrieval and mutation against the backend.

    Dependency inversion toward a protocol makes it easy to plug in the
    REST client or the in-memory mock in tests.
    """

    def __init__(self, booking_client: BookingClientProtocol) -> None:
        self._client = booking_client

    async def list_rooms(self) -> List[Room]:
        return await asyncio.to_thread(self._client.list_rooms)

    async def fetch_bookings(
        self,
        *,
        room_id: Optional[int],
        date_from: Date,
        date_to: Date,
    ) -> List[Booking]:
        """Fetch bookings of one room (or all rooms) for an inclusive date range."""
        return await asyncio.to_thread(
            self._client.fetch_bookings,
            room_id=room_id,
            date_from=date_from,
            date_to=date_to,
        )

    async def fetch_day_bookings(self, room_id: int, date: Date) -> List[Booking]:
        return await self.fetch_bookings(room_id=room_id, date_from=date, date_to=date)

    async def fetch_week_bookings(self, anchor: Date) -> List[Booking]:
        """All rooms' bookings for the Monday-Sunday week around ``anchor``."""
        monday, sunday = week_bounds(anchor)
        return await self.fetch_bookings(room_id=None, date_from=monday, date_to=sunday)

    async def create_booking(self, request: BookingRequest, session: Session) -> Booking:
        """Create a booking, owned by the session's user when authenticated."""
        if session.is_authenticated and request.user_id != session.user_id:
            request = BookingRequest(
                room_id=request.room_id,
                date=request.date,
                start_time=request.start_time,
                end_time=request.end_time,
                booker_name=request.booker_name,
                department=request.department,
                topic=request.topic,
                cancel_code=request.cancel_code,
                user_id=session.user_id,
            )

        booking = await asyncio.to_thread(self._client.create_booking, request)
        logger.info(
            "Created booking %s for room %s on %s %s-%s",
            booking.key,
            request.room_id,
            request.date.to_date_string(),
            request.start_time,
            request.end_time,
        )
        return booking

    async def my_bookings(self, session: Session) -> List[Booking]:
        """
        Bookings owned by the logged-in user.

        Raises:
            AuthenticationError: If the session is anonymous
        """
        if not session.is_authenticated:
            raise AuthenticationError("Log in to see your bookings")
        return await asyncio.to_thread(self._client.fetch_bookings, user_id=session.user_id)

    async def cancel_booking(self, booking: Booking, session: Session) -> None:
        """Cancel a booking owned by the session's user."""
        if not session.is_authenticated:
            raise AuthenticationError("Log in to cancel your bookings")
        if booking.user_id != session.user_id:
            raise AuthenticationError("You can only cancel your own bookings")

        await asyncio.to_thread(self._client.delete_booking, booking.key)
        logger.info("Cancelled booking %s", booking.key)

    async def cancel_booking_by_code(self, code: str) -> Booking:
        """
        Cancel the booking carrying ``code``.

        Raises:
            BookingValidationError: If the code is empty
            BookingNotFoundError: If no booking carries the code
            BookingAPIError: If the backend cannot be reached
        """
        normalized = (code or "").strip().upper()
        if not normalized:
            raise BookingValidationError("Enter the cancellation code you received when booking")

        matches = await asyncio.to_thread(self._client.fetch_bookings, cancel_code=normalized)
        if not matches:
            raise BookingNotFoundError(f"No booking found for code {normalized}")

        booking = matches[0]
        await asyncio.to_thread(self._client.delete_booking, booking.key)
        logger.info("Cancelled booking %s by code", booking.key)
        return booking

    async def upcoming(self, now: Optional[DateTime] = None, limit: int = 10) -> List[Booking]:
        """The next bookings of the current week across both rooms."""
        now = now or pendulum.now()
        bookings = await self.fetch_week_bookings(now.date())
        return upcoming_bookings(bookings, now, limit=limit)
