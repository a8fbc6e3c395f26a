"""
The booking form: room and date choice, slot selection and submission.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from typing import List, Optional, Tuple

from pendulum import Date

from ..domain.exceptions import BookingAPIError
from ..domain.models import Booking, BookingRequest, Session
from ..domain.occupancy import OccupancyResolver
from ..domain.range_selector import Phase, RangeSelector, SlotState
from .booking_service import BookingService

logger = logging.getLogger(__name__)

CANCEL_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_cancel_code(length: int = 6) -> str:
    """Short uppercase token handed to anonymous bookers."""
    return "".join(secrets.choice(CANCEL_CODE_ALPHABET) for _ in range(length))


@dataclass(frozen=True)
class SubmissionResult:
    booking: Booking
    cancel_code: Optional[str] = None


class BookingForm:
    """
    Form state for one booking, bound to a room and a date.

    Bookings for the chosen room/date are a snapshot replaced wholesale on
    every refresh. Each refresh gets a sequence number and only the
    response of the most recently issued one is applied, so a slow answer
    for a previous room or date can never overwrite a newer one.
    """

    def __init__(
        self,
        service: BookingService,
        room_id: int,
        date: Date,
        cancel_code_length: int = 6,
    ):
        self._service = service
        self.room_id = room_id
        self.date = date
        self.cancel_code_length = cancel_code_length
        self.selector = RangeSelector()
        self.bookings: List[Booking] = []
        self.loading = False
        self.fetch_error: Optional[str] = None
        self._submit_error: Optional[str] = None
        self._request_seq = 0

    @property
    def error(self) -> Optional[str]:
        """The message to show next to the form, if any."""
        return self._submit_error or self.selector.error

    @property
    def phase(self) -> Phase:
        return self.selector.phase

    def select_room(self, room_id: int) -> None:
        if room_id != self.room_id:
            self.room_id = room_id
            self._reset_for_new_target()

    def select_date(self, date: Date) -> None:
        if date != self.date:
            self.date = date
            self._reset_for_new_target()

    def _reset_for_new_target(self) -> None:
        # Any fetch still in flight answers the previous room or date
        self.begin_request()
        self.bookings = []
        self.loading = False
        self.fetch_error = None
        self._submit_error = None
        self.selector.reset(OccupancyResolver())

    def begin_request(self) -> int:
        """Issue a new request sequence number, making all older ones stale."""
        self._request_seq += 1
        return self._request_seq

    def apply_bookings(self, request_seq: int, bookings: List[Booking]) -> bool:
        """
        Apply a fetched snapshot if it answers the latest request.

        Returns False (and changes nothing) for stale responses.
        """
        if request_seq != self._request_seq:
            logger.debug(
                "Discarding stale bookings response %s (latest is %s)",
                request_seq,
                self._request_seq,
            )
            return False

        self.bookings = list(bookings)
        self.selector.resolver = OccupancyResolver(self.bookings)
        return True

    async def refresh(self) -> bool:
        """
        Reload the bookings of the current room and date.

        Returns True when this response was applied, False when a newer
        request superseded it.
        """
        request_seq = self.begin_request()
        room_id, date = self.room_id, self.date
        self.loading = True

        try:
            bookings = await self._service.fetch_day_bookings(room_id, date)
        except BookingAPIError as exc:
            if request_seq != self._request_seq:
                return False
            logger.warning("Could not load bookings for room %s on %s: %s", room_id, date, exc)
            self.fetch_error = str(exc)
            self.loading = False
            return self.apply_bookings(request_seq, [])

        applied = self.apply_bookings(request_seq, bookings)
        if applied:
            self.fetch_error = None
            self.loading = False
        return applied

    def get_selectable_slots(self) -> List[str]:
        return self.selector.get_selectable_slots()

    def get_slot_state(self, slot: str) -> SlotState:
        return self.selector.get_slot_state(slot)

    def get_slot_booking(self, slot: str) -> Optional[Booking]:
        return self.selector.resolver.occupying_booking(slot)

    def get_committed_range(self) -> Optional[Tuple[str, str]]:
        return self.selector.get_committed_range()

    def handle_slot_click(self, slot: str) -> None:
        self._submit_error = None
        self.selector.handle_slot_click(slot)

    def set_start_time(self, value: str) -> None:
        self._submit_error = None
        self.selector.set_start_time(value)

    def set_end_time(self, value: str) -> None:
        self._submit_error = None
        self.selector.set_end_time(value)

    def _validate(self, booker_name: str, department: str) -> Optional[str]:
        message = self.selector.validate_for_submit()
        if message:
            return message
        if not booker_name.strip():
            return "Enter your name"
        if not department.strip():
            return "Enter your department"
        return None

    async def submit(
        self,
        session: Session,
        booker_name: str,
        department: str,
        topic: Optional[str] = None,
    ) -> Optional[SubmissionResult]:
        """
        Validate locally, then create the booking.

        Returns None and sets ``error`` when validation fails (no network
        call is made) or when the backend rejects the booking. Anonymous
        bookers get a cancellation code in the result.
        """
        message = self._validate(booker_name, department)
        if message:
            self._submit_error = message
            return None

        start, end = self.get_committed_range()
        code = None if session.is_authenticated else generate_cancel_code(self.cancel_code_length)

        request = BookingRequest(
            room_id=self.room_id,
            date=self.date,
            start_time=start,
            end_time=end,
            booker_name=booker_name.strip(),
            department=department.strip(),
            topic=(topic or "").strip() or None,
            cancel_code=code,
            user_id=session.user_id,
        )

        try:
            booking = await self._service.create_booking(request, session)
        except BookingAPIError as exc:
            logger.warning("Booking was rejected: %s", exc)
            self._submit_error = str(exc)
            return None

        self._submit_error = None
        return SubmissionResult(booking=booking, cancel_code=code)
