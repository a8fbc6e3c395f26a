"""
In-memory booking backend for running without a CMS server.
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pendulum import Date

from ..domain.exceptions import BookingAPIError, BookingConflictError
from ..domain.models import Booking, BookingRequest, Room
from ..domain.occupancy import bookings_overlap
from .booking_client import to_backend_time

logger = logging.getLogger(__name__)


class MockBookingClient:
    """
    Mock client that mimics the booking REST backend in memory.

    Bookings are stored in the backend's JSON shape so they go through the
    same ``Booking.from_api`` parsing as real responses. When a data file is
    given, it seeds the store and every change is written back to it.

    Unlike the real backend, this one enforces an exclusion constraint on
    room + date + interval: overlapping inserts fail with
    ``BookingConflictError``.
    """

    def __init__(self, rooms: Iterable[Room], data_file: Optional[Path] = None):
        """
        Initialize the mock client.

        Args:
            rooms: Rooms the backend knows about
            data_file: Optional JSON file with a list of booking payloads
        """
        self.rooms = sorted(rooms, key=lambda room: room.name)
        self.data_file = data_file
        self.bookings: List[Dict[str, Any]] = []
        self._next_id = 1
        self._load_booking_data()

    def _load_booking_data(self) -> None:
        """Load mock booking data from the JSON file."""
        if self.data_file is None or not self.data_file.exists():
            return

        try:
            with open(self.data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Could not load mock data from %s: %s", self.data_file, exc)
            return

        if not isinstance(data, list):
            logger.warning("Mock data in %s is not a list, ignoring it", self.data_file)
            return

        self.bookings = [item for item in data if isinstance(item, dict)]
        ids = [item["id"] for item in self.bookings if isinstance(item.get("id"), int)]
        self._next_id = max(ids, default=0) + 1

    def _save_booking_data(self) -> None:
        if self.data_file is None:
            return
        try:
            with open(self.data_file, "w", encoding="utf-8") as f:
                json.dump(self.bookings, f, ensure_ascii=False, indent=2)
        except OSError as exc:
            logger.warning("Could not save mock data to %s: %s", self.data_file, exc)

    def _find_room(self, room_id: int) -> Room:
        for room in self.rooms:
            if room.id == room_id:
                return room
        raise BookingAPIError(f"Room {room_id} not found")

    def list_rooms(self) -> List[Room]:
        return list(self.rooms)

    def fetch_bookings(
        self,
        *,
        room_id: Optional[int] = None,
        date_from: Optional[Date] = None,
        date_to: Optional[Date] = None,
        user_id: Optional[int] = None,
        cancel_code: Optional[str] = None
    ) -> List[Booking]:
        matches: List[Booking] = []

        for payload in self.bookings:
            booking = Booking.from_api(payload)

            if room_id is not None and booking.room_id != room_id:
                continue
            if date_from is not None and (booking.date is None or booking.date < date_from):
                continue
            if date_to is not None and (booking.date is None or booking.date > date_to):
                continue
            if user_id is not None and booking.user_id != user_id:
                continue
            if cancel_code is not None and booking.cancel_code != cancel_code:
                continue

            matches.append(booking)

        matches.sort(key=lambda b: (b.date.to_date_string() if b.date else "", b.start_time or ""))
        return matches

    def create_booking(self, request: BookingRequest) -> Booking:
        room = self._find_room(request.room_id)

        for existing in self.fetch_bookings(
            room_id=request.room_id,
            date_from=request.date,
            date_to=request.date
        ):
            if not existing.has_valid_interval():
                continue
            if bookings_overlap(
                request.start_time,
                request.end_time,
                existing.start_time,
                existing.end_time
            ):
                raise BookingConflictError(
                    f"{room.name} is already booked {existing.start_time}-{existing.end_time} "
                    f"on {request.date.to_date_string()}"
                )

        payload = {
            "id": self._next_id,
            "documentId": uuid.uuid4().hex[:24],
            "date": request.date.to_date_string(),
            "startTime": to_backend_time(request.start_time),
            "endTime": to_backend_time(request.end_time),
            "bookerName": request.booker_name,
            "department": request.department,
            "topic": request.topic,
            "cancelCode": request.cancel_code,
            "userId": request.user_id,
            "room": {"id": room.id, "name": room.name},
        }
        self._next_id += 1
        self.bookings.append(payload)
        self._save_booking_data()

        return Booking.from_api(payload)

    def delete_booking(self, key: str) -> None:
        for index, payload in enumerate(self.bookings):
            if str(payload.get("documentId") or payload.get("id")) == key:
                del self.bookings[index]
                self._save_booking_data()
                return
        raise BookingAPIError("Not Found")
