"""
Domain models for rooms, bookings and the caller's session.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import pendulum
from pendulum import Date

from .slot_grid import DAY_END, DAY_START, is_grid_slot, normalize_time

logger = logging.getLogger(__name__)


def parse_date(value: Any) -> Optional[Date]:
    """Parse a ``YYYY-MM-DD`` value into a pendulum Date, or None if it is unusable."""
    if isinstance(value, Date):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return pendulum.from_format(value[:10], "YYYY-MM-DD").date()
    except ValueError:
        return None


def _room_id_from_payload(room: Any) -> Optional[int]:
    # The CMS returns either a populated relation or a {"data": {...}} wrapper
    if isinstance(room, dict):
        if "id" in room:
            return room["id"]
        data = room.get("data")
        if isinstance(data, dict):
            return data.get("id")
    if isinstance(room, int):
        return room
    return None


@dataclass(frozen=True)
class Room:
    """A bookable room. Static reference data owned by the backend."""
    id: int
    name: str
    capacity: Optional[int] = None
    description: Optional[str] = None
    document_id: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Room":
        return cls(
            id=payload["id"],
            name=payload.get("name") or f"Room {payload['id']}",
            capacity=payload.get("capacity"),
            description=payload.get("description"),
            document_id=payload.get("documentId"),
        )


@dataclass(frozen=True)
class Booking:
    """
    An existing reservation as returned by the backend.

    ``start_time`` and ``end_time`` hold the normalized ``HH:MM`` prefix of
    the backend value, or None when the backend sent something unusable.
    Such bookings are kept (they still show up in lists) but never occupy
    a slot.
    """
    id: Optional[int]
    room_id: Optional[int]
    date: Optional[Date]
    start_time: Optional[str]
    end_time: Optional[str]
    booker_name: str = ""
    department: str = ""
    topic: Optional[str] = None
    cancel_code: Optional[str] = None
    user_id: Optional[int] = None
    document_id: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Booking":
        """Build a booking from a CMS payload without ever raising on bad fields."""
        start_time = normalize_time(payload.get("startTime"))
        end_time = normalize_time(payload.get("endTime"))
        if start_time is None or end_time is None:
            logger.debug(
                "Booking %s has malformed times: %r - %r",
                payload.get("id"),
                payload.get("startTime"),
                payload.get("endTime"),
            )

        return cls(
            id=payload.get("id"),
            room_id=_room_id_from_payload(payload.get("room")),
            date=parse_date(payload.get("date")),
            start_time=start_time,
            end_time=end_time,
            booker_name=payload.get("bookerName") or "",
            department=payload.get("department") or "",
            topic=payload.get("topic") or None,
            cancel_code=payload.get("cancelCode") or None,
            user_id=payload.get("userId"),
            document_id=payload.get("documentId"),
        )

    @property
    def key(self) -> str:
        """Identifier used for deletion: the document id when the backend provides one."""
        return str(self.document_id or self.id)

    def has_valid_interval(self) -> bool:
        return (
            self.start_time is not None
            and self.end_time is not None
            and self.start_time < self.end_time
        )

    def format_display(self, room_name: Optional[str] = None) -> str:
        """
        Format the booking for list output.
        Format: Mon, 25.11.2024 | 09:00 – 10:30 | Topic · Name · Department
        """
        date_str = self.date.format("ddd, DD.MM.YYYY") if self.date else "?"
        time_str = f"{self.start_time or '??:??'} – {self.end_time or '??:??'}"
        who = " · ".join(part for part in (self.booker_name, self.department) if part)
        topic = self.topic or "No topic"
        parts = [date_str, time_str]
        if room_name:
            parts.append(room_name)
        parts.append(f"{topic} · {who}" if who else topic)
        return " | ".join(parts)


@dataclass(frozen=True)
class BookingRequest:
    """
    Fields for a new booking.

    Invariant: start < end, both on the half-hour grid within the booking day.
    """
    room_id: int
    date: Date
    start_time: str
    end_time: str
    booker_name: str
    department: str
    topic: Optional[str] = None
    cancel_code: Optional[str] = None
    user_id: Optional[int] = None

    def __post_init__(self):
        if not is_grid_slot(self.start_time) or not is_grid_slot(self.end_time):
            raise ValueError(
                f"Booking times {self.start_time}-{self.end_time} must lie on the "
                f"half-hour grid between {DAY_START} and {DAY_END}"
            )
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Start time {self.start_time} must be before end time {self.end_time}"
            )


@dataclass(frozen=True)
class User:
    id: int
    username: str
    email: str = ""

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "User":
        return cls(
            id=payload["id"],
            username=payload.get("username") or "",
            email=payload.get("email") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "username": self.username, "email": self.email}


@dataclass(frozen=True)
class Session:
    """
    The caller's authentication context.

    Passed explicitly into the services instead of living in global state.
    The booking core only needs to know whether the booker is authenticated,
    which decides whether a cancellation code is generated.
    """
    token: Optional[str] = None
    user: Optional[User] = field(default=None)

    @classmethod
    def anonymous(cls) -> "Session":
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) and self.user is not None

    @property
    def user_id(self) -> Optional[int]:
        return self.user.id if self.user else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "user": self.user.to_dict() if self.user else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        user = data.get("user")
        return cls(
            token=data.get("token"),
            user=User.from_api(user) if user else None,
        )
