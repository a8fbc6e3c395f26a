"""
REST client for the CMS booking backend.
"""

import logging
from typing import Any, Dict, List, Optional

import requests
from pendulum import Date

from ..domain.exceptions import BookingAPIError, BookingConflictError
from ..domain.models import Booking, BookingRequest, Room

logger = logging.getLogger(__name__)


def to_backend_time(slot: str) -> str:
    """The backend stores times as ``HH:MM:SS.mmm``."""
    if len(slot) == 5:
        return f"{slot}:00.000"
    return slot


class BookingClient:
    """
    Client for the auto-generated ``rooms`` and ``bookings`` CRUD endpoints.

    The backend is the final authority on conflicts: overlapping
    submissions may be rejected here even when the local check passed.
    """

    def __init__(self, base_url: str, access_token: Optional[str] = None, timeout: int = 30):
        """
        Initialize the booking API client.

        Args:
            base_url: Backend root, e.g. http://localhost:15000
            access_token: Optional JWT of a logged-in user
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json"}
        if access_token:
            self.headers["Authorization"] = f"Bearer {access_token}"

    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> Any:
        url = f"{self.base_url}{endpoint}"

        try:
            response = requests.request(
                method,
                url,
                headers=self.headers,
                params=params,
                json=payload,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise BookingAPIError(f"Could not reach booking backend: {e}") from e

        if not response.ok:
            message = self._error_message(response)
            logger.warning("%s %s failed with %s: %s", method, endpoint, response.status_code, message)
            if response.status_code == 409:
                raise BookingConflictError(message)
            raise BookingAPIError(message)

        if not response.text:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise BookingAPIError(f"Invalid JSON from {endpoint}: {e}") from e

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Prefer the backend's own error message over the bare status code."""
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return error["message"]

        return f"Request failed: {response.status_code}"

    def list_rooms(self) -> List[Room]:
        body = self._request("GET", "/api/rooms", params={"sort": "name:asc"})
        return [Room.from_api(item) for item in (body or {}).get("data", [])]

    def fetch_bookings(
        self,
        *,
        room_id: Optional[int] = None,
        date_from: Optional[Date] = None,
        date_to: Optional[Date] = None,
        user_id: Optional[int] = None,
        cancel_code: Optional[str] = None
    ) -> List[Booking]:
        """
        Fetch bookings matching all given filters.

        Date bounds are inclusive. Bookings come back sorted by date and
        start time with their room populated.
        """
        params: Dict[str, Any] = {
            "populate": "room",
            "sort": "date:asc,startTime:asc",
        }
        if date_from is not None and date_from == date_to:
            params["filters[date][$eq]"] = date_from.to_date_string()
        else:
            if date_from is not None:
                params["filters[date][$gte]"] = date_from.to_date_string()
            if date_to is not None:
                params["filters[date][$lte]"] = date_to.to_date_string()
        if room_id is not None:
            params["filters[room][id][$eq]"] = room_id
        if user_id is not None:
            params["filters[userId][$eq]"] = user_id
        if cancel_code is not None:
            params["filters[cancelCode][$eq]"] = cancel_code

        body = self._request("GET", "/api/bookings", params=params)
        return [Booking.from_api(item) for item in (body or {}).get("data", [])]

    def create_booking(self, request: BookingRequest) -> Booking:
        payload = {
            "data": {
                "date": request.date.to_date_string(),
                "startTime": to_backend_time(request.start_time),
                "endTime": to_backend_time(request.end_time),
                "bookerName": request.booker_name,
                "department": request.department,
                "topic": request.topic,
                "cancelCode": request.cancel_code,
                "userId": request.user_id,
                "room": {"connect": [{"id": request.room_id}]},
            }
        }

        body = self._request("POST", "/api/bookings", payload=payload)
        data = (body or {}).get("data")
        if not isinstance(data, dict):
            raise BookingAPIError("Backend did not return the created booking")

        booking = Booking.from_api(data)
        if booking.room_id is None:
            # Relations are not populated on create responses
            booking = Booking.from_api({**data, "room": {"id": request.room_id}})
        return booking

    def delete_booking(self, key: str) -> None:
        self._request("DELETE", f"/api/bookings/{key}")
