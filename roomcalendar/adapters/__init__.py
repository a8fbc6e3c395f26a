"""
Adapters layer - External integrations (booking REST backend, authentication).
"""

from .authenticator import Authenticator
from .booking_client import BookingClient
from .mock_booking_client import MockBookingClient

__all__ = ["Authenticator", "BookingClient", "MockBookingClient"]
