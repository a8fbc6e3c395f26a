"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_form import BookingForm, SubmissionResult, generate_cancel_code
from .booking_service import BookingClientProtocol, BookingService

__all__ = [
    "BookingClientProtocol",
    "BookingForm",
    "BookingService",
    "SubmissionResult",
    "generate_cancel_code",
]
