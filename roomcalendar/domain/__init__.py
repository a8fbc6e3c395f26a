"""
Domain layer - Pure booking logic without external dependencies.
"""

from .models import Booking, BookingRequest, Room, Session, User
from .occupancy import OccupancyResolver
from .range_selector import Phase, RangeSelector, SelectionState, SlotState
from .slot_grid import SLOT_GRID, generate_slot_grid, selectable_slots

__all__ = [
    "Booking",
    "BookingRequest",
    "Room",
    "Session",
    "User",
    "OccupancyResolver",
    "Phase",
    "RangeSelector",
    "SelectionState",
    "SlotState",
    "SLOT_GRID",
    "generate_slot_grid",
    "selectable_slots",
]
