"""
Two-click range selection over the half-hour grid.

The first click picks a start (with a default 30-minute range), the second
click picks the end. Clicking before the start moves the start, clicking
the start again shrinks the range back to 30 minutes. A range may never
cross an occupied slot.

Validation problems are reported through ``RangeSelector.error`` as a
human-readable message. They are never raised.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .occupancy import OccupancyResolver
from .slot_grid import (
    SLOT_GRID,
    SLOT_MINUTES,
    add_minutes,
    is_grid_slot,
    next_slot,
    normalize_time,
    previous_slot,
    selectable_slots,
    slots_between,
)

logger = logging.getLogger(__name__)

ERROR_RANGE_CROSSES_OCCUPIED = "Range crosses an occupied slot"
ERROR_INCOMPLETE_RANGE = "Select a start and an end time on the grid"
ERROR_END_NOT_AFTER_START = "End time must be after start time"
ERROR_OFF_GRID = "Times must be on the half-hour grid between 08:00 and 20:00"
ERROR_INVALID_TIME = "Invalid time, use HH:MM"


class Phase(Enum):
    START = "start"  # next click sets a new start
    END = "end"  # a start is committed, next click sets or adjusts the end


class SlotState(Enum):
    OCCUPIED = "occupied"
    START = "start"
    END = "end"
    SELECTED = "selected"
    FREE = "free"


@dataclass(frozen=True)
class SelectionState:
    """
    Transient, UI-local selection. Never persisted.

    Invariants: phase END always carries both start and end, and a start is
    never set without an end. An end alone is allowed, since typing an end
    time before a start is possible.
    """
    phase: Phase = Phase.START
    start: Optional[str] = None
    end: Optional[str] = None

    def __post_init__(self):
        if self.phase is Phase.END and (self.start is None or self.end is None):
            raise ValueError("Phase END requires both a start and an end")
        if self.start is not None and self.end is None:
            raise ValueError("A start slot must always be paired with an end slot")

    @property
    def committed_range(self) -> Optional[Tuple[str, str]]:
        if self.start is None or self.end is None:
            return None
        return self.start, self.end


class RangeSelector:
    """
    State machine turning slot clicks into a committed (start, end) range.

    ``end`` is the boundary after the last covered slot, so a range
    09:00-09:30 covers exactly the 09:00 slot.
    """

    def __init__(self, resolver: Optional[OccupancyResolver] = None):
        self.resolver = resolver or OccupancyResolver()
        self.state = SelectionState()
        self.error: Optional[str] = None

    @property
    def phase(self) -> Phase:
        return self.state.phase

    def reset(self, resolver: Optional[OccupancyResolver] = None) -> None:
        """Drop the selection, e.g. because room or date changed."""
        if resolver is not None:
            self.resolver = resolver
        self.state = SelectionState()
        self.error = None

    def get_selectable_slots(self):
        return selectable_slots()

    def get_committed_range(self) -> Optional[Tuple[str, str]]:
        return self.state.committed_range

    def handle_slot_click(self, slot: str) -> None:
        """Apply a click on ``slot`` to the selection."""
        t = normalize_time(slot)
        if t is None or t not in SLOT_GRID[:-1]:
            logger.debug("Ignoring click on non-selectable slot %r", slot)
            return

        if self.state.phase is Phase.START:
            self._click_in_start_phase(t)
        else:
            self._click_in_end_phase(t)

    def _click_in_start_phase(self, t: str) -> None:
        if self.resolver.is_occupied(t):
            return

        self.state = SelectionState(phase=Phase.END, start=t, end=next_slot(t))
        self.error = None

    def _click_in_end_phase(self, t: str) -> None:
        start = self.state.start

        if t < start:
            if self.resolver.is_occupied(t):
                return
            # New start, but keep waiting for the end click
            self.state = SelectionState(phase=Phase.END, start=t, end=next_slot(t))
            return

        if t == start:
            self.state = SelectionState(phase=Phase.START, start=t, end=next_slot(t))
            return

        if self.resolver.any_occupied(slots_between(start, t)):
            logger.debug("Rejected range %s-%s: crosses an occupied slot", start, t)
            self.error = ERROR_RANGE_CROSSES_OCCUPIED
            return

        self.state = SelectionState(phase=Phase.START, start=start, end=next_slot(t) or t)
        self.error = None

    def get_slot_state(self, slot: str) -> SlotState:
        """How a grid slot should be drawn given occupancy and the current selection."""
        if self.resolver.is_occupied(slot):
            return SlotState.OCCUPIED

        start, end = self.state.start, self.state.end
        if start is None or end is None:
            return SlotState.FREE

        last_selected = end
        if is_grid_slot(end):
            last_selected = previous_slot(end) or end

        if slot == start:
            return SlotState.START
        if slot == last_selected:
            return SlotState.END
        if start < slot < last_selected:
            return SlotState.SELECTED
        return SlotState.FREE

    def set_start_time(self, value: str) -> None:
        """
        Manual start entry. Bypasses the click state machine and occupancy.

        The end moves to start + 30 minutes only when it is missing or not
        after the new start.
        """
        t = normalize_time(value)
        if t is None:
            self.error = ERROR_INVALID_TIME
            return
        if t not in SLOT_GRID[:-1]:
            self.error = ERROR_OFF_GRID
            return

        end = self.state.end
        if end is None or end <= t:
            end = add_minutes(t, SLOT_MINUTES)

        self.state = SelectionState(phase=self.state.phase, start=t, end=end)
        self.error = None

    def set_end_time(self, value: str) -> None:
        """Manual end entry. Never moves the start."""
        t = normalize_time(value)
        if t is None:
            self.error = ERROR_INVALID_TIME
            return
        if t not in SLOT_GRID[1:]:
            self.error = ERROR_OFF_GRID
            return

        self.state = SelectionState(phase=self.state.phase, start=self.state.start, end=t)
        self.error = None

    def validate_for_submit(self) -> Optional[str]:
        """Return a validation message when the selection cannot be submitted."""
        committed = self.get_committed_range()
        if committed is None:
            return ERROR_INCOMPLETE_RANGE

        start, end = committed
        if not is_grid_slot(start) or not is_grid_slot(end):
            return ERROR_OFF_GRID
        if end <= start:
            return ERROR_END_NOT_AFTER_START
        return None
