"""
The fixed half-hour grid of the booking day.

Slots are zero-padded ``"HH:MM"`` strings, so string comparison orders them
chronologically. Everything else in the domain relies on that.
"""

import re
from datetime import time
from typing import List, Optional, Tuple

DAY_START = "08:00"
DAY_END = "20:00"
SLOT_MINUTES = 30

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d{1,6})?)?$")


def normalize_time(value) -> Optional[str]:
    """
    Reduce a time of day to its ``HH:MM`` prefix.

    Accepts ``HH:MM``, ``HH:MM:SS`` and ``HH:MM:SS.mmm`` strings as sent by
    the backend, as well as ``datetime.time`` objects. Anything else,
    including None, yields None instead of raising.
    """
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if not isinstance(value, str):
        return None

    match = _TIME_PATTERN.match(value.strip())
    if not match:
        return None

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    if match.group(3) is not None and int(match.group(3)) > 59:
        return None

    return f"{hour:02d}:{minute:02d}"


def to_minutes(slot: str) -> int:
    """Minutes since midnight for an ``HH:MM`` string."""
    hour, minute = slot.split(":")
    return int(hour) * 60 + int(minute)


def from_minutes(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def generate_slot_grid(
    start: str = DAY_START,
    end: str = DAY_END,
    step_minutes: int = SLOT_MINUTES
) -> Tuple[str, ...]:
    """
    Generate the ordered slot boundaries from ``start`` to ``end`` inclusive.

    With the defaults this is 08:00, 08:30, ... 19:30, 20:00: 25 boundaries,
    of which the last one only ever serves as an end marker.
    """
    if step_minutes <= 0:
        raise ValueError(f"step_minutes must be positive, got {step_minutes}")

    first = to_minutes(start)
    last = to_minutes(end)
    if first >= last:
        raise ValueError(f"Grid start {start} must be before grid end {end}")
    if (last - first) % step_minutes:
        raise ValueError(f"Grid {start}-{end} is not a multiple of {step_minutes} minutes")

    return tuple(from_minutes(m) for m in range(first, last + 1, step_minutes))


SLOT_GRID: Tuple[str, ...] = generate_slot_grid()


def selectable_slots() -> List[str]:
    """All grid boundaries that can start a booking (everything but 20:00)."""
    return list(SLOT_GRID[:-1])


def is_grid_slot(slot: str) -> bool:
    return slot in SLOT_GRID


def slot_index(slot: str) -> int:
    """
    Position of ``slot`` in the grid.

    Raises:
        ValueError: If the slot is not a grid boundary
    """
    try:
        return SLOT_GRID.index(slot)
    except ValueError:
        raise ValueError(f"{slot!r} is not on the {SLOT_MINUTES}-minute grid") from None


def next_slot(slot: str) -> Optional[str]:
    """The boundary right after ``slot``, or None at the end of the day."""
    idx = slot_index(slot)
    if idx + 1 < len(SLOT_GRID):
        return SLOT_GRID[idx + 1]
    return None


def previous_slot(slot: str) -> Optional[str]:
    idx = slot_index(slot)
    if idx > 0:
        return SLOT_GRID[idx - 1]
    return None


def slots_between(first: str, last: str) -> List[str]:
    """Grid slots from ``first`` through ``last``, both inclusive."""
    return list(SLOT_GRID[slot_index(first):slot_index(last) + 1])


def add_minutes(slot: str, minutes: int, ceiling: str = DAY_END) -> str:
    """Shift an ``HH:MM`` time by ``minutes``, never past ``ceiling``."""
    shifted = min(to_minutes(slot) + minutes, to_minutes(ceiling))
    return from_minutes(shifted)
