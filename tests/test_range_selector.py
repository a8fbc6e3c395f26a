"""
Tests for the two-click range selector.
"""

import pendulum
import pytest

from roomcalendar.domain.models import Booking
from roomcalendar.domain.occupancy import OccupancyResolver
from roomcalendar.domain.range_selector import (
    ERROR_END_NOT_AFTER_START,
    ERROR_INCOMPLETE_RANGE,
    ERROR_INVALID_TIME,
    ERROR_OFF_GRID,
    ERROR_RANGE_CROSSES_OCCUPIED,
    Phase,
    RangeSelector,
    SelectionState,
    SlotState,
)


def _selector(*intervals):
    bookings = [
        Booking(
            id=idx,
            room_id=1,
            date=pendulum.date(2024, 11, 25),
            start_time=start,
            end_time=end,
            booker_name="Boris",
            department="IT",
        )
        for idx, (start, end) in enumerate(intervals, 1)
    ]
    return RangeSelector(OccupancyResolver(bookings))


class TestSelectionState:
    """Illegal phase/data combinations cannot be built."""

    def test_default_state_is_empty_start_phase(self):
        state = SelectionState()

        assert state.phase is Phase.START
        assert state.committed_range is None

    def test_end_phase_requires_range(self):
        with pytest.raises(ValueError, match="Phase END requires"):
            SelectionState(phase=Phase.END, start="09:00")

    def test_start_requires_end(self):
        with pytest.raises(ValueError, match="paired"):
            SelectionState(phase=Phase.START, start="09:00")

    def test_end_alone_is_allowed(self):
        state = SelectionState(end="10:00")

        assert state.committed_range is None


class TestStartPhase:
    """Clicks while no range is being extended."""

    def test_first_click_sets_default_range(self):
        selector = _selector()

        selector.handle_slot_click("09:00")

        assert selector.phase is Phase.END
        assert selector.get_committed_range() == ("09:00", "09:30")
        assert selector.error is None

    def test_click_on_occupied_slot_is_ignored(self):
        selector = _selector(("10:00", "11:00"))

        selector.handle_slot_click("10:30")

        assert selector.phase is Phase.START
        assert selector.get_committed_range() is None

    def test_click_on_occupied_slot_keeps_committed_range(self):
        selector = _selector(("10:00", "11:00"))
        selector.handle_slot_click("09:00")
        selector.handle_slot_click("09:00")
        before = selector.state

        selector.handle_slot_click("10:00")

        assert selector.state == before
        assert selector.phase is Phase.START

    def test_last_selectable_slot_ends_at_day_end(self):
        selector = _selector()

        selector.handle_slot_click("19:30")

        assert selector.get_committed_range() == ("19:30", "20:00")

    def test_end_marker_is_not_clickable(self):
        selector = _selector()

        selector.handle_slot_click("20:00")
        selector.handle_slot_click("07:30")

        assert selector.phase is Phase.START
        assert selector.get_committed_range() is None

    def test_new_start_clears_previous_error(self):
        selector = _selector(("10:00", "10:30"))
        selector.handle_slot_click("09:00")
        selector.handle_slot_click("11:00")
        assert selector.error == ERROR_RANGE_CROSSES_OCCUPIED

        selector.handle_slot_click("09:00")
        assert selector.phase is Phase.START
        assert selector.error == ERROR_RANGE_CROSSES_OCCUPIED

        selector.handle_slot_click("12:00")

        assert selector.error is None
        assert selector.get_committed_range() == ("12:00", "12:30")


class TestEndPhase:
    """Clicks while a start is committed."""

    def test_same_slot_confirms_default_range(self):
        """09:00 then 09:00 again yields 09:00-09:30."""
        selector = _selector()

        selector.handle_slot_click("09:00")
        selector.handle_slot_click("09:00")

        assert selector.phase is Phase.START
        assert selector.get_committed_range() == ("09:00", "09:30")

    def test_later_slot_commits_range_through_that_slot(self):
        """09:00 then 11:00 with nothing in between yields 09:00-11:30."""
        selector = _selector()

        selector.handle_slot_click("09:00")
        selector.handle_slot_click("11:00")

        assert selector.phase is Phase.START
        assert selector.get_committed_range() == ("09:00", "11:30")
        assert selector.error is None

    def test_range_across_occupied_slot_is_rejected(self):
        """09:00 then 11:00 with 10:00 occupied keeps 09:00-09:30 and reports an error."""
        selector = _selector(("10:00", "10:30"))

        selector.handle_slot_click("09:00")
        selector.handle_slot_click("11:00")

        assert selector.get_committed_range() == ("09:00", "09:30")
        assert selector.phase is Phase.END
        assert selector.error == ERROR_RANGE_CROSSES_OCCUPIED

    def test_range_ending_on_occupied_slot_is_rejected(self):
        selector = _selector(("10:00", "11:00"))

        selector.handle_slot_click("09:00")
        selector.handle_slot_click("10:00")

        assert selector.get_committed_range() == ("09:00", "09:30")
        assert selector.error == ERROR_RANGE_CROSSES_OCCUPIED

    def test_range_up_to_booking_start_is_accepted(self):
        selector = _selector(("10:00", "11:00"))

        selector.handle_slot_click("09:00")
        selector.handle_slot_click("09:30")

        assert selector.get_committed_range() == ("09:00", "10:00")

    def test_earlier_slot_becomes_new_start_and_stays_in_end_phase(self):
        """A click before the start moves the start without leaving the END phase."""
        selector = _selector()

        selector.handle_slot_click("09:00")
        selector.handle_slot_click("08:00")

        assert selector.get_committed_range() == ("08:00", "08:30")
        assert selector.phase is Phase.END

        selector.handle_slot_click("09:00")

        assert selector.get_committed_range() == ("08:00", "09:30")
        assert selector.phase is Phase.START

    def test_earlier_occupied_slot_is_ignored(self):
        selector = _selector(("08:00", "08:30"))

        selector.handle_slot_click("09:00")
        selector.handle_slot_click("08:00")

        assert selector.get_committed_range() == ("09:00", "09:30")
        assert selector.phase is Phase.END

    def test_range_to_last_slot(self):
        selector = _selector()

        selector.handle_slot_click("18:00")
        selector.handle_slot_click("19:30")

        assert selector.get_committed_range() == ("18:00", "20:00")


class TestEndToEnd:
    """The booking 14:00-15:00 scenario."""

    def test_crossing_rejected_then_shorter_range_accepted(self):
        selector = _selector(("14:00", "15:00"))

        selector.handle_slot_click("13:00")
        selector.handle_slot_click("16:00")

        assert selector.error == ERROR_RANGE_CROSSES_OCCUPIED
        assert selector.get_committed_range() == ("13:00", "13:30")

        selector.reset()
        selector.handle_slot_click("13:00")
        selector.handle_slot_click("13:30")

        assert selector.error is None
        assert selector.get_committed_range() == ("13:00", "14:00")

    def test_rejected_range_can_be_corrected_with_one_click(self):
        """After a rejection the start is still committed, so one more click finishes the range."""
        selector = _selector(("14:00", "15:00"))

        selector.handle_slot_click("13:00")
        selector.handle_slot_click("16:00")
        selector.handle_slot_click("13:30")

        assert selector.error is None
        assert selector.get_committed_range() == ("13:00", "14:00")
        assert selector.phase is Phase.START


class TestSlotState:
    """Tests for slot rendering states."""

    def test_all_free_without_selection(self):
        selector = _selector()

        assert {selector.get_slot_state(s) for s in selector.get_selectable_slots()} == {SlotState.FREE}

    def test_states_of_a_range(self):
        selector = _selector(("15:00", "16:00"))
        selector.handle_slot_click("09:00")
        selector.handle_slot_click("10:00")

        assert selector.get_slot_state("08:30") is SlotState.FREE
        assert selector.get_slot_state("09:00") is SlotState.START
        assert selector.get_slot_state("09:30") is SlotState.SELECTED
        assert selector.get_slot_state("10:00") is SlotState.END
        assert selector.get_slot_state("10:30") is SlotState.FREE
        assert selector.get_slot_state("15:00") is SlotState.OCCUPIED

    def test_single_slot_range_shows_start(self):
        selector = _selector()
        selector.handle_slot_click("09:00")

        assert selector.get_slot_state("09:00") is SlotState.START
        assert selector.get_slot_state("09:30") is SlotState.FREE

    def test_selectable_slots_ignore_bookings(self):
        assert len(_selector(("08:00", "20:00")).get_selectable_slots()) == 24


class TestManualInput:
    """Typed start and end times."""

    def test_start_without_end_sets_default_end(self):
        selector = _selector()

        selector.set_start_time("10:00")

        assert selector.get_committed_range() == ("10:00", "10:30")

    def test_start_keeps_end_that_is_still_after_it(self):
        selector = _selector()
        selector.set_end_time("12:00")

        selector.set_start_time("10:00")

        assert selector.get_committed_range() == ("10:00", "12:00")

    def test_start_pushes_end_that_is_not_after_it(self):
        selector = _selector()
        selector.set_start_time("09:00")
        selector.set_end_time("10:00")

        selector.set_start_time("10:00")

        assert selector.get_committed_range() == ("10:00", "10:30")

    def test_end_never_moves_start(self):
        selector = _selector()
        selector.set_start_time("11:00")

        selector.set_end_time("10:00")

        assert selector.get_committed_range() == ("11:00", "10:00")
        assert selector.validate_for_submit() == ERROR_END_NOT_AFTER_START

    def test_manual_input_skips_occupancy(self):
        selector = _selector(("10:00", "11:00"))

        selector.set_start_time("09:00")
        selector.set_end_time("12:00")

        assert selector.get_committed_range() == ("09:00", "12:00")
        assert selector.error is None

    def test_malformed_input_sets_error(self):
        selector = _selector()

        selector.set_start_time("ten")
        assert selector.error == ERROR_INVALID_TIME

        selector.set_start_time("10:15")
        assert selector.error == ERROR_OFF_GRID
        assert selector.get_committed_range() is None


class TestValidateForSubmit:
    """Local checks before a booking is sent."""

    def test_incomplete_range(self):
        assert _selector().validate_for_submit() == ERROR_INCOMPLETE_RANGE

    def test_valid_range(self):
        selector = _selector()
        selector.handle_slot_click("09:00")

        assert selector.validate_for_submit() is None

    def test_reset_clears_everything(self):
        selector = _selector()
        selector.handle_slot_click("09:00")

        selector.reset()

        assert selector.state == SelectionState()
        assert selector.error is None
