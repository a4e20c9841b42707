"""Tests for working-window resolution."""

import json
from datetime import date

import pytest

from hospital_booking.services.slots.availability import (
    REASON_NO_SCHEDULE,
    REASON_NOT_ASSIGNED,
    REASON_ON_LEAVE,
    Unavailable,
    WorkingWindow,
    find_approved_leave,
    format_legacy_time,
    load_availability,
    resolve_for_doctor,
    resolve_working_window,
)
from hospital_booking.services.slots.timegrid import TimeOfDay

from conftest import MONDAY, MORNING_SHIFT, WEDNESDAY, add_leave

TUESDAY = date(2026, 10, 20)

LEGACY_MONDAY = {"day": "Monday", "slots": ["9AM-1PM", "3PM-5PM"]}


class TestWorkingWindow:
    """Tests for WorkingWindow invariants."""

    def test_start_must_precede_end(self):
        with pytest.raises(ValueError):
            WorkingWindow(frozenset(["Monday"]), TimeOfDay(13, 0), TimeOfDay(9, 0))

    def test_break_must_lie_inside_window(self):
        with pytest.raises(ValueError):
            WorkingWindow(
                frozenset(["Monday"]),
                TimeOfDay(9, 0),
                TimeOfDay(13, 0),
                TimeOfDay(13, 0),
                TimeOfDay(14, 0),
            )

    def test_break_needs_both_ends(self):
        with pytest.raises(ValueError):
            WorkingWindow(frozenset(["Monday"]), TimeOfDay(9, 0), TimeOfDay(13, 0), TimeOfDay(12, 0))


class TestResolveWorkingWindow:
    """Tests for resolve_working_window."""

    def test_structured_entry(self):
        """Should normalize a structured entry listing the weekday."""
        window = resolve_working_window([MORNING_SHIFT], WEDNESDAY)

        assert isinstance(window, WorkingWindow)
        assert window.start == TimeOfDay(9, 0)
        assert window.end == TimeOfDay(13, 0)
        assert window.break_start == TimeOfDay(12, 0)
        assert window.break_end == TimeOfDay(12, 30)

    def test_legacy_entry_uses_first_range(self):
        """Legacy records use only their first range and carry no break."""
        window = resolve_working_window([LEGACY_MONDAY], MONDAY)

        assert isinstance(window, WorkingWindow)
        assert window.start == TimeOfDay(9, 0)
        assert window.end == TimeOfDay(13, 0)
        assert not window.has_break

    def test_both_shapes_give_same_slots(self):
        """A structured and a legacy entry for the same hours give the same slots."""
        structured = {"days": ["Monday"], "startTime": "9:00 AM", "endTime": "1:00 PM"}
        legacy = {"day": "Monday", "slots": ["9AM-1PM"]}

        from_structured = resolve_working_window([structured], MONDAY)
        from_legacy = resolve_working_window([legacy], MONDAY)

        assert from_structured.micro_slots() == from_legacy.micro_slots()

    def test_structured_wins_over_legacy(self):
        structured = {"days": ["Monday"], "startTime": "2:00 PM", "endTime": "4:00 PM"}

        window = resolve_working_window([LEGACY_MONDAY, structured], MONDAY)

        assert window.start == TimeOfDay(14, 0)

    def test_no_entry_for_weekday(self):
        result = resolve_working_window([MORNING_SHIFT, LEGACY_MONDAY], TUESDAY)

        assert result == Unavailable(REASON_NO_SCHEDULE, "Doctor is not available on Tuesday")

    def test_empty_availability(self):
        result = resolve_working_window([], MONDAY)

        assert isinstance(result, Unavailable)
        assert result.reason == REASON_NO_SCHEDULE

    def test_leave_takes_precedence(self):
        """Leave wins even when a schedule exists for that weekday."""
        result = resolve_working_window([MORNING_SHIFT], WEDNESDAY, on_leave=True)

        assert isinstance(result, Unavailable)
        assert result.reason == REASON_ON_LEAVE

    def test_malformed_entry_is_skipped(self):
        """An unparseable entry is skipped; the next valid one is used."""
        broken = {"days": ["Monday"], "startTime": "soon", "endTime": "1:00 PM"}
        valid = {"days": ["Monday"], "startTime": "10:00 AM", "endTime": "11:00 AM"}

        window = resolve_working_window([broken, "junk", valid], MONDAY)

        assert window.start == TimeOfDay(10, 0)

    def test_invalid_break_is_dropped(self):
        """A break outside the window is dropped but the window is kept."""
        entry = {
            "days": ["Monday"],
            "startTime": "9:00 AM",
            "endTime": "11:00 AM",
            "breakStart": "12:00 PM",
            "breakEnd": "12:30 PM",
        }

        window = resolve_working_window([entry], MONDAY)

        assert isinstance(window, WorkingWindow)
        assert not window.has_break
        assert len(window.micro_slots()) == 24

    def test_inverted_window_is_skipped(self):
        entry = {"days": ["Monday"], "startTime": "5:00 PM", "endTime": "9:00 AM"}

        result = resolve_working_window([entry], MONDAY)

        assert isinstance(result, Unavailable)


class TestLegacyHelpers:
    """Tests for legacy availability helpers."""

    @pytest.mark.parametrize(
        "value,expected",
        [("9AM", "9:00 AM"), ("1pm", "1:00 PM"), (" 10 AM ", "10:00 AM"), ("9:30 AM", "9:30 AM")],
    )
    def test_format_legacy_time(self, value, expected):
        assert format_legacy_time(value) == expected

    def test_load_availability(self):
        assert load_availability(json.dumps([MORNING_SHIFT])) == [MORNING_SHIFT]
        assert load_availability(None) == []
        assert load_availability("") == []
        assert load_availability("{not json") == []
        assert load_availability('{"days": []}') == []


class TestResolveForDoctor:
    """Tests for resolution against stored records."""

    def test_not_assigned(self, db_session, doctor):
        result = resolve_for_doctor(db_session, None, doctor.user_id, WEDNESDAY)

        assert result.reason == REASON_NOT_ASSIGNED

    def test_uses_stored_availability(self, db_session, doctor):
        result = resolve_for_doctor(db_session, doctor.hospitals[0], doctor.user_id, WEDNESDAY)

        assert isinstance(result, WorkingWindow)

    def test_approved_leave_covering_date(self, db_session, doctor):
        add_leave(db_session, doctor.user_id, MONDAY, WEDNESDAY)

        result = resolve_for_doctor(db_session, doctor.hospitals[0], doctor.user_id, WEDNESDAY)

        assert result.reason == REASON_ON_LEAVE
        assert result.message == "Doctor is on leave"

    def test_pending_leave_is_ignored(self, db_session, doctor):
        add_leave(db_session, doctor.user_id, WEDNESDAY, WEDNESDAY, status="pending")

        result = resolve_for_doctor(db_session, doctor.hospitals[0], doctor.user_id, WEDNESDAY)

        assert isinstance(result, WorkingWindow)

    def test_leave_bounds_are_inclusive(self, db_session, doctor):
        add_leave(db_session, doctor.user_id, WEDNESDAY, WEDNESDAY)

        assert find_approved_leave(db_session, doctor.user_id, WEDNESDAY) is not None
        assert find_approved_leave(db_session, doctor.user_id, MONDAY) is None


class TestWednesdayRecords:
    """Structured and legacy records for the same Wednesday shift."""

    STRUCTURED = {
        "days": ["Wednesday"],
        "startTime": "09:00 AM",
        "endTime": "01:00 PM",
        "breakStart": "12:00 PM",
        "breakEnd": "12:30 PM",
    }
    LEGACY = {"day": "Wednesday", "slots": ["9AM-1PM"]}

    def test_both_available(self):
        structured = resolve_working_window([self.STRUCTURED], WEDNESDAY)
        legacy = resolve_working_window([self.LEGACY], WEDNESDAY)

        assert isinstance(structured, WorkingWindow)
        assert isinstance(legacy, WorkingWindow)
        assert structured.has_break
        assert not legacy.has_break
        assert len(legacy.micro_slots()) == 48
