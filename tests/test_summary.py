"""Tests for the daily summary computation."""

from datetime import date, datetime, timezone

from hrms.schemas.attendance import EmployeeRef, UserRef
from hrms.services.sessions import Session, SessionSource, number_sessions
from hrms.services.summary import compute_daily_summary, day_status

DAY = date(2026, 3, 2)
EMPLOYEE = EmployeeRef(id=1, designation="Engineer", user=UserRef(id=7, name="Ada"))


def at(hour, minute=0):
    return datetime(2026, 3, 2, hour, minute, tzinfo=timezone.utc)


def summarise(*pairs, **kwargs):
    sessions = number_sessions(Session(i, o) for i, o in pairs)
    return compute_daily_summary(EMPLOYEE, DAY, sessions, **kwargs)


def test_full_day_is_present():
    summary = summarise((at(9), at(17, 30)))
    assert summary.status == "present"
    assert summary.total_hours == 8.5
    assert summary.session_count == 1
    assert summary.first_clock_in == "2026-03-02T09:00:00.000Z"
    assert summary.last_clock_out == "2026-03-02T17:30:00.000Z"
    assert summary.sessions[0].duration_hours == 8.5
    assert summary.sessions[0].state == "completed"
    assert summary.date == "2026-03-02"


def test_open_session_is_in_progress():
    summary = summarise((at(9), None))
    assert summary.status == "in-progress"
    assert summary.total_hours == 0
    assert summary.first_clock_in == "2026-03-02T09:00:00.000Z"
    assert summary.last_clock_out is None
    assert summary.live_total_hours is None
    assert summary.sessions[0].duration_hours is None
    assert summary.sessions[0].state == "open"


def test_live_total_ticks_open_session():
    summary = summarise((at(8), at(10)), (at(11), None), include_active=True, now=at(12, 30))
    assert summary.total_hours == 2
    assert summary.live_total_hours == 3.5


def test_unterminated_checkin_then_completed_session():
    summary = summarise((at(9), None), (at(13), at(18)))
    assert summary.session_count == 1
    assert summary.total_hours == 5
    # The earlier open session still marks the day as in progress.
    assert summary.status == "in-progress"
    assert summary.last_clock_out == "2026-03-02T18:00:00.000Z"


def test_last_clock_out_skips_trailing_open_session():
    summary = summarise((at(9), at(12)), (at(13), None))
    assert summary.last_clock_out == "2026-03-02T12:00:00.000Z"


def test_short_day_is_half_day():
    summary = summarise((at(9), at(10)), (at(11), at(12, 59)))
    assert summary.status == "half-day"
    assert summary.total_hours == 2.98
    assert summary.session_count == 2


def test_four_hours_exactly_is_present():
    assert summarise((at(9), at(13))).status == "present"


def test_no_sessions_is_absent():
    summary = compute_daily_summary(EMPLOYEE, DAY, [], source=SessionSource.NONE)
    assert summary.status == "absent"
    assert summary.session_count == 0
    assert summary.total_hours == 0
    assert summary.first_clock_in is None
    assert summary.source == "none"


def test_orphan_only_day_is_absent_but_reported():
    summary = summarise((None, at(17)))
    assert summary.status == "absent"
    assert summary.last_clock_out == "2026-03-02T17:00:00.000Z"
    assert summary.sessions[0].state == "orphaned"


def test_first_clock_in_is_earliest_even_out_of_order():
    summary = summarise((at(14), at(15)), (at(9), at(10)))
    assert summary.first_clock_in == "2026-03-02T09:00:00.000Z"
    assert summary.last_clock_out == "2026-03-02T15:00:00.000Z"
    assert [(s.order, s.clock_in) for s in summary.sessions] == [
        (1, "2026-03-02T09:00:00.000Z"),
        (2, "2026-03-02T14:00:00.000Z"),
    ]


def test_last_clock_out_skips_open_session_stored_first():
    summary = summarise((at(16), None), (at(9), at(12)))
    assert summary.last_clock_out == "2026-03-02T12:00:00.000Z"
    assert summary.status == "in-progress"


def test_live_total_counts_unterminated_checkin():
    summary = summarise((at(9), None), (at(13), at(18)), include_active=True, now=at(19))
    assert summary.total_hours == 5
    assert summary.live_total_hours == 15


def test_status_precedence():
    assert day_status(None, True, 9) == "absent"
    assert day_status(at(9), True, 9) == "in-progress"
    assert day_status(at(9), False, 4) == "present"
    assert day_status(at(9), False, 3.99) == "half-day"


def test_serialises_with_camel_case_keys():
    payload = summarise((at(9), at(17))).model_dump(by_alias=True)
    assert {"firstClockIn", "lastClockOut", "sessionCount", "totalHours", "status"} <= payload.keys()
    assert payload["sessions"][0]["durationHours"] == 8
