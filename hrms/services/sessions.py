"""
Session reconciliation.

Every attendance source is reduced to the same shape: an ordered list of
``Session`` values, each a clock-in/clock-out pair or a one-sided anomaly.

Sources:
  - raw biometric taps (``checkin`` / ``checkout`` events), paired here;
  - session-schema attendance records, already paired;
  - legacy records with one flat ``clock_in``/``clock_out``, adapted on
    read into a single session. The stored row is never rewritten.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from functools import reduce
from typing import Any

from hrms.core.timeutils import ensure_utc

SECONDS_PER_HOUR = 3600


def hours_between(start: datetime, end: datetime) -> float:
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / SECONDS_PER_HOUR


@dataclass(frozen=True)
class Session:
    clock_in: datetime | None
    clock_out: datetime | None
    order: int = 0

    @property
    def is_open(self) -> bool:
        return self.clock_in is not None and self.clock_out is None

    @property
    def is_orphaned(self) -> bool:
        return self.clock_in is None and self.clock_out is not None

    @property
    def is_complete(self) -> bool:
        return self.clock_in is not None and self.clock_out is not None

    @property
    def duration_hours(self) -> float | None:
        """Unrounded length of a completed session, ``None`` otherwise."""
        if not self.is_complete:
            return None
        return hours_between(self.clock_in, self.clock_out)

    def elapsed_hours(self, now: datetime) -> float:
        """Duration counting an open session up to ``now``."""
        if self.is_complete:
            return self.duration_hours
        if self.is_open:
            return max(0.0, hours_between(self.clock_in, now))
        return 0.0


def number_sessions(sessions: Iterable[Session]) -> list[Session]:
    """Assign 1-based ``order`` in sequence order."""
    return [replace(s, order=i) for i, s in enumerate(sessions, start=1)]


def _started_at(session: Session) -> datetime:
    # Orphaned sessions sort by their checkout.
    return session.clock_in if session.clock_in is not None else session.clock_out


def chronological(sessions: Iterable[Session]) -> list[Session]:
    """Sessions ordered by when they started, renumbered; ties keep input order."""
    return number_sessions(sorted(sessions, key=_started_at))


# ── Biometric events ────────────────────────────────────────────────
# Fold state: (emitted sessions, active open session or None)
_FoldState = tuple[tuple[Session, ...], Session | None]


def _action_of(event: Any) -> str | None:
    action = getattr(event, "action", None)
    return action.lower() if isinstance(action, str) else None


def _pair_step(state: _FoldState, event: Any) -> _FoldState:
    emitted, active = state
    action = _action_of(event)
    ts = ensure_utc(event.timestamp)

    if action == "checkin":
        # A second check-in while one is open leaves the first unterminated.
        if active is not None:
            emitted = emitted + (active,)
        return emitted, Session(clock_in=ts, clock_out=None)

    if action == "checkout":
        if active is not None:
            return emitted + (replace(active, clock_out=ts),), None
        # Checkout with nothing open: keep it as an orphan.
        return emitted + (Session(clock_in=None, clock_out=ts),), None

    return state


def sessions_from_events(events: Iterable[Any]) -> list[Session]:
    """Pair raw ``checkin``/``checkout`` events into sessions.

    Events without a timestamp are ignored; the rest are sorted ascending
    (stable for equal timestamps). Duplicate check-ins and unmatched
    checkouts are preserved as open and orphaned sessions respectively.
    """
    timed = sorted(
        (e for e in events if getattr(e, "timestamp", None) is not None),
        key=lambda e: ensure_utc(e.timestamp),
    )
    emitted, active = reduce(_pair_step, timed, ((), None))
    if active is not None:
        emitted = emitted + (active,)
    return number_sessions(emitted)


# ── Attendance records ──────────────────────────────────────────────
class RecordShape(str, enum.Enum):
    SESSIONS = "sessions"
    LEGACY = "legacy"
    EMPTY = "empty"


def record_shape(record: Any) -> RecordShape:
    if getattr(record, "sessions", None):
        return RecordShape.SESSIONS
    if getattr(record, "clock_in", None) is not None:
        return RecordShape.LEGACY
    return RecordShape.EMPTY


def record_sessions(record: Any) -> list[Session]:
    """Canonical sessions of one attendance record (migrate-on-read)."""
    shape = record_shape(record)
    if shape is RecordShape.SESSIONS:
        return [
            Session(clock_in=ensure_utc(s.clock_in), clock_out=ensure_utc(s.clock_out))
            for s in record.sessions
        ]
    if shape is RecordShape.LEGACY:
        return [
            Session(
                clock_in=ensure_utc(record.clock_in),
                clock_out=ensure_utc(record.clock_out),
            )
        ]
    return []


def sessions_from_records(records: Iterable[Any]) -> list[Session]:
    """Concatenate record sessions in record order; pairs are taken as stored."""
    return number_sessions(s for record in records for s in record_sessions(record))


def completed_hours(sessions: Iterable[Session]) -> float:
    """Unrounded sum of completed-session durations."""
    return sum(s.duration_hours for s in sessions if s.is_complete)


def live_hours(sessions: Iterable[Session], now: datetime) -> float:
    """Completed hours plus the time every open session has run up to ``now``."""
    return sum(s.elapsed_hours(now) for s in sessions)


# ── Source selection ────────────────────────────────────────────────
class SessionSource(str, enum.Enum):
    RECORDS = "records"
    BIOMETRIC = "biometric"
    NONE = "none"


@dataclass(frozen=True)
class DaySessions:
    sessions: list[Session]
    source: SessionSource


def select_day_sessions(records: Iterable[Any], events: Iterable[Any] = ()) -> DaySessions:
    """Pick the session source for one employee-day.

    Persisted record sessions are authoritative whenever any exist; biometric
    events are only paired when the records yield nothing. The two sources
    are never merged, which would double count the same work.
    """
    from_records = sessions_from_records(records)
    if from_records:
        return DaySessions(from_records, SessionSource.RECORDS)

    from_events = sessions_from_events(events)
    if from_events:
        return DaySessions(from_events, SessionSource.BIOMETRIC)

    return DaySessions([], SessionSource.NONE)
