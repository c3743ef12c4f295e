"""
Biometric check-in/out state machine.

State is derived from the single most recent event of a user, regardless
of calendar day, so a check-in left open overnight does not block the
next one forever.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from hrms.core.exceptions import (AlreadyCheckedIn, AlreadyCheckedOut,
                                  AttendanceError, InvalidParameter,
                                  InvalidSequence)
from hrms.core.timeutils import ensure_utc
from hrms.models.attendance import BIOMETRIC_ACTIONS

STALE_CHECKIN = timedelta(hours=12)


class AttendanceState(str, enum.Enum):
    NONE = "none"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"


def state_of(last_event: Any | None) -> AttendanceState:
    if last_event is None:
        return AttendanceState.NONE
    if last_event.action == "checkin":
        return AttendanceState.CHECKED_IN
    return AttendanceState.CHECKED_OUT


@dataclass(frozen=True)
class Decision:
    allowed: bool
    error: AttendanceError | None = None
    # True when a forgotten check-in older than 12h is being superseded
    stale_checkin: bool = False


def evaluate_transition(last_event: Any | None, action: str, now: datetime) -> Decision:
    """Decide whether ``action`` may follow ``last_event``."""
    if action not in BIOMETRIC_ACTIONS:
        return Decision(False, InvalidParameter("Invalid attendance action"))

    state = state_of(last_event)

    if state is AttendanceState.NONE:
        if action == "checkout":
            return Decision(False, InvalidSequence())
        return Decision(True)

    if state is AttendanceState.CHECKED_IN and action == "checkin":
        elapsed = ensure_utc(now) - ensure_utc(last_event.timestamp)
        if elapsed < STALE_CHECKIN:
            return Decision(False, AlreadyCheckedIn())
        return Decision(True, stale_checkin=True)

    if state is AttendanceState.CHECKED_OUT and action == "checkout":
        return Decision(False, AlreadyCheckedOut())

    return Decision(True)
