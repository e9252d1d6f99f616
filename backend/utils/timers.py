"""
utils/timers.py — Time entry state rules.

Two independent state machines live on a TimeEntry:

  billing status   draft ⇄ ready_to_bill ⇄ invoiced ⇄ paid
                   (one step forward or one step back, never a skip)

  timer            running → paused → running → … → stopped
                   (stopped is terminal; end_time set)

The functions below mutate the entry in memory only; callers own the
session and the commit. `now` is injectable so the arithmetic is testable.
"""

import math
from datetime import datetime, timezone

from models import TimeEntryStatus, EventType, as_utc
from utils.billing import round_to_increment, DEFAULT_INCREMENT


class InvalidTransition(ValueError):
    pass


class TimerStateError(ValueError):
    pass


# ─── Billing status ───────────────────────────────────────────────────────────

ALLOWED_TRANSITIONS = {
    TimeEntryStatus.draft:         {TimeEntryStatus.ready_to_bill},
    TimeEntryStatus.ready_to_bill: {TimeEntryStatus.draft, TimeEntryStatus.invoiced},
    TimeEntryStatus.invoiced:      {TimeEntryStatus.ready_to_bill, TimeEntryStatus.paid},
    TimeEntryStatus.paid:          {TimeEntryStatus.invoiced},
}


def _status(value) -> TimeEntryStatus:
    return value if isinstance(value, TimeEntryStatus) else TimeEntryStatus(value)


def can_transition(current, target) -> bool:
    current, target = _status(current), _status(target)
    return current == target or target in ALLOWED_TRANSITIONS[current]


def assert_transition(current, target):
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Cannot move a time entry from '{_status(current).value}' to '{_status(target).value}'."
        )


# ─── Timer ────────────────────────────────────────────────────────────────────

def _now(now):
    return as_utc(now) if now is not None else datetime.now(timezone.utc)


def _whole_minutes(start, end) -> int:
    return math.floor((as_utc(end) - as_utc(start)).total_seconds() / 60)


def is_running(entry) -> bool:
    return entry.end_time is None and not entry.is_paused


def pause(entry, now=None):
    if entry.end_time is not None:
        raise TimerStateError("Cannot pause a completed timer.")
    if entry.is_paused:
        raise TimerStateError("Timer is already paused.")
    entry.is_paused = True
    entry.paused_at = _now(now)
    return entry


def resume(entry, now=None):
    if entry.end_time is not None:
        raise TimerStateError("Cannot resume a completed timer.")
    if not entry.is_paused:
        raise TimerStateError("Timer is not paused.")
    extra = max(_whole_minutes(entry.paused_at, _now(now)), 0) if entry.paused_at else 0
    entry.paused_duration = (entry.paused_duration or 0) + extra
    entry.is_paused = False
    entry.paused_at = None
    return entry


def stop(entry, now=None, increment: int = DEFAULT_INCREMENT):
    """
    Stop the timer. duration is wall-clock minutes minus paused minutes,
    counting a pause that is still open, and never negative.
    """
    if entry.end_time is not None:
        raise TimerStateError("Timer is already stopped.")
    end = _now(now)
    paused = entry.paused_duration or 0
    if entry.is_paused and entry.paused_at:
        paused += max(_whole_minutes(entry.paused_at, end), 0)

    duration = max(_whole_minutes(entry.start_time, end) - paused, 0)

    entry.end_time = end
    entry.paused_duration = paused
    entry.duration = duration
    entry.rounded_duration = round_to_increment(duration, increment)
    entry.is_paused = False
    entry.paused_at = None
    return entry


# ─── Calendar mapping ─────────────────────────────────────────────────────────

_EVENT_KEYWORDS = [
    (("court", "hearing"),             EventType.court_date),
    (("meeting", "conference"),        EventType.meeting),
    (("deadline", "filing"),           EventType.deadline),
    (("consultation", "interview"),    EventType.consultation),
]


def event_type_for_activity(activity: str | None) -> EventType:
    """Pick a calendar event type from the free-text activity name."""
    text = (activity or "").lower()
    for keywords, event_type in _EVENT_KEYWORDS:
        if any(k in text for k in keywords):
            return event_type
    return EventType.meeting
