"""
time_entries.py — Time tracking: manual entries, live timers, batch status
changes and per-attorney analytics.

Timer stop is the one multi-table write here: the entry is stopped, a
completed CalendarEvent is created for it and linked back, all inside one
unit of work. If the calendar step fails nothing is saved and the timer
keeps running.
"""

from collections import Counter, defaultdict
from datetime import datetime, timezone, timedelta
from decimal import Decimal

from flask import Blueprint, current_app, g, request

from database import db, unit_of_work
from models import TimeEntry, TimeEntryStatus, Case, CalendarEvent, EventStatus, as_utc
from schemas import TimeEntryCreate, TimeEntryUpdate, TimeEntryBatchUpdate
from utils import timers
from utils.auth import protect_blueprint
from utils.billing import round_to_increment, calculate_billable_amount, minutes_to_decimal_hours
from utils.pagination import paginate
from utils.rates import resolve_hourly_rate
from utils.response import conflict, created, error, no_content, not_found, paginated, server_error, success
from utils.validation import parse_body, changes, apply_changes

time_entries_bp = Blueprint("time_entries", __name__)
protect_blueprint(time_entries_bp)


class CalendarSyncError(RuntimeError):
    pass


# ════════════════════════════════════════════════════════════
#  READ
# ════════════════════════════════════════════════════════════

@time_entries_bp.route("", methods=["GET"])
def list_time_entries():
    """
    GET /api/time-entries?caseId=&attorneyId=&status=&billable=&page=&perPage=
    Most recent start first.
    """
    stmt = db.select(TimeEntry).order_by(TimeEntry.start_time.desc())

    if request.args.get("caseId"):
        stmt = stmt.where(TimeEntry.case_id == request.args["caseId"])
    if request.args.get("attorneyId"):
        stmt = stmt.where(TimeEntry.attorney_id == request.args["attorneyId"])
    status = request.args.get("status")
    if status in TimeEntryStatus.__members__:
        stmt = stmt.where(TimeEntry.status == TimeEntryStatus[status])
    billable = request.args.get("billable")
    if billable in ("true", "false"):
        stmt = stmt.where(TimeEntry.is_billable.is_(billable == "true"))

    page = paginate(stmt)
    return paginated([e.to_dict() for e in page.items], page)


@time_entries_bp.route("/active/<attorney_id>", methods=["GET"])
def get_active_entry(attorney_id):
    """
    GET /api/time-entries/active/<attorney_id>
    The attorney's latest unstopped timer (running or paused), or null.
    """
    entry = (
        TimeEntry.query
        .filter(TimeEntry.attorney_id == attorney_id, TimeEntry.end_time.is_(None))
        .order_by(TimeEntry.start_time.desc())
        .first()
    )
    return success(data={"entry": entry.to_dict() if entry else None})


@time_entries_bp.route("/analytics", methods=["GET"])
def analytics():
    """
    GET /api/time-entries/analytics?attorneyId=&startDate=&endDate=
    Defaults to the current calendar month up to now. Dates are ISO 8601.
    """
    now = datetime.now(timezone.utc)
    try:
        start = _parse_when(request.args.get("startDate")) or now.replace(
            day=1, hour=0, minute=0, second=0, microsecond=0
        )
        end = _parse_when(request.args.get("endDate"), end_of_day=True) or now
    except ValueError:
        return error("startDate and endDate must be ISO 8601 dates.")

    query = TimeEntry.query.filter(TimeEntry.start_time >= start, TimeEntry.start_time <= end)
    if request.args.get("attorneyId"):
        query = query.filter(TimeEntry.attorney_id == request.args["attorneyId"])
    entries = query.order_by(TimeEntry.start_time.asc()).all()

    return success(data=summarize_entries(entries, start, end))


@time_entries_bp.route("/<entry_id>", methods=["GET"])
def get_time_entry(entry_id):
    entry = db.session.get(TimeEntry, entry_id)
    if not entry:
        return not_found("Time entry")
    return success(data=entry.to_dict())


# ════════════════════════════════════════════════════════════
#  WRITE
# ════════════════════════════════════════════════════════════

@time_entries_bp.route("", methods=["POST"])
def create_time_entry():
    """
    POST /api/time-entries
    Body: { activity, caseId?, attorneyId?, utbmsCode?, description?, startTime?,
            endTime?, duration?, hourlyRate?, isBillable?, status? }

    With no endTime/duration this starts a live timer. attorneyId defaults to
    the caller; hourlyRate defaults to the best matching rate table.
    """
    data = parse_body(TimeEntryCreate).model_dump()

    if data["status"] not in (TimeEntryStatus.draft, TimeEntryStatus.ready_to_bill):
        return error("New time entries must start as draft or ready_to_bill.")

    case = None
    if data.get("case_id"):
        case = db.session.get(Case, data["case_id"])
        if case is None:
            return error("Validation failed.", 400, details=[
                {"field": "caseId", "message": "Case does not exist"}
            ])

    data["attorney_id"] = data.get("attorney_id") or g.current_user.id
    data["start_time"] = data.get("start_time") or datetime.now(timezone.utc)

    if data.get("duration") is None and data.get("end_time") is not None:
        data["duration"] = _minutes_between(data["start_time"], data["end_time"])
    if data.get("duration") is not None:
        data["rounded_duration"] = round_to_increment(data["duration"], _increment())
        if data.get("end_time") is None:
            data["end_time"] = data["start_time"] + timedelta(minutes=data["duration"])

    if data.get("hourly_rate") is None:
        data["hourly_rate"] = resolve_hourly_rate(
            attorney_id=data["attorney_id"],
            client_id=case.client_id if case else None,
            activity=data["activity"],
            utbms_code=data.get("utbms_code"),
        )

    entry = TimeEntry(**data)
    db.session.add(entry)
    db.session.commit()
    return created(data=entry.to_dict(), message="Time entry created.")


@time_entries_bp.route("/batch", methods=["PATCH"])
def batch_update():
    """
    PATCH /api/time-entries/batch
    Body: { ids: [str, ...], updates: { status?, hourlyRate?, isBillable? } }

    All-or-nothing: if any id is unknown or any status move is not allowed,
    nothing changes.
    """
    body = parse_body(TimeEntryBatchUpdate)
    updates = {k: v for k, v in changes(body.updates).items() if v is not None or k == "hourly_rate"}
    if not updates:
        return error("Nothing to update.")
    ids = list(dict.fromkeys(body.ids))

    entries = TimeEntry.query.filter(TimeEntry.id.in_(ids)).all()
    found = {e.id for e in entries}
    missing = [i for i in ids if i not in found]
    if missing:
        return error("Some time entries were not found.", 404, details={"missingIds": missing})

    target = updates.get("status")
    if target is not None:
        rejected = [
            {"id": e.id, "status": e.status.value}
            for e in entries if not timers.can_transition(e.status, target)
        ]
        if rejected:
            return error(
                f"Cannot move these time entries to '{target.value}'.", 400, details=rejected
            )

    with unit_of_work():
        for entry in entries:
            apply_changes(entry, updates)

    return success(data=[e.to_dict() for e in entries], message=f"{len(entries)} time entries updated.")


@time_entries_bp.route("/<entry_id>", methods=["PUT"])
def update_time_entry(entry_id):
    entry = db.session.get(TimeEntry, entry_id)
    if not entry:
        return not_found("Time entry")

    data = changes(parse_body(TimeEntryUpdate))

    # Stopping goes through /stop so the open pause and calendar event are handled.
    if "end_time" in data and entry.end_time is None:
        return conflict("This timer is still running; stop it with PATCH /api/time-entries/<id>/stop.")

    if "status" in data:
        try:
            timers.assert_transition(entry.status, data["status"])
        except timers.InvalidTransition as e:
            return error(str(e))

    if data.get("case_id") and db.session.get(Case, data["case_id"]) is None:
        return error("Validation failed.", 400, details=[
            {"field": "caseId", "message": "Case does not exist"}
        ])

    apply_changes(entry, data)

    if entry.end_time is not None and as_utc(entry.end_time) < as_utc(entry.start_time):
        db.session.rollback()
        return error("endTime must not be before startTime.")
    if "duration" not in data and ("start_time" in data or "end_time" in data) and entry.end_time:
        entry.duration = max(_minutes_between(entry.start_time, entry.end_time) - (entry.paused_duration or 0), 0)
    if entry.duration is not None:
        entry.rounded_duration = round_to_increment(entry.duration, _increment())

    db.session.commit()
    return success(data=entry.to_dict(), message="Time entry updated.")


@time_entries_bp.route("/<entry_id>", methods=["DELETE"])
def delete_time_entry(entry_id):
    """
    DELETE /api/time-entries/<id>
    Invoiced or paid entries are part of an invoice and cannot be deleted.
    """
    entry = db.session.get(TimeEntry, entry_id)
    if not entry:
        return not_found("Time entry")
    if entry.status in (TimeEntryStatus.invoiced, TimeEntryStatus.paid):
        return conflict("Invoiced time entries cannot be deleted.")

    db.session.delete(entry)
    db.session.commit()
    return no_content()


# ════════════════════════════════════════════════════════════
#  TIMER
# ════════════════════════════════════════════════════════════

@time_entries_bp.route("/<entry_id>/pause", methods=["PATCH"])
def pause_timer(entry_id):
    entry = db.session.get(TimeEntry, entry_id)
    if not entry:
        return not_found("Time entry")
    try:
        timers.pause(entry)
    except timers.TimerStateError as e:
        return error(str(e))
    db.session.commit()
    return success(data=entry.to_dict(), message="Timer paused.")


@time_entries_bp.route("/<entry_id>/resume", methods=["PATCH"])
def resume_timer(entry_id):
    entry = db.session.get(TimeEntry, entry_id)
    if not entry:
        return not_found("Time entry")
    try:
        timers.resume(entry)
    except timers.TimerStateError as e:
        return error(str(e))
    db.session.commit()
    return success(data=entry.to_dict(), message="Timer resumed.")


@time_entries_bp.route("/<entry_id>/stop", methods=["PATCH"])
def stop_timer(entry_id):
    """
    PATCH /api/time-entries/<id>/stop
    Stops the timer and records a completed calendar event for it (entries
    with a case only). 500 with `syncError` if the calendar step fails, in
    which case the timer is left running.
    """
    entry = db.session.get(TimeEntry, entry_id)
    if not entry:
        return not_found("Time entry")

    try:
        with unit_of_work():
            timers.stop(entry, increment=_increment())
            if entry.case_id:
                try:
                    record_calendar_event(entry)
                except Exception as exc:
                    raise CalendarSyncError(str(exc)) from exc
    except timers.TimerStateError as e:
        return error(str(e))
    except CalendarSyncError as e:
        current_app.logger.warning(f"Calendar sync failed for time entry {entry_id}; stop rolled back: {e}")
        return server_error("Failed to stop timer: calendar sync failed.", details={"syncError": str(e)})

    return success(data=entry.to_dict(), message="Timer stopped.")


def record_calendar_event(entry: TimeEntry) -> CalendarEvent:
    """Create the completed CalendarEvent for a stopped entry and link it. Flushes, never commits."""
    case = db.session.get(Case, entry.case_id)
    title = f"{entry.activity}: {entry.description or 'Time tracked'}"[:200]
    event = CalendarEvent(
        title=title,
        description=entry.description or f"Time tracking entry for {entry.activity}",
        start_time=entry.start_time,
        end_time=entry.end_time,
        event_type=timers.event_type_for_activity(entry.activity),
        source_type="time_entry",
        source_id=entry.id,
        case_id=entry.case_id,
        client_id=case.client_id if case else None,
        attendee_ids=[entry.attorney_id] if entry.attorney_id else [],
        is_all_day=False,
        reminder_minutes=0,
        status=EventStatus.completed,
    )
    db.session.add(event)
    db.session.flush()
    entry.calendar_event_id = event.id
    current_app.logger.debug(f"Calendar event {event.id} recorded for time entry {entry.id}")
    return event


# ─── Analytics ────────────────────────────────────────────────────────────────

def summarize_entries(entries, start, end) -> dict:
    """Totals, utilisation and breakdowns for a set of time entries."""
    billable = [e for e in entries if e.is_billable]
    non_billable = [e for e in entries if not e.is_billable]

    billable_minutes = sum(e.duration or 0 for e in billable)
    non_billable_minutes = sum(e.duration or 0 for e in non_billable)
    total_minutes = billable_minutes + non_billable_minutes

    def amount(e):
        if not e.is_billable or e.hourly_rate is None:
            return Decimal("0.00")
        return calculate_billable_amount(e.duration or 0, e.hourly_rate, _increment())

    by_activity = defaultdict(int)
    for e in entries:
        by_activity[e.activity or "unknown"] += e.duration or 0

    return {
        "startDate": start.isoformat(),
        "endDate": end.isoformat(),
        "totalEntries": len(entries),
        "billableEntries": len(billable),
        "nonBillableEntries": len(non_billable),
        "totalBillableHours": round(billable_minutes / 60, 1),
        "totalNonBillableHours": round(non_billable_minutes / 60, 1),
        "totalRevenue": str(sum((amount(e) for e in billable), Decimal("0.00"))),
        "utilizationRate": round(billable_minutes / total_minutes * 100) if total_minutes else 0,
        "byStatus": dict(Counter(e.status.value for e in entries)),
        "byActivity": dict(by_activity),
        "entries": [
            {
                "id": e.id,
                "date": as_utc(e.start_time).isoformat(),
                "activity": e.activity,
                "duration": e.duration,
                "hours": str(minutes_to_decimal_hours(e.duration or 0)),
                "billableAmount": str(amount(e)),
            }
            for e in entries
        ],
    }


# ─── Private helpers ──────────────────────────────────────────────────────────

def _increment() -> int:
    return current_app.config.get("BILLING_ROUNDING_INCREMENT", 6)


def _minutes_between(start, end) -> int:
    return max(int((as_utc(end) - as_utc(start)).total_seconds() // 60), 0)


def _parse_when(value, end_of_day: bool = False):
    """ISO date or datetime → aware UTC datetime. A bare date at end_of_day means 23:59:59.999999."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if end_of_day and len(value) == 10:
        parsed = parsed + timedelta(days=1) - timedelta(microseconds=1)
    return as_utc(parsed)
