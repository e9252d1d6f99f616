"""
calendar.py — Calendar events (court dates, meetings, deadlines, consultations).

Events created by stopping a timer carry sourceType "time_entry" and the
entry id in sourceId; they are ordinary events otherwise.
"""

from datetime import datetime

from flask import Blueprint, request

from database import db
from models import CalendarEvent, EventType, EventStatus, Case, Client, as_utc
from schemas import CalendarEventCreate, CalendarEventUpdate
from utils.auth import protect_blueprint
from utils.pagination import paginate
from utils.response import created, error, no_content, not_found, paginated, success
from utils.validation import parse_body, changes, apply_changes

calendar_bp = Blueprint("calendar", __name__)
protect_blueprint(calendar_bp)


@calendar_bp.route("/events", methods=["GET"])
def list_events():
    """
    GET /api/calendar/events?start=&end=&type=&status=&caseId=&clientId=&page=&perPage=
    start/end are ISO timestamps; an event matches if it starts inside the window.
    Ordered by start time.
    """
    stmt = db.select(CalendarEvent).order_by(CalendarEvent.start_time.asc())

    try:
        start = _parse_iso(request.args.get("start"))
        end = _parse_iso(request.args.get("end"))
    except ValueError:
        return error("start and end must be ISO 8601 timestamps.")
    if start:
        stmt = stmt.where(CalendarEvent.start_time >= start)
    if end:
        stmt = stmt.where(CalendarEvent.start_time <= end)

    event_type = request.args.get("type")
    if event_type in EventType.__members__:
        stmt = stmt.where(CalendarEvent.event_type == EventType[event_type])
    status = request.args.get("status")
    if status in EventStatus.__members__:
        stmt = stmt.where(CalendarEvent.status == EventStatus[status])
    if request.args.get("caseId"):
        stmt = stmt.where(CalendarEvent.case_id == request.args["caseId"])
    if request.args.get("clientId"):
        stmt = stmt.where(CalendarEvent.client_id == request.args["clientId"])

    page = paginate(stmt)
    return paginated([e.to_dict() for e in page.items], page)


@calendar_bp.route("/events/<event_id>", methods=["GET"])
def get_event(event_id):
    event = db.session.get(CalendarEvent, event_id)
    if not event:
        return not_found("Event")
    return success(data=event.to_dict())


@calendar_bp.route("/events", methods=["POST"])
def create_event():
    """
    POST /api/calendar/events
    Body: { title, startTime, endTime, eventType, description?, caseId?, clientId?,
            attendeeIds?, location?, isAllDay?, reminderMinutes?, status? }
    """
    body = parse_body(CalendarEventCreate)
    problems = _check_references(body.case_id, body.client_id)
    if problems:
        return error("Validation failed.", 400, details=problems)

    event = CalendarEvent(**body.model_dump())
    db.session.add(event)
    db.session.commit()

    return created(data=event.to_dict(), message="Event created.")


@calendar_bp.route("/events/<event_id>", methods=["PUT"])
def update_event(event_id):
    event = db.session.get(CalendarEvent, event_id)
    if not event:
        return not_found("Event")

    data = changes(parse_body(CalendarEventUpdate))
    if "attendee_ids" in data and data["attendee_ids"] is None:
        data["attendee_ids"] = []

    problems = _check_references(data.get("case_id"), data.get("client_id"))
    if problems:
        return error("Validation failed.", 400, details=problems)

    start = as_utc(data.get("start_time", event.start_time))
    end = as_utc(data.get("end_time", event.end_time))
    if end < start:
        return error("Validation failed.", 400, details=[
            {"field": "endTime", "message": "End time must not be before start time"}
        ])

    apply_changes(event, data)
    db.session.commit()

    return success(data=event.to_dict(), message="Event updated.")


@calendar_bp.route("/events/<event_id>", methods=["DELETE"])
def delete_event(event_id):
    event = db.session.get(CalendarEvent, event_id)
    if not event:
        return not_found("Event")

    db.session.delete(event)
    db.session.commit()
    return no_content()


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _parse_iso(value):
    if not value:
        return None
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def _check_references(case_id, client_id) -> list[dict]:
    problems = []
    if case_id and db.session.get(Case, case_id) is None:
        problems.append({"field": "caseId", "message": "Case does not exist"})
    if client_id and db.session.get(Client, client_id) is None:
        problems.append({"field": "clientId", "message": "Client does not exist"})
    return problems
