"""
compliance.py — Compliance deadlines (bar requirements, court filings, ethics, CLE).
"""

from datetime import date

from flask import Blueprint, request

from database import db
from models import ComplianceDeadline, DeadlineType, DeadlineStatus, Case, utcnow
from schemas import DeadlineCreate, DeadlineUpdate
from utils.auth import protect_blueprint
from utils.pagination import paginate
from utils.response import created, error, no_content, not_found, paginated, success
from utils.validation import parse_body, changes, apply_changes

compliance_bp = Blueprint("compliance", __name__)
protect_blueprint(compliance_bp)


@compliance_bp.route("/deadlines", methods=["GET"])
def list_deadlines():
    """
    GET /api/compliance/deadlines?status=&type=&caseId=&dueBefore=YYYY-MM-DD&page=&perPage=
    Soonest first.
    """
    stmt = db.select(ComplianceDeadline).order_by(ComplianceDeadline.due_date.asc())

    status = request.args.get("status")
    if status in DeadlineStatus.__members__:
        stmt = stmt.where(ComplianceDeadline.status == DeadlineStatus[status])
    deadline_type = request.args.get("type")
    if deadline_type in DeadlineType.__members__:
        stmt = stmt.where(ComplianceDeadline.deadline_type == DeadlineType[deadline_type])
    if request.args.get("caseId"):
        stmt = stmt.where(ComplianceDeadline.case_id == request.args["caseId"])
    if request.args.get("dueBefore"):
        try:
            due_before = date.fromisoformat(request.args["dueBefore"])
        except ValueError:
            return error("dueBefore must be a date (YYYY-MM-DD).")
        stmt = stmt.where(ComplianceDeadline.due_date <= due_before)

    page = paginate(stmt)
    return paginated([d.to_dict() for d in page.items], page)


@compliance_bp.route("/deadlines/<deadline_id>", methods=["GET"])
def get_deadline(deadline_id):
    deadline = db.session.get(ComplianceDeadline, deadline_id)
    if not deadline:
        return not_found("Deadline")
    return success(data=deadline.to_dict())


@compliance_bp.route("/deadlines", methods=["POST"])
def create_deadline():
    """
    POST /api/compliance/deadlines
    Body: { title, dueDate, deadlineType, description?, caseId?, status? }
    """
    body = parse_body(DeadlineCreate)
    if body.case_id and db.session.get(Case, body.case_id) is None:
        return error("Validation failed.", 400, details=[
            {"field": "caseId", "message": "Case does not exist"}
        ])

    deadline = ComplianceDeadline(**body.model_dump())
    if deadline.status == DeadlineStatus.completed:
        deadline.completed_at = utcnow()
    db.session.add(deadline)
    db.session.commit()

    return created(data=deadline.to_dict(), message="Deadline created.")


@compliance_bp.route("/deadlines/<deadline_id>", methods=["PUT"])
def update_deadline(deadline_id):
    deadline = db.session.get(ComplianceDeadline, deadline_id)
    if not deadline:
        return not_found("Deadline")

    data = changes(parse_body(DeadlineUpdate))

    if "status" in data and data["status"] != deadline.status:
        deadline.completed_at = utcnow() if data["status"] == DeadlineStatus.completed else None

    apply_changes(deadline, data)
    db.session.commit()

    return success(data=deadline.to_dict(), message="Deadline updated.")


@compliance_bp.route("/deadlines/<deadline_id>/complete", methods=["PATCH"])
def toggle_complete(deadline_id):
    """
    PATCH /api/compliance/deadlines/<id>/complete
    Toggles between completed and pending.
    """
    deadline = db.session.get(ComplianceDeadline, deadline_id)
    if not deadline:
        return not_found("Deadline")

    if deadline.status == DeadlineStatus.completed:
        deadline.status = DeadlineStatus.pending
        deadline.completed_at = None
    else:
        deadline.status = DeadlineStatus.completed
        deadline.completed_at = utcnow()
    db.session.commit()

    return success(data=deadline.to_dict(), message=f"Deadline marked {deadline.status.value}.")


@compliance_bp.route("/deadlines/<deadline_id>", methods=["DELETE"])
def delete_deadline(deadline_id):
    deadline = db.session.get(ComplianceDeadline, deadline_id)
    if not deadline:
        return not_found("Deadline")

    db.session.delete(deadline)
    db.session.commit()
    return no_content()
