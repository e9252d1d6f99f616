"""
cases.py — Matters (cases). Every case belongs to an existing client.
"""

from flask import Blueprint, request

from database import db
from models import Case, CaseStatus, CasePriority, Client, User, utcnow
from schemas import CaseCreate, CaseUpdate
from utils.auth import protect_blueprint
from utils.pagination import paginate
from utils.reference import generate_case_number
from utils.response import conflict, created, error, no_content, not_found, paginated, success
from utils.validation import parse_body, changes, apply_changes

cases_bp = Blueprint("cases", __name__)
protect_blueprint(cases_bp)


@cases_bp.route("", methods=["GET"])
def list_cases():
    """
    GET /api/cases?clientId=&status=&priority=&attorneyId=&page=&perPage=
    Newest first.
    """
    stmt = db.select(Case).order_by(Case.created_at.desc())

    if request.args.get("clientId"):
        stmt = stmt.where(Case.client_id == request.args["clientId"])
    if request.args.get("attorneyId"):
        stmt = stmt.where(Case.assigned_attorney_id == request.args["attorneyId"])
    status = request.args.get("status")
    if status in CaseStatus.__members__:
        stmt = stmt.where(Case.status == CaseStatus[status])
    priority = request.args.get("priority")
    if priority in CasePriority.__members__:
        stmt = stmt.where(Case.priority == CasePriority[priority])

    page = paginate(stmt)
    return paginated([c.to_dict() for c in page.items], page)


@cases_bp.route("/<case_id>", methods=["GET"])
def get_case(case_id):
    case = db.session.get(Case, case_id)
    if not case:
        return not_found("Case")
    return success(data=case.to_dict())


@cases_bp.route("", methods=["POST"])
def create_case():
    """
    POST /api/cases
    Body: { title, caseType, clientId, caseNumber?, ... }
    caseNumber is generated (CASE-YYYY-NNNNN) when omitted.
    """
    data = parse_body(CaseCreate).model_dump()

    problem = _check_references(data)
    if problem:
        return problem

    if not data.get("case_number"):
        data["case_number"] = generate_case_number()
    elif Case.query.filter_by(case_number=data["case_number"]).first():
        return conflict("A case with this case number already exists.")

    case = Case(**data)
    db.session.add(case)
    db.session.commit()
    return created(data=case.to_dict(), message="Case created.")


@cases_bp.route("/<case_id>", methods=["PUT"])
def update_case(case_id):
    case = db.session.get(Case, case_id)
    if not case:
        return not_found("Case")

    data = changes(parse_body(CaseUpdate))

    problem = _check_references(data)
    if problem:
        return problem

    apply_changes(case, data)
    case.updated_at = utcnow()
    db.session.commit()
    return success(data=case.to_dict(), message="Case updated.")


@cases_bp.route("/<case_id>", methods=["DELETE"])
def delete_case(case_id):
    """
    DELETE /api/cases/<id>
    Fails with 409 while time entries still reference the case.
    """
    case = db.session.get(Case, case_id)
    if not case:
        return not_found("Case")

    db.session.delete(case)
    db.session.commit()
    return no_content()


# ─── Private helpers ──────────────────────────────────────────────────────────

def _check_references(data: dict):
    """400 response if clientId / assignedAttorneyId point at nothing, else None."""
    if "client_id" in data and db.session.get(Client, data["client_id"]) is None:
        return error("Validation failed.", 400, details=[
            {"field": "clientId", "message": "Client does not exist"}
        ])
    attorney_id = data.get("assigned_attorney_id")
    if attorney_id and db.session.get(User, attorney_id) is None:
        return error("Validation failed.", 400, details=[
            {"field": "assignedAttorneyId", "message": "User does not exist"}
        ])
    return None
