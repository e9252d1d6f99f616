"""
billing_config.py — Rate tables, activity templates and the UTBMS code catalogue.

Reads are open to all staff; changes need billing:configure (utils/policy.py).
"""

from flask import Blueprint, request, g
from sqlalchemy import or_

from database import db
from models import RateTable, ActivityTemplate, User, Client
from schemas import RateTableCreate, RateTableUpdate, ActivityTemplateCreate, ActivityTemplateUpdate
from utils import utbms
from utils.auth import protect_blueprint
from utils.pagination import paginate
from utils.rates import resolve_hourly_rate
from utils.response import created, error, no_content, not_found, paginated, success
from utils.validation import parse_body, changes, apply_changes

billing_config_bp = Blueprint("billing_config", __name__)
protect_blueprint(billing_config_bp)


# ════════════════════════════════════════════════════════════
#  UTBMS catalogue
# ════════════════════════════════════════════════════════════

@billing_config_bp.route("/utbms-codes", methods=["GET"])
def list_utbms_codes():
    """
    GET /api/utbms-codes
    Returns { codes, categories, rounding } — the litigation task codes, their
    grouping and the supported rounding increments in minutes.
    """
    return success(data={
        "codes":      utbms.catalogue(),
        "categories": utbms.UTBMS_CATEGORIES,
        "rounding":   utbms.TIME_ROUNDING,
    })


# ════════════════════════════════════════════════════════════
#  Rate tables
# ════════════════════════════════════════════════════════════

@billing_config_bp.route("/rate-tables", methods=["GET"])
def list_rate_tables():
    """
    GET /api/rate-tables?attorneyId=&clientId=&active=true|false&page=&perPage=
    """
    stmt = db.select(RateTable).order_by(RateTable.created_at.desc())

    if request.args.get("attorneyId"):
        stmt = stmt.where(RateTable.attorney_id == request.args["attorneyId"])
    if request.args.get("clientId"):
        stmt = stmt.where(RateTable.client_id == request.args["clientId"])
    active = request.args.get("active")
    if active in ("true", "false"):
        stmt = stmt.where(RateTable.is_active.is_(active == "true"))

    page = paginate(stmt)
    return paginated([r.to_dict() for r in page.items], page)


@billing_config_bp.route("/rate-tables/resolve", methods=["GET"])
def resolve_rate():
    """
    GET /api/rate-tables/resolve?attorneyId=&clientId=&activity=&utbmsCode=
    Returns { hourlyRate } from the most specific active rate table, or null.
    """
    rate = resolve_hourly_rate(
        attorney_id=request.args.get("attorneyId"),
        client_id=request.args.get("clientId"),
        activity=request.args.get("activity"),
        utbms_code=request.args.get("utbmsCode"),
    )
    return success(data={"hourlyRate": str(rate) if rate is not None else None})


@billing_config_bp.route("/rate-tables/<rate_table_id>", methods=["GET"])
def get_rate_table(rate_table_id):
    row = db.session.get(RateTable, rate_table_id)
    if not row:
        return not_found("Rate table")
    return success(data=row.to_dict())


@billing_config_bp.route("/rate-tables", methods=["POST"])
def create_rate_table():
    """
    POST /api/rate-tables
    Body: { name, hourlyRate, attorneyId?, clientId?, activityType?, utbmsCode?, isActive? }
    Null attorney/client/activity/code means the row applies to all of them.
    """
    body = parse_body(RateTableCreate)
    problems = _check_rate_table(body.model_dump())
    if problems:
        return error("Validation failed.", 400, details=problems)

    row = RateTable(**body.model_dump())
    db.session.add(row)
    db.session.commit()

    return created(data=row.to_dict(), message="Rate table created.")


@billing_config_bp.route("/rate-tables/<rate_table_id>", methods=["PUT"])
def update_rate_table(rate_table_id):
    row = db.session.get(RateTable, rate_table_id)
    if not row:
        return not_found("Rate table")

    data = changes(parse_body(RateTableUpdate))

    problems = _check_rate_table(data)
    if problems:
        return error("Validation failed.", 400, details=problems)

    apply_changes(row, data)
    db.session.commit()

    return success(data=row.to_dict(), message="Rate table updated.")


@billing_config_bp.route("/rate-tables/<rate_table_id>", methods=["DELETE"])
def delete_rate_table(rate_table_id):
    row = db.session.get(RateTable, rate_table_id)
    if not row:
        return not_found("Rate table")

    db.session.delete(row)
    db.session.commit()
    return no_content()


# ════════════════════════════════════════════════════════════
#  Activity templates
# ════════════════════════════════════════════════════════════

@billing_config_bp.route("/activity-templates", methods=["GET"])
def list_activity_templates():
    """
    GET /api/activity-templates?activityType=&page=&perPage=
    Shared templates plus the current user's own, by name.
    """
    stmt = (
        db.select(ActivityTemplate)
        .where(or_(
            ActivityTemplate.is_shared.is_(True),
            ActivityTemplate.attorney_id == g.current_user.id,
        ))
        .order_by(ActivityTemplate.name.asc())
    )
    if request.args.get("activityType"):
        stmt = stmt.where(ActivityTemplate.activity_type == request.args["activityType"])

    page = paginate(stmt)
    return paginated([t.to_dict() for t in page.items], page)


@billing_config_bp.route("/activity-templates/<template_id>", methods=["GET"])
def get_activity_template(template_id):
    template = db.session.get(ActivityTemplate, template_id)
    if not template:
        return not_found("Activity template")
    return success(data=template.to_dict())


@billing_config_bp.route("/activity-templates", methods=["POST"])
def create_activity_template():
    """
    POST /api/activity-templates
    Body: { name, activityType, utbmsCode?, description?, defaultDuration?, defaultRate?,
            isBillable?, isShared?, attorneyId? }
    A private template (isShared false) with no attorneyId belongs to the current user.
    """
    body = parse_body(ActivityTemplateCreate)
    data = body.model_dump()
    problems = _check_template(data)
    if problems:
        return error("Validation failed.", 400, details=problems)
    if not data["is_shared"] and not data["attorney_id"]:
        data["attorney_id"] = g.current_user.id

    template = ActivityTemplate(**data)
    db.session.add(template)
    db.session.commit()

    return created(data=template.to_dict(), message="Activity template created.")


@billing_config_bp.route("/activity-templates/<template_id>", methods=["PUT"])
def update_activity_template(template_id):
    template = db.session.get(ActivityTemplate, template_id)
    if not template:
        return not_found("Activity template")

    data = changes(parse_body(ActivityTemplateUpdate))

    problems = _check_template(data)
    if problems:
        return error("Validation failed.", 400, details=problems)

    apply_changes(template, data)
    db.session.commit()

    return success(data=template.to_dict(), message="Activity template updated.")


@billing_config_bp.route("/activity-templates/<template_id>", methods=["DELETE"])
def delete_activity_template(template_id):
    template = db.session.get(ActivityTemplate, template_id)
    if not template:
        return not_found("Activity template")

    db.session.delete(template)
    db.session.commit()
    return no_content()


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _check_code(data: dict) -> list[dict]:
    code = data.get("utbms_code")
    if code and not utbms.is_valid_code(code):
        return [{"field": "utbmsCode", "message": f"Unknown UTBMS code '{code}'"}]
    return []


def _check_attorney(data: dict) -> list[dict]:
    attorney_id = data.get("attorney_id")
    if attorney_id and db.session.get(User, attorney_id) is None:
        return [{"field": "attorneyId", "message": "User does not exist"}]
    return []


def _check_rate_table(data: dict) -> list[dict]:
    problems = _check_code(data) + _check_attorney(data)
    client_id = data.get("client_id")
    if client_id and db.session.get(Client, client_id) is None:
        problems.append({"field": "clientId", "message": "Client does not exist"})
    return problems


def _check_template(data: dict) -> list[dict]:
    return _check_code(data) + _check_attorney(data)
