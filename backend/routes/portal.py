"""
portal.py — Client portal.

Three blueprints share the /api/portal prefix:

  portal_auth_bp   /api/portal/auth/*   login, logout, me, invitation verify/accept (public)
  portal_bp        client-facing reads and messaging, behind the `portal_token` cookie
  portal_admin_bp  staff-side invitations, portal accounts and attorney messages,
                   behind the staff `token` cookie

A portal user only ever sees rows belonging to their own client; asking for
another client's case or invoice is a 403, not a 404.

Invitation lifecycle:
    invited (inactive, token + expiry set)
      → activated   (password set, token cleared)
      → expired     (accept refused, account untouched until re-invited)
"""

import logging
from flask import Blueprint, current_app, g, request
from sqlalchemy import func, or_

from database import db
from models import (
    PortalUser, Client, Case, CaseStatus, Invoice, InvoiceStatus, CalendarEvent, Message,
    MessageType, MessageStatus, SenderType, as_utc, utcnow,
)
from schemas import (
    PortalLoginRequest, AcceptInvitationRequest, PortalProfileUpdate, PortalMessageCreate,
    PortalInvitationCreate, AttorneyPortalMessageCreate,
)
from utils.auth import (
    protect_blueprint, protect_portal_blueprint, current_portal_user, portal_claims, stamp_login,
)
from utils.email import send_email, portal_invitation_email
from utils.pagination import paginate
from utils.passwords import hash_password, verify_password
from utils.reference import generate_invitation_token, token_expiry
from utils.response import (
    conflict, created, error, forbidden, no_content, not_found, paginated, success, unauthorized,
)
from utils.tokens import portal_tokens, set_session_cookie, clear_session_cookie
from utils.validation import parse_body

portal_auth_bp = Blueprint("portal_auth", __name__)
portal_bp = Blueprint("portal", __name__)
portal_admin_bp = Blueprint("portal_admin", __name__)
protect_portal_blueprint(portal_bp)
protect_blueprint(portal_admin_bp)

logger = logging.getLogger(__name__)

INVALID_INVITATION = "Invalid or expired invitation token."
EXPIRED_INVITATION = "Invitation has expired. Please contact your attorney for a new invitation."
SUMMARY_LIMIT = 5


# ════════════════════════════════════════════════════════════
#  PORTAL AUTH
# ════════════════════════════════════════════════════════════

@portal_auth_bp.route("/login", methods=["POST"])
def portal_login():
    """
    POST /api/portal/auth/login
    Body: { "email": str, "password": str }

    Sets the `portal_token` cookie and returns { user }.
    Unknown email or wrong password → 401. Not yet activated → 403.
    """
    body = parse_body(PortalLoginRequest)
    email = body.email.strip().lower()

    portal_user = PortalUser.query.filter(func.lower(PortalUser.email) == email).first()
    if portal_user is None:
        logger.warning(f"Failed portal login for {email!r}: unknown email")
        return unauthorized("Invalid email or password.")

    if not portal_user.is_active or not portal_user.password_hash:
        return forbidden("Account is not activated. Please use the invitation link from your email.")

    if not verify_password(body.password, portal_user.password_hash):
        logger.warning(f"Failed portal login for {email!r}: bad credentials")
        return unauthorized("Invalid email or password.")

    stamp_login(portal_user)

    provider = portal_tokens()
    response, status = success(data={"user": portal_user.to_dict()}, message="Login successful.")
    set_session_cookie(
        response, current_app.config["PORTAL_COOKIE_NAME"], provider.issue(portal_claims(portal_user)), provider
    )
    return response, status


@portal_auth_bp.route("/logout", methods=["POST"])
def portal_logout():
    response, status = success(message="Logged out.")
    clear_session_cookie(response, current_app.config["PORTAL_COOKIE_NAME"])
    return response, status


@portal_auth_bp.route("/me", methods=["GET"])
def portal_me():
    """
    GET /api/portal/auth/me
    Returns { user } or { user: null } when there is no valid portal session.
    """
    portal_user = current_portal_user()
    return success(data={"user": portal_user.to_dict() if portal_user else None})


@portal_auth_bp.route("/verify-invitation/<token>", methods=["GET"])
def verify_invitation(token):
    """
    GET /api/portal/auth/verify-invitation/<token>
    Returns { valid, email, firstName, lastName, clientName } for a live token.
    Unknown or expired token → 400 with valid: false.
    """
    portal_user = PortalUser.query.filter_by(invitation_token=token).first()
    if portal_user is None:
        return error(INVALID_INVITATION, 400, details={"valid": False})
    if _invitation_expired(portal_user):
        return error(EXPIRED_INVITATION, 400, details={"valid": False, "expired": True})

    client = portal_user.client
    return success(data={
        "valid":      True,
        "email":      portal_user.email,
        "firstName":  portal_user.first_name,
        "lastName":   portal_user.last_name,
        "clientName": client.full_name if client else None,
    })


@portal_auth_bp.route("/accept-invitation", methods=["POST"])
def accept_invitation():
    """
    POST /api/portal/auth/accept-invitation
    Body: { "token": str, "password": str (min 6) }

    Sets the password, activates the account and clears the token.
    An expired token is refused and the account is left exactly as it was.
    """
    body = parse_body(AcceptInvitationRequest)

    portal_user = PortalUser.query.filter_by(invitation_token=body.token).first()
    if portal_user is None:
        return error(INVALID_INVITATION, 400)
    if _invitation_expired(portal_user):
        logger.info(f"Expired invitation used for portal user {portal_user.id}")
        return error(EXPIRED_INVITATION, 400, details={"expired": True})

    portal_user.password_hash = hash_password(body.password)
    portal_user.is_active = True
    portal_user.invitation_token = None
    portal_user.invitation_expires_at = None
    db.session.commit()

    logger.info(f"Portal account activated: {portal_user.email}")
    return success(message="Account activated successfully. You can now log in.")


# ════════════════════════════════════════════════════════════
#  PORTAL DATA  (portal session required)
# ════════════════════════════════════════════════════════════

@portal_bp.route("/dashboard", methods=["GET"])
def portal_dashboard():
    """
    GET /api/portal/dashboard
    Returns counts plus the five most recent cases, next five events and
    five outstanding invoices for the logged-in client.
    """
    client_id = g.portal_user.client_id
    now = utcnow()

    cases = Case.query.filter_by(client_id=client_id).order_by(Case.created_at.desc()).all()
    active_cases = [c for c in cases if c.status == CaseStatus.active]

    upcoming = (
        _client_events_query(client_id, [c.id for c in cases])
        .filter(CalendarEvent.start_time >= now)
        .order_by(CalendarEvent.start_time.asc())
        .all()
    )
    pending = (
        Invoice.query
        .filter(Invoice.client_id == client_id,
                Invoice.status.in_([InvoiceStatus.sent, InvoiceStatus.overdue]))
        .order_by(Invoice.due_date.asc())
        .all()
    )

    return success(data={
        "activeCasesCount":     len(active_cases),
        "pendingInvoicesCount": len(pending),
        "upcomingEventsCount":  len(upcoming),
        "recentCases":          [c.to_dict() for c in cases[:SUMMARY_LIMIT]],
        "upcomingEvents":       [e.to_dict() for e in upcoming[:SUMMARY_LIMIT]],
        "pendingInvoices":      [i.to_dict() for i in pending[:SUMMARY_LIMIT]],
    })


@portal_bp.route("/cases", methods=["GET"])
def portal_cases():
    stmt = (
        db.select(Case)
        .where(Case.client_id == g.portal_user.client_id)
        .order_by(Case.created_at.desc())
    )
    page = paginate(stmt)
    return paginated([c.to_dict() for c in page.items], page)


@portal_bp.route("/cases/<case_id>", methods=["GET"])
def portal_case(case_id):
    case = db.session.get(Case, case_id)
    if not case:
        return not_found("Case")
    if case.client_id != g.portal_user.client_id:
        return forbidden("This case does not belong to your account.")
    return success(data=case.to_dict())


@portal_bp.route("/invoices", methods=["GET"])
def portal_invoices():
    """
    GET /api/portal/invoices
    Draft invoices are internal and are not shown to the client.
    """
    stmt = (
        db.select(Invoice)
        .where(Invoice.client_id == g.portal_user.client_id, Invoice.status != InvoiceStatus.draft)
        .order_by(Invoice.issue_date.desc())
    )
    page = paginate(stmt)
    return paginated([i.to_dict() for i in page.items], page)


@portal_bp.route("/invoices/<invoice_id>", methods=["GET"])
def portal_invoice(invoice_id):
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice or invoice.status == InvoiceStatus.draft:
        return not_found("Invoice")
    if invoice.client_id != g.portal_user.client_id:
        return forbidden("This invoice does not belong to your account.")

    data = invoice.to_dict()
    data["items"] = [item.to_dict() for item in invoice.items]
    return success(data=data)


@portal_bp.route("/events", methods=["GET"])
def portal_events():
    """
    GET /api/portal/events?upcoming=true
    Events for the client or any of the client's cases, by start time.
    """
    client_id = g.portal_user.client_id
    query = _client_events_query(client_id, _case_ids_for(client_id))
    if request.args.get("upcoming") == "true":
        query = query.filter(CalendarEvent.start_time >= utcnow())
    events = query.order_by(CalendarEvent.start_time.asc()).all()
    return success(data=[e.to_dict() for e in events])


@portal_bp.route("/messages", methods=["GET"])
def portal_messages():
    """
    GET /api/portal/messages[?caseId=]
    Portal messages on the client's cases (or one case), newest first.
    """
    client_id = g.portal_user.client_id
    case_id = request.args.get("caseId")

    if case_id:
        case = db.session.get(Case, case_id)
        if not case:
            return not_found("Case")
        if case.client_id != client_id:
            return forbidden("This case does not belong to your account.")
        scope = Message.case_id == case_id
    else:
        scope = or_(
            Message.case_id.in_(_case_ids_for(client_id)),
            Message.sender_portal_user_id == g.portal_user.id,
            Message.recipient_id == g.portal_user.id,
        )

    messages = (
        Message.query
        .filter(Message.message_type == MessageType.portal, scope)
        .order_by(Message.sent_at.desc())
        .all()
    )
    return success(data=[m.to_dict() for m in messages])


@portal_bp.route("/messages", methods=["POST"])
def portal_send_message():
    """
    POST /api/portal/messages
    Body: { "content": str, "subject"?: str, "caseId"?: str }
    """
    body = parse_body(PortalMessageCreate)
    portal_user = g.portal_user

    case = None
    if body.case_id:
        case = db.session.get(Case, body.case_id)
        if not case:
            return not_found("Case")
        if case.client_id != portal_user.client_id:
            return forbidden("This case does not belong to your account.")

    message = Message(
        subject=body.subject,
        content=body.content,
        case_id=case.id if case else None,
        sender_portal_user_id=portal_user.id,
        sender_type=SenderType.client,
        recipient_id=case.assigned_attorney_id if case else None,
        message_type=MessageType.portal,
        status=MessageStatus.sent,
    )
    db.session.add(message)
    db.session.commit()

    return created(data=message.to_dict(), message="Message sent.")


@portal_bp.route("/profile", methods=["GET"])
def portal_profile():
    """
    GET /api/portal/profile
    Returns { portalUser, client }.
    """
    portal_user = g.portal_user
    client = portal_user.client
    return success(data={
        "portalUser": portal_user.to_dict(),
        "client":     client.to_dict() if client else None,
    })


@portal_bp.route("/profile", methods=["PATCH"])
def portal_update_profile():
    """
    PATCH /api/portal/profile
    Body: { "phone"?: str, "password"?: str, "currentPassword"?: str }

    A new password needs currentPassword: missing → 400, wrong → 401.
    """
    body = parse_body(PortalProfileUpdate)
    portal_user = g.portal_user

    if body.password:
        if not body.current_password:
            return error("Current password is required to set a new password.", 400)
        if not verify_password(body.current_password, portal_user.password_hash):
            return unauthorized("Current password is incorrect.")
        portal_user.password_hash = hash_password(body.password)

    if "phone" in body.model_fields_set:
        portal_user.phone = body.phone

    db.session.commit()
    return success(data={"portalUser": portal_user.to_dict()}, message="Profile updated.")


# ════════════════════════════════════════════════════════════
#  PORTAL ADMINISTRATION  (staff session required)
# ════════════════════════════════════════════════════════════

@portal_admin_bp.route("/invitations", methods=["POST"])
def create_invitation():
    """
    POST /api/portal/invitations
    Body: { "clientId": str, "email"?: str }   (email defaults to the client's)

    Creates an inactive portal account for the client with a fresh
    invitation token, or re-issues the token if the client was invited
    before but never activated. Returns { portalUser, invitationLink, emailSent }.
    """
    body = parse_body(PortalInvitationCreate)

    client = db.session.get(Client, body.client_id)
    if not client:
        return not_found("Client")

    email = (body.email or client.email or "").strip().lower()
    if not email:
        return error("Validation failed.", 400, details=[
            {"field": "email", "message": "The client has no email address; provide one"}
        ])

    portal_user = PortalUser.query.filter_by(client_id=client.id).first()
    if portal_user is not None and portal_user.is_active:
        return conflict("Portal access already exists for this client.")

    email_owner = PortalUser.query.filter(func.lower(PortalUser.email) == email).first()
    if email_owner is not None and email_owner is not portal_user:
        return conflict("That email is already used by another portal account.")

    expiry_days = current_app.config.get("INVITATION_EXPIRY_DAYS", 7)
    if portal_user is None:
        portal_user = PortalUser(
            client_id=client.id,
            first_name=client.first_name,
            last_name=client.last_name,
            phone=client.phone,
            is_active=False,
        )
        db.session.add(portal_user)

    portal_user.email = email
    portal_user.invitation_token = generate_invitation_token()
    portal_user.invitation_expires_at = token_expiry(expiry_days)
    portal_user.invited_by_id = g.current_user.id
    db.session.commit()

    link = _invitation_link(portal_user.invitation_token)
    firm_name = current_app.config.get("FIRM_NAME", "LegalCRM Pro")
    subject, html = portal_invitation_email(
        portal_user.first_name, g.current_user.full_name, link, firm_name, expiry_days
    )
    email_sent = send_email(portal_user.email, subject, html)

    logger.info(f"Portal invitation for client {client.id} issued by {g.current_user.username}")
    return created(data={
        "portalUser":     portal_user.to_dict(),
        "invitationLink": link,
        "emailSent":      email_sent,
    }, message="Invitation created.")


@portal_admin_bp.route("/users", methods=["GET"])
def list_portal_users():
    """
    GET /api/portal/users?clientId=&active=true|false&page=&perPage=
    """
    stmt = db.select(PortalUser).order_by(PortalUser.created_at.desc())
    if request.args.get("clientId"):
        stmt = stmt.where(PortalUser.client_id == request.args["clientId"])
    active = request.args.get("active")
    if active in ("true", "false"):
        stmt = stmt.where(PortalUser.is_active.is_(active == "true"))

    page = paginate(stmt)
    return paginated([p.to_dict() for p in page.items], page)


@portal_admin_bp.route("/users/<portal_user_id>", methods=["DELETE"])
def delete_portal_user(portal_user_id):
    portal_user = db.session.get(PortalUser, portal_user_id)
    if not portal_user:
        return not_found("Portal user")

    db.session.delete(portal_user)
    db.session.commit()
    return no_content()


@portal_admin_bp.route("/messages/attorney", methods=["POST"])
def send_attorney_message():
    """
    POST /api/portal/messages/attorney
    Body: { "caseId": str, "content": str, "subject"?: str }
    Posts a portal message from the current staff member to the case's client.
    """
    body = parse_body(AttorneyPortalMessageCreate)

    case = db.session.get(Case, body.case_id)
    if not case:
        return not_found("Case")

    portal_user = PortalUser.query.filter_by(client_id=case.client_id).first()
    message = Message(
        subject=body.subject,
        content=body.content,
        case_id=case.id,
        sender_id=g.current_user.id,
        sender_type=SenderType.attorney,
        recipient_id=portal_user.id if portal_user else None,
        recipient_email=portal_user.email if portal_user else None,
        message_type=MessageType.portal,
        status=MessageStatus.sent,
    )
    db.session.add(message)
    db.session.commit()

    return created(data=message.to_dict(), message="Message sent.")


@portal_admin_bp.route("/messages/case/<case_id>", methods=["GET"])
def case_portal_messages(case_id):
    """
    GET /api/portal/messages/case/<case_id>
    The portal conversation on one case, oldest first.
    """
    if db.session.get(Case, case_id) is None:
        return not_found("Case")

    messages = (
        Message.query
        .filter(Message.case_id == case_id, Message.message_type == MessageType.portal)
        .order_by(Message.sent_at.asc())
        .all()
    )
    return success(data=[m.to_dict() for m in messages])


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _invitation_expired(portal_user: PortalUser) -> bool:
    expires_at = as_utc(portal_user.invitation_expires_at)
    return expires_at is not None and expires_at < utcnow()


def _invitation_link(token: str) -> str:
    base = current_app.config.get("APP_BASE_URL", "").rstrip("/")
    return f"{base}/portal/accept-invitation?token={token}"


def _case_ids_for(client_id: str) -> list[str]:
    return list(db.session.execute(
        db.select(Case.id).where(Case.client_id == client_id)
    ).scalars())


def _client_events_query(client_id: str, case_ids: list[str]):
    if case_ids:
        return CalendarEvent.query.filter(or_(
            CalendarEvent.client_id == client_id,
            CalendarEvent.case_id.in_(case_ids),
        ))
    return CalendarEvent.query.filter(CalendarEvent.client_id == client_id)
