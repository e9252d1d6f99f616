"""
invoices.py — Invoices, invoice generation from time entries, PDF export.

Invoice totals are fixed when the invoice is written (total = subtotal + tax)
and are not recomputed later. Paying an invoice, or taking it back out of
"paid", moves its time entries between invoiced and paid in the same
transaction.
"""

from datetime import date, timedelta, timezone, datetime
from decimal import Decimal
from io import BytesIO

from flask import Blueprint, current_app, request, send_file

from database import db, unit_of_work
from models import (
    Invoice, InvoiceItem, InvoiceStatus, Client, Case, TimeEntry, TimeEntryStatus, PortalUser,
)
from schemas import InvoiceCreate, InvoiceUpdate, InvoiceGenerate
from utils import timers
from utils.auth import protect_blueprint
from utils.billing import (
    calculate_billable_amount, minutes_to_decimal_hours, round_to_increment, to_money,
)
from utils.email import send_email, invoice_notice_email
from utils.pagination import paginate
from utils.pdf import render_invoice_pdf
from utils.reference import generate_invoice_number
from utils.response import conflict, created, error, no_content, not_found, paginated, success
from utils.validation import parse_body, changes, apply_changes

invoices_bp = Blueprint("invoices", __name__)
protect_blueprint(invoices_bp)


# ════════════════════════════════════════════════════════════
#  READ
# ════════════════════════════════════════════════════════════

@invoices_bp.route("", methods=["GET"])
def list_invoices():
    """
    GET /api/invoices?clientId=&caseId=&status=&page=&perPage=
    Newest first.
    """
    stmt = db.select(Invoice).order_by(Invoice.created_at.desc())

    if request.args.get("clientId"):
        stmt = stmt.where(Invoice.client_id == request.args["clientId"])
    if request.args.get("caseId"):
        stmt = stmt.where(Invoice.case_id == request.args["caseId"])
    status = request.args.get("status")
    if status in InvoiceStatus.__members__:
        stmt = stmt.where(Invoice.status == InvoiceStatus[status])

    page = paginate(stmt)
    return paginated([i.to_dict() for i in page.items], page)


@invoices_bp.route("/<invoice_id>", methods=["GET"])
def get_invoice(invoice_id):
    """
    GET /api/invoices/<id>
    Returns the invoice with its line items under `items`.
    """
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        return not_found("Invoice")
    return success(data=invoice_payload(invoice))


@invoices_bp.route("/<invoice_id>/pdf", methods=["GET"])
def invoice_pdf(invoice_id):
    """
    GET /api/invoices/<id>/pdf[?download=1]
    Streams the invoice as application/pdf.
    """
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        return not_found("Invoice")

    pdf = render_invoice_pdf(
        invoice,
        invoice.client,
        invoice.items,
        firm_name=current_app.config.get("FIRM_NAME", "LegalCRM Pro"),
        case=invoice.case,
    )
    return send_file(
        BytesIO(pdf),
        mimetype="application/pdf",
        as_attachment=request.args.get("download") == "1",
        download_name=f"{invoice.invoice_number}.pdf",
    )


# ════════════════════════════════════════════════════════════
#  WRITE
# ════════════════════════════════════════════════════════════

@invoices_bp.route("", methods=["POST"])
def create_invoice():
    """
    POST /api/invoices
    Body: { clientId, caseId?, issueDate?, dueDate?, subtotal?, tax?, status?, notes?,
            items?: [{ description, quantity, rate, amount?, timeEntryId? }] }

    subtotal defaults to the sum of the item amounts; total is always subtotal + tax.
    """
    body = parse_body(InvoiceCreate)

    if db.session.get(Client, body.client_id) is None:
        return error("Validation failed.", 400, details=[
            {"field": "clientId", "message": "Client does not exist"}
        ])
    if body.case_id and db.session.get(Case, body.case_id) is None:
        return error("Validation failed.", 400, details=[
            {"field": "caseId", "message": "Case does not exist"}
        ])
    if body.invoice_number and Invoice.query.filter_by(invoice_number=body.invoice_number).first():
        return conflict("An invoice with this number already exists.")

    issue_date = body.issue_date or date.today()
    items = [
        InvoiceItem(
            description=item.description,
            quantity=item.quantity,
            rate=to_money(item.rate),
            amount=to_money(item.amount if item.amount is not None else item.quantity * item.rate),
            time_entry_id=item.time_entry_id,
        )
        for item in body.items
    ]
    subtotal = to_money(body.subtotal if body.subtotal is not None else sum((i.amount for i in items), Decimal("0")))
    tax = to_money(body.tax)

    with unit_of_work() as session:
        invoice = Invoice(
            invoice_number=body.invoice_number or generate_invoice_number(),
            client_id=body.client_id,
            case_id=body.case_id,
            issue_date=issue_date,
            due_date=body.due_date or issue_date + timedelta(days=current_app.config.get("DEFAULT_INVOICE_DUE_DAYS", 30)),
            subtotal=subtotal,
            tax=tax,
            total=subtotal + tax,
            status=body.status,
            paid_at=datetime.now(timezone.utc) if body.status == InvoiceStatus.paid else None,
            notes=body.notes,
        )
        invoice.items = items
        session.add(invoice)

    return created(data=invoice_payload(invoice), message="Invoice created.")


@invoices_bp.route("/generate", methods=["POST"])
def generate_invoice():
    """
    POST /api/invoices/generate
    Body: { clientId, caseId, timeEntryIds: [str, ...], dueInDays?: 30 }

    Every entry must belong to the case and be ready_to_bill. One line item
    per entry at its rounded billable amount; entries move to invoiced.
    """
    body = parse_body(InvoiceGenerate)
    increment = current_app.config.get("BILLING_ROUNDING_INCREMENT", 6)

    client = db.session.get(Client, body.client_id)
    if client is None:
        return error("Validation failed.", 400, details=[
            {"field": "clientId", "message": "Client does not exist"}
        ])
    case = db.session.get(Case, body.case_id)
    if case is None or case.client_id != client.id:
        return error("Validation failed.", 400, details=[
            {"field": "caseId", "message": "Case does not exist for this client"}
        ])

    ids = list(dict.fromkeys(body.time_entry_ids))
    entries = TimeEntry.query.filter(TimeEntry.id.in_(ids)).order_by(TimeEntry.start_time.asc()).all()
    found = {e.id for e in entries}
    missing = [i for i in ids if i not in found]
    if missing:
        return error("Some time entries were not found.", 404, details={"missingIds": missing})

    problems = []
    for e in entries:
        if e.case_id != case.id:
            problems.append({"id": e.id, "message": "Time entry belongs to a different case"})
        elif e.status != TimeEntryStatus.ready_to_bill:
            problems.append({"id": e.id, "message": f"Time entry is '{e.status.value}', not ready_to_bill"})
        elif e.end_time is None:
            problems.append({"id": e.id, "message": "Timer is still running"})
    if problems:
        return error("These time entries cannot be invoiced.", 400, details=problems)

    today = date.today()
    with unit_of_work() as session:
        invoice = Invoice(
            invoice_number=generate_invoice_number(),
            client_id=client.id,
            case_id=case.id,
            issue_date=today,
            due_date=today + timedelta(days=body.due_in_days),
            subtotal=Decimal("0.00"),
            tax=Decimal("0.00"),
            total=Decimal("0.00"),
            status=InvoiceStatus.draft,
        )
        session.add(invoice)
        session.flush()

        subtotal = Decimal("0.00")
        for entry in entries:
            item = _line_item_for(entry, increment)
            item.invoice_id = invoice.id
            session.add(item)
            subtotal += item.amount

            timers.assert_transition(entry.status, TimeEntryStatus.invoiced)
            entry.status = TimeEntryStatus.invoiced
            entry.invoice_id = invoice.id

        invoice.subtotal = subtotal
        invoice.total = subtotal + invoice.tax

    current_app.logger.info(
        f"Invoice {invoice.invoice_number} generated from {len(entries)} time entries ({invoice.total})"
    )
    return created(data=invoice_payload(invoice), message="Invoice generated.")


@invoices_bp.route("/<invoice_id>", methods=["PUT"])
def update_invoice(invoice_id):
    """
    PUT /api/invoices/<id>
    Partial update. status → paid stamps paidAt and marks the invoice's time
    entries paid; leaving paid clears paidAt and puts them back to invoiced.
    """
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        return not_found("Invoice")

    data = changes(parse_body(InvoiceUpdate))

    new_status = data.get("status")
    with unit_of_work():
        if new_status is not None and new_status != invoice.status:
            _sync_payment_state(invoice, invoice.status, new_status)
        apply_changes(invoice, data)

    return success(data=invoice_payload(invoice), message="Invoice updated.")


@invoices_bp.route("/<invoice_id>/send", methods=["POST"])
def send_invoice(invoice_id):
    """
    POST /api/invoices/<id>/send
    Marks a draft invoice as sent and emails the client a notice when email
    is configured. Returns { invoice, emailSent }.
    """
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        return not_found("Invoice")
    if invoice.status not in (InvoiceStatus.draft, InvoiceStatus.sent):
        return error(f"A '{invoice.status.value}' invoice cannot be sent.")

    invoice.status = InvoiceStatus.sent
    db.session.commit()

    client = invoice.client
    portal_user = PortalUser.query.filter_by(client_id=client.id).first()
    recipient = (portal_user.email if portal_user else None) or client.email
    email_sent = False
    if recipient:
        firm_name = current_app.config.get("FIRM_NAME", "LegalCRM Pro")
        subject, html = invoice_notice_email(
            client.full_name,
            invoice.invoice_number,
            str(invoice.total),
            invoice.due_date.strftime("%B %d, %Y"),
            f"{current_app.config['APP_BASE_URL'].rstrip('/')}/portal/invoices",
            firm_name,
        )
        email_sent = send_email(recipient, subject, html)

    return success(data={"invoice": invoice_payload(invoice), "emailSent": email_sent}, message="Invoice sent.")


@invoices_bp.route("/<invoice_id>", methods=["DELETE"])
def delete_invoice(invoice_id):
    """
    DELETE /api/invoices/<id>
    Paid invoices cannot be deleted. Time entries on the invoice go back to ready_to_bill.
    """
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        return not_found("Invoice")
    if invoice.status == InvoiceStatus.paid:
        return conflict("Paid invoices cannot be deleted.")

    with unit_of_work() as session:
        for entry in TimeEntry.query.filter_by(invoice_id=invoice.id).all():
            if entry.status == TimeEntryStatus.invoiced:
                entry.status = TimeEntryStatus.ready_to_bill
            entry.invoice_id = None
        session.delete(invoice)

    return no_content()


# ─── Helpers ──────────────────────────────────────────────────────────────────

def invoice_payload(invoice: Invoice) -> dict:
    data = invoice.to_dict()
    data["items"] = [item.to_dict() for item in invoice.items]
    return data


def _line_item_for(entry: TimeEntry, increment: int) -> InvoiceItem:
    minutes = entry.duration or 0
    rate = to_money(entry.hourly_rate)
    hours = minutes_to_decimal_hours(round_to_increment(minutes, increment))
    amount = calculate_billable_amount(minutes, rate, increment) if entry.is_billable else Decimal("0.00")

    description = entry.activity
    if entry.utbms_code:
        description = f"[{entry.utbms_code}] {description}"
    if entry.description:
        description = f"{description}: {entry.description}"
    if not entry.is_billable:
        description = f"{description} (no charge)"

    return InvoiceItem(
        time_entry_id=entry.id,
        description=description,
        quantity=hours,
        rate=rate,
        amount=amount,
    )


def _sync_payment_state(invoice: Invoice, old: InvoiceStatus, new: InvoiceStatus):
    if new == InvoiceStatus.paid:
        invoice.paid_at = datetime.now(timezone.utc)
        _move_entries(invoice, TimeEntryStatus.invoiced, TimeEntryStatus.paid)
    elif old == InvoiceStatus.paid:
        invoice.paid_at = None
        _move_entries(invoice, TimeEntryStatus.paid, TimeEntryStatus.invoiced)


def _move_entries(invoice: Invoice, source: TimeEntryStatus, target: TimeEntryStatus):
    for entry in TimeEntry.query.filter_by(invoice_id=invoice.id, status=source).all():
        timers.assert_transition(entry.status, target)
        entry.status = target
