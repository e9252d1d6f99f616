"""
dashboard.py — Headline practice metrics for the staff dashboard.
"""

from datetime import timedelta
from decimal import Decimal

from flask import Blueprint
from sqlalchemy import func

from database import db
from models import (
    Case, CaseStatus, Invoice, InvoiceStatus, TimeEntry, CalendarEvent, EventType, utcnow,
)
from utils.auth import protect_blueprint
from utils.billing import to_money
from utils.response import success

dashboard_bp = Blueprint("dashboard", __name__)
protect_blueprint(dashboard_bp)


@dashboard_bp.route("/metrics", methods=["GET"])
def metrics():
    """
    GET /api/dashboard/metrics
    Returns:
      activeCases         — cases with status active
      monthlyRevenue      — total of invoices paid since the 1st of this month (UTC), "0.00" form
      billableHours       — billable time entries started this month, hours to 1 dp
      upcomingCourtDates  — court_date events starting in the next 7 days
    """
    now = utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    active_cases = db.session.execute(
        db.select(func.count(Case.id)).where(Case.status == CaseStatus.active)
    ).scalar_one()

    revenue = db.session.execute(
        db.select(func.coalesce(func.sum(Invoice.total), 0)).where(
            Invoice.status == InvoiceStatus.paid,
            Invoice.paid_at >= month_start,
        )
    ).scalar_one()

    billable_minutes = db.session.execute(
        db.select(func.coalesce(func.sum(TimeEntry.duration), 0)).where(
            TimeEntry.is_billable.is_(True),
            TimeEntry.start_time >= month_start,
        )
    ).scalar_one()

    court_dates = db.session.execute(
        db.select(func.count(CalendarEvent.id)).where(
            CalendarEvent.event_type == EventType.court_date,
            CalendarEvent.start_time >= now,
            CalendarEvent.start_time <= now + timedelta(days=7),
        )
    ).scalar_one()

    return success(data={
        "activeCases":        active_cases,
        "monthlyRevenue":     str(to_money(Decimal(str(revenue)))),
        "billableHours":      round(int(billable_minutes) / 60, 1),
        "upcomingCourtDates": court_dates,
    })
