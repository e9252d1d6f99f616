"""
reference.py — Invoice numbers, case numbers and portal invitation tokens.

Invoice number format: INV-NNNNN        (e.g. INV-00042)
Case number format:    CASE-YYYY-NNNNN  (e.g. CASE-2026-00007)
Invitation token:      64 hex chars (32 random bytes)
"""

import secrets
from datetime import datetime, timezone, timedelta
from database import db


def _next_sequence(column, prefix: str, width: int = 5) -> str:
    """
    Next value in a PREFIX + zero-padded sequence, one above the highest
    existing value. Ordered by length first so INV-100000 sorts above
    INV-99999. Collisions are prevented by checking uniqueness and
    stepping forward.
    """
    model = column.class_
    last = db.session.execute(
        db.select(column)
        .where(column.like(f"{prefix}%"))
        .order_by(db.func.length(column).desc(), column.desc())
        .limit(1)
    ).scalar()

    if last:
        try:
            next_seq = int(last[len(prefix):]) + 1
        except ValueError:
            next_seq = 1
    else:
        next_seq = 1

    candidate = f"{prefix}{str(next_seq).zfill(width)}"
    while db.session.execute(db.select(model).where(column == candidate)).first():
        next_seq += 1
        candidate = f"{prefix}{str(next_seq).zfill(width)}"
    return candidate


def generate_invoice_number() -> str:
    from models import Invoice
    return _next_sequence(Invoice.invoice_number, "INV-")


def generate_case_number() -> str:
    from models import Case
    year = datetime.now(timezone.utc).year
    return _next_sequence(Case.case_number, f"CASE-{year}-")


def generate_invitation_token() -> str:
    return secrets.token_hex(32)


def token_expiry(days: int = 7):
    """Return a UTC datetime `days` from now."""
    return datetime.now(timezone.utc) + timedelta(days=days)
