"""
utils/rates.py — Hourly rate lookup from the firm's rate tables.
"""

from database import db
from models import RateTable


def resolve_hourly_rate(attorney_id=None, client_id=None, activity=None, utbms_code=None):
    """
    Return the hourly rate of the most specific active RateTable row, or None.

    A row matches when each of its attorney / client / activity_type /
    utbms_code columns is either null or equal to the given value. Each
    non-null matching column adds one point; the highest score wins and the
    newest row breaks ties.
    """
    rows = db.session.execute(
        db.select(RateTable)
        .where(RateTable.is_active.is_(True))
        .order_by(RateTable.created_at.desc())
    ).scalars().all()

    wanted = {
        "attorney_id":   attorney_id,
        "client_id":     client_id,
        "activity_type": activity,
        "utbms_code":    utbms_code,
    }

    best, best_score = None, -1
    for row in rows:
        score = 0
        for column, value in wanted.items():
            row_value = getattr(row, column)
            if row_value is None:
                continue
            if row_value != value:
                break
            score += 1
        else:
            if score > best_score:
                best, best_score = row, score

    return best.hourly_rate if best is not None else None
