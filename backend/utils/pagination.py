"""
utils/pagination.py — Offset pagination for list endpoints.

    ?page=2&perPage=25   (perPage defaults to DEFAULT_PAGE_SIZE, capped at MAX_PAGE_SIZE)
"""

from flask import request, current_app
from database import db


def page_args() -> tuple[int, int]:
    default = current_app.config.get("DEFAULT_PAGE_SIZE", 50)
    maximum = current_app.config.get("MAX_PAGE_SIZE", 200)

    page = request.args.get("page", 1, type=int) or 1
    per_page = (
        request.args.get("perPage", type=int)
        or request.args.get("per_page", type=int)
        or default
    )
    return max(page, 1), min(max(per_page, 1), maximum)


def paginate(stmt):
    """Run a select() one page at a time. Returns a Flask-SQLAlchemy Pagination."""
    page, per_page = page_args()
    return db.paginate(stmt, page=page, per_page=per_page, error_out=False)
