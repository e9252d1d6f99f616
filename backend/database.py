import sqlite3
from contextlib import contextmanager

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event, text
from sqlalchemy.engine import Engine

db = SQLAlchemy()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores REFERENCES clauses unless asked; PostgreSQL always enforces them."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@contextmanager
def unit_of_work():
    """
    Run a multi-step write as one transaction.

    Commits when the block exits cleanly; on any exception everything
    flushed inside the block is rolled back and the exception re-raised.

        with unit_of_work() as session:
            session.add(a)
            session.add(b)
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def check_connection() -> str:
    """Return "ok" or the error text; used by the health check."""
    try:
        db.session.execute(text("SELECT 1"))
        return "ok"
    except Exception as e:
        db.session.rollback()
        return f"error: {e}"
