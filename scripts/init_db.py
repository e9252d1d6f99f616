"""
init_db.py — One-time database initialization script.

Run this once to:
  1. Create all tables via SQLAlchemy
  2. Seed the first admin user (if no admin exists yet)
  3. Seed the default shared activity templates (if none exist yet)

Every step is idempotent; running the script again changes nothing.

Usage:
    python scripts/init_db.py

The admin account comes from ADMIN_USERNAME / ADMIN_EMAIL / ADMIN_PASSWORD,
falling back to admin / admin@example.com / admin123.
"""

import sys
import os

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))

from app import create_app
from database import db
from models import User, UserRole, ActivityTemplate
from utils.passwords import hash_password
from utils.utbms import DEFAULT_ACTIVITY_TEMPLATES


def seed_admin() -> bool:
    """Create the first admin user unless one already exists. Returns True if created."""
    if User.query.filter_by(role=UserRole.admin).first():
        print("[SEED] An admin user already exists — skipping.")
        return False

    username = os.environ.get("ADMIN_USERNAME", "admin")
    email = os.environ.get("ADMIN_EMAIL", "admin@example.com")
    password = os.environ.get("ADMIN_PASSWORD", "admin123")

    db.session.add(User(
        username=username,
        email=email.lower(),
        password_hash=hash_password(password),
        first_name="System",
        last_name="Administrator",
        role=UserRole.admin,
        is_active=True,
    ))
    db.session.commit()

    print(f"[SEED] Admin user created: {username} / {email}")
    if "ADMIN_PASSWORD" not in os.environ:
        print("[SEED] IMPORTANT: Change the default password immediately in production.")
    return True


def seed_activity_templates() -> int:
    """Insert the default shared templates if the table is empty. Returns the number inserted."""
    if ActivityTemplate.query.first():
        print("[SEED] Activity templates already present — skipping.")
        return 0

    for template in DEFAULT_ACTIVITY_TEMPLATES:
        db.session.add(ActivityTemplate(**template))
    db.session.commit()

    print(f"[SEED] {len(DEFAULT_ACTIVITY_TEMPLATES)} activity templates created.")
    return len(DEFAULT_ACTIVITY_TEMPLATES)


def main():
    print("=" * 60)
    print(" LegalCRM — Database Initialisation")
    print("=" * 60)

    app = create_app()

    with app.app_context():
        print("[DB] Creating all tables...")
        db.create_all()
        print("[DB] Tables created.")

        seed_admin()
        seed_activity_templates()

    print("=" * 60)
    print(" Database initialisation complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
