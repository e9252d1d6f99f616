"""
auth.py — Login, logout and own-profile management for staff users.

The session is a signed JWT in the httpOnly `token` cookie. There is no
server-side session store and no revocation list: logging out deletes the
cookie, and a token stays valid until it expires.
"""

from flask import Blueprint, current_app, g
from sqlalchemy import func, or_

from database import db
from models import User, utcnow
from schemas import LoginRequest, ProfileUpdate, PasswordChange
from utils.auth import protect_blueprint, current_staff_user, staff_claims, stamp_login
from utils.passwords import hash_password, verify_password
from utils.response import success, conflict, unauthorized, forbidden
from utils.tokens import staff_tokens, set_session_cookie, clear_session_cookie
from utils.validation import parse_body, changes, apply_changes

auth_bp = Blueprint("auth", __name__)
protect_blueprint(auth_bp, public={"login", "logout", "me"})


# ─── Login ────────────────────────────────────────────────────────────────────

@auth_bp.route("/login", methods=["POST"])
def login():
    """
    POST /api/auth/login
    Body: { "username": str, "password": str }   (username may also be the email)

    On success: sets the `token` cookie and returns { user }.
    Wrong credentials → 401 with no cookie. Disabled account → 403.
    """
    body = parse_body(LoginRequest)
    identifier = body.username.strip()

    user = User.query.filter(
        or_(User.username == identifier, func.lower(User.email) == identifier.lower())
    ).first()

    if not user or not verify_password(body.password, user.password_hash):
        _log_failed_login(identifier)
        return unauthorized("Invalid username or password.")

    if not user.is_active:
        _log_failed_login(identifier, reason="account disabled")
        return forbidden("This account has been disabled.")

    stamp_login(user)

    provider = staff_tokens()
    response, status = success(data={"user": user.to_dict()}, message="Login successful.")
    set_session_cookie(response, current_app.config["STAFF_COOKIE_NAME"], provider.issue(staff_claims(user)), provider)
    return response, status


# ─── Logout ───────────────────────────────────────────────────────────────────

@auth_bp.route("/logout", methods=["POST"])
def logout():
    """
    POST /api/auth/logout
    Clears the session cookie. Always succeeds.
    """
    response, status = success(message="Logged out.")
    clear_session_cookie(response, current_app.config["STAFF_COOKIE_NAME"])
    return response, status


# ─── Session status ───────────────────────────────────────────────────────────

@auth_bp.route("/me", methods=["GET"])
def me():
    """
    GET /api/auth/me
    Returns { user } re-read from the database, or { user: null } when not logged in.
    """
    user = current_staff_user()
    return success(data={"user": user.to_dict() if user else None})


# ─── Own profile ──────────────────────────────────────────────────────────────

@auth_bp.route("/profile", methods=["PUT"])
def update_profile():
    """
    PUT /api/auth/profile
    Body: any of { username, email, firstName, lastName, barNumber, phone, avatar }

    role, isActive, password, id and timestamps are ignored here.
    """
    user = g.current_user
    data = changes(parse_body(ProfileUpdate))

    if "username" in data and data["username"] != user.username:
        if User.query.filter(User.username == data["username"], User.id != user.id).first():
            return conflict("That username is already taken.")
    if "email" in data and data["email"].lower() != user.email.lower():
        if User.query.filter(func.lower(User.email) == data["email"].lower(), User.id != user.id).first():
            return conflict("A user with this email already exists.")

    apply_changes(user, data)
    user.updated_at = utcnow()
    db.session.commit()

    return success(data={"user": user.to_dict()}, message="Profile updated.")


@auth_bp.route("/password", methods=["PUT"])
def change_password():
    """
    PUT /api/auth/password
    Body: { "currentPassword": str, "newPassword": str (min 6) }
    """
    user = g.current_user
    body = parse_body(PasswordChange)

    if not verify_password(body.current_password, user.password_hash):
        return unauthorized("Current password is incorrect.")

    user.password_hash = hash_password(body.new_password)
    user.updated_at = utcnow()
    db.session.commit()

    current_app.logger.info(f"Password changed for user {user.username}")
    return success(message="Password updated successfully.")


# ─── Private helpers ──────────────────────────────────────────────────────────

def _log_failed_login(identifier: str, reason: str = "bad credentials"):
    current_app.logger.warning(f"Failed login attempt for {identifier!r}: {reason}")
