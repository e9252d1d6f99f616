"""
users.py — Staff user management.

Reading the user list needs users:read; creating, editing and deleting
accounts needs users:manage (see utils/policy.py).
"""

from flask import Blueprint, g, request
from sqlalchemy import func

from database import db
from models import User, UserRole, utcnow
from schemas import UserCreate, UserUpdate
from utils.auth import protect_blueprint
from utils.pagination import paginate
from utils.passwords import hash_password
from utils.response import conflict, created, error, no_content, not_found, paginated, success
from utils.validation import parse_body, changes, apply_changes

users_bp = Blueprint("users", __name__)
protect_blueprint(users_bp)


@users_bp.route("", methods=["GET"])
def list_users():
    """
    GET /api/users?role=&active=&page=&perPage=
    Newest first.
    """
    stmt = db.select(User).order_by(User.created_at.desc())

    role = request.args.get("role")
    if role in UserRole.__members__:
        stmt = stmt.where(User.role == UserRole[role])
    active = request.args.get("active")
    if active in ("true", "false"):
        stmt = stmt.where(User.is_active.is_(active == "true"))

    page = paginate(stmt)
    return paginated([u.to_dict() for u in page.items], page)


@users_bp.route("/<user_id>", methods=["GET"])
def get_user(user_id):
    user = db.session.get(User, user_id)
    if not user:
        return not_found("User")
    return success(data=user.to_dict())


@users_bp.route("", methods=["POST"])
def create_user():
    """
    POST /api/users
    Body: { username, email, password, firstName, lastName, role?, barNumber?, phone?, isActive? }
    """
    body = parse_body(UserCreate)
    data = body.model_dump(exclude={"password"})
    data["email"] = data["email"].lower()

    if _username_taken(data["username"]):
        return conflict("That username is already taken.")
    if _email_taken(data["email"]):
        return conflict("A user with this email already exists.")

    user = User(**data, password_hash=hash_password(body.password))
    db.session.add(user)
    db.session.commit()

    return created(data=user.to_dict(), message="User created.")


@users_bp.route("/<user_id>", methods=["PUT"])
def update_user(user_id):
    """
    PUT /api/users/<id>
    Partial update. A new password is hashed; admins cannot disable or demote themselves.
    """
    user = db.session.get(User, user_id)
    if not user:
        return not_found("User")

    data = changes(parse_body(UserUpdate))

    if user.id == g.current_user.id:
        if data.get("is_active") is False:
            return error("You cannot deactivate your own account.")
        if "role" in data and data["role"] != user.role:
            return error("You cannot change your own role.")

    if "username" in data and data["username"] != user.username and _username_taken(data["username"]):
        return conflict("That username is already taken.")
    if "email" in data:
        data["email"] = data["email"].lower()
        if data["email"] != user.email.lower() and _email_taken(data["email"]):
            return conflict("A user with this email already exists.")

    password = data.pop("password", None)
    if password:
        user.password_hash = hash_password(password)

    apply_changes(user, data)
    user.updated_at = utcnow()
    db.session.commit()

    return success(data=user.to_dict(), message="User updated.")


@users_bp.route("/<user_id>", methods=["DELETE"])
def delete_user(user_id):
    """
    DELETE /api/users/<id>
    Hard delete. Prefer PUT { isActive: false } to keep the history intact.
    """
    if user_id == g.current_user.id:
        return error("You cannot delete your own account.")

    user = db.session.get(User, user_id)
    if not user:
        return not_found("User")

    db.session.delete(user)
    db.session.commit()
    return no_content()


# ─── Private helpers ──────────────────────────────────────────────────────────

def _username_taken(username: str) -> bool:
    return User.query.filter(User.username == username).first() is not None


def _email_taken(email: str) -> bool:
    return User.query.filter(func.lower(User.email) == email.lower()).first() is not None
