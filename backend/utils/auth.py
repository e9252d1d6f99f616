"""
auth.py — Cookie-based authentication guards for both realms.

Staff blueprints call protect_blueprint(bp) once; the installed
before_request hook authenticates the `token` cookie, loads the user onto
g.current_user and evaluates utils.policy for the matched endpoint.
Portal blueprints call protect_portal_blueprint(bp), which does the same
for the `portal_token` cookie and sets g.portal_user.
"""

from datetime import datetime, timezone
from flask import request, g, current_app

from database import db
from models import User, PortalUser
from utils.policy import is_allowed, required_capability
from utils.response import unauthorized, forbidden
from utils.tokens import staff_tokens, portal_tokens


# ─── Blueprint guards ─────────────────────────────────────────────────────────

def protect_blueprint(bp, public=()):
    """Require a staff session (and the endpoint's capability) on every view of `bp`."""
    public = set(public)

    @bp.before_request
    def _staff_guard():
        if request.method == "OPTIONS" or _view_name() in public:
            return None
        user = current_staff_user()
        if user is None:
            return unauthorized("You must be logged in.")
        if not is_allowed(user.role, request.endpoint):
            current_app.logger.info(
                f"Denied {request.endpoint} to {user.username} ({user.role.value}); "
                f"needs {required_capability(request.endpoint)}"
            )
            return forbidden("You do not have permission to perform this action.")
        return None

    return bp


def protect_portal_blueprint(bp, public=()):
    """Require a client portal session on every view of `bp`."""
    public = set(public)

    @bp.before_request
    def _portal_guard():
        if request.method == "OPTIONS" or _view_name() in public:
            return None
        if current_portal_user() is None:
            return unauthorized("Portal login required.")
        return None

    return bp


# ─── Session helpers ──────────────────────────────────────────────────────────

def current_staff_user() -> User | None:
    """Return the active User behind the staff cookie, or None. Also sets g.current_user."""
    user = None
    claims = staff_tokens().verify(request.cookies.get(current_app.config["STAFF_COOKIE_NAME"]))
    if claims:
        user = db.session.get(User, claims.get("id"))
        if user is not None and not user.is_active:
            user = None
    g.current_user = user
    return user


def current_portal_user() -> PortalUser | None:
    """Return the active PortalUser behind the portal cookie, or None. Also sets g.portal_user."""
    portal_user = None
    claims = portal_tokens().verify(request.cookies.get(current_app.config["PORTAL_COOKIE_NAME"]))
    if claims:
        portal_user = db.session.get(PortalUser, claims.get("id"))
        if portal_user is not None and not portal_user.is_active:
            portal_user = None
    g.portal_user = portal_user
    return portal_user


def staff_claims(user: User) -> dict:
    return {
        "id":        user.id,
        "username":  user.username,
        "email":     user.email,
        "role":      user.role.value,
        "firstName": user.first_name,
        "lastName":  user.last_name,
    }


def portal_claims(portal_user: PortalUser) -> dict:
    return {
        "id":        portal_user.id,
        "clientId":  portal_user.client_id,
        "email":     portal_user.email,
        "firstName": portal_user.first_name,
        "lastName":  portal_user.last_name,
    }


def stamp_login(account):
    account.last_login_at = datetime.now(timezone.utc)
    db.session.commit()


# ─── Private helpers ──────────────────────────────────────────────────────────

def _view_name() -> str:
    return (request.endpoint or "").rsplit(".", 1)[-1]
