"""
utils/tokens.py — Session token signing for the staff and portal realms.

Each realm owns a SigningKeyProvider built once at startup from its own
secret. The two providers are stored on app.extensions and never share or
derive keys from each other, so a staff token never validates as a portal
token and vice versa.
"""

import logging
import secrets
from datetime import datetime, timezone, timedelta

from flask import current_app
from jose import JWTError
from jose import jwt as jose_jwt

log = logging.getLogger(__name__)

STAFF_REALM = "staff"
PORTAL_REALM = "portal"


class SigningKeyProvider:
    """Issues and verifies HS256 JWTs for a single auth realm."""

    def __init__(self, realm: str, secret: str, algorithm: str = "HS256", expiry_days: int = 7):
        if not secret:
            log.warning(
                f"No signing secret configured for the {realm} realm — "
                f"using an ephemeral key; sessions will not survive a restart."
            )
            secret = secrets.token_hex(32)
        self.realm = realm
        self._secret = secret
        self.algorithm = algorithm
        self.expiry_days = expiry_days

    def issue(self, claims: dict) -> str:
        now = datetime.now(timezone.utc)
        payload = dict(claims)
        payload.update({
            "realm": self.realm,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(days=self.expiry_days)).timestamp()),
        })
        return jose_jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> dict | None:
        """Return the decoded claims, or None for a bad, expired or foreign token."""
        if not token:
            return None
        try:
            payload = jose_jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except JWTError as e:
            log.debug(f"[{self.realm}] token rejected: {e}")
            return None
        if payload.get("realm") != self.realm:
            return None
        return payload

    @property
    def max_age_seconds(self) -> int:
        return self.expiry_days * 24 * 60 * 60


def init_token_providers(app):
    """Build one provider per realm from config and attach them to the app."""
    algorithm = app.config.get("JWT_ALGORITHM", "HS256")
    expiry = app.config.get("TOKEN_EXPIRY_DAYS", 7)
    app.extensions["staff_tokens"] = SigningKeyProvider(
        STAFF_REALM, app.config.get("STAFF_JWT_SECRET", ""), algorithm, expiry
    )
    app.extensions["portal_tokens"] = SigningKeyProvider(
        PORTAL_REALM, app.config.get("PORTAL_JWT_SECRET", ""), algorithm, expiry
    )


def staff_tokens() -> SigningKeyProvider:
    return current_app.extensions["staff_tokens"]


def portal_tokens() -> SigningKeyProvider:
    return current_app.extensions["portal_tokens"]


def set_session_cookie(response, name: str, token: str, provider: SigningKeyProvider):
    response.set_cookie(
        name,
        token,
        max_age=provider.max_age_seconds,
        httponly=True,
        samesite="Lax",
        secure=current_app.config.get("COOKIE_SECURE", False),
    )
    return response


def clear_session_cookie(response, name: str):
    response.delete_cookie(
        name,
        httponly=True,
        samesite="Lax",
        secure=current_app.config.get("COOKIE_SECURE", False),
    )
    return response
