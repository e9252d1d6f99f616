"""
test_auth.py — Staff login, session cookie, profile and role policy tests.
"""

import json

import pytest

from conftest import DEFAULT_PASSWORD
from models import User


def _post(client, url, body):
    return client.post(url, data=json.dumps(body), content_type="application/json")


def _put(client, url, body):
    return client.put(url, data=json.dumps(body), content_type="application/json")


def _session_cookie(response, name="token"):
    for header in response.headers.getlist("Set-Cookie"):
        if header.startswith(f"{name}="):
            return header
    return None


class TestLogin:
    def test_login_success_sets_cookie(self, app, make):
        make.user(role="attorney", username="jdoe_login", email="jdoe_login@firm.test")
        c = app.test_client()
        r = _post(c, "/api/auth/login", {"username": "jdoe_login", "password": DEFAULT_PASSWORD})
        assert r.status_code == 200
        assert r.get_json()["data"]["user"]["username"] == "jdoe_login"
        assert "passwordHash" not in r.get_json()["data"]["user"]

        cookie = _session_cookie(r)
        assert cookie is not None
        assert "HttpOnly" in cookie
        assert "SameSite=Lax" in cookie

        me = c.get("/api/auth/me").get_json()
        assert me["data"]["user"]["username"] == "jdoe_login"

    def test_login_with_email(self, app, make):
        make.user(username="by_email", email="By.Email@firm.test")
        r = _post(app.test_client(), "/api/auth/login",
                  {"username": "by.email@firm.test", "password": DEFAULT_PASSWORD})
        assert r.status_code == 200

    def test_wrong_password_is_401_without_cookie(self, app, make):
        make.user(username="wrongpw")
        r = _post(app.test_client(), "/api/auth/login", {"username": "wrongpw", "password": "nope-nope"})
        assert r.status_code == 401
        assert r.get_json()["success"] is False
        assert _session_cookie(r) is None

    def test_unknown_user_is_401(self, client):
        r = _post(client, "/api/auth/login", {"username": "ghost", "password": "whatever"})
        assert r.status_code == 401

    def test_inactive_user_is_403(self, app, make):
        make.user(username="disabled_user", is_active=False)
        r = _post(app.test_client(), "/api/auth/login",
                  {"username": "disabled_user", "password": DEFAULT_PASSWORD})
        assert r.status_code == 403

    def test_missing_fields_is_400_with_details(self, client):
        r = _post(client, "/api/auth/login", {"username": "x"})
        assert r.status_code == 400
        details = r.get_json()["details"]
        assert any(d["field"] == "password" for d in details)

    def test_logout_clears_cookie(self, attorney_client):
        r = attorney_client.post("/api/auth/logout")
        assert r.status_code == 200
        cookie = _session_cookie(r)
        assert cookie is not None
        assert "Expires=Thu, 01 Jan 1970" in cookie or "Max-Age=0" in cookie


class TestSession:
    def test_me_without_cookie_is_null(self, client):
        r = client.get("/api/auth/me")
        assert r.status_code == 200
        assert r.get_json()["data"]["user"] is None

    def test_protected_route_requires_cookie(self, client):
        assert client.get("/api/clients").status_code == 401

    def test_garbage_token_is_401(self, app):
        c = app.test_client()
        c.set_cookie("token", "not-a-jwt")
        assert c.get("/api/clients").status_code == 401

    def test_portal_token_is_not_a_staff_session(self, app, make, portal_login_as):
        portal_user_id = make.portal_user(make.client_row())
        portal_client = portal_login_as(portal_user_id)
        portal_cookie = portal_client.get_cookie("portal_token").value

        c = app.test_client()
        c.set_cookie("token", portal_cookie)
        assert c.get("/api/clients").status_code == 401

    def test_deactivated_user_loses_session(self, app, make, login_as):
        user_id = make.user(role="attorney")
        c = login_as(user_id=user_id)
        assert c.get("/api/clients").status_code == 200

        with app.app_context():
            from database import db
            db.session.get(User, user_id).is_active = False
            db.session.commit()

        assert c.get("/api/clients").status_code == 401


class TestProfile:
    def test_update_own_profile_ignores_role(self, login_as, make):
        c = login_as("secretary")
        r = _put(c, "/api/auth/profile", {"firstName": "Leilani", "role": "admin", "isActive": False})
        assert r.status_code == 200
        user = r.get_json()["data"]["user"]
        assert user["firstName"] == "Leilani"
        assert user["role"] == "secretary"
        assert user["isActive"] is True

    def test_duplicate_username_is_409(self, login_as, make):
        make.user(username="taken_name")
        c = login_as("attorney")
        r = _put(c, "/api/auth/profile", {"username": "taken_name"})
        assert r.status_code == 409

    def test_null_email_is_400(self, login_as, make):
        user_id = make.user(email="keeps_email@firm.test")
        c = login_as(user_id=user_id)
        r = _put(c, "/api/auth/profile", {"email": None, "phone": "808-555-0199"})
        assert r.status_code == 400
        assert [d["field"] for d in r.get_json()["details"]] == ["email"]
        assert make.load(User, user_id).email == "keeps_email@firm.test"
        assert make.load(User, user_id).phone is None

    def test_change_password(self, app, make, login_as):
        user_id = make.user(username="pw_changer")
        c = login_as(user_id=user_id)

        r = _put(c, "/api/auth/password", {"currentPassword": "wrong-one", "newPassword": "newsecret"})
        assert r.status_code == 401

        r = _put(c, "/api/auth/password", {"currentPassword": DEFAULT_PASSWORD, "newPassword": "abc"})
        assert r.status_code == 400

        r = _put(c, "/api/auth/password", {"currentPassword": DEFAULT_PASSWORD, "newPassword": "newsecret"})
        assert r.status_code == 200

        r = _post(app.test_client(), "/api/auth/login", {"username": "pw_changer", "password": "newsecret"})
        assert r.status_code == 200


class TestRolePolicy:
    def test_secretary_cannot_manage_users(self, login_as):
        c = login_as("secretary")
        assert c.get("/api/users").status_code == 403
        r = _post(c, "/api/users", {
            "username": "x", "email": "x@firm.test", "password": "secret1",
            "firstName": "X", "lastName": "Y",
        })
        assert r.status_code == 403

    def test_attorney_reads_but_cannot_create_users(self, attorney_client):
        assert attorney_client.get("/api/users").status_code == 200
        r = _post(attorney_client, "/api/users", {
            "username": "y", "email": "y@firm.test", "password": "secret1",
            "firstName": "Y", "lastName": "Z",
        })
        assert r.status_code == 403

    def test_paralegal_can_invoice_but_not_configure_rates(self, login_as, make):
        c = login_as("paralegal")
        r = _post(c, "/api/rate-tables", {"name": "Blocked", "hourlyRate": "100"})
        assert r.status_code == 403

        r = _post(c, "/api/invoices", {"clientId": make.client_row(), "items": []})
        assert r.status_code == 201

    def test_everyone_reads_rate_tables(self, login_as):
        assert login_as("secretary").get("/api/rate-tables").status_code == 200


class TestUserManagement:
    def test_admin_creates_and_updates_user(self, admin_client):
        r = _post(admin_client, "/api/users", {
            "username": "new_para", "email": "New.Para@firm.test", "password": "secret1",
            "firstName": "New", "lastName": "Para", "role": "paralegal",
        })
        assert r.status_code == 201
        user = r.get_json()["data"]
        assert user["email"] == "new.para@firm.test"
        assert "passwordHash" not in user

        r = _put(admin_client, f"/api/users/{user['id']}", {"role": "attorney"})
        assert r.status_code == 200
        assert r.get_json()["data"]["role"] == "attorney"

    def test_duplicate_username_is_409(self, admin_client, make):
        make.user(username="dupe_user")
        r = _post(admin_client, "/api/users", {
            "username": "dupe_user", "email": "other@firm.test", "password": "secret1",
            "firstName": "A", "lastName": "B",
        })
        assert r.status_code == 409

    @pytest.mark.parametrize("field", ["email", "username", "firstName", "role", "isActive"])
    def test_null_for_required_field_is_400(self, admin_client, make, field):
        user_id = make.user(role="paralegal")
        r = _put(admin_client, f"/api/users/{user_id}", {field: None})
        assert r.status_code == 400
        assert [d["field"] for d in r.get_json()["details"]] == [field]

    def test_admin_cannot_demote_or_delete_self(self, admin_client):
        me = admin_client.user_id
        assert _put(admin_client, f"/api/users/{me}", {"role": "secretary"}).status_code == 400
        assert _put(admin_client, f"/api/users/{me}", {"isActive": False}).status_code == 400
        assert admin_client.delete(f"/api/users/{me}").status_code == 400

    def test_delete_user(self, admin_client, make):
        user_id = make.user(role="secretary")
        assert admin_client.delete(f"/api/users/{user_id}").status_code == 204
        assert admin_client.get(f"/api/users/{user_id}").status_code == 404
