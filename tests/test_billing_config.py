"""
test_billing_config.py — UTBMS catalogue, rate tables and activity templates.
"""

import json


def _post(client, url, body):
    return client.post(url, data=json.dumps(body), content_type="application/json")


def _put(client, url, body):
    return client.put(url, data=json.dumps(body), content_type="application/json")


def test_utbms_catalogue(login_as):
    data = login_as("secretary").get("/api/utbms-codes").get_json()["data"]
    codes = {c["code"]: c for c in data["codes"]}
    assert codes["L310"]["category"] == "court"
    assert "L110" in data["categories"]["research"]
    assert data["rounding"]["SIX_MINUTE"] == 6


class TestRateTables:
    def test_create_update_delete(self, attorney_client, make):
        client_id = make.client_row()
        r = _post(attorney_client, "/api/rate-tables",
                  {"name": "Standard", "hourlyRate": "275.00", "clientId": client_id})
        assert r.status_code == 201
        row = r.get_json()["data"]
        assert row["hourlyRate"] == "275.00"
        assert row["isActive"] is True

        r = _put(attorney_client, f"/api/rate-tables/{row['id']}", {"hourlyRate": "290.00", "isActive": False})
        assert r.get_json()["data"]["hourlyRate"] == "290.00"

        items = attorney_client.get(f"/api/rate-tables?clientId={client_id}&active=false").get_json()["data"]["items"]
        assert [i["id"] for i in items] == [row["id"]]

        assert attorney_client.delete(f"/api/rate-tables/{row['id']}").status_code == 204
        assert attorney_client.get(f"/api/rate-tables/{row['id']}").status_code == 404

    def test_null_rate_is_400(self, attorney_client, make):
        row_id = make.rate_table("210.00", client_id=make.client_row())
        for field in ("hourlyRate", "name", "isActive"):
            r = _put(attorney_client, f"/api/rate-tables/{row_id}", {field: None})
            assert r.status_code == 400
            assert [d["field"] for d in r.get_json()["details"]] == [field]

    def test_rejects_unknown_code_and_bad_rate(self, attorney_client):
        r = _post(attorney_client, "/api/rate-tables", {"name": "Bad", "hourlyRate": "100", "utbmsCode": "Z999"})
        assert r.status_code == 400
        assert r.get_json()["details"][0]["field"] == "utbmsCode"

        r = _post(attorney_client, "/api/rate-tables", {"name": "Free", "hourlyRate": "0"})
        assert r.status_code == 400

    def test_resolve_prefers_most_specific_row(self, attorney_client, make):
        attorney_id = make.user()
        make.rate_table("300.00", attorney_id=attorney_id)
        make.rate_table("450.00", attorney_id=attorney_id, utbms_code="L310")
        make.rate_table("999.00", attorney_id=attorney_id, utbms_code="L310", is_active=False)

        def resolve(query):
            r = attorney_client.get(f"/api/rate-tables/resolve?attorneyId={attorney_id}{query}")
            return r.get_json()["data"]["hourlyRate"]

        assert resolve("&utbmsCode=L310") == "450.00"
        assert resolve("&utbmsCode=L110") == "300.00"
        assert resolve("") == "300.00"

    def test_resolve_by_client_and_activity(self, attorney_client, make):
        client_id = make.client_row()
        make.rate_table("180.00", client_id=client_id, activity_type="Travel")
        r = attorney_client.get(f"/api/rate-tables/resolve?clientId={client_id}&activity=Travel")
        assert r.get_json()["data"]["hourlyRate"] == "180.00"


class TestActivityTemplates:
    def test_private_template_belongs_to_creator(self, login_as):
        owner = login_as("attorney")
        other = login_as("attorney")

        r = _post(owner, "/api/activity-templates", {
            "name": "Private prep", "activityType": "Court Appearance", "utbmsCode": "L330",
            "defaultDuration": 45, "isShared": False,
        })
        assert r.status_code == 201
        template = r.get_json()["data"]
        assert template["attorneyId"] == owner.user_id

        query = {"activityType": "Court Appearance"}
        mine = owner.get("/api/activity-templates", query_string=query).get_json()["data"]["items"]
        theirs = other.get("/api/activity-templates", query_string=query).get_json()["data"]["items"]
        assert template["id"] in [t["id"] for t in mine]
        assert template["id"] not in [t["id"] for t in theirs]

    def test_shared_template_is_visible_to_all(self, attorney_client, login_as):
        r = _post(attorney_client, "/api/activity-templates",
                  {"name": "Shared call", "activityType": "Client Call"})
        template_id = r.get_json()["data"]["id"]
        items = login_as("paralegal").get("/api/activity-templates?perPage=200").get_json()["data"]["items"]
        assert template_id in [t["id"] for t in items]

    def test_update_validates_code(self, attorney_client):
        r = _post(attorney_client, "/api/activity-templates", {"name": "Review", "activityType": "Review"})
        template_id = r.get_json()["data"]["id"]

        assert _put(attorney_client, f"/api/activity-templates/{template_id}",
                    {"utbmsCode": "nope"}).status_code == 400
        r = _put(attorney_client, f"/api/activity-templates/{template_id}", {"utbmsCode": "L120"})
        assert r.get_json()["data"]["utbmsCode"] == "L120"

        assert attorney_client.delete(f"/api/activity-templates/{template_id}").status_code == 204

    def test_secretary_cannot_change_templates(self, login_as):
        r = _post(login_as("secretary"), "/api/activity-templates", {"name": "X", "activityType": "Y"})
        assert r.status_code == 403
