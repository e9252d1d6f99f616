"""
test_clients_cases.py — Client and case CRUD, validation and pagination.
"""

import json
import uuid

import pytest


def _post(client, url, body):
    return client.post(url, data=json.dumps(body), content_type="application/json")


def _put(client, url, body):
    return client.put(url, data=json.dumps(body), content_type="application/json")


class TestClients:
    def test_create_and_fetch_client(self, attorney_client):
        r = _post(attorney_client, "/api/clients",
                  {"firstName": "Maria", "lastName": "Santos", "status": "active"})
        assert r.status_code == 201
        created = r.get_json()["data"]
        uuid.UUID(created["id"])
        assert created["firstName"] == "Maria"

        r = attorney_client.get(f"/api/clients/{created['id']}")
        assert r.status_code == 200
        data = r.get_json()["data"]
        assert data["lastName"] == "Santos"
        assert data["status"] == "active"
        assert data["createdAt"]
        assert data["caseIds"] == []

    def test_missing_name_is_400(self, attorney_client):
        r = _post(attorney_client, "/api/clients", {"lastName": "Only"})
        assert r.status_code == 400
        assert any(d["field"] == "firstName" for d in r.get_json()["details"])

    def test_bad_status_is_400(self, attorney_client):
        r = _post(attorney_client, "/api/clients", {"firstName": "A", "lastName": "B", "status": "vip"})
        assert r.status_code == 400

    def test_unknown_client_is_404(self, attorney_client):
        assert attorney_client.get(f"/api/clients/{uuid.uuid4()}").status_code == 404

    def test_partial_update(self, attorney_client, make):
        client_id = make.client_row(first_name="Kai", phone="808-555-0100")
        r = _put(attorney_client, f"/api/clients/{client_id}", {"city": "Honolulu"})
        assert r.status_code == 200
        data = r.get_json()["data"]
        assert data["city"] == "Honolulu"
        assert data["firstName"] == "Kai"
        assert data["phone"] == "808-555-0100"

    @pytest.mark.parametrize("field", ["firstName", "lastName", "status"])
    def test_null_for_required_field_is_400(self, attorney_client, make, field):
        client_id = make.client_row(first_name="Noelani")
        r = _put(attorney_client, f"/api/clients/{client_id}", {field: None})
        assert r.status_code == 400
        assert [d["field"] for d in r.get_json()["details"]] == [field]
        assert attorney_client.get(f"/api/clients/{client_id}").get_json()["data"]["firstName"] == "Noelani"

    def test_null_for_optional_field_clears_it(self, attorney_client, make):
        client_id = make.client_row(phone="808-555-0101")
        r = _put(attorney_client, f"/api/clients/{client_id}", {"phone": None})
        assert r.status_code == 200
        assert r.get_json()["data"]["phone"] is None

    def test_search_and_pagination(self, attorney_client, make):
        marker = uuid.uuid4().hex[:6]
        for i in range(3):
            make.client_row(last_name=f"Pag{marker}{i}")

        r = attorney_client.get(f"/api/clients?q=Pag{marker}&perPage=2")
        data = r.get_json()["data"]
        assert data["total"] == 3
        assert data["perPage"] == 2
        assert data["pages"] == 2
        assert len(data["items"]) == 2

        r = attorney_client.get(f"/api/clients?q=Pag{marker}&perPage=2&page=2")
        assert len(r.get_json()["data"]["items"]) == 1

    def test_delete_client_with_cases_is_409(self, attorney_client, make):
        client_id = make.client_row()
        make.case(client_id)
        r = attorney_client.delete(f"/api/clients/{client_id}")
        assert r.status_code == 409
        assert attorney_client.get(f"/api/clients/{client_id}").status_code == 200

    def test_delete_client(self, attorney_client, make):
        client_id = make.client_row()
        assert attorney_client.delete(f"/api/clients/{client_id}").status_code == 204
        assert attorney_client.get(f"/api/clients/{client_id}").status_code == 404


class TestCases:
    def test_create_case_generates_number(self, attorney_client, make):
        client_id = make.client_row()
        r = _post(attorney_client, "/api/cases", {
            "title": "Santos v. Pacific Freight", "caseType": "personal_injury", "clientId": client_id,
        })
        assert r.status_code == 201
        data = r.get_json()["data"]
        assert data["caseNumber"].startswith("CASE-")
        assert data["status"] == "active"
        assert data["priority"] == "medium"
        assert data["progress"] == 0

    def test_unknown_client_is_rejected(self, attorney_client):
        r = _post(attorney_client, "/api/cases", {
            "title": "Orphan", "caseType": "family_law", "clientId": str(uuid.uuid4()),
        })
        assert r.status_code == 400
        assert r.get_json()["details"][0]["field"] == "clientId"

    def test_progress_out_of_range_is_400(self, attorney_client, make):
        r = _post(attorney_client, "/api/cases", {
            "title": "Too far", "caseType": "x", "clientId": make.client_row(), "progress": 150,
        })
        assert r.status_code == 400

    def test_duplicate_case_number_is_409(self, attorney_client, make):
        client_id = make.client_row()
        make.case(client_id, case_number="DUP-0001")
        r = _post(attorney_client, "/api/cases", {
            "caseNumber": "DUP-0001", "title": "Again", "caseType": "x", "clientId": client_id,
        })
        assert r.status_code == 409

    def test_filter_by_client(self, attorney_client, make):
        client_id = make.client_row()
        case_id = make.case(client_id)
        make.case()

        items = attorney_client.get(f"/api/cases?clientId={client_id}").get_json()["data"]["items"]
        assert [c["id"] for c in items] == [case_id]

    def test_update_case(self, attorney_client, make):
        case_id = make.case()
        r = _put(attorney_client, f"/api/cases/{case_id}", {"status": "closed", "progress": 100})
        assert r.status_code == 200
        data = r.get_json()["data"]
        assert data["status"] == "closed"
        assert data["progress"] == 100

    @pytest.mark.parametrize("field", ["clientId", "title", "caseNumber", "progress"])
    def test_null_for_required_field_is_400(self, attorney_client, make, field):
        case_id = make.case()
        r = _put(attorney_client, f"/api/cases/{case_id}", {field: None})
        assert r.status_code == 400
        assert [d["field"] for d in r.get_json()["details"]] == [field]

    def test_client_detail_lists_case_ids(self, attorney_client, make):
        client_id = make.client_row()
        case_id = make.case(client_id)
        data = attorney_client.get(f"/api/clients/{client_id}").get_json()["data"]
        assert data["caseIds"] == [case_id]
