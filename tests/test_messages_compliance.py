"""
test_messages_compliance.py — Staff messages and compliance deadlines.
"""

import json
from datetime import date, timedelta

from models import Message, MessageType, SenderType


def _post(client, url, body):
    return client.post(url, data=json.dumps(body), content_type="application/json")


def _put(client, url, body):
    return client.put(url, data=json.dumps(body), content_type="application/json")


def _patch(client, url):
    return client.patch(url, data="{}", content_type="application/json")


class TestMessages:
    def test_send_read_and_count(self, login_as):
        sender = login_as("paralegal")
        recipient = login_as("attorney")

        before = recipient.get("/api/messages/unread-count").get_json()["data"]["count"]

        r = _post(sender, "/api/messages", {
            "subject": "Exhibit list", "content": "Draft exhibit list is on the shared drive.",
            "recipientId": recipient.user_id,
        })
        assert r.status_code == 201
        message = r.get_json()["data"]
        assert message["senderId"] == sender.user_id
        assert message["messageType"] == "internal"
        assert message["isRead"] is False

        assert recipient.get("/api/messages/unread-count").get_json()["data"]["count"] == before + 1

        mine = recipient.get("/api/messages?mine=true&unread=true").get_json()["data"]["items"]
        assert [m["id"] for m in mine] == [message["id"]]

        r = _patch(recipient, f"/api/messages/{message['id']}/read")
        read = r.get_json()["data"]
        assert read["isRead"] is True
        assert read["status"] == "read"
        assert read["readAt"] is not None

        # second call keeps the first timestamp
        again = _patch(recipient, f"/api/messages/{message['id']}/read").get_json()["data"]
        assert again["readAt"] == read["readAt"]

        assert recipient.get("/api/messages/unread-count").get_json()["data"]["count"] == before

    def test_client_portal_messages_count_for_staff(self, app, login_as, make):
        staff = login_as("secretary")
        before = staff.get("/api/messages/unread-count").get_json()["data"]["count"]
        case_id = make.case()

        with app.app_context():
            from database import db
            db.session.add(Message(
                content="Question about my invoice", message_type=MessageType.portal,
                sender_type=SenderType.client, case_id=case_id,
            ))
            db.session.commit()

        assert staff.get("/api/messages/unread-count").get_json()["data"]["count"] == before + 1

    def test_update_and_delete(self, attorney_client, make):
        case_id = make.case()
        r = _post(attorney_client, "/api/messages",
                  {"content": "Called opposing counsel", "caseId": case_id, "messageType": "sms"})
        message_id = r.get_json()["data"]["id"]

        r = _put(attorney_client, f"/api/messages/{message_id}", {"content": "Left voicemail for opposing counsel"})
        assert r.get_json()["data"]["content"] == "Left voicemail for opposing counsel"

        items = attorney_client.get(f"/api/messages?caseId={case_id}&type=sms").get_json()["data"]["items"]
        assert [m["id"] for m in items] == [message_id]

        assert attorney_client.delete(f"/api/messages/{message_id}").status_code == 204
        assert attorney_client.get(f"/api/messages/{message_id}").status_code == 404

    def test_null_content_is_400(self, attorney_client):
        r = _post(attorney_client, "/api/messages", {"content": "Reminder to file exhibits"})
        message_id = r.get_json()["data"]["id"]
        r = _put(attorney_client, f"/api/messages/{message_id}", {"content": None})
        assert r.status_code == 400
        assert [d["field"] for d in r.get_json()["details"]] == ["content"]

    def test_unknown_case_is_400(self, attorney_client):
        r = _post(attorney_client, "/api/messages", {"content": "x", "caseId": "missing"})
        assert r.status_code == 400


class TestDeadlines:
    def test_create_toggle_and_filter(self, attorney_client, make):
        case_id = make.case()
        due = date.today() + timedelta(days=14)
        r = _post(attorney_client, "/api/compliance/deadlines", {
            "title": "File answer to complaint", "dueDate": due.isoformat(),
            "deadlineType": "court_filing", "caseId": case_id,
        })
        assert r.status_code == 201
        deadline = r.get_json()["data"]
        assert deadline["status"] == "pending"
        assert deadline["completedAt"] is None

        r = _patch(attorney_client, f"/api/compliance/deadlines/{deadline['id']}/complete")
        assert r.get_json()["data"]["status"] == "completed"
        assert r.get_json()["data"]["completedAt"] is not None

        items = attorney_client.get(
            f"/api/compliance/deadlines?caseId={case_id}&status=completed"
        ).get_json()["data"]["items"]
        assert [d["id"] for d in items] == [deadline["id"]]

        r = _patch(attorney_client, f"/api/compliance/deadlines/{deadline['id']}/complete")
        assert r.get_json()["data"]["status"] == "pending"
        assert r.get_json()["data"]["completedAt"] is None

    def test_status_update_keeps_completed_at_in_sync(self, attorney_client):
        r = _post(attorney_client, "/api/compliance/deadlines", {
            "title": "CLE credits", "dueDate": "2026-12-31", "deadlineType": "continuing_education",
        })
        deadline_id = r.get_json()["data"]["id"]

        r = _put(attorney_client, f"/api/compliance/deadlines/{deadline_id}", {"status": "completed"})
        assert r.get_json()["data"]["completedAt"] is not None

        r = _put(attorney_client, f"/api/compliance/deadlines/{deadline_id}", {"status": "overdue"})
        assert r.get_json()["data"]["completedAt"] is None

        assert attorney_client.delete(f"/api/compliance/deadlines/{deadline_id}").status_code == 204

    def test_due_before_filter(self, attorney_client, make):
        case_id = make.case()
        for days in (3, 30):
            _post(attorney_client, "/api/compliance/deadlines", {
                "title": f"Due in {days}", "deadlineType": "ethics", "caseId": case_id,
                "dueDate": (date.today() + timedelta(days=days)).isoformat(),
            })
        cutoff = (date.today() + timedelta(days=10)).isoformat()
        items = attorney_client.get(
            f"/api/compliance/deadlines?caseId={case_id}&dueBefore={cutoff}"
        ).get_json()["data"]["items"]
        assert [d["title"] for d in items] == ["Due in 3"]

        assert attorney_client.get("/api/compliance/deadlines?dueBefore=soon").status_code == 400

    def test_bad_type_is_400(self, attorney_client):
        r = _post(attorney_client, "/api/compliance/deadlines",
                  {"title": "x", "dueDate": "2026-01-01", "deadlineType": "taxes"})
        assert r.status_code == 400

    def test_null_for_required_field_is_400(self, attorney_client):
        r = _post(attorney_client, "/api/compliance/deadlines", {
            "title": "Bar dues", "dueDate": "2026-11-30", "deadlineType": "ethics",
        })
        deadline_id = r.get_json()["data"]["id"]
        for field in ("title", "dueDate", "deadlineType", "status"):
            r = _put(attorney_client, f"/api/compliance/deadlines/{deadline_id}", {field: None})
            assert r.status_code == 400
            assert [d["field"] for d in r.get_json()["details"]] == [field]
