"""
test_documents.py — Document metadata and object storage uploads.

Object storage runs against an in-memory S3 stand-in injected through
app.extensions["object_storage"].
"""

import json

import pytest
from botocore.exceptions import ClientError

from utils.storage import ObjectStorageService

BUCKET = "legal-docs"


class _Body:
    def __init__(self, data: bytes):
        self._data = data

    def iter_chunks(self, chunk_size=4):
        for i in range(0, len(self._data), chunk_size):
            yield self._data[i:i + chunk_size]


class MemoryS3:
    """Just enough of the boto3 S3 client for ObjectStorageService."""

    def __init__(self):
        self.objects = {}

    def put(self, key, data, content_type="application/pdf", metadata=None):
        self.objects[key] = {"data": data, "ContentType": content_type, "Metadata": dict(metadata or {})}

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        return f"https://storage.test/{Params['Bucket']}/{Params['Key']}?X-Amz-Expires={ExpiresIn}"

    def head_object(self, Bucket, Key):
        obj = self._get(Key)
        return {"ContentType": obj["ContentType"], "Metadata": dict(obj["Metadata"]),
                "ContentLength": len(obj["data"])}

    def copy_object(self, Bucket, Key, CopySource, Metadata, MetadataDirective, ContentType=None):
        obj = self._get(CopySource["Key"])
        obj["Metadata"] = dict(Metadata)
        if ContentType:
            obj["ContentType"] = ContentType

    def get_object(self, Bucket, Key):
        obj = self._get(Key)
        return {"Body": _Body(obj["data"]), "ContentType": obj["ContentType"],
                "ContentLength": len(obj["data"])}

    def _get(self, key):
        if key not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return self.objects[key]


@pytest.fixture
def s3(app, monkeypatch):
    fake = MemoryS3()
    monkeypatch.setitem(app.extensions, "object_storage", ObjectStorageService(fake, BUCKET))
    return fake


def _put(client, url, body):
    return client.put(url, data=json.dumps(body), content_type="application/json")


def _post(client, url, body):
    return client.post(url, data=json.dumps(body), content_type="application/json")


class TestUploads:
    def test_upload_register_and_download(self, attorney_client, make, s3):
        r = attorney_client.post("/api/objects/upload")
        assert r.status_code == 200
        upload_url = r.get_json()["data"]["uploadURL"]
        assert upload_url.startswith(f"https://storage.test/{BUCKET}/uploads/")

        key = upload_url.split(f"/{BUCKET}/", 1)[1].split("?", 1)[0]
        s3.put(key, b"%PDF-1.4 retainer agreement")

        case_id = make.case()
        r = _put(attorney_client, "/api/documents", {
            "uploadURL": upload_url, "name": "Retainer", "filename": "retainer.pdf",
            "mimeType": "application/pdf", "caseId": case_id, "tags": ["engagement"],
        })
        assert r.status_code == 201
        doc = r.get_json()["data"]
        object_id = key.split("/", 1)[1]
        assert doc["filePath"] == f"/objects/{object_id}"
        assert doc["uploadedById"] == attorney_client.user_id
        assert s3.objects[key]["Metadata"]["acl-owner"] == attorney_client.user_id
        assert s3.objects[key]["Metadata"]["acl-visibility"] == "private"

        r = attorney_client.get(doc["filePath"])
        assert r.status_code == 200
        assert r.mimetype == "application/pdf"
        assert r.data == b"%PDF-1.4 retainer agreement"

    def test_other_staff_cannot_download_private_object(self, login_as, s3):
        owner = login_as("attorney")
        s3.put("uploads/abc", b"secret", metadata={"acl-owner": owner.user_id, "acl-visibility": "private"})
        assert owner.get("/objects/abc").status_code == 200
        assert login_as("attorney").get("/objects/abc").status_code == 401

    def test_public_object_is_readable(self, attorney_client, s3):
        s3.put("uploads/pub", b"hello", content_type="text/plain", metadata={"acl-visibility": "public"})
        r = attorney_client.get("/objects/pub")
        assert r.status_code == 200
        assert r.data == b"hello"

    def test_missing_object_is_404(self, attorney_client, s3):
        assert attorney_client.get("/objects/nothing-here").status_code == 404
        r = _put(attorney_client, "/api/documents",
                 {"uploadURL": f"https://storage.test/{BUCKET}/uploads/ghost", "name": "Ghost"})
        assert r.status_code == 404

    def test_objects_require_session(self, client, s3):
        assert client.get("/objects/anything").status_code == 401

    def test_storage_not_configured_is_503(self, attorney_client, app, monkeypatch):
        monkeypatch.setitem(app.extensions, "object_storage", None)
        assert attorney_client.post("/api/objects/upload").status_code == 503
        r = _put(attorney_client, "/api/documents", {"uploadURL": "https://x/uploads/y", "name": "Y"})
        assert r.status_code == 503


class TestDocumentMetadata:
    def test_create_update_list_delete(self, attorney_client, make):
        client_id = make.client_row()
        r = _post(attorney_client, "/api/documents", {
            "name": "Engagement letter template", "filename": "engagement.docx",
            "filePath": "/objects/templates/engagement", "clientId": client_id,
            "documentType": "template", "isTemplate": True,
        })
        assert r.status_code == 201
        doc = r.get_json()["data"]
        assert doc["version"] == 1
        assert doc["tags"] == []

        r = _put(attorney_client, f"/api/documents/{doc['id']}", {"version": 2, "tags": ["letters"]})
        assert r.get_json()["data"]["version"] == 2
        assert r.get_json()["data"]["tags"] == ["letters"]

        items = attorney_client.get(
            f"/api/documents?clientId={client_id}&template=true"
        ).get_json()["data"]["items"]
        assert [d["id"] for d in items] == [doc["id"]]

        assert attorney_client.delete(f"/api/documents/{doc['id']}").status_code == 204
        assert attorney_client.get(f"/api/documents/{doc['id']}").status_code == 404

    def test_null_name_is_400_and_null_tags_clear(self, attorney_client):
        r = _post(attorney_client, "/api/documents", {
            "name": "Retainer", "filename": "retainer.pdf", "filePath": "/objects/retainer",
            "tags": ["signed"],
        })
        doc_id = r.get_json()["data"]["id"]

        r = _put(attorney_client, f"/api/documents/{doc_id}", {"name": None})
        assert r.status_code == 400
        assert [d["field"] for d in r.get_json()["details"]] == ["name"]

        r = _put(attorney_client, f"/api/documents/{doc_id}", {"tags": None})
        assert r.status_code == 200
        assert r.get_json()["data"]["tags"] == []

    def test_unknown_case_is_400(self, attorney_client):
        r = _post(attorney_client, "/api/documents", {
            "name": "Stray", "filename": "stray.pdf", "filePath": "/objects/stray", "caseId": "no-case",
        })
        assert r.status_code == 400
