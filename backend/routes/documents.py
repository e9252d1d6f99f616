"""
documents.py — Document metadata and uploaded-object serving.

File bytes live in object storage (utils/storage.py). The browser asks for
a presigned URL via POST /api/objects/upload, PUTs the file there, then
registers it with PUT /api/documents, which records an owner ACL on the
object and creates the Document row.
"""

import logging
from flask import Blueprint, request, g, Response, stream_with_context

from database import db
from models import Document, Case, Client
from schemas import DocumentCreate, DocumentUpdate, DocumentFromUpload
from utils.auth import protect_blueprint
from utils.pagination import paginate
from utils.response import (
    created, error, no_content, not_found, paginated, service_unavailable, success, unauthorized,
)
from utils.storage import ObjectNotFoundError, get_storage
from utils.validation import parse_body, changes, apply_changes

documents_bp = Blueprint("documents", __name__)
objects_bp = Blueprint("objects", __name__)
protect_blueprint(documents_bp)
protect_blueprint(objects_bp)

logger = logging.getLogger(__name__)

STORAGE_DISABLED = "Object storage is not configured."


# ════════════════════════════════════════════════════════════
#  Document metadata
# ════════════════════════════════════════════════════════════

@documents_bp.route("", methods=["GET"])
def list_documents():
    """
    GET /api/documents?caseId=&clientId=&type=&template=true|false&page=&perPage=
    Newest first.
    """
    stmt = db.select(Document).order_by(Document.created_at.desc())

    if request.args.get("caseId"):
        stmt = stmt.where(Document.case_id == request.args["caseId"])
    if request.args.get("clientId"):
        stmt = stmt.where(Document.client_id == request.args["clientId"])
    if request.args.get("type"):
        stmt = stmt.where(Document.document_type == request.args["type"])
    template = request.args.get("template")
    if template in ("true", "false"):
        stmt = stmt.where(Document.is_template.is_(template == "true"))

    page = paginate(stmt)
    return paginated([d.to_dict() for d in page.items], page)


@documents_bp.route("/<document_id>", methods=["GET"])
def get_document(document_id):
    doc = db.session.get(Document, document_id)
    if not doc:
        return not_found("Document")
    return success(data=doc.to_dict())


@documents_bp.route("", methods=["POST"])
def create_document():
    """
    POST /api/documents
    Body: { name, filename, filePath, fileSize?, mimeType?, caseId?, clientId?,
            documentType?, isTemplate?, version?, tags? }
    Registers metadata for a file that is already stored.
    """
    body = parse_body(DocumentCreate)
    problems = _check_references(body.case_id, body.client_id)
    if problems:
        return error("Validation failed.", 400, details=problems)

    doc = Document(**body.model_dump(), uploaded_by_id=g.current_user.id)
    db.session.add(doc)
    db.session.commit()

    return created(data=doc.to_dict(), message="Document created.")


@documents_bp.route("", methods=["PUT"])
def create_document_from_upload():
    """
    PUT /api/documents
    Body: { uploadURL, name, filename?, fileSize?, mimeType?, caseId?, clientId?, documentType?, tags? }

    The presigned URL is reduced to /objects/<id>, the current user is made
    the object's owner, and a Document row pointing at that path is created.
    """
    storage = get_storage()
    if storage is None:
        return service_unavailable(STORAGE_DISABLED)

    body = parse_body(DocumentFromUpload)
    problems = _check_references(body.case_id, body.client_id)
    if problems:
        return error("Validation failed.", 400, details=problems)

    try:
        object_path = storage.set_acl(body.upload_url, owner=g.current_user.id, visibility="private")
    except ObjectNotFoundError:
        return error("The uploaded object was not found in storage.", 404)

    doc = Document(
        name=body.name,
        filename=body.filename or body.name,
        file_path=object_path,
        file_size=body.file_size,
        mime_type=body.mime_type,
        case_id=body.case_id,
        client_id=body.client_id,
        document_type=body.document_type,
        tags=body.tags,
        uploaded_by_id=g.current_user.id,
    )
    db.session.add(doc)
    db.session.commit()

    logger.info(f"Document {doc.id} registered at {object_path}")
    return created(data=doc.to_dict(), message="Document uploaded.")


@documents_bp.route("/<document_id>", methods=["PUT"])
def update_document(document_id):
    doc = db.session.get(Document, document_id)
    if not doc:
        return not_found("Document")

    data = changes(parse_body(DocumentUpdate))
    problems = _check_references(data.get("case_id"), data.get("client_id"))
    if problems:
        return error("Validation failed.", 400, details=problems)
    if "tags" in data and data["tags"] is None:
        data["tags"] = []

    apply_changes(doc, data)
    db.session.commit()

    return success(data=doc.to_dict(), message="Document updated.")


@documents_bp.route("/<document_id>", methods=["DELETE"])
def delete_document(document_id):
    """
    DELETE /api/documents/<id>
    Removes the metadata row only; the stored object is left in place.
    """
    doc = db.session.get(Document, document_id)
    if not doc:
        return not_found("Document")

    db.session.delete(doc)
    db.session.commit()
    return no_content()


# ════════════════════════════════════════════════════════════
#  Object storage
# ════════════════════════════════════════════════════════════

@objects_bp.route("/api/objects/upload", methods=["POST"])
def request_upload_url():
    """
    POST /api/objects/upload
    Returns { uploadURL } — a presigned PUT URL valid for UPLOAD_URL_TTL_SECONDS.
    """
    storage = get_storage()
    if storage is None:
        return service_unavailable(STORAGE_DISABLED)
    return success(data={"uploadURL": storage.upload_url()})


@objects_bp.route("/objects/<path:object_path>", methods=["GET"])
def serve_object(object_path):
    """
    GET /objects/<id>
    Streams the stored object if the current user owns it or it is public.
    """
    storage = get_storage()
    if storage is None:
        return service_unavailable(STORAGE_DISABLED)

    path = f"/objects/{object_path}"
    try:
        head = storage.head(path)
        if not storage.can_access(head, g.current_user.id):
            return unauthorized("You do not have access to this file.")
        obj = storage.open(path)
    except ObjectNotFoundError:
        return not_found("Object")

    body = obj["Body"]
    headers = {"Cache-Control": "private, max-age=3600"}
    if obj.get("ContentLength") is not None:
        headers["Content-Length"] = str(obj["ContentLength"])

    return Response(
        stream_with_context(body.iter_chunks()),
        mimetype=obj.get("ContentType") or "application/octet-stream",
        headers=headers,
    )


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _check_references(case_id, client_id) -> list[dict]:
    problems = []
    if case_id and db.session.get(Case, case_id) is None:
        problems.append({"field": "caseId", "message": "Case does not exist"})
    if client_id and db.session.get(Client, client_id) is None:
        problems.append({"field": "clientId", "message": "Client does not exist"})
    return problems
