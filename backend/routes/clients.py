"""
clients.py — Client records.
"""

from flask import Blueprint, request
from sqlalchemy import or_

from database import db
from models import Client, ClientStatus, Case, utcnow
from schemas import ClientCreate, ClientUpdate
from utils.auth import protect_blueprint
from utils.pagination import paginate
from utils.response import created, no_content, not_found, paginated, success
from utils.validation import parse_body, changes, apply_changes

clients_bp = Blueprint("clients", __name__)
protect_blueprint(clients_bp)


@clients_bp.route("", methods=["GET"])
def list_clients():
    """
    GET /api/clients?status=&q=&page=&perPage=
    `q` matches first name, last name or email. Newest first.
    """
    stmt = db.select(Client).order_by(Client.created_at.desc())

    status = request.args.get("status")
    if status in ClientStatus.__members__:
        stmt = stmt.where(Client.status == ClientStatus[status])

    q = (request.args.get("q") or "").strip()
    if q:
        like = f"%{q}%"
        stmt = stmt.where(or_(
            Client.first_name.ilike(like),
            Client.last_name.ilike(like),
            Client.email.ilike(like),
        ))

    page = paginate(stmt)
    return paginated([c.to_dict() for c in page.items], page)


@clients_bp.route("/<client_id>", methods=["GET"])
def get_client(client_id):
    """
    GET /api/clients/<id>
    Returns the client plus the ids of its cases.
    """
    client = db.session.get(Client, client_id)
    if not client:
        return not_found("Client")

    data = client.to_dict()
    data["caseIds"] = list(db.session.execute(
        db.select(Case.id).where(Case.client_id == client.id).order_by(Case.created_at.desc())
    ).scalars())
    return success(data=data)


@clients_bp.route("", methods=["POST"])
def create_client():
    """
    POST /api/clients
    Body: { firstName, lastName, email?, phone?, address?, city?, state?, zipCode?,
            dateOfBirth?, notes?, status? }
    """
    client = Client(**parse_body(ClientCreate).model_dump())
    db.session.add(client)
    db.session.commit()
    return created(data=client.to_dict(), message="Client created.")


@clients_bp.route("/<client_id>", methods=["PUT"])
def update_client(client_id):
    client = db.session.get(Client, client_id)
    if not client:
        return not_found("Client")

    apply_changes(client, changes(parse_body(ClientUpdate)))
    client.updated_at = utcnow()
    db.session.commit()
    return success(data=client.to_dict(), message="Client updated.")


@clients_bp.route("/<client_id>", methods=["DELETE"])
def delete_client(client_id):
    """
    DELETE /api/clients/<id>
    Fails with 409 while cases or invoices still reference the client.
    """
    client = db.session.get(Client, client_id)
    if not client:
        return not_found("Client")

    db.session.delete(client)
    db.session.commit()
    return no_content()
