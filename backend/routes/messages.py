"""
messages.py — Staff messaging.

Covers internal notes and email/SMS records as well as portal messages.
Staff see every message; portal clients reach their own through
routes/portal.py. Email and SMS rows are records only, nothing is delivered.
"""

from flask import Blueprint, request, g
from sqlalchemy import func, or_

from database import db
from models import Message, MessageType, MessageStatus, SenderType, Case, utcnow
from schemas import MessageCreate, MessageUpdate
from utils.auth import protect_blueprint
from utils.pagination import paginate
from utils.response import created, error, no_content, not_found, paginated, success
from utils.validation import parse_body, changes, apply_changes

messages_bp = Blueprint("messages", __name__)
protect_blueprint(messages_bp)


@messages_bp.route("", methods=["GET"])
def list_messages():
    """
    GET /api/messages?caseId=&type=&unread=true&mine=true&page=&perPage=
    `mine` limits to messages sent by or addressed to the current user. Newest first.
    """
    stmt = db.select(Message).order_by(Message.sent_at.desc())

    if request.args.get("caseId"):
        stmt = stmt.where(Message.case_id == request.args["caseId"])
    message_type = request.args.get("type")
    if message_type in MessageType.__members__:
        stmt = stmt.where(Message.message_type == MessageType[message_type])
    if request.args.get("unread") == "true":
        stmt = stmt.where(Message.is_read.is_(False))
    if request.args.get("mine") == "true":
        stmt = stmt.where(or_(
            Message.sender_id == g.current_user.id,
            Message.recipient_id == g.current_user.id,
        ))

    page = paginate(stmt)
    return paginated([m.to_dict() for m in page.items], page)


@messages_bp.route("/unread-count", methods=["GET"])
def unread_count():
    """
    GET /api/messages/unread-count
    Returns { count } of unread messages addressed to the current user, plus
    unread portal messages from clients, which any staff member may pick up.
    """
    count = db.session.execute(
        db.select(func.count(Message.id)).where(
            Message.is_read.is_(False),
            or_(
                Message.recipient_id == g.current_user.id,
                (Message.message_type == MessageType.portal) & (Message.sender_type == SenderType.client),
            ),
        )
    ).scalar_one()
    return success(data={"count": count})


@messages_bp.route("/<message_id>", methods=["GET"])
def get_message(message_id):
    message = db.session.get(Message, message_id)
    if not message:
        return not_found("Message")
    return success(data=message.to_dict())


@messages_bp.route("", methods=["POST"])
def create_message():
    """
    POST /api/messages
    Body: { content, subject?, recipientId?, recipientEmail?, caseId?, messageType?, status? }
    The sender is the current user.
    """
    body = parse_body(MessageCreate)
    if body.case_id and db.session.get(Case, body.case_id) is None:
        return error("Validation failed.", 400, details=[
            {"field": "caseId", "message": "Case does not exist"}
        ])

    message = Message(
        **body.model_dump(),
        sender_id=g.current_user.id,
        sender_type=SenderType.attorney,
    )
    db.session.add(message)
    db.session.commit()

    return created(data=message.to_dict(), message="Message sent.")


@messages_bp.route("/<message_id>", methods=["PUT"])
def update_message(message_id):
    message = db.session.get(Message, message_id)
    if not message:
        return not_found("Message")

    data = changes(parse_body(MessageUpdate))

    apply_changes(message, data)
    db.session.commit()

    return success(data=message.to_dict(), message="Message updated.")


@messages_bp.route("/<message_id>/read", methods=["PATCH"])
def mark_read(message_id):
    """
    PATCH /api/messages/<id>/read
    Marks the message read and stamps readAt. Idempotent.
    """
    message = db.session.get(Message, message_id)
    if not message:
        return not_found("Message")

    if not message.is_read:
        message.is_read = True
        message.read_at = utcnow()
        message.status = MessageStatus.read
        db.session.commit()

    return success(data=message.to_dict(), message="Message marked as read.")


@messages_bp.route("/<message_id>", methods=["DELETE"])
def delete_message(message_id):
    message = db.session.get(Message, message_id)
    if not message:
        return not_found("Message")

    db.session.delete(message)
    db.session.commit()
    return no_content()
