"""
models.py — All database table definitions for the LegalCRM practice platform.

Primary keys are UUID strings generated in Python so rows can be addressed
before they are flushed. Every model serialises itself with camelCase keys
via SerializerMixin.to_dict(); columns listed in __serialize_exclude__
(password hashes, invitation tokens) never leave the server.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from database import db
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Date,
    ForeignKey, Numeric, JSON, Enum as PgEnum, Index
)
from sqlalchemy.orm import relationship
import uuid
import enum


# ─────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────

class UserRole(enum.Enum):
    attorney = "attorney"
    paralegal = "paralegal"
    secretary = "secretary"
    admin = "admin"


class ClientStatus(enum.Enum):
    active = "active"
    inactive = "inactive"
    archived = "archived"


class CaseStatus(enum.Enum):
    active = "active"
    pending = "pending"
    closed = "closed"
    archived = "archived"


class CasePriority(enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class TimeEntryStatus(enum.Enum):
    draft = "draft"
    ready_to_bill = "ready_to_bill"
    invoiced = "invoiced"
    paid = "paid"


class InvoiceStatus(enum.Enum):
    draft = "draft"
    sent = "sent"
    paid = "paid"
    overdue = "overdue"
    cancelled = "cancelled"


class EventType(enum.Enum):
    court_date = "court_date"
    meeting = "meeting"
    deadline = "deadline"
    consultation = "consultation"


class EventStatus(enum.Enum):
    scheduled = "scheduled"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"


class MessageType(enum.Enum):
    email = "email"
    sms = "sms"
    internal = "internal"
    portal = "portal"


class MessageStatus(enum.Enum):
    draft = "draft"
    sent = "sent"
    delivered = "delivered"
    read = "read"


class SenderType(enum.Enum):
    attorney = "attorney"
    client = "client"


class DeadlineType(enum.Enum):
    bar_requirement = "bar_requirement"
    court_filing = "court_filing"
    ethics = "ethics"
    continuing_education = "continuing_education"


class DeadlineStatus(enum.Enum):
    pending = "pending"
    completed = "completed"
    overdue = "overdue"


# ─────────────────────────────────────────────
# Helper
# ─────────────────────────────────────────────

def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return str(uuid.uuid4())


def as_utc(value):
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _jsonable(value):
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


class SerializerMixin:
    __serialize_exclude__ = frozenset()

    def to_dict(self) -> dict:
        return {
            _camel(col.key): _jsonable(getattr(self, col.key))
            for col in self.__table__.columns
            if col.key not in self.__serialize_exclude__
        }


# ─────────────────────────────────────────────
# 1. Users (attorneys, paralegals, secretaries, admins)
# ─────────────────────────────────────────────

class User(SerializerMixin, db.Model):
    __tablename__ = "users"
    __serialize_exclude__ = frozenset({"password_hash"})

    id = Column(String(36), primary_key=True, default=new_uuid)
    username = Column(String(150), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    role = Column(PgEnum(UserRole, name="user_role_enum"), nullable=False, default=UserRole.attorney)
    bar_number = Column(String(50), nullable=True)
    phone = Column(String(30), nullable=True)
    avatar = Column(String(512), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<User {self.username} ({self.role.value})>"


# ─────────────────────────────────────────────
# 2. Clients
# ─────────────────────────────────────────────

class Client(SerializerMixin, db.Model):
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=new_uuid)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(120), nullable=True)
    state = Column(String(60), nullable=True)
    zip_code = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(PgEnum(ClientStatus, name="client_status_enum"), nullable=False, default=ClientStatus.active)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_clients_status", "status"),
        Index("ix_clients_last_name", "last_name"),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<Client {self.full_name}>"


# ─────────────────────────────────────────────
# 3. Cases
# ─────────────────────────────────────────────

class Case(SerializerMixin, db.Model):
    __tablename__ = "cases"

    id = Column(String(36), primary_key=True, default=new_uuid)
    case_number = Column(String(50), nullable=False, unique=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    case_type = Column(String(100), nullable=False)                 # personal_injury, family_law, ...
    status = Column(PgEnum(CaseStatus, name="case_status_enum"), nullable=False, default=CaseStatus.active)
    priority = Column(PgEnum(CasePriority, name="case_priority_enum"), nullable=False, default=CasePriority.medium)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False)
    assigned_attorney_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    court_location = Column(String(255), nullable=True)
    opposing_party = Column(String(255), nullable=True)
    opposing_counsel = Column(String(255), nullable=True)
    statute_of_limitations = Column(Date, nullable=True)
    estimated_value = Column(Numeric(12, 2), nullable=True)
    progress = Column(Integer, default=0, nullable=False)           # 0–100
    next_action = Column(Text, nullable=True)
    next_action_due = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    client = relationship("Client")
    assigned_attorney = relationship("User")

    __table_args__ = (
        Index("ix_cases_client_id", "client_id"),
        Index("ix_cases_status", "status"),
    )

    def __repr__(self):
        return f"<Case {self.case_number} — {self.title}>"


# ─────────────────────────────────────────────
# 4. Time entries
# ─────────────────────────────────────────────

class TimeEntry(SerializerMixin, db.Model):
    __tablename__ = "time_entries"

    id = Column(String(36), primary_key=True, default=new_uuid)
    case_id = Column(String(36), ForeignKey("cases.id"), nullable=True)
    attorney_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    activity = Column(String(255), nullable=False)
    utbms_code = Column(String(20), nullable=True)
    description = Column(Text, nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    is_paused = Column(Boolean, default=False, nullable=False)
    paused_at = Column(DateTime(timezone=True), nullable=True)
    paused_duration = Column(Integer, default=0, nullable=False)    # minutes
    duration = Column(Integer, nullable=True)                       # minutes, unrounded
    rounded_duration = Column(Integer, nullable=True)               # minutes, billing increment applied
    hourly_rate = Column(Numeric(8, 2), nullable=True)
    is_billable = Column(Boolean, default=True, nullable=False)
    status = Column(
        PgEnum(TimeEntryStatus, name="time_entry_status_enum"),
        nullable=False,
        default=TimeEntryStatus.draft
    )
    invoice_id = Column(String(36), ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)
    calendar_event_id = Column(String(36), ForeignKey("calendar_events.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    case = relationship("Case")

    __table_args__ = (
        Index("ix_time_entries_case_id", "case_id"),
        Index("ix_time_entries_attorney_id", "attorney_id"),
        Index("ix_time_entries_status", "status"),
    )

    def __repr__(self):
        return f"<TimeEntry {self.activity} {self.duration}min ({self.status.value})>"


# ─────────────────────────────────────────────
# 5. Invoices + line items
# ─────────────────────────────────────────────

class Invoice(SerializerMixin, db.Model):
    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=new_uuid)
    invoice_number = Column(String(30), nullable=False, unique=True)   # INV-00001
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="SET NULL"), nullable=True)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    total = Column(Numeric(10, 2), nullable=False)
    status = Column(PgEnum(InvoiceStatus, name="invoice_status_enum"), nullable=False, default=InvoiceStatus.draft)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    client = relationship("Client")
    case = relationship("Case")
    items = relationship(
        "InvoiceItem", back_populates="invoice",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_invoices_client_id", "client_id"),
        Index("ix_invoices_status", "status"),
    )

    def __repr__(self):
        return f"<Invoice {self.invoice_number} {self.total} ({self.status.value})>"


class InvoiceItem(SerializerMixin, db.Model):
    __tablename__ = "invoice_items"

    id = Column(String(36), primary_key=True, default=new_uuid)
    invoice_id = Column(String(36), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    time_entry_id = Column(String(36), ForeignKey("time_entries.id", ondelete="SET NULL"), nullable=True)
    description = Column(Text, nullable=False)
    quantity = Column(Numeric(8, 2), nullable=False, default=Decimal("1.00"))   # decimal hours
    rate = Column(Numeric(8, 2), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)

    invoice = relationship("Invoice", back_populates="items")

    __table_args__ = (
        Index("ix_invoice_items_invoice_id", "invoice_id"),
    )

    def __repr__(self):
        return f"<InvoiceItem {self.quantity}h × {self.rate}>"


# ─────────────────────────────────────────────
# 6. Documents (metadata only; bytes live in object storage)
# ─────────────────────────────────────────────

class Document(SerializerMixin, db.Model):
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String(255), nullable=False)
    filename = Column(String(512), nullable=False)
    file_path = Column(String(1024), nullable=False)                # /objects/<id>
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String(255), nullable=True)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="SET NULL"), nullable=True)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)
    uploaded_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    document_type = Column(String(100), nullable=True)              # contract, motion, evidence, ...
    is_template = Column(Boolean, default=False, nullable=False)
    version = Column(Integer, default=1, nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_documents_case_id", "case_id"),
        Index("ix_documents_client_id", "client_id"),
    )

    def __repr__(self):
        return f"<Document {self.name} v{self.version}>"


# ─────────────────────────────────────────────
# 7. Calendar events
# ─────────────────────────────────────────────

class CalendarEvent(SerializerMixin, db.Model):
    __tablename__ = "calendar_events"

    id = Column(String(36), primary_key=True, default=new_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    event_type = Column(PgEnum(EventType, name="event_type_enum"), nullable=False)
    source_type = Column(String(50), nullable=True)                 # e.g. "time_entry"
    source_id = Column(String(36), nullable=True)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="SET NULL"), nullable=True)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)
    attendee_ids = Column(JSON, nullable=False, default=list)
    location = Column(String(255), nullable=True)
    is_all_day = Column(Boolean, default=False, nullable=False)
    reminder_minutes = Column(Integer, default=15, nullable=False)
    status = Column(PgEnum(EventStatus, name="event_status_enum"), nullable=False, default=EventStatus.scheduled)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_calendar_events_start_time", "start_time"),
        Index("ix_calendar_events_client_id", "client_id"),
        Index("ix_calendar_events_source", "source_type", "source_id"),
    )

    def __repr__(self):
        return f"<CalendarEvent {self.title} @ {self.start_time}>"


# ─────────────────────────────────────────────
# 8. Messages (staff ↔ staff, staff ↔ portal client)
# ─────────────────────────────────────────────

class Message(SerializerMixin, db.Model):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=new_uuid)
    subject = Column(String(255), nullable=True)
    content = Column(Text, nullable=False)
    sender_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    sender_portal_user_id = Column(String(36), ForeignKey("portal_users.id", ondelete="SET NULL"), nullable=True)
    sender_type = Column(PgEnum(SenderType, name="sender_type_enum"), nullable=False, default=SenderType.attorney)
    recipient_id = Column(String(36), nullable=True)
    recipient_email = Column(String(255), nullable=True)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="SET NULL"), nullable=True)
    message_type = Column(PgEnum(MessageType, name="message_type_enum"), nullable=False)
    status = Column(PgEnum(MessageStatus, name="message_status_enum"), nullable=False, default=MessageStatus.sent)
    is_read = Column(Boolean, default=False, nullable=False)
    sent_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_messages_case_id", "case_id"),
        Index("ix_messages_is_read", "is_read"),
    )

    def __repr__(self):
        return f"<Message {self.message_type.value} from {self.sender_type.value}>"


# ─────────────────────────────────────────────
# 9. AI assistant conversations
# ─────────────────────────────────────────────

class AIConversation(SerializerMixin, db.Model):
    __tablename__ = "ai_conversations"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="SET NULL"), nullable=True)
    query = Column(Text, nullable=False)
    response = Column(Text, nullable=False)
    context = Column(JSON, nullable=True)                           # e.g. {"model": "..."}
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_ai_conversations_user_id", "user_id"),
    )

    def __repr__(self):
        return f"<AIConversation user={self.user_id}>"


# ─────────────────────────────────────────────
# 10. Compliance deadlines
# ─────────────────────────────────────────────

class ComplianceDeadline(SerializerMixin, db.Model):
    __tablename__ = "compliance_deadlines"

    id = Column(String(36), primary_key=True, default=new_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=False)
    deadline_type = Column(PgEnum(DeadlineType, name="deadline_type_enum"), nullable=False)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="SET NULL"), nullable=True)
    status = Column(PgEnum(DeadlineStatus, name="deadline_status_enum"), nullable=False, default=DeadlineStatus.pending)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_compliance_deadlines_due_date", "due_date"),
    )

    def __repr__(self):
        return f"<ComplianceDeadline {self.title} due {self.due_date}>"


# ─────────────────────────────────────────────
# 11. Portal users (client-facing accounts)
# ─────────────────────────────────────────────

class PortalUser(SerializerMixin, db.Model):
    """
    One login per client for the client portal. Created inactive with an
    invitation token; the client sets a password through the invitation
    link, which activates the account and clears the token.
    """
    __tablename__ = "portal_users"
    __serialize_exclude__ = frozenset({"password_hash", "invitation_token"})

    id = Column(String(36), primary_key=True, default=new_uuid)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=True)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    phone = Column(String(30), nullable=True)
    invitation_token = Column(String(128), nullable=True, unique=True)
    invitation_expires_at = Column(DateTime(timezone=True), nullable=True)
    invited_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, default=False, nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    client = relationship("Client")

    __table_args__ = (
        Index("ix_portal_users_invited_by_id", "invited_by_id"),
    )

    def __repr__(self):
        return f"<PortalUser {self.email} active={self.is_active}>"


# ─────────────────────────────────────────────
# 12. Rate tables
# ─────────────────────────────────────────────

class RateTable(SerializerMixin, db.Model):
    """
    Hourly rate overrides. Any of attorney_id / client_id / activity_type
    may be null, meaning "applies to all"; the most specific active row wins.
    """
    __tablename__ = "rate_tables"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String(255), nullable=False)
    attorney_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=True)
    activity_type = Column(String(100), nullable=True)
    utbms_code = Column(String(20), nullable=True)
    hourly_rate = Column(Numeric(8, 2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<RateTable {self.name} {self.hourly_rate}/h>"


# ─────────────────────────────────────────────
# 13. Activity templates
# ─────────────────────────────────────────────

class ActivityTemplate(SerializerMixin, db.Model):
    __tablename__ = "activity_templates"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String(255), nullable=False)
    activity_type = Column(String(100), nullable=False)
    utbms_code = Column(String(20), nullable=True)
    description = Column(Text, nullable=True)                       # may contain {{placeholders}}
    default_duration = Column(Integer, nullable=True)               # minutes
    default_rate = Column(Numeric(8, 2), nullable=True)
    is_billable = Column(Boolean, default=True, nullable=False)
    is_shared = Column(Boolean, default=True, nullable=False)
    attorney_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<ActivityTemplate {self.name} ({self.utbms_code})>"
