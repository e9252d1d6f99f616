"""
schemas.py — Request body schemas (pydantic).

Bodies arrive in camelCase (`firstName`) but snake_case is accepted too.
Unknown keys are ignored, so clients cannot set server-owned fields such as
id, createdAt or passwordHash. *Create schemas carry the required fields;
*Update schemas default every field to None and are dumped with
exclude_unset=True so only the sent fields change. Fields backing NOT NULL
columns keep their plain type, so an explicit null fails validation (400)
instead of reaching the database.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from models import (
    UserRole, ClientStatus, CaseStatus, CasePriority, TimeEntryStatus,
    InvoiceStatus, EventType, EventStatus, MessageType, MessageStatus,
    DeadlineType, DeadlineStatus, as_utc,
)
from utils.passwords import MIN_PASSWORD_LENGTH


class APIModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    @field_validator("*", mode="after")
    @classmethod
    def _datetimes_to_utc(cls, value):
        # Naive timestamps from the client are taken as UTC.
        if isinstance(value, datetime):
            return as_utc(value)
        return value


# ─── Auth ─────────────────────────────────────────────────────────────────────

class LoginRequest(APIModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ProfileUpdate(APIModel):
    username: str = Field(default=None, min_length=1, max_length=150)
    email: str = Field(default=None, min_length=3, max_length=255)
    first_name: str = Field(default=None, min_length=1, max_length=120)
    last_name: str = Field(default=None, min_length=1, max_length=120)
    bar_number: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None


class PasswordChange(APIModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH)


# ─── Users ────────────────────────────────────────────────────────────────────

class UserCreate(APIModel):
    username: str = Field(min_length=1, max_length=150)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    first_name: str = Field(min_length=1, max_length=120)
    last_name: str = Field(min_length=1, max_length=120)
    role: UserRole = UserRole.attorney
    bar_number: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    is_active: bool = True


class UserUpdate(APIModel):
    username: str = Field(default=None, min_length=1, max_length=150)
    email: str = Field(default=None, min_length=3, max_length=255)
    password: str = Field(default=None, min_length=MIN_PASSWORD_LENGTH)
    first_name: str = Field(default=None, min_length=1, max_length=120)
    last_name: str = Field(default=None, min_length=1, max_length=120)
    role: UserRole = None
    bar_number: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    is_active: bool = None


# ─── Clients ──────────────────────────────────────────────────────────────────

class ClientCreate(APIModel):
    first_name: str = Field(min_length=1, max_length=120)
    last_name: str = Field(min_length=1, max_length=120)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    date_of_birth: Optional[date] = None
    notes: Optional[str] = None
    status: ClientStatus = ClientStatus.active


class ClientUpdate(APIModel):
    first_name: str = Field(default=None, min_length=1, max_length=120)
    last_name: str = Field(default=None, min_length=1, max_length=120)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    date_of_birth: Optional[date] = None
    notes: Optional[str] = None
    status: ClientStatus = None


# ─── Cases ────────────────────────────────────────────────────────────────────

class CaseCreate(APIModel):
    case_number: Optional[str] = Field(default=None, max_length=50)
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    case_type: str = Field(min_length=1, max_length=100)
    status: CaseStatus = CaseStatus.active
    priority: CasePriority = CasePriority.medium
    client_id: str = Field(min_length=1)
    assigned_attorney_id: Optional[str] = None
    court_location: Optional[str] = None
    opposing_party: Optional[str] = None
    opposing_counsel: Optional[str] = None
    statute_of_limitations: Optional[date] = None
    estimated_value: Optional[Decimal] = Field(default=None, ge=0)
    progress: int = Field(default=0, ge=0, le=100)
    next_action: Optional[str] = None
    next_action_due: Optional[date] = None


class CaseUpdate(APIModel):
    case_number: str = Field(default=None, min_length=1, max_length=50)
    title: str = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    case_type: str = Field(default=None, min_length=1, max_length=100)
    status: CaseStatus = None
    priority: CasePriority = None
    client_id: str = Field(default=None, min_length=1)
    assigned_attorney_id: Optional[str] = None
    court_location: Optional[str] = None
    opposing_party: Optional[str] = None
    opposing_counsel: Optional[str] = None
    statute_of_limitations: Optional[date] = None
    estimated_value: Optional[Decimal] = Field(default=None, ge=0)
    progress: int = Field(default=None, ge=0, le=100)
    next_action: Optional[str] = None
    next_action_due: Optional[date] = None


# ─── Time entries ─────────────────────────────────────────────────────────────

class TimeEntryCreate(APIModel):
    case_id: Optional[str] = None
    attorney_id: Optional[str] = None
    activity: str = Field(min_length=1, max_length=255)
    utbms_code: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, ge=0)
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    is_billable: bool = True
    status: TimeEntryStatus = TimeEntryStatus.draft

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.start_time and self.end_time and self.end_time < self.start_time:
            raise ValueError("endTime must not be before startTime")
        return self


class TimeEntryUpdate(APIModel):
    case_id: Optional[str] = None
    activity: str = Field(default=None, min_length=1, max_length=255)
    utbms_code: Optional[str] = None
    description: Optional[str] = None
    start_time: datetime = None
    end_time: datetime = None
    duration: Optional[int] = Field(default=None, ge=0)
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    is_billable: bool = None
    status: TimeEntryStatus = None


class BatchChanges(APIModel):
    status: Optional[TimeEntryStatus] = None
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    is_billable: Optional[bool] = None


class TimeEntryBatchUpdate(APIModel):
    ids: List[str] = Field(min_length=1)
    updates: BatchChanges


# ─── Invoices ─────────────────────────────────────────────────────────────────

class InvoiceItemIn(APIModel):
    description: str = Field(min_length=1)
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    rate: Decimal = Field(ge=0)
    amount: Optional[Decimal] = Field(default=None, ge=0)
    time_entry_id: Optional[str] = None


class InvoiceCreate(APIModel):
    invoice_number: Optional[str] = Field(default=None, max_length=30)
    client_id: str = Field(min_length=1)
    case_id: Optional[str] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    subtotal: Optional[Decimal] = Field(default=None, ge=0)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    status: InvoiceStatus = InvoiceStatus.draft
    notes: Optional[str] = None
    items: List[InvoiceItemIn] = Field(default_factory=list)


class InvoiceUpdate(APIModel):
    case_id: Optional[str] = None
    issue_date: date = None
    due_date: date = None
    subtotal: Decimal = Field(default=None, ge=0)
    tax: Decimal = Field(default=None, ge=0)
    total: Decimal = Field(default=None, ge=0)
    status: InvoiceStatus = None
    notes: Optional[str] = None


class InvoiceGenerate(APIModel):
    client_id: str = Field(min_length=1)
    case_id: str = Field(min_length=1)
    time_entry_ids: List[str] = Field(min_length=1)
    due_in_days: int = Field(default=30, ge=0, le=365)


# ─── Documents ────────────────────────────────────────────────────────────────

class DocumentCreate(APIModel):
    name: str = Field(min_length=1, max_length=255)
    filename: str = Field(min_length=1, max_length=512)
    file_path: str = Field(min_length=1, max_length=1024)
    file_size: Optional[int] = Field(default=None, ge=0)
    mime_type: Optional[str] = None
    case_id: Optional[str] = None
    client_id: Optional[str] = None
    document_type: Optional[str] = None
    is_template: bool = False
    version: int = Field(default=1, ge=1)
    tags: List[str] = Field(default_factory=list)


class DocumentUpdate(APIModel):
    name: str = Field(default=None, min_length=1, max_length=255)
    case_id: Optional[str] = None
    client_id: Optional[str] = None
    document_type: Optional[str] = None
    is_template: bool = None
    version: int = Field(default=None, ge=1)
    tags: Optional[List[str]] = None


class DocumentFromUpload(APIModel):
    upload_url: str = Field(alias="uploadURL", min_length=1)
    name: str = Field(min_length=1, max_length=255)
    filename: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)
    mime_type: Optional[str] = None
    case_id: Optional[str] = None
    client_id: Optional[str] = None
    document_type: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


# ─── Calendar ─────────────────────────────────────────────────────────────────

class CalendarEventCreate(APIModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    event_type: EventType
    case_id: Optional[str] = None
    client_id: Optional[str] = None
    attendee_ids: List[str] = Field(default_factory=list)
    location: Optional[str] = None
    is_all_day: bool = False
    reminder_minutes: int = Field(default=15, ge=0)
    status: EventStatus = EventStatus.scheduled

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.end_time < self.start_time:
            raise ValueError("endTime must not be before startTime")
        return self


class CalendarEventUpdate(APIModel):
    title: str = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    start_time: datetime = None
    end_time: datetime = None
    event_type: EventType = None
    case_id: Optional[str] = None
    client_id: Optional[str] = None
    attendee_ids: Optional[List[str]] = None
    location: Optional[str] = None
    is_all_day: bool = None
    reminder_minutes: int = Field(default=None, ge=0)
    status: EventStatus = None


# ─── Messages ─────────────────────────────────────────────────────────────────

class MessageCreate(APIModel):
    subject: Optional[str] = Field(default=None, max_length=255)
    content: str = Field(min_length=1)
    recipient_id: Optional[str] = None
    recipient_email: Optional[str] = None
    case_id: Optional[str] = None
    message_type: MessageType = MessageType.internal
    status: MessageStatus = MessageStatus.sent


class MessageUpdate(APIModel):
    subject: Optional[str] = Field(default=None, max_length=255)
    content: str = Field(default=None, min_length=1)
    recipient_id: Optional[str] = None
    recipient_email: Optional[str] = None
    case_id: Optional[str] = None
    status: MessageStatus = None


class PortalMessageCreate(APIModel):
    case_id: Optional[str] = None
    subject: Optional[str] = Field(default=None, max_length=255)
    content: str = Field(min_length=1)


class AttorneyPortalMessageCreate(APIModel):
    case_id: str = Field(min_length=1)
    subject: Optional[str] = Field(default=None, max_length=255)
    content: str = Field(min_length=1)


# ─── Compliance ───────────────────────────────────────────────────────────────

class DeadlineCreate(APIModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: date
    deadline_type: DeadlineType
    case_id: Optional[str] = None
    status: DeadlineStatus = DeadlineStatus.pending


class DeadlineUpdate(APIModel):
    title: str = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: date = None
    deadline_type: DeadlineType = None
    case_id: Optional[str] = None
    status: DeadlineStatus = None


# ─── AI ───────────────────────────────────────────────────────────────────────

class AIChatRequest(APIModel):
    query: str = Field(min_length=1, max_length=8000)
    case_id: Optional[str] = None
    user_id: Optional[str] = None


# ─── Billing configuration ────────────────────────────────────────────────────

class RateTableCreate(APIModel):
    name: str = Field(min_length=1, max_length=255)
    attorney_id: Optional[str] = None
    client_id: Optional[str] = None
    activity_type: Optional[str] = None
    utbms_code: Optional[str] = None
    hourly_rate: Decimal = Field(gt=0)
    is_active: bool = True


class RateTableUpdate(APIModel):
    name: str = Field(default=None, min_length=1, max_length=255)
    attorney_id: Optional[str] = None
    client_id: Optional[str] = None
    activity_type: Optional[str] = None
    utbms_code: Optional[str] = None
    hourly_rate: Decimal = Field(default=None, gt=0)
    is_active: bool = None


class ActivityTemplateCreate(APIModel):
    name: str = Field(min_length=1, max_length=255)
    activity_type: str = Field(min_length=1, max_length=100)
    utbms_code: Optional[str] = None
    description: Optional[str] = None
    default_duration: Optional[int] = Field(default=None, ge=0)
    default_rate: Optional[Decimal] = Field(default=None, ge=0)
    is_billable: bool = True
    is_shared: bool = True
    attorney_id: Optional[str] = None


class ActivityTemplateUpdate(APIModel):
    name: str = Field(default=None, min_length=1, max_length=255)
    activity_type: str = Field(default=None, min_length=1, max_length=100)
    utbms_code: Optional[str] = None
    description: Optional[str] = None
    default_duration: Optional[int] = Field(default=None, ge=0)
    default_rate: Optional[Decimal] = Field(default=None, ge=0)
    is_billable: bool = None
    is_shared: bool = None
    attorney_id: Optional[str] = None


# ─── Client portal ────────────────────────────────────────────────────────────

class PortalInvitationCreate(APIModel):
    client_id: str = Field(min_length=1)
    email: Optional[str] = Field(default=None, min_length=3, max_length=255)


class PortalLoginRequest(APIModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class AcceptInvitationRequest(APIModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class PortalProfileUpdate(APIModel):
    phone: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=MIN_PASSWORD_LENGTH)
    current_password: Optional[str] = None
