"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from .enums import (
    Role, PrincipalKind, UserStatus, Department, CustomerStatus, CustomerSize,
    AddressType, ProjectStatus, TaskStatus, TicketStatus, Priority, TicketType,
    AuditAction, EntityType, NotificationType, NotificationStatus,
    NotificationTemplateKey, SideEffectKind
)


class DomainModel(BaseModel):
    """
    Base for stored entities.

    Fields are snake_case in MongoDB and camelCase on the wire.
    Enum members are stored as their plain string values.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )

    def to_document(self) -> Dict[str, Any]:
        """Dump for MongoDB (keeps datetimes native for sorting)"""
        return self.model_dump()

    def to_api(self) -> Dict[str, Any]:
        """Dump for API responses"""
        return self.model_dump(mode="json", by_alias=True)


# ============================================================================
# Identity
# ============================================================================

class Principal(BaseModel):
    """Authenticated actor making a request"""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., description="Staff or consumer user id")
    email: EmailStr
    name: str = ""
    role: Role
    kind: PrincipalKind
    customer_id: Optional[str] = Field(None, description="Owning customer for consumers")
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @model_validator(mode="after")
    def _role_matches_kind(self) -> "Principal":
        # KUNDE is bound to consumer accounts; staff roles never come from one
        if (self.role == Role.KUNDE) != (self.kind == PrincipalKind.CONSUMER):
            raise ValueError("Role and principal kind do not match")
        if self.kind == PrincipalKind.CONSUMER and not self.customer_id:
            raise ValueError("Consumer principals require a customer id")
        return self

    @property
    def is_consumer(self) -> bool:
        return self.kind == PrincipalKind.CONSUMER


class StaffUser(DomainModel):
    """Internal user (ADMIN, MANAGER, MITARBEITER)"""
    id: str
    email: EmailStr
    name: str
    role: Role = Role.MITARBEITER
    status: UserStatus = UserStatus.ACTIVE
    departments: List[Department] = Field(default_factory=lambda: [Department.IT])
    phone: Optional[str] = None
    position: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _staff_role_only(self) -> "StaffUser":
        if self.role == Role.KUNDE:
            raise ValueError("Staff users cannot hold the KUNDE role")
        return self


class ConsumerUser(DomainModel):
    """Customer-facing user, always KUNDE"""
    id: str
    email: EmailStr
    name: str
    role: Role = Role.KUNDE
    customer_id: str
    status: UserStatus = UserStatus.ACTIVE
    phone: Optional[str] = None
    position: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _kunde_only(self) -> "ConsumerUser":
        if self.role != Role.KUNDE:
            raise ValueError("Consumer users always hold the KUNDE role")
        return self


# ============================================================================
# Customers
# ============================================================================

class Address(DomainModel):
    """Address embedded in a customer"""
    id: str
    type: AddressType = AddressType.OFFICE
    street: str
    city: str
    postal_code: Optional[str] = None
    country: str = "DE"
    is_primary: bool = False


class Contact(DomainModel):
    """Contact person embedded in a customer"""
    id: str
    first_name: str
    last_name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    position: Optional[str] = None
    is_primary: bool = False


class Customer(DomainModel):
    """Customer company"""
    id: str
    legal_name: str = Field(..., min_length=1)
    trade_name: Optional[str] = None
    vat_id: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[CustomerSize] = None
    status: CustomerStatus = CustomerStatus.ACTIVE
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    addresses: List[Address] = Field(default_factory=list)
    contacts: List[Contact] = Field(default_factory=list)
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Work Items
# ============================================================================

class Project(DomainModel):
    """Project owned by one customer"""
    id: str
    customer_id: str
    code: str
    name: str
    description: Optional[str] = None
    status: ProjectStatus = ProjectStatus.PLANNING
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    assignee_id: Optional[str] = None
    budget: Optional[float] = None
    tags: List[str] = Field(default_factory=list)
    departments: List[Department] = Field(default_factory=lambda: [Department.IT])
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class Task(DomainModel):
    """Task or subtask (a subtask has parent_task_id set)"""
    id: str
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM
    type: Optional[str] = None
    due_date: Optional[datetime] = None
    project_id: str
    customer_id: str
    parent_task_id: Optional[str] = None
    assignee_id: Optional[str] = None
    reporter_id: Optional[str] = None
    departments: List[Department] = Field(default_factory=lambda: [Department.IT])
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_subtask(self) -> bool:
        return self.parent_task_id is not None


class Ticket(DomainModel):
    """Support ticket, optionally attached to a project"""
    id: str
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    status: TicketStatus = TicketStatus.OPEN
    priority: Priority = Priority.MEDIUM
    type: TicketType = TicketType.SUPPORT
    due_date: Optional[datetime] = None
    project_id: Optional[str] = None
    customer_id: Optional[str] = None
    assignee_id: Optional[str] = None
    reporter_id: Optional[str] = None
    departments: List[Department] = Field(default_factory=lambda: [Department.IT])
    tags: List[str] = Field(default_factory=list)
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class Comment(DomainModel):
    """Immutable comment on a task or ticket"""
    id: str
    content: str = Field(..., min_length=1)
    task_id: Optional[str] = None
    ticket_id: Optional[str] = None
    customer_id: Optional[str] = None  # Copied from the parent for scoping
    author_id: str
    author_name: str = ""
    author_kind: PrincipalKind
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _exactly_one_parent(self) -> "Comment":
        if (self.task_id is None) == (self.ticket_id is None):
            raise ValueError("A comment belongs to exactly one task or ticket")
        return self


# ============================================================================
# Audit & Notifications
# ============================================================================

class AuditLogEntry(DomainModel):
    """Append-only audit record"""
    id: str
    action: AuditAction
    entity_type: EntityType
    entity_id: str
    user_id: str
    user_email: Optional[str] = None
    timestamp: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    changes: Dict[str, Any] = Field(default_factory=dict)
    correlation_id: Optional[str] = None


class Notification(DomainModel):
    """In-app notification addressed to one user"""
    id: str
    user_id: str
    type: NotificationType = NotificationType.INFO
    title: str
    message: str
    read: bool = False
    action_url: Optional[str] = None
    timestamp: datetime
    read_at: Optional[datetime] = None
    dedup_key: Optional[str] = None  # Set for scheduled reminders


class NotificationOutbox(DomainModel):
    """Email queued for out-of-band delivery"""
    id: str
    template_key: NotificationTemplateKey
    recipient_id: str
    recipient_email: EmailStr
    subject: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    entity_type: Optional[EntityType] = None
    entity_id: Optional[str] = None
    status: NotificationStatus = NotificationStatus.PENDING
    retry_count: int = 0
    next_retry_at: Optional[datetime] = None
    last_error: Optional[str] = None
    locked_until: Optional[datetime] = None
    locked_by: Optional[str] = None
    lock_acquired_at: Optional[datetime] = None
    created_at: datetime
    sent_at: Optional[datetime] = None


class PendingSideEffect(DomainModel):
    """Audit entry or in-app notification queued for another write attempt"""
    id: str
    kind: SideEffectKind
    document: Dict[str, Any]
    entity_type: Optional[EntityType] = None
    entity_id: Optional[str] = None
    status: NotificationStatus = NotificationStatus.PENDING
    retry_count: int = 0
    next_retry_at: Optional[datetime] = None
    last_error: Optional[str] = None
    locked_until: Optional[datetime] = None
    locked_by: Optional[str] = None
    lock_acquired_at: Optional[datetime] = None
    created_at: datetime
    applied_at: Optional[datetime] = None


# ============================================================================
# Query Results
# ============================================================================

class Pagination(BaseModel):
    """Page metadata for list responses"""
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        pages = (total + limit - 1) // limit if limit else 0
        return cls(page=page, limit=limit, total=total, pages=pages)
