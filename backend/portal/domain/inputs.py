"""Input Models - Create/update payloads accepted by the services

Each update model lists exactly the mutable fields of its entity; anything else a
client sends is dropped before it reaches the store.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from .enums import (
    Role, UserStatus, Department, CustomerStatus, CustomerSize, AddressType,
    ProjectStatus, TaskStatus, TicketStatus, Priority, TicketType, STAFF_ROLES
)


class InputModel(BaseModel):
    """Base for request payloads (camelCase or snake_case accepted)"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    def changes(self) -> Dict[str, Any]:
        """Fields the client actually sent"""
        return self.model_dump(exclude_unset=True)


# ============================================================================
# Customers
# ============================================================================

class AddressInput(InputModel):
    type: AddressType = AddressType.OFFICE
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    postal_code: Optional[str] = None
    country: str = "DE"
    is_primary: bool = False


class AddressUpdate(InputModel):
    type: Optional[AddressType] = None
    street: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1)
    postal_code: Optional[str] = None
    country: Optional[str] = None
    is_primary: Optional[bool] = None


class ContactInput(InputModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    position: Optional[str] = None
    is_primary: bool = False


class ContactUpdate(InputModel):
    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    position: Optional[str] = None
    is_primary: Optional[bool] = None


class CustomerCreate(InputModel):
    legal_name: str = Field(..., min_length=1, max_length=300)
    trade_name: Optional[str] = None
    vat_id: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[CustomerSize] = None
    status: CustomerStatus = CustomerStatus.ACTIVE
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    addresses: List[AddressInput] = Field(default_factory=list)
    contacts: List[ContactInput] = Field(default_factory=list)


class CustomerUpdate(InputModel):
    legal_name: Optional[str] = Field(None, min_length=1, max_length=300)
    trade_name: Optional[str] = None
    vat_id: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[CustomerSize] = None
    status: Optional[CustomerStatus] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None


# ============================================================================
# Work Items
# ============================================================================

class ProjectCreate(InputModel):
    customer_id: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    assignee_id: Optional[str] = None
    budget: Optional[float] = Field(None, ge=0)
    tags: List[str] = Field(default_factory=list)
    departments: Optional[List[Department]] = None


class ProjectUpdate(InputModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    assignee_id: Optional[str] = None
    budget: Optional[float] = Field(None, ge=0)
    tags: Optional[List[str]] = None
    departments: Optional[List[Department]] = None


class TaskCreate(InputModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    type: Optional[str] = None
    due_date: Optional[datetime] = None
    project_id: Optional[str] = None
    parent_task_id: Optional[str] = None
    assignee_id: Optional[str] = None
    reporter_id: Optional[str] = None
    departments: Optional[List[Department]] = None


class TaskUpdate(InputModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[Priority] = None
    type: Optional[str] = None
    due_date: Optional[datetime] = None
    assignee_id: Optional[str] = None
    reporter_id: Optional[str] = None
    departments: Optional[List[Department]] = None


class TicketCreate(InputModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    type: TicketType = TicketType.SUPPORT
    due_date: Optional[datetime] = None
    project_id: Optional[str] = None
    customer_id: Optional[str] = None
    assignee_id: Optional[str] = None
    reporter_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    departments: Optional[List[Department]] = None


class TicketUpdate(InputModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    status: Optional[TicketStatus] = None
    priority: Optional[Priority] = None
    type: Optional[TicketType] = None
    due_date: Optional[datetime] = None
    assignee_id: Optional[str] = None
    reporter_id: Optional[str] = None
    tags: Optional[List[str]] = None
    departments: Optional[List[Department]] = None


class QuickAssign(InputModel):
    """Narrow update: only the assignee (null unassigns)"""
    assignee_id: Optional[str] = Field(...)


class CommentCreate(InputModel):
    content: str = Field(..., min_length=1, max_length=10000)


# ============================================================================
# Users
# ============================================================================

class StaffUserCreate(InputModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=200)
    password: str = Field(..., min_length=8, max_length=200)
    role: Role = Role.MITARBEITER
    status: UserStatus = UserStatus.ACTIVE
    departments: List[Department] = Field(default_factory=lambda: [Department.IT])
    phone: Optional[str] = None
    position: Optional[str] = None

    @field_validator("role")
    @classmethod
    def _staff_role(cls, v: str) -> str:
        if v not in [r.value for r in STAFF_ROLES]:
            raise ValueError("Staff users must be ADMIN, MANAGER or MITARBEITER")
        return v


class StaffUserUpdate(InputModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    role: Optional[Role] = None
    status: Optional[UserStatus] = None
    departments: Optional[List[Department]] = None
    phone: Optional[str] = None
    position: Optional[str] = None

    @field_validator("role")
    @classmethod
    def _staff_role(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in [r.value for r in STAFF_ROLES]:
            raise ValueError("Staff users must be ADMIN, MANAGER or MITARBEITER")
        return v


class ConsumerUserCreate(InputModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=200)
    password: str = Field(..., min_length=8, max_length=200)
    customer_id: str = Field(..., min_length=1)
    status: UserStatus = UserStatus.ACTIVE
    phone: Optional[str] = None
    position: Optional[str] = None


class ConsumerUserUpdate(InputModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    customer_id: Optional[str] = Field(None, min_length=1)
    status: Optional[UserStatus] = None
    phone: Optional[str] = None
    position: Optional[str] = None


class PasswordChange(InputModel):
    password: str = Field(..., min_length=8, max_length=200)


class LoginRequest(InputModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
