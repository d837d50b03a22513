"""User Service - Staff and consumer account management"""
import re
from typing import Any, Dict, List, Optional, Tuple

from .base_service import EntityService
from ..domain.models import StaffUser, ConsumerUser, Principal, Pagination
from ..domain.inputs import (
    StaffUserCreate, StaffUserUpdate, ConsumerUserCreate, ConsumerUserUpdate, PasswordChange
)
from ..domain.enums import Action, AuditAction, EntityType, Role
from ..domain.errors import AlreadyExistsError, ValidationError
from ..repositories.user_repo import ConsumerUserRepository, email_in_use
from ..repositories.customer_repo import CustomerRepository
from ..repositories.project_repo import ProjectRepository
from ..repositories.task_repo import TaskRepository
from ..repositories.ticket_repo import TicketRepository
from ..utils.idgen import generate_entity_id
from ..utils.passwords import hash_password
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _search_filters(role: Optional[str], status: Optional[str], search: Optional[str]) -> Dict[str, Any]:
    filters: Dict[str, Any] = {}
    if role:
        filters["role"] = role
    if status:
        filters["status"] = status
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        filters["$or"] = [{"name": pattern}, {"email": pattern}]
    return filters


class UserService(EntityService):
    """
    Service for user accounts

    Emails are unique across staff and consumer users and stored lowercase.
    Passwords only ever reach the store as salted hashes.
    """

    def __init__(self):
        super().__init__()
        self.consumer_repo = ConsumerUserRepository()
        self.customer_repo = CustomerRepository()
        self.work_item_repos = (ProjectRepository(), TaskRepository(), TicketRepository())

    def _ensure_email_free(self, email: str, exclude_id: Optional[str] = None) -> None:
        if email_in_use(email, exclude_id=exclude_id):
            raise AlreadyExistsError(
                f"A user with email {email} already exists",
                details={"email": email}
            )

    # =========================================================================
    # Staff Users
    # =========================================================================

    def list_staff(
        self,
        actor: Principal,
        role: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        sort_by: Optional[str] = None,
        sort_order: str = "desc"
    ) -> Tuple[List[StaffUser], Pagination]:
        filters = _search_filters(role, status, search)
        return self._page(actor, self.staff_repo, filters, page, limit, sort_by, sort_order)

    def get_staff(self, actor: Principal, user_id: str) -> StaffUser:
        return self._load(actor, self.staff_repo, user_id)

    def create_staff(self, actor: Principal, data: StaffUserCreate) -> StaffUser:
        self.guard.require(actor, Action.CREATE, EntityType.STAFF_USER)
        self._ensure_email_free(data.email)

        now = self._now()
        user = StaffUser(
            id=generate_entity_id("staff_user"),
            **data.model_dump(exclude={"password", "email"}),
            email=data.email.lower(),
            created_at=now,
            updated_at=now
        )
        self.staff_repo.insert_with_password(user, hash_password(data.password))

        self.dispatcher.dispatch(
            AuditAction.CREATE, EntityType.STAFF_USER, user.id, actor,
            changes={"email": user.email, "role": user.role}
        )
        return user

    def update_staff(self, actor: Principal, user_id: str, data: StaffUserUpdate) -> StaffUser:
        user = self._load(actor, self.staff_repo, user_id, Action.UPDATE)

        updates = data.changes()
        self._reject_nulls(updates, ("email", "name", "role", "status", "departments"))
        if "email" in updates:
            updates["email"] = updates["email"].lower()
            self._ensure_email_free(updates["email"], exclude_id=user_id)
        if user_id == actor.id and updates.get("role", user.role) != user.role:
            raise ValidationError("You cannot change your own role")

        updated, diff = self._commit_update(self.staff_repo, user, updates)
        self.dispatcher.dispatch(AuditAction.UPDATE, EntityType.STAFF_USER, user_id, actor, changes=diff)
        return updated

    def set_staff_password(self, actor: Principal, user_id: str, data: PasswordChange) -> None:
        self._load(actor, self.staff_repo, user_id, Action.UPDATE)
        self.staff_repo.set_password_hash(user_id, hash_password(data.password), self._now())
        self.dispatcher.dispatch(
            AuditAction.UPDATE, EntityType.STAFF_USER, user_id, actor,
            changes={"password": "changed"}
        )

    def delete_staff(self, actor: Principal, user_id: str) -> None:
        """Delete a staff user; work items they were assigned to become unassigned"""
        self._load(actor, self.staff_repo, user_id, Action.DELETE)
        if user_id == actor.id:
            raise ValidationError("You cannot delete your own account")

        now = self._now()
        unassigned = sum(repo.clear_references("assignee_id", user_id, now) for repo in self.work_item_repos)
        self.staff_repo.delete(user_id)

        self.dispatcher.dispatch(
            AuditAction.DELETE, EntityType.STAFF_USER, user_id, actor,
            changes={"unassigned": unassigned}
        )

    # =========================================================================
    # Consumer Users
    # =========================================================================

    def list_consumers(
        self,
        actor: Principal,
        customer_id: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        sort_by: Optional[str] = None,
        sort_order: str = "desc"
    ) -> Tuple[List[ConsumerUser], Pagination]:
        filters = _search_filters(None, status, search)
        if customer_id:
            filters["customer_id"] = customer_id
        return self._page(actor, self.consumer_repo, filters, page, limit, sort_by, sort_order)

    def get_consumer(self, actor: Principal, user_id: str) -> ConsumerUser:
        return self._load(actor, self.consumer_repo, user_id)

    def create_consumer(self, actor: Principal, data: ConsumerUserCreate) -> ConsumerUser:
        self.guard.require(actor, Action.CREATE, EntityType.CONSUMER_USER)
        self._ensure_customer(data.customer_id)
        self._ensure_email_free(data.email)

        now = self._now()
        user = ConsumerUser(
            id=generate_entity_id("consumer_user"),
            **data.model_dump(exclude={"password", "email"}),
            email=data.email.lower(),
            role=Role.KUNDE,
            created_at=now,
            updated_at=now
        )
        self.consumer_repo.insert_with_password(user, hash_password(data.password))

        self.dispatcher.dispatch(
            AuditAction.CREATE, EntityType.CONSUMER_USER, user.id, actor,
            changes={"email": user.email, "customer_id": user.customer_id}
        )
        return user

    def update_consumer(self, actor: Principal, user_id: str, data: ConsumerUserUpdate) -> ConsumerUser:
        user = self._load(actor, self.consumer_repo, user_id, Action.UPDATE)

        updates = data.changes()
        self._reject_nulls(updates, ("email", "name", "customer_id", "status"))
        if "email" in updates:
            updates["email"] = updates["email"].lower()
            self._ensure_email_free(updates["email"], exclude_id=user_id)
        if "customer_id" in updates:
            self._ensure_customer(updates["customer_id"])

        updated, diff = self._commit_update(self.consumer_repo, user, updates)
        self.dispatcher.dispatch(AuditAction.UPDATE, EntityType.CONSUMER_USER, user_id, actor, changes=diff)
        return updated

    def set_consumer_password(self, actor: Principal, user_id: str, data: PasswordChange) -> None:
        self._load(actor, self.consumer_repo, user_id, Action.UPDATE)
        self.consumer_repo.set_password_hash(user_id, hash_password(data.password), self._now())
        self.dispatcher.dispatch(
            AuditAction.UPDATE, EntityType.CONSUMER_USER, user_id, actor,
            changes={"password": "changed"}
        )

    def delete_consumer(self, actor: Principal, user_id: str) -> None:
        self._load(actor, self.consumer_repo, user_id, Action.DELETE)
        self.consumer_repo.delete(user_id)
        self.dispatcher.dispatch(AuditAction.DELETE, EntityType.CONSUMER_USER, user_id, actor)

    def _ensure_customer(self, customer_id: str) -> None:
        if not self.customer_repo.exists(customer_id):
            raise ValidationError(
                f"Customer {customer_id} does not exist",
                details={"customer_id": customer_id}
            )
