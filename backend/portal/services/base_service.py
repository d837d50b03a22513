"""Entity Service Base - Permission gate, scoped reads and committed updates

Every entity operation follows the same order:

    type-level gate -> scoped fetch -> record-level check
        -> state machine (status changes) -> write -> side effects
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..domain.models import Principal, Pagination, StaffUser
from ..domain.enums import Action, Department, EntityType, UserStatus
from ..domain.errors import ValidationError
from ..engine.permission_guard import PermissionGuard, EntityScope
from ..engine.query_scope import QueryScope
from ..engine.transition_resolver import TransitionResolver
from ..engine.dispatcher import SideEffectDispatcher
from ..repositories.base_repo import EntityRepository
from ..repositories.user_repo import StaffUserRepository
from ..utils.time import utc_now, ensure_utc
from ..utils.logger import get_logger

logger = get_logger(__name__)


class EntityService:
    """Shared plumbing for the entity services"""

    def __init__(self):
        self.guard = PermissionGuard()
        self.query_scope = QueryScope(self.guard)
        self.transitions = TransitionResolver()
        self.dispatcher = SideEffectDispatcher()
        self.staff_repo = StaffUserRepository()

    def _now(self) -> datetime:
        return utc_now()

    def _touch_time(self, entity: Any) -> datetime:
        """updated_at for a write on `entity`: now, but always past its last update"""
        return max(self._now(), ensure_utc(entity.updated_at) + timedelta(milliseconds=1))

    # =========================================================================
    # Reads
    # =========================================================================

    def _load(
        self,
        actor: Principal,
        repo: EntityRepository,
        entity_id: str,
        action: Action = Action.READ
    ):
        """
        Fetch one record the actor may act on.

        Raises:
            PermissionDeniedError: No grant for the action on this entity type,
                or the record-level rule fails
            NotFoundError: Missing, or outside the actor's read scope
        """
        self.guard.require(actor, action, repo.entity_type)
        scope = self.query_scope.scope_filter(actor, repo.entity_type, Action.READ)
        entity = repo.get_scoped(entity_id, scope)
        self.guard.require(actor, action, repo.entity_type, EntityScope.of(entity))
        return entity

    def _page(
        self,
        actor: Principal,
        repo: EntityRepository,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        limit: int = 20,
        sort_by: Optional[str] = None,
        sort_order: str = "desc",
        mine: bool = False
    ) -> Tuple[List[Any], Pagination]:
        """One page of a role-scoped list"""
        self.guard.require(actor, Action.LIST, repo.entity_type)
        scope = self.query_scope.scope_filter(actor, repo.entity_type, Action.LIST, mine=mine)
        items, total = repo.list_scoped(
            scope,
            filters=filters,
            sort_by=sort_by,
            sort_order=sort_order,
            skip=(page - 1) * limit,
            limit=limit
        )
        return items, Pagination.build(page, limit, total)

    # =========================================================================
    # Writes
    # =========================================================================

    def _validate_assignee(self, assignee_id: Optional[str]) -> Optional[StaffUser]:
        """An assignee must be an active staff user"""
        if not assignee_id:
            return None
        assignee = self.staff_repo.get_by_id(assignee_id)
        if assignee is None or assignee.status != UserStatus.ACTIVE.value:
            raise ValidationError(
                f"Assignee {assignee_id} is not an active staff user",
                details={"assignee_id": assignee_id}
            )
        return assignee

    @staticmethod
    def _departments(
        requested: Optional[List[str]],
        assignee: Optional[StaffUser]
    ) -> List[str]:
        """Explicit departments, else the assignee's, else IT"""
        if requested:
            return list(dict.fromkeys(requested))
        if assignee is not None and assignee.departments:
            return list(assignee.departments)
        return [Department.IT.value]

    @staticmethod
    def _normalize(values: Dict[str, Any]) -> Dict[str, Any]:
        """Store every datetime as UTC"""
        return {
            key: ensure_utc(value) if isinstance(value, datetime) else value
            for key, value in values.items()
        }

    @staticmethod
    def _reject_nulls(updates: Dict[str, Any], fields: Iterable[str]) -> None:
        for name in fields:
            if name in updates and updates[name] is None:
                raise ValidationError(f"{name} cannot be null", details={"field": name})

    @staticmethod
    def _diff(entity: Any, updates: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
        """Field-level before/after of the values that actually change"""
        changes = {}
        for key, value in updates.items():
            before = getattr(entity, key, None)
            if before != value:
                changes[key] = {"from": before, "to": value}
        return changes

    def _check_status(
        self,
        actor: Principal,
        entity_type: EntityType,
        entity: Any,
        updates: Dict[str, Any]
    ) -> None:
        if "status" in updates:
            self.transitions.check(entity_type, entity.status, updates["status"], actor)

    def _commit_update(
        self,
        repo: EntityRepository,
        entity: Any,
        updates: Dict[str, Any]
    ) -> Tuple[Any, Dict[str, Dict[str, Any]]]:
        """$set the given fields plus updated_at; returns (entity, diff)"""
        diff = self._diff(entity, updates)
        updates = dict(updates)
        updates["updated_at"] = self._touch_time(entity)
        return repo.update_fields(entity.id, updates), diff

    def _require_record(
        self,
        actor: Principal,
        action: Action,
        entity_type: EntityType,
        **scope: Optional[str]
    ) -> None:
        """Record-level check for a record that does not exist yet"""
        self.guard.require(actor, action, entity_type, EntityScope(**scope))
