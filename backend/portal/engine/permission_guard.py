"""Permission Guard - Role policy for every entity action

The policy is a fixed table of (role, entity type, action) -> scope rule.
Anything not in the table is denied. A scope rule narrows a grant to the
records the principal owns, is assigned to, or authored.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from ..domain.models import Principal
from ..domain.enums import Role, EntityType, Action, ScopeRule
from ..domain.errors import PermissionDeniedError
from ..utils.logger import get_logger

logger = get_logger(__name__)


ALL_ACTIONS = tuple(Action)
READ_ONLY = (Action.LIST, Action.READ)


def _grant(actions: Iterable[Action], rule: ScopeRule) -> Dict[Action, ScopeRule]:
    return {action: rule for action in actions}


def _admin_policy() -> Dict[EntityType, Dict[Action, ScopeRule]]:
    return {entity_type: _grant(ALL_ACTIONS, ScopeRule.ANY) for entity_type in EntityType}


def _manager_policy() -> Dict[EntityType, Dict[Action, ScopeRule]]:
    policy = {
        entity_type: _grant(ALL_ACTIONS, ScopeRule.ANY)
        for entity_type in (
            EntityType.CUSTOMER,
            EntityType.PROJECT,
            EntityType.TASK,
            EntityType.TICKET,
            EntityType.CONSUMER_USER,
        )
    }
    policy[EntityType.COMMENT] = {
        **_grant((Action.LIST, Action.READ, Action.CREATE), ScopeRule.ANY),
        Action.DELETE: ScopeRule.AUTHOR,
    }
    policy[EntityType.NOTIFICATION] = _grant(READ_ONLY + (Action.UPDATE,), ScopeRule.SELF)
    return policy


def _mitarbeiter_policy() -> Dict[EntityType, Dict[Action, ScopeRule]]:
    work_item = {
        **_grant((Action.LIST, Action.READ, Action.UPDATE, Action.DELETE), ScopeRule.ASSIGNED),
        Action.CREATE: ScopeRule.ANY,
    }
    return {
        EntityType.CUSTOMER: _grant(READ_ONLY, ScopeRule.ANY),
        EntityType.PROJECT: _grant((Action.LIST, Action.READ, Action.UPDATE), ScopeRule.ASSIGNED),
        EntityType.TASK: dict(work_item),
        EntityType.TICKET: dict(work_item),
        EntityType.COMMENT: {
            **_grant((Action.LIST, Action.READ, Action.CREATE), ScopeRule.ANY),
            Action.DELETE: ScopeRule.AUTHOR,
        },
        EntityType.NOTIFICATION: _grant(READ_ONLY + (Action.UPDATE,), ScopeRule.SELF),
    }


def _kunde_policy() -> Dict[EntityType, Dict[Action, ScopeRule]]:
    return {
        EntityType.PROJECT: _grant(READ_ONLY, ScopeRule.OWN_CUSTOMER),
        EntityType.TASK: _grant(READ_ONLY, ScopeRule.OWN_CUSTOMER),
        EntityType.TICKET: _grant(READ_ONLY + (Action.CREATE,), ScopeRule.OWN_CUSTOMER),
        EntityType.COMMENT: {
            **_grant((Action.LIST, Action.READ, Action.CREATE), ScopeRule.OWN_CUSTOMER),
            Action.DELETE: ScopeRule.AUTHOR,
        },
        EntityType.NOTIFICATION: _grant(READ_ONLY + (Action.UPDATE,), ScopeRule.SELF),
    }


POLICY: Dict[Role, Dict[EntityType, Dict[Action, ScopeRule]]] = {
    Role.ADMIN: _admin_policy(),
    Role.MANAGER: _manager_policy(),
    Role.MITARBEITER: _mitarbeiter_policy(),
    Role.KUNDE: _kunde_policy(),
}


@dataclass(frozen=True)
class EntityScope:
    """Ownership facts of one record, as seen by the policy"""
    customer_id: Optional[str] = None
    assignee_id: Optional[str] = None
    reporter_id: Optional[str] = None
    author_id: Optional[str] = None
    user_id: Optional[str] = None

    @classmethod
    def of(cls, entity: Any) -> "EntityScope":
        """Read the ownership fields present on a model"""
        return cls(
            customer_id=getattr(entity, "customer_id", None),
            assignee_id=getattr(entity, "assignee_id", None),
            reporter_id=getattr(entity, "reporter_id", None),
            author_id=getattr(entity, "author_id", None),
            user_id=getattr(entity, "user_id", None),
        )


@dataclass(frozen=True)
class Decision:
    """
    Result of a policy check.

    `conditional` marks a type-level allow whose scope rule still has to be
    applied to each record (or folded into the query).
    """
    allowed: bool
    reason: str = ""
    conditional: bool = False

    def __bool__(self) -> bool:
        return self.allowed


class PermissionGuard:
    """
    Authorization for entity actions

    Rules:
    - ADMIN may do everything
    - MANAGER has full CRUD on business entities, no staff/audit/system access
    - MITARBEITER reads customers and works on items they are assigned to
    - KUNDE reads their own customer's work items and may open tickets/comments
    """

    def rule_for(self, role: Role, entity_type: EntityType, action: Action) -> Optional[ScopeRule]:
        """Scope rule granted for the triple, or None when not granted"""
        return POLICY.get(Role(role), {}).get(entity_type, {}).get(action)

    def authorize(
        self,
        principal: Principal,
        action: Action,
        entity_type: EntityType,
        scope: Optional[EntityScope] = None
    ) -> Decision:
        """
        Decide whether the principal may perform the action.

        Without a scope this is a type-level check: a scoped grant counts
        as allowed but is marked conditional.
        """
        rule = self.rule_for(principal.role, entity_type, action)
        if rule is None:
            return Decision(False, "no grant")

        if scope is None:
            return Decision(True, rule.value, conditional=rule != ScopeRule.ANY)

        if self._matches(rule, principal, scope):
            return Decision(True, rule.value)
        return Decision(False, f"{rule.value} not satisfied")

    def require(
        self,
        principal: Principal,
        action: Action,
        entity_type: EntityType,
        scope: Optional[EntityScope] = None
    ) -> Decision:
        """Authorize or raise PermissionDeniedError (the reason stays in the log)"""
        decision = self.authorize(principal, action, entity_type, scope)
        if not decision.allowed:
            logger.warning(
                f"Permission denied: {principal.role.value} {action.value} {entity_type.value} ({decision.reason})",
                extra={
                    "user_id": principal.id,
                    "role": principal.role.value,
                    "action": action.value,
                    "entity_type": entity_type.value,
                }
            )
            raise PermissionDeniedError()
        return decision

    @staticmethod
    def _matches(rule: ScopeRule, principal: Principal, scope: EntityScope) -> bool:
        if rule == ScopeRule.ANY:
            return True
        if rule == ScopeRule.OWN_CUSTOMER:
            return principal.customer_id is not None and scope.customer_id == principal.customer_id
        if rule == ScopeRule.ASSIGNED:
            return principal.id in (scope.assignee_id, scope.reporter_id)
        if rule == ScopeRule.AUTHOR:
            return scope.author_id == principal.id
        if rule == ScopeRule.SELF:
            return scope.user_id == principal.id
        return False
