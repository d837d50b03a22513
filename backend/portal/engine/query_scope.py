"""Query Scope - Translate the permission policy into Mongo filters

Every read a request handler reaches goes through one of these filters, so
an out-of-scope record is simply not found.
"""
from typing import Any, Dict

from .permission_guard import PermissionGuard
from ..domain.models import Principal
from ..domain.enums import Action, EntityType, ScopeRule
from ..repositories.base_repo import merge_filters

# Matches nothing
EMPTY_SCOPE: Dict[str, Any] = {"id": {"$in": []}}


class QueryScope:
    """Build role-scoped filters for list and read queries"""

    def __init__(self, guard: PermissionGuard = None):
        self.guard = guard or PermissionGuard()

    def scope_filter(
        self,
        principal: Principal,
        entity_type: EntityType,
        action: Action = Action.LIST,
        mine: bool = False
    ) -> Dict[str, Any]:
        """
        Filter restricting a query to what the principal may see

        Args:
            principal: Caller
            entity_type: Collection being queried
            action: LIST or READ
            mine: Narrow to items assigned to the caller ("my tasks")

        Returns:
            Mongo filter ({} means unrestricted)
        """
        rule = self.guard.rule_for(principal.role, entity_type, action)
        if rule is None:
            return dict(EMPTY_SCOPE)

        base = self._rule_filter(rule, principal)
        if mine:
            return merge_filters(base, {"assignee_id": principal.id})
        return base

    @staticmethod
    def _rule_filter(rule: ScopeRule, principal: Principal) -> Dict[str, Any]:
        if rule == ScopeRule.ANY:
            return {}
        if rule == ScopeRule.OWN_CUSTOMER:
            if not principal.customer_id:
                return dict(EMPTY_SCOPE)
            return {"customer_id": principal.customer_id}
        if rule == ScopeRule.ASSIGNED:
            return {"$or": [{"assignee_id": principal.id}, {"reporter_id": principal.id}]}
        if rule == ScopeRule.AUTHOR:
            return {"author_id": principal.id}
        if rule == ScopeRule.SELF:
            return {"user_id": principal.id}
        return dict(EMPTY_SCOPE)
