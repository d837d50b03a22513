"""Dashboard Service - Role-scoped status counts"""
from typing import Any, Dict

from ..domain.models import Principal
from ..domain.enums import Action, EntityType
from ..engine.permission_guard import PermissionGuard
from ..engine.query_scope import QueryScope
from ..repositories.customer_repo import CustomerRepository
from ..repositories.project_repo import ProjectRepository
from ..repositories.task_repo import TaskRepository
from ..repositories.ticket_repo import TicketRepository
from ..repositories.inapp_notification_repo import InAppNotificationRepository


class DashboardService:
    """Counts per status for everything the caller may list"""

    def __init__(self):
        self.guard = PermissionGuard()
        self.query_scope = QueryScope(self.guard)
        self.repos = {
            "customers": CustomerRepository(),
            "projects": ProjectRepository(),
            "tasks": TaskRepository(),
            "tickets": TicketRepository(),
        }
        self.inapp_repo = InAppNotificationRepository()

    def get_summary(self, actor: Principal, mine: bool = False) -> Dict[str, Any]:
        summary: Dict[str, Any] = {}
        for key, repo in self.repos.items():
            if not self.guard.authorize(actor, Action.LIST, repo.entity_type):
                continue
            # Customers carry no assignee, so "mine" does not narrow them
            narrow = mine and repo.entity_type != EntityType.CUSTOMER
            scope = self.query_scope.scope_filter(actor, repo.entity_type, Action.LIST, mine=narrow)
            by_status = repo.count_by_status(scope)
            summary[key] = {"total": sum(by_status.values()), "byStatus": by_status}

        summary["unreadNotifications"] = self.inapp_repo.get_unread_count(actor.id)
        return summary
