"""Ticket Service - Support tickets, status lifecycle and assignment"""
import re
from typing import Any, Dict, List, Optional, Tuple

from .base_service import EntityService
from ..domain.models import Ticket, Principal, Pagination
from ..domain.inputs import TicketCreate, TicketUpdate, QuickAssign
from ..domain.enums import Action, AuditAction, EntityType
from ..domain.errors import ValidationError
from ..engine.dispatcher import assignment_intent, ticket_status_intents
from ..repositories.ticket_repo import TicketRepository
from ..repositories.project_repo import ProjectRepository
from ..repositories.customer_repo import CustomerRepository
from ..repositories.cascade import CascadeDeleter, CascadeResult
from ..utils.idgen import generate_entity_id
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TicketService(EntityService):
    """
    Service for ticket operations

    A ticket's customer comes from its project when it has one. Consumers
    always open tickets for their own customer and cannot pick an assignee.
    """

    def __init__(self):
        super().__init__()
        self.repo = TicketRepository()
        self.project_repo = ProjectRepository()
        self.customer_repo = CustomerRepository()
        self.cascade = CascadeDeleter()

    def list_tickets(
        self,
        actor: Principal,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        type: Optional[str] = None,
        project_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        assignee_id: Optional[str] = None,
        department: Optional[str] = None,
        search: Optional[str] = None,
        mine: bool = False,
        page: int = 1,
        limit: int = 20,
        sort_by: Optional[str] = None,
        sort_order: str = "desc"
    ) -> Tuple[List[Ticket], Pagination]:
        filters: Dict[str, Any] = {}
        if status:
            filters["status"] = status
        if priority:
            filters["priority"] = priority
        if type:
            filters["type"] = type
        if project_id:
            filters["project_id"] = project_id
        if customer_id:
            filters["customer_id"] = customer_id
        if assignee_id:
            filters["assignee_id"] = assignee_id
        if department:
            filters["departments"] = department
        if search:
            filters["title"] = {"$regex": re.escape(search), "$options": "i"}
        return self._page(actor, self.repo, filters, page, limit, sort_by, sort_order, mine)

    def get_ticket(self, actor: Principal, ticket_id: str) -> Ticket:
        return self._load(actor, self.repo, ticket_id)

    def create_ticket(self, actor: Principal, data: TicketCreate) -> Ticket:
        """Open a ticket (status defaults to OPEN)"""
        self.guard.require(actor, Action.CREATE, EntityType.TICKET)

        customer_id = self._resolve_customer(actor, data)
        self._require_record(actor, Action.CREATE, EntityType.TICKET, customer_id=customer_id)

        assignee_id = None if actor.is_consumer else data.assignee_id
        reporter_id = actor.id if actor.is_consumer else (data.reporter_id or actor.id)
        assignee = self._validate_assignee(assignee_id)

        now = self._now()
        values = self._normalize(data.model_dump(
            exclude={"departments", "customer_id", "assignee_id", "reporter_id"}
        ))
        ticket = Ticket(
            id=generate_entity_id("ticket"),
            **values,
            customer_id=customer_id,
            assignee_id=assignee_id,
            reporter_id=reporter_id,
            departments=self._departments(data.departments, assignee),
            created_by=actor.id,
            created_at=now,
            updated_at=now
        )
        self.repo.insert(ticket)

        self.dispatcher.dispatch(
            AuditAction.CREATE, EntityType.TICKET, ticket.id, actor,
            changes={"title": ticket.title, "customer_id": ticket.customer_id, "project_id": ticket.project_id},
            intents=[assignment_intent(EntityType.TICKET, ticket, actor)]
        )
        return ticket

    def update_ticket(self, actor: Principal, ticket_id: str, data: TicketUpdate) -> Ticket:
        """Edit whitelisted fields; status changes follow the ticket lifecycle"""
        ticket = self._load(actor, self.repo, ticket_id, Action.UPDATE)

        updates = self._normalize(data.changes())
        self._reject_nulls(updates, ("title", "status", "priority", "type", "tags", "departments"))
        self._check_status(actor, EntityType.TICKET, ticket, updates)
        if updates.get("assignee_id"):
            self._validate_assignee(updates["assignee_id"])

        updated, diff = self._commit_update(self.repo, ticket, updates)

        intents = []
        if "assignee_id" in diff:
            intents.append(assignment_intent(EntityType.TICKET, updated, actor))
        if "status" in diff:
            intents.extend(ticket_status_intents(updated, ticket.status, actor))

        self.dispatcher.dispatch(
            AuditAction.UPDATE, EntityType.TICKET, ticket_id, actor, changes=diff, intents=intents
        )
        return updated

    def assign_ticket(self, actor: Principal, ticket_id: str, data: QuickAssign) -> Ticket:
        """Quick assign: change only the assignee (None unassigns)"""
        ticket = self._load(actor, self.repo, ticket_id, Action.UPDATE)
        self._validate_assignee(data.assignee_id)

        updated, diff = self._commit_update(self.repo, ticket, {"assignee_id": data.assignee_id})
        self.dispatcher.dispatch(
            AuditAction.UPDATE, EntityType.TICKET, ticket_id, actor,
            changes=diff,
            intents=[assignment_intent(EntityType.TICKET, updated, actor)] if diff else []
        )
        return updated

    def delete_ticket(self, actor: Principal, ticket_id: str) -> CascadeResult:
        """Delete a ticket and its comments"""
        self._load(actor, self.repo, ticket_id, Action.DELETE)

        result = self.cascade.delete(EntityType.TICKET, ticket_id)
        self.dispatcher.dispatch(
            AuditAction.DELETE, EntityType.TICKET, ticket_id, actor,
            changes={"deleted": result.deleted}
        )
        return result

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve_customer(self, actor: Principal, data: TicketCreate) -> Optional[str]:
        """Owning customer: the project's, the consumer's own, or the given one"""
        if data.project_id:
            if actor.is_consumer:
                # Another customer's project must look exactly like a missing one
                scope = self.query_scope.scope_filter(actor, EntityType.PROJECT, Action.READ)
                project = self.project_repo.get_scoped(data.project_id, scope)
            else:
                project = self.project_repo.get_by_id(data.project_id)
                if project is None:
                    raise ValidationError(
                        f"Project {data.project_id} does not exist",
                        details={"project_id": data.project_id}
                    )
            if data.customer_id and data.customer_id != project.customer_id:
                raise ValidationError(
                    "Ticket customer does not match the project's customer",
                    details={"project_id": project.id, "customer_id": data.customer_id}
                )
            return project.customer_id

        if actor.is_consumer:
            return actor.customer_id

        if data.customer_id and not self.customer_repo.exists(data.customer_id):
            raise ValidationError(
                f"Customer {data.customer_id} does not exist",
                details={"customer_id": data.customer_id}
            )
        return data.customer_id
