"""Project Service - Project lifecycle, assignment and cascade delete"""
import re
from typing import Any, Dict, List, Optional, Tuple

from .base_service import EntityService
from ..domain.models import Project, Principal, Pagination
from ..domain.inputs import ProjectCreate, ProjectUpdate, QuickAssign
from ..domain.enums import Action, AuditAction, EntityType
from ..domain.errors import ValidationError
from ..engine.dispatcher import assignment_intent
from ..repositories.customer_repo import CustomerRepository
from ..repositories.project_repo import ProjectRepository
from ..repositories.cascade import CascadeDeleter, CascadeResult
from ..utils.idgen import generate_entity_id
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ProjectService(EntityService):
    """Service for project operations"""

    def __init__(self):
        super().__init__()
        self.repo = ProjectRepository()
        self.customer_repo = CustomerRepository()
        self.cascade = CascadeDeleter()

    def list_projects(
        self,
        actor: Principal,
        status: Optional[str] = None,
        customer_id: Optional[str] = None,
        search: Optional[str] = None,
        mine: bool = False,
        page: int = 1,
        limit: int = 20,
        sort_by: Optional[str] = None,
        sort_order: str = "desc"
    ) -> Tuple[List[Project], Pagination]:
        filters: Dict[str, Any] = {}
        if status:
            filters["status"] = status
        if customer_id:
            filters["customer_id"] = customer_id
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            filters["$or"] = [{"name": pattern}, {"code": pattern}]
        return self._page(actor, self.repo, filters, page, limit, sort_by, sort_order, mine)

    def get_project(self, actor: Principal, project_id: str) -> Project:
        return self._load(actor, self.repo, project_id)

    def create_project(self, actor: Principal, data: ProjectCreate) -> Project:
        """Create a project under an existing customer (status defaults to PLANNING)"""
        self.guard.require(actor, Action.CREATE, EntityType.PROJECT)
        if not self.customer_repo.exists(data.customer_id):
            raise ValidationError(
                f"Customer {data.customer_id} does not exist",
                details={"customer_id": data.customer_id}
            )
        self._require_record(actor, Action.CREATE, EntityType.PROJECT, customer_id=data.customer_id)

        assignee = self._validate_assignee(data.assignee_id)
        now = self._now()
        values = self._normalize(data.model_dump(exclude={"departments"}))
        project = Project(
            id=generate_entity_id("project"),
            **values,
            departments=self._departments(data.departments, assignee),
            created_by=actor.id,
            created_at=now,
            updated_at=now
        )
        self.repo.insert(project)

        self.dispatcher.dispatch(
            AuditAction.CREATE, EntityType.PROJECT, project.id, actor,
            changes={"name": project.name, "customer_id": project.customer_id, "status": project.status},
            intents=[assignment_intent(EntityType.PROJECT, project, actor)]
        )
        return project

    def update_project(self, actor: Principal, project_id: str, data: ProjectUpdate) -> Project:
        """Edit whitelisted fields; status changes follow the project lifecycle"""
        project = self._load(actor, self.repo, project_id, Action.UPDATE)

        updates = self._normalize(data.changes())
        self._reject_nulls(updates, ("code", "name", "status", "tags", "departments"))
        self._check_status(actor, EntityType.PROJECT, project, updates)
        if updates.get("assignee_id"):
            self._validate_assignee(updates["assignee_id"])

        updated, diff = self._commit_update(self.repo, project, updates)
        self.dispatcher.dispatch(
            AuditAction.UPDATE, EntityType.PROJECT, project_id, actor,
            changes=diff,
            intents=[assignment_intent(EntityType.PROJECT, updated, actor)] if "assignee_id" in diff else []
        )
        return updated

    def assign_project(self, actor: Principal, project_id: str, data: QuickAssign) -> Project:
        """Quick assign: change only the assignee (None unassigns)"""
        project = self._load(actor, self.repo, project_id, Action.UPDATE)
        self._validate_assignee(data.assignee_id)

        updated, diff = self._commit_update(self.repo, project, {"assignee_id": data.assignee_id})
        self.dispatcher.dispatch(
            AuditAction.UPDATE, EntityType.PROJECT, project_id, actor,
            changes=diff,
            intents=[assignment_intent(EntityType.PROJECT, updated, actor)] if diff else []
        )
        return updated

    def delete_project(self, actor: Principal, project_id: str) -> CascadeResult:
        """Delete a project with its tasks, subtasks, tickets and comments"""
        self._load(actor, self.repo, project_id, Action.DELETE)

        result = self.cascade.delete(EntityType.PROJECT, project_id)
        self.dispatcher.dispatch(
            AuditAction.DELETE, EntityType.PROJECT, project_id, actor,
            changes={"deleted": result.deleted}
        )
        return result
