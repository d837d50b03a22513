"""Task Service - Tasks, one level of subtasks, assignment and cascade delete"""
import re
from typing import Any, Dict, List, Optional, Tuple

from .base_service import EntityService
from ..domain.models import Task, Principal, Pagination
from ..domain.inputs import TaskCreate, TaskUpdate, QuickAssign
from ..domain.enums import Action, AuditAction, EntityType
from ..domain.errors import ValidationError
from ..engine.dispatcher import assignment_intent
from ..repositories.task_repo import TaskRepository
from ..repositories.project_repo import ProjectRepository
from ..repositories.cascade import CascadeDeleter, CascadeResult
from ..utils.idgen import generate_entity_id
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TaskService(EntityService):
    """
    Service for task operations

    A subtask is a task with parent_task_id set. It always lives in its
    parent's project, and its parent may not itself be a subtask.
    """

    def __init__(self):
        super().__init__()
        self.repo = TaskRepository()
        self.project_repo = ProjectRepository()
        self.cascade = CascadeDeleter()

    # =========================================================================
    # Queries
    # =========================================================================

    def list_tasks(
        self,
        actor: Principal,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        project_id: Optional[str] = None,
        assignee_id: Optional[str] = None,
        search: Optional[str] = None,
        include_subtasks: bool = False,
        mine: bool = False,
        page: int = 1,
        limit: int = 20,
        sort_by: Optional[str] = None,
        sort_order: str = "desc"
    ) -> Tuple[List[Task], Pagination]:
        filters: Dict[str, Any] = {}
        if status:
            filters["status"] = status
        if priority:
            filters["priority"] = priority
        if project_id:
            filters["project_id"] = project_id
        if assignee_id:
            filters["assignee_id"] = assignee_id
        if not include_subtasks:
            filters["parent_task_id"] = None
        if search:
            filters["title"] = {"$regex": re.escape(search), "$options": "i"}
        return self._page(actor, self.repo, filters, page, limit, sort_by, sort_order, mine)

    def get_task(self, actor: Principal, task_id: str) -> Task:
        return self._load(actor, self.repo, task_id)

    def list_subtasks(self, actor: Principal, task_id: str) -> List[Task]:
        """Subtasks of a task the actor can read, filtered to the actor's scope"""
        self._load(actor, self.repo, task_id)
        items, _ = self._page(
            actor, self.repo, {"parent_task_id": task_id},
            page=1, limit=500, sort_by="created_at", sort_order="asc"
        )
        return items

    # =========================================================================
    # Mutations
    # =========================================================================

    def create_task(self, actor: Principal, data: TaskCreate, parent_task_id: Optional[str] = None) -> Task:
        """
        Create a task or, with a parent, a subtask.

        Raises:
            ValidationError: Missing project, unknown project, or a subtask parent
            NotFoundError: Parent task missing or outside the actor's scope
        """
        self.guard.require(actor, Action.CREATE, EntityType.TASK)

        parent_task_id = parent_task_id or data.parent_task_id
        if parent_task_id:
            parent = self._load(actor, self.repo, parent_task_id)
            if parent.is_subtask:
                raise ValidationError(
                    "Subtasks cannot have subtasks",
                    details={"parent_task_id": parent_task_id}
                )
            if data.project_id and data.project_id != parent.project_id:
                raise ValidationError(
                    "A subtask must belong to its parent's project",
                    details={"project_id": data.project_id, "parent_task_id": parent_task_id}
                )
            project_id, customer_id = parent.project_id, parent.customer_id
        else:
            if not data.project_id:
                raise ValidationError("projectId is required", details={"field": "project_id"})
            project = self.project_repo.get_by_id(data.project_id)
            if project is None:
                raise ValidationError(
                    f"Project {data.project_id} does not exist",
                    details={"project_id": data.project_id}
                )
            project_id, customer_id = project.id, project.customer_id

        self._require_record(actor, Action.CREATE, EntityType.TASK, customer_id=customer_id)
        assignee = self._validate_assignee(data.assignee_id)

        now = self._now()
        values = self._normalize(data.model_dump(exclude={"departments", "project_id", "parent_task_id", "reporter_id"}))
        task = Task(
            id=generate_entity_id("task"),
            **values,
            project_id=project_id,
            customer_id=customer_id,
            parent_task_id=parent_task_id,
            reporter_id=data.reporter_id or actor.id,
            departments=self._departments(data.departments, assignee),
            created_by=actor.id,
            created_at=now,
            updated_at=now
        )
        self.repo.insert(task)

        self.dispatcher.dispatch(
            AuditAction.CREATE, EntityType.TASK, task.id, actor,
            changes={"title": task.title, "project_id": task.project_id, "parent_task_id": task.parent_task_id},
            intents=[assignment_intent(EntityType.TASK, task, actor)]
        )
        return task

    def update_task(self, actor: Principal, task_id: str, data: TaskUpdate) -> Task:
        """Edit whitelisted fields; status changes follow the task lifecycle"""
        task = self._load(actor, self.repo, task_id, Action.UPDATE)

        updates = self._normalize(data.changes())
        self._reject_nulls(updates, ("title", "status", "priority", "departments"))
        self._check_status(actor, EntityType.TASK, task, updates)
        if updates.get("assignee_id"):
            self._validate_assignee(updates["assignee_id"])

        updated, diff = self._commit_update(self.repo, task, updates)
        self.dispatcher.dispatch(
            AuditAction.UPDATE, EntityType.TASK, task_id, actor,
            changes=diff,
            intents=[assignment_intent(EntityType.TASK, updated, actor)] if "assignee_id" in diff else []
        )
        return updated

    def assign_task(self, actor: Principal, task_id: str, data: QuickAssign) -> Task:
        """Quick assign: change only the assignee (None unassigns)"""
        task = self._load(actor, self.repo, task_id, Action.UPDATE)
        self._validate_assignee(data.assignee_id)

        updated, diff = self._commit_update(self.repo, task, {"assignee_id": data.assignee_id})
        self.dispatcher.dispatch(
            AuditAction.UPDATE, EntityType.TASK, task_id, actor,
            changes=diff,
            intents=[assignment_intent(EntityType.TASK, updated, actor)] if diff else []
        )
        return updated

    def delete_task(self, actor: Principal, task_id: str) -> CascadeResult:
        """Delete a task with its subtasks and every comment on them"""
        self._load(actor, self.repo, task_id, Action.DELETE)

        result = self.cascade.delete(EntityType.TASK, task_id)
        self.dispatcher.dispatch(
            AuditAction.DELETE, EntityType.TASK, task_id, actor,
            changes={"deleted": result.deleted}
        )
        return result
