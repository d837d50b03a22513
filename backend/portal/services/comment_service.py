"""Comment Service - Immutable comments on tasks and tickets"""
from typing import List, Optional, Tuple, Union

from .base_service import EntityService
from ..domain.models import Comment, Principal, Task, Ticket
from ..domain.inputs import CommentCreate
from ..domain.enums import Action, AuditAction, EntityType
from ..domain.errors import NotFoundError
from ..engine.dispatcher import comment_intents
from ..engine.permission_guard import EntityScope
from ..repositories.comment_repo import CommentRepository
from ..repositories.task_repo import TaskRepository
from ..repositories.ticket_repo import TicketRepository
from ..utils.idgen import generate_entity_id
from ..utils.logger import get_logger

logger = get_logger(__name__)


class CommentService(EntityService):
    """
    Service for comment operations

    Comments are readable by whoever can read the parent. They are never
    edited; the author or an ADMIN may delete one.
    """

    def __init__(self):
        super().__init__()
        self.repo = CommentRepository()
        self.parent_repos = {
            EntityType.TASK: TaskRepository(),
            EntityType.TICKET: TicketRepository(),
        }

    def _load_parent(self, actor: Principal, parent_type: EntityType, parent_id: str) -> Union[Task, Ticket]:
        if parent_type not in self.parent_repos:
            raise ValueError(f"Comments are not supported on {parent_type.value}")
        return self._load(actor, self.parent_repos[parent_type], parent_id)

    @staticmethod
    def _parent_keys(parent_type: EntityType, parent_id: str) -> Tuple[Optional[str], Optional[str]]:
        if parent_type == EntityType.TASK:
            return parent_id, None
        return None, parent_id

    def list_comments(self, actor: Principal, parent_type: EntityType, parent_id: str) -> List[Comment]:
        """Comments of a parent, oldest first"""
        parent = self._load_parent(actor, parent_type, parent_id)
        self.guard.require(actor, Action.LIST, EntityType.COMMENT, EntityScope(customer_id=parent.customer_id))

        task_id, ticket_id = self._parent_keys(parent_type, parent_id)
        return self.repo.list_for_parent(task_id=task_id, ticket_id=ticket_id)

    def add_comment(
        self,
        actor: Principal,
        parent_type: EntityType,
        parent_id: str,
        data: CommentCreate
    ) -> Comment:
        """Add a comment and notify the parent's reporter and assignee"""
        self.guard.require(actor, Action.CREATE, EntityType.COMMENT)
        parent = self._load_parent(actor, parent_type, parent_id)
        self._require_record(actor, Action.CREATE, EntityType.COMMENT, customer_id=parent.customer_id)

        task_id, ticket_id = self._parent_keys(parent_type, parent_id)
        now = self._now()
        comment = Comment(
            id=generate_entity_id("comment"),
            content=data.content,
            task_id=task_id,
            ticket_id=ticket_id,
            customer_id=parent.customer_id,
            author_id=actor.id,
            author_name=actor.name or actor.email,
            author_kind=actor.kind,
            created_at=now,
            updated_at=now
        )
        self.repo.insert(comment)

        self.dispatcher.dispatch(
            AuditAction.CREATE, EntityType.COMMENT, comment.id, actor,
            changes={"parent_type": parent_type.value, "parent_id": parent_id},
            intents=comment_intents(parent_type, parent, comment.content, actor)
        )
        return comment

    def delete_comment(
        self,
        actor: Principal,
        parent_type: EntityType,
        parent_id: str,
        comment_id: str
    ) -> None:
        """Delete one comment (author or ADMIN only)"""
        self.guard.require(actor, Action.DELETE, EntityType.COMMENT)
        self._load_parent(actor, parent_type, parent_id)

        task_id, ticket_id = self._parent_keys(parent_type, parent_id)
        comment = self.repo.get_for_parent(comment_id, task_id=task_id, ticket_id=ticket_id)
        if comment is None:
            raise NotFoundError(EntityType.COMMENT.value, comment_id)
        self.guard.require(actor, Action.DELETE, EntityType.COMMENT, EntityScope.of(comment))

        self.repo.delete(comment_id)
        self.dispatcher.dispatch(
            AuditAction.DELETE, EntityType.COMMENT, comment_id, actor,
            changes={"parent_type": parent_type.value, "parent_id": parent_id}
        )
