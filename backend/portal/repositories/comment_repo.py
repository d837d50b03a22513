"""Comment Repository - Data access for task and ticket comments"""
from typing import List, Optional
from pymongo import ASCENDING

from .base_repo import EntityRepository
from ..domain.models import Comment
from ..domain.enums import EntityType


class CommentRepository(EntityRepository[Comment]):
    """Repository for comment operations (no update path: comments are immutable)"""

    collection_name = "comments"
    model = Comment
    entity_type = EntityType.COMMENT

    def list_for_parent(
        self,
        task_id: Optional[str] = None,
        ticket_id: Optional[str] = None
    ) -> List[Comment]:
        """Comments of one task or ticket, oldest first"""
        query = {"task_id": task_id} if task_id else {"ticket_id": ticket_id}
        cursor = self._collection.find(query).sort(
            [("created_at", ASCENDING), ("id", ASCENDING)]
        )
        return [self._to_model(doc) for doc in cursor]

    def get_for_parent(
        self,
        comment_id: str,
        task_id: Optional[str] = None,
        ticket_id: Optional[str] = None
    ) -> Optional[Comment]:
        query = {"id": comment_id}
        if task_id:
            query["task_id"] = task_id
        else:
            query["ticket_id"] = ticket_id
        doc = self._collection.find_one(query)
        return self._to_model(doc) if doc else None
