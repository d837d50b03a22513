"""Task Repository - Data access for tasks and subtasks"""
from datetime import datetime
from typing import List
from pymongo import ASCENDING

from .base_repo import EntityRepository
from ..domain.models import Task
from ..domain.enums import EntityType, TaskStatus


class TaskRepository(EntityRepository[Task]):
    """Repository for task operations (subtasks live in the same collection)"""

    collection_name = "tasks"
    model = Task
    entity_type = EntityType.TASK
    sort_fields = ("created_at", "updated_at", "title", "status", "priority", "due_date")

    def list_subtasks(self, parent_task_id: str) -> List[Task]:
        """Subtasks of a parent, oldest first"""
        cursor = self._collection.find({"parent_task_id": parent_task_id}).sort(
            [("created_at", ASCENDING), ("id", ASCENDING)]
        )
        return [self._to_model(doc) for doc in cursor]

    def find_open_due_between(self, start: datetime, end: datetime) -> List[Task]:
        """
        Assigned, unfinished tasks with a due date in [start, end).

        Used by the deadline reminder job.
        """
        cursor = self._collection.find({
            "due_date": {"$gte": start, "$lt": end},
            "status": {"$nin": [TaskStatus.DONE.value, TaskStatus.CANCELLED.value]},
            "assignee_id": {"$ne": None},
        })
        return [self._to_model(doc) for doc in cursor]
