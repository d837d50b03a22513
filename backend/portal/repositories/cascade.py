"""Cascade Deleter - Dependency-ordered deletes executed as one unit

A delete is planned as an ordered list of steps:

    comments -> subtasks -> tasks / tickets -> projects / consumer users -> customer

Each step deletes by parent key, so a child attached after the plan was built
still goes with its parent. With `mongo_use_transactions` the plan is built and
executed inside one multi-document transaction. Otherwise every step snapshots
what it is about to delete and all snapshots are restored if a later step
fails, so a partial cascade is never left behind.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from pymongo.client_session import ClientSession
from pymongo.errors import PyMongoError

from .mongo_client import get_client, get_collection
from ..config.settings import settings
from ..domain.enums import EntityType
from ..domain.errors import CascadeFailureError, NotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)

TOP_LEVEL = {"parent_task_id": None}
CHILD = {"parent_task_id": {"$ne": None}}


@dataclass
class CascadeStep:
    """Delete whatever matches `query` in one collection; no query means nothing to do"""
    label: str
    collection: str
    query: Optional[Dict[str, Any]]
    snapshot: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class CascadeResult:
    """What a committed cascade removed, per step label"""
    entity_type: EntityType
    entity_id: str
    deleted: Dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.deleted.values())


class CascadeDeleter:
    """Plans and executes cascading deletes"""

    # =========================================================================
    # Planning
    # =========================================================================

    def _ids(self, collection: str, query: Dict[str, Any], session: Optional[ClientSession] = None) -> List[str]:
        return [doc["id"] for doc in get_collection(collection).find(query, {"id": 1}, session=session)]

    def _comment_step(self, task_ids: List[str], ticket_ids: List[str]) -> CascadeStep:
        clauses = []
        if task_ids:
            clauses.append({"task_id": {"$in": task_ids}})
        if ticket_ids:
            clauses.append({"ticket_id": {"$in": ticket_ids}})
        return CascadeStep("comments", "comments", {"$or": clauses} if clauses else None)

    def _work_item_steps(
        self,
        task_query: Dict[str, Any],
        ticket_query: Optional[Dict[str, Any]],
        session: Optional[ClientSession] = None
    ) -> List[CascadeStep]:
        """Comments, subtasks, tasks and tickets matched by the given filters"""
        top_task_ids = self._ids("tasks", {"$and": [task_query, TOP_LEVEL]}, session)
        # Subtasks matched directly or through a matched parent
        subtask_query = {"$or": [{"$and": [task_query, CHILD]}, {"parent_task_id": {"$in": top_task_ids}}]}
        subtask_ids = self._ids("tasks", subtask_query, session)
        ticket_ids = self._ids("tickets", ticket_query, session) if ticket_query else []

        return [
            self._comment_step(top_task_ids + subtask_ids, ticket_ids),
            CascadeStep("subtasks", "tasks", subtask_query),
            CascadeStep("tasks", "tasks", {"$and": [task_query, TOP_LEVEL]}),
            CascadeStep("tickets", "tickets", ticket_query),
        ]

    def plan(self, entity_type: EntityType, entity_id: str, session: Optional[ClientSession] = None) -> List[CascadeStep]:
        """Build the ordered delete plan for an entity"""
        def require(collection: str) -> None:
            if not self._ids(collection, {"id": entity_id}, session):
                raise NotFoundError(entity_type.value, entity_id)

        if entity_type == EntityType.TASK:
            require("tasks")
            # A subtask root lands in the "subtasks" step with nothing below it
            steps = self._work_item_steps({"id": entity_id}, None, session)
            return [s for s in steps if s.label != "tickets"]

        if entity_type == EntityType.TICKET:
            require("tickets")
            return [
                self._comment_step([], [entity_id]),
                CascadeStep("tickets", "tickets", {"id": entity_id}),
            ]

        if entity_type == EntityType.PROJECT:
            require("projects")
            steps = self._work_item_steps({"project_id": entity_id}, {"project_id": entity_id}, session)
            steps.append(CascadeStep("projects", "projects", {"id": entity_id}))
            return steps

        if entity_type == EntityType.CUSTOMER:
            require("customers")
            project_ids = self._ids("projects", {"customer_id": entity_id}, session)
            owned = {"$or": [{"project_id": {"$in": project_ids}}, {"customer_id": entity_id}]}
            steps = self._work_item_steps(owned, owned, session)
            steps.append(CascadeStep("projects", "projects", {"customer_id": entity_id}))
            steps.append(CascadeStep("consumer_users", "consumer_users", {"customer_id": entity_id}))
            steps.append(CascadeStep("customers", "customers", {"id": entity_id}))
            return steps

        raise ValueError(f"No cascade plan for {entity_type.value}")

    # =========================================================================
    # Execution
    # =========================================================================

    def delete(self, entity_type: EntityType, entity_id: str) -> CascadeResult:
        """
        Delete an entity and everything that depends on it.

        Raises:
            NotFoundError: If the root entity does not exist
            CascadeFailureError: If any step failed (nothing was kept)
        """
        result = CascadeResult(entity_type=entity_type, entity_id=entity_id)

        try:
            if settings.mongo_use_transactions:
                self._run_in_transaction(result)
            else:
                self._run_with_compensation(self.plan(entity_type, entity_id), result)
        except PyMongoError as e:
            logger.error(
                f"Cascade delete of {entity_type.value} {entity_id} failed: {e}",
                extra={"entity_type": entity_type.value, "entity_id": entity_id}
            )
            raise CascadeFailureError(entity_type.value, entity_id) from e

        logger.info(
            f"Cascade deleted {entity_type.value.lower()} {entity_id}",
            extra={"entity_type": entity_type.value, "entity_id": entity_id, "deleted": result.deleted}
        )
        return result

    def _delete_step(self, step: CascadeStep, session: Optional[ClientSession] = None) -> int:
        if step.query is None:
            return 0
        collection = get_collection(step.collection)
        if session is not None:
            outcome = collection.delete_many(step.query, session=session)
        else:
            outcome = collection.delete_many(step.query)
        return outcome.deleted_count

    def _run_in_transaction(self, result: CascadeResult) -> None:
        def callback(session: ClientSession) -> None:
            # Runs again from the top if the transaction is retried
            result.deleted.clear()
            for step in self.plan(result.entity_type, result.entity_id, session=session):
                result.deleted[step.label] = self._delete_step(step, session=session)

        with get_client().start_session() as session:
            session.with_transaction(callback)

    def _run_with_compensation(self, steps: List[CascadeStep], result: CascadeResult) -> None:
        executed: List[CascadeStep] = []
        try:
            for step in steps:
                if step.query is not None:
                    step.snapshot = list(get_collection(step.collection).find(step.query))
                executed.append(step)
                result.deleted[step.label] = self._delete_step(step)
        except PyMongoError:
            result.deleted.clear()
            self._restore(executed)
            raise

    def _restore(self, executed: List[CascadeStep]) -> None:
        """Put snapshotted documents back, owners first"""
        for step in reversed(executed):
            collection = get_collection(step.collection)
            for doc in step.snapshot:
                try:
                    collection.replace_one({"_id": doc["_id"]}, doc, upsert=True)
                except PyMongoError as e:
                    logger.critical(
                        f"Could not restore {step.collection} document {doc.get('id')}: {e}",
                        extra={"entity_id": doc.get("id")}
                    )
