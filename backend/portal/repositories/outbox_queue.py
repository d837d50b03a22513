"""Outbox Queue - Lockable retry queue on top of a MongoDB collection

Shared by the email outbox and the side-effect retry queue. Each item is
locked with one atomic find-and-modify before it is worked on, so several
servers can drain the same queue. Failed attempts back off exponentially
(1, 2, 4, 8... minutes) until `notification_max_retries`, then the item is
parked as FAILED.
"""
from datetime import timedelta
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
from pymongo import ASCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from .mongo_client import get_collection
from ..config.settings import settings
from ..domain.enums import NotificationStatus
from ..domain.errors import NotFoundError
from ..domain.models import DomainModel
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)

Q = TypeVar("Q", bound=DomainModel)

UNLOCKED = {"locked_until": None, "locked_by": None, "lock_acquired_at": None}


def _lock_free(now) -> Dict[str, Any]:
    return {"$or": [{"locked_until": {"$lte": now}}, {"locked_until": None}]}


class OutboxQueue(Generic[Q]):
    """Base repository for one retry queue collection"""

    collection_name: str
    model: Type[Q]
    item_label: str
    # Timestamp set when an item reaches its done state
    done_field: str

    def __init__(self):
        self._queue: Collection = get_collection(self.collection_name)

    def _to_model(self, doc: Dict[str, Any]) -> Q:
        doc.pop("_id", None)
        return self.model.model_validate(doc)

    def enqueue(self, item: Q) -> Q:
        """Queue an item. Enqueueing the same id twice is a no-op."""
        doc = item.to_document()
        doc["_id"] = item.id
        try:
            self._queue.insert_one(doc)
        except DuplicateKeyError:
            logger.debug(f"{self.item_label} {item.id} already queued")
            return item

        logger.info(f"Queued {self.item_label} {item.id}", extra={"queue_item_id": item.id})
        return item

    def get(self, item_id: str) -> Optional[Q]:
        doc = self._queue.find_one({"id": item_id})
        return self._to_model(doc) if doc else None

    def get_pending(self, limit: int = 100) -> List[Q]:
        """
        Items ready for an attempt: PENDING, not locked (or lock expired),
        and past their backoff.
        """
        now = utc_now()
        try:
            cursor = self._queue.find({
                "status": NotificationStatus.PENDING.value,
                "$and": [
                    {"$or": [{"next_retry_at": {"$lte": now}}, {"next_retry_at": None}]},
                    _lock_free(now)
                ]
            }).sort("created_at", ASCENDING).limit(limit)
            return [self._to_model(doc) for doc in cursor]

        except PyMongoError as e:
            logger.error(
                f"Database error fetching pending {self.item_label}s: {e}",
                extra={"error_code": type(e).__name__}
            )
            return []

    def acquire_lock(self, item_id: str, lock_by: str, lock_duration_seconds: int = 60) -> bool:
        """Lock a PENDING item for `lock_by`; False when someone else holds it"""
        now = utc_now()
        try:
            result = self._queue.find_one_and_update(
                {"id": item_id, "status": NotificationStatus.PENDING.value, **_lock_free(now)},
                {"$set": {
                    "locked_until": now + timedelta(seconds=lock_duration_seconds),
                    "locked_by": lock_by,
                    "lock_acquired_at": now
                }},
                return_document=ReturnDocument.BEFORE
            )
            return result is not None

        except PyMongoError as e:
            logger.error(
                f"Database error locking {self.item_label} {item_id}: {e}",
                extra={"queue_item_id": item_id}
            )
            return False

    def release_lock(self, item_id: str, lock_by: Optional[str] = None) -> bool:
        """Release the lock, optionally only if held by `lock_by`"""
        query = {"id": item_id}
        if lock_by:
            query["locked_by"] = lock_by
        try:
            return self._queue.update_one(query, {"$set": UNLOCKED}).modified_count > 0
        except PyMongoError as e:
            logger.error(
                f"Database error releasing {self.item_label} {item_id}: {e}",
                extra={"queue_item_id": item_id}
            )
            return False

    def cleanup_stale_locks(self, max_lock_age_minutes: int = 10) -> int:
        """Clear locks left behind by crashed workers"""
        cutoff = utc_now() - timedelta(minutes=max_lock_age_minutes)
        try:
            result = self._queue.update_many(
                {"locked_until": {"$lte": cutoff}, "locked_by": {"$ne": None}},
                {"$set": UNLOCKED}
            )
        except PyMongoError as e:
            logger.error(f"Error cleaning up stale {self.item_label} locks: {e}")
            return 0

        if result.modified_count:
            logger.warning(f"Cleaned up {result.modified_count} stale {self.item_label} locks")
        return result.modified_count

    def mark_done(self, item_id: str) -> Q:
        result = self._queue.find_one_and_update(
            {"id": item_id},
            {"$set": {"status": NotificationStatus.SENT.value, self.done_field: utc_now(), **UNLOCKED}},
            return_document=ReturnDocument.AFTER
        )
        if result is None:
            raise NotFoundError(self.item_label.upper(), item_id)
        return self._to_model(result)

    def mark_failed(self, item_id: str, error: str) -> Q:
        """Record a failed attempt: back off, or give up after the retry budget"""
        item = self.get(item_id)
        if item is None:
            raise NotFoundError(self.item_label.upper(), item_id)

        retry_count = item.retry_count + 1
        if retry_count >= settings.notification_max_retries:
            status, next_retry = NotificationStatus.FAILED.value, None
        else:
            status = NotificationStatus.PENDING.value
            next_retry = utc_now() + timedelta(minutes=2 ** item.retry_count)

        result = self._queue.find_one_and_update(
            {"id": item_id},
            {"$set": {
                "status": status,
                "retry_count": retry_count,
                "last_error": error[:500],
                "next_retry_at": next_retry,
                **UNLOCKED
            }},
            return_document=ReturnDocument.AFTER
        )
        logger.warning(
            f"{self.item_label.capitalize()} {item_id} failed (attempt {retry_count})",
            extra={"queue_item_id": item_id, "status": status}
        )
        return self._to_model(result)

    def count_by_status(self) -> Dict[str, int]:
        pipeline = [{"$group": {"_id": "$status", "count": {"$sum": 1}}}]
        return {doc["_id"]: doc["count"] for doc in self._queue.aggregate(pipeline)}
