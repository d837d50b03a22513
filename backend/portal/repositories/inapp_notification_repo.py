"""In-App Notification Repository - Data access for the notification bell"""
from typing import Any, Dict, List, Optional, Tuple
from pymongo.collection import Collection
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection
from ..domain.models import Notification
from ..domain.enums import NotificationType
from ..domain.errors import NotFoundError
from ..utils.logger import get_logger
from ..utils.time import utc_now
from ..utils.idgen import generate_entity_id

logger = get_logger(__name__)


class InAppNotificationRepository:
    """Repository for in-app notification operations. The only mutation is marking read."""

    COLLECTION_NAME = "notifications"

    def __init__(self):
        self._collection: Collection = get_collection(self.COLLECTION_NAME)

    def create_notification(
        self,
        user_id: str,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        action_url: Optional[str] = None,
        dedup_key: Optional[str] = None,
        notification_id: Optional[str] = None
    ) -> Notification:
        """
        Create a new in-app notification

        With an explicit `notification_id` the call is idempotent: a second
        create with the same id leaves the first one in place.
        """
        notification = Notification(
            id=notification_id or generate_entity_id("notification"),
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            read=False,
            action_url=action_url,
            timestamp=utc_now(),
            dedup_key=dedup_key
        )

        doc = notification.to_document()
        doc["_id"] = notification.id
        try:
            self._collection.insert_one(doc)
        except DuplicateKeyError:
            logger.debug(f"In-app notification {notification.id} already exists")
            return notification

        logger.info(
            f"Created in-app notification for {user_id}",
            extra={"notification_id": notification.id, "user_id": user_id}
        )
        return notification

    def exists_with_key(self, dedup_key: str, exclude_id: Optional[str] = None) -> bool:
        """Whether a reminder with this key was already issued (other than `exclude_id`)"""
        query: Dict[str, Any] = {"dedup_key": dedup_key}
        if exclude_id:
            query["id"] = {"$ne": exclude_id}
        return self._collection.find_one(query, {"_id": 1}) is not None

    def get_notifications_for_user(
        self,
        user_id: str,
        skip: int = 0,
        limit: int = 20,
        unread_only: bool = False
    ) -> Tuple[List[Notification], int]:
        """Get notifications for a user, newest first, with the total count"""
        query: Dict[str, Any] = {"user_id": user_id}
        if unread_only:
            query["read"] = False

        total = self._collection.count_documents(query)
        cursor = self._collection.find(query).sort("timestamp", DESCENDING).skip(skip).limit(limit)

        notifications = []
        for doc in cursor:
            doc.pop("_id", None)
            notifications.append(Notification.model_validate(doc))
        return notifications, total

    def get_unread_count(self, user_id: str) -> int:
        """Get count of unread notifications for a user"""
        return self._collection.count_documents({"user_id": user_id, "read": False})

    def mark_as_read(self, notification_id: str, user_id: str) -> Notification:
        """Mark one of the user's notifications as read"""
        result = self._collection.find_one_and_update(
            {"id": notification_id, "user_id": user_id},
            {"$set": {"read": True, "read_at": utc_now()}},
            return_document=ReturnDocument.AFTER
        )

        # Someone else's notification looks exactly like a missing one
        if result is None:
            raise NotFoundError("NOTIFICATION", notification_id)

        result.pop("_id", None)
        return Notification.model_validate(result)

    def mark_all_as_read(self, user_id: str) -> int:
        """Mark all notifications as read for a user. Returns count of updated."""
        result = self._collection.update_many(
            {"user_id": user_id, "read": False},
            {"$set": {"read": True, "read_at": utc_now()}}
        )
        logger.info(
            f"Marked {result.modified_count} notifications as read",
            extra={"user_id": user_id}
        )
        return result.modified_count
