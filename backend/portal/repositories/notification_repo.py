"""Notification Repository - The email outbox"""
from typing import List, Optional

from .outbox_queue import OutboxQueue
from ..domain.models import NotificationOutbox
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationRepository(OutboxQueue[NotificationOutbox]):
    """Emails waiting for SMTP delivery; `sent_at` is set once delivered"""

    collection_name = "notification_outbox"
    model = NotificationOutbox
    item_label = "email"
    done_field = "sent_at"

    def create_notification(self, notification: NotificationOutbox) -> NotificationOutbox:
        return self.enqueue(notification)

    def get_notification(self, notification_id: str) -> Optional[NotificationOutbox]:
        return self.get(notification_id)

    def get_pending_notifications(self, limit: int = 100) -> List[NotificationOutbox]:
        return self.get_pending(limit)

    def mark_sent(self, notification_id: str) -> NotificationOutbox:
        notification = self.mark_done(notification_id)
        logger.info(f"Notification sent: {notification_id}", extra={"notification_id": notification_id})
        return notification
