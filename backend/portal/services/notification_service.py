"""Notification Service - In-app feed and outbox email delivery

Notifications are created by the side-effect dispatcher. This service serves
the bell feed to the owning user and sends queued emails for the scheduler.
"""
from typing import Any, Dict

from .email_sender import EmailSender
from ..domain.models import NotificationOutbox, Principal, Pagination
from ..domain.enums import Action, EntityType
from ..engine.permission_guard import PermissionGuard
from ..repositories.inapp_notification_repo import InAppNotificationRepository
from ..repositories.notification_repo import NotificationRepository
from ..templates import get_email_template
from ..config.settings import settings
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationService:
    """Service for notifications"""

    def __init__(self, email_sender: EmailSender = None):
        self.repo = NotificationRepository()
        self.inapp_repo = InAppNotificationRepository()
        self.guard = PermissionGuard()
        self.email_sender = email_sender or EmailSender()

    # =========================================================================
    # In-App Feed
    # =========================================================================

    def get_feed(
        self,
        actor: Principal,
        page: int = 1,
        limit: int = 20,
        unread_only: bool = False
    ) -> Dict[str, Any]:
        """The caller's own notifications, newest first, with unread count"""
        self.guard.require(actor, Action.LIST, EntityType.NOTIFICATION)

        notifications, total = self.inapp_repo.get_notifications_for_user(
            actor.id,
            skip=(page - 1) * limit,
            limit=limit,
            unread_only=unread_only
        )
        return {
            "notifications": [n.to_api() for n in notifications],
            "unreadCount": self.inapp_repo.get_unread_count(actor.id),
            "pagination": Pagination.build(page, limit, total).model_dump(),
        }

    def get_unread_count(self, actor: Principal) -> int:
        self.guard.require(actor, Action.READ, EntityType.NOTIFICATION)
        return self.inapp_repo.get_unread_count(actor.id)

    def mark_as_read(self, actor: Principal, notification_id: str) -> Dict[str, Any]:
        """Mark one of the caller's notifications read (others' look missing)"""
        self.guard.require(actor, Action.UPDATE, EntityType.NOTIFICATION)
        return self.inapp_repo.mark_as_read(notification_id, actor.id).to_api()

    def mark_all_as_read(self, actor: Principal) -> int:
        self.guard.require(actor, Action.UPDATE, EntityType.NOTIFICATION)
        return self.inapp_repo.mark_all_as_read(actor.id)

    # =========================================================================
    # Outbox Sending
    # =========================================================================

    def send_notification(self, notification: NotificationOutbox) -> bool:
        """
        Send a single queued email.

        Locking is handled by the scheduler before calling this method.
        Returns True if sent, False if the attempt failed (and was recorded).
        """
        start_time = utc_now()

        try:
            content = get_email_template(notification.template_key, notification.payload, settings.frontend_url)
            self.email_sender.send(
                to_email=notification.recipient_email,
                subject=content["subject"],
                text=content["text"],
                html=content["html"]
            )
            self.repo.mark_sent(notification.id)

            processing_time_ms = (utc_now() - start_time).total_seconds() * 1000
            logger.info(
                f"Sent notification: {notification.id} ({round(processing_time_ms, 2)} ms)",
                extra={"notification_id": notification.id, "user_id": notification.recipient_id}
            )
            return True

        except Exception as e:
            # Backoff and the FAILED cut-off are handled in the repository
            self.repo.mark_failed(notification.id, str(e))
            logger.error(
                f"Failed to send notification: {notification.id}: {e}",
                extra={"notification_id": notification.id, "error_code": type(e).__name__}
            )
            return False

    def outbox_stats(self) -> Dict[str, int]:
        return self.repo.count_by_status()
