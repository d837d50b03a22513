"""Side-Effect Dispatcher - Audit entries and notifications after a commit

Runs only after the entity mutation has been written. Nothing here can fail
the request. A failed audit or notification write is logged and parked in
the side-effect queue, which the scheduler replays with backoff; email has
its own outbox.
"""
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from .audit_writer import AuditWriter
from ..config.settings import settings
from ..domain.models import (
    AuditLogEntry, Principal, Task, Ticket, NotificationOutbox, PendingSideEffect, StaffUser, ConsumerUser
)
from ..domain.enums import (
    AuditAction, EntityType, NotificationType, NotificationTemplateKey, SideEffectKind, UserStatus
)
from ..repositories.inapp_notification_repo import InAppNotificationRepository
from ..repositories.notification_repo import NotificationRepository
from ..repositories.side_effect_repo import SideEffectRepository
from ..repositories.user_repo import StaffUserRepository, ConsumerUserRepository
from ..templates.email_templates import get_email_template
from ..utils.idgen import generate_entity_id
from ..utils.time import utc_now, format_iso
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class NotificationIntent:
    """One notification to one recipient, rendered in-app and optionally by email"""
    recipient_id: str
    title: str
    message: str
    template_key: NotificationTemplateKey
    type: NotificationType = NotificationType.INFO
    action_url: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    entity_type: Optional[EntityType] = None
    entity_id: Optional[str] = None
    dedup_key: Optional[str] = None
    # Fixed on the first attempt so a replay lands on the same records
    notification_id: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        doc = asdict(self)
        for key in ("template_key", "type", "entity_type"):
            if isinstance(doc[key], Enum):
                doc[key] = doc[key].value
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "NotificationIntent":
        return cls(**{
            **doc,
            "template_key": NotificationTemplateKey(doc["template_key"]),
            "type": NotificationType(doc["type"]),
            "entity_type": EntityType(doc["entity_type"]) if doc.get("entity_type") else None,
        })


# =============================================================================
# Intent Builders
# =============================================================================

ENTITY_PATHS = {
    EntityType.PROJECT: "/projects",
    EntityType.TASK: "/tasks",
    EntityType.TICKET: "/tickets",
}


def entity_path(entity_type: EntityType, entity_id: str) -> str:
    return f"{ENTITY_PATHS[entity_type]}/{entity_id}"


def _title_of(entity: Any) -> str:
    return getattr(entity, "title", None) or getattr(entity, "name", "") or entity.id


def assignment_intent(
    entity_type: EntityType,
    entity: Any,
    actor: Principal
) -> Optional[NotificationIntent]:
    """Tell a new assignee about their work item (never the actor themselves)"""
    assignee_id = getattr(entity, "assignee_id", None)
    if not assignee_id or assignee_id == actor.id:
        return None

    label = entity_type.value.capitalize()
    title = _title_of(entity)
    path = entity_path(entity_type, entity.id)
    due = getattr(entity, "due_date", None)
    return NotificationIntent(
        recipient_id=assignee_id,
        title=f"{label} assigned",
        message=f"{actor.name or actor.email} assigned you to \"{title}\"",
        template_key=NotificationTemplateKey.ASSIGNED,
        action_url=path,
        payload={
            "entity_label": label,
            "title": title,
            "path": path,
            "actor_name": actor.name or actor.email,
            "priority": getattr(entity, "priority", ""),
            "due_date": format_iso(due) if due else "",
        },
        entity_type=entity_type,
        entity_id=entity.id,
    )


def ticket_status_intents(
    ticket: Ticket,
    from_status: str,
    actor: Principal
) -> List[NotificationIntent]:
    """Tell reporter and assignee that a ticket moved"""
    path = entity_path(EntityType.TICKET, ticket.id)
    intents = []
    for recipient_id in _recipients(ticket.reporter_id, ticket.assignee_id, exclude=actor.id):
        intents.append(NotificationIntent(
            recipient_id=recipient_id,
            title="Ticket status changed",
            message=f"\"{ticket.title}\" moved from {from_status} to {ticket.status}",
            template_key=NotificationTemplateKey.TICKET_STATUS_CHANGED,
            type=NotificationType.SUCCESS if ticket.status in ("RESOLVED", "CLOSED") else NotificationType.INFO,
            action_url=path,
            payload={
                "title": ticket.title,
                "path": path,
                "from_status": from_status,
                "to_status": ticket.status,
                "actor_name": actor.name or actor.email,
            },
            entity_type=EntityType.TICKET,
            entity_id=ticket.id,
        ))
    return intents


def comment_intents(
    parent_type: EntityType,
    parent: Union[Task, Ticket],
    content: str,
    actor: Principal
) -> List[NotificationIntent]:
    """Tell the parent's reporter and assignee about a new comment"""
    label = parent_type.value.capitalize()
    path = entity_path(parent_type, parent.id)
    excerpt = content if len(content) <= 200 else content[:197] + "..."
    intents = []
    for recipient_id in _recipients(parent.reporter_id, parent.assignee_id, exclude=actor.id):
        intents.append(NotificationIntent(
            recipient_id=recipient_id,
            title="New comment",
            message=f"{actor.name or actor.email} commented on \"{parent.title}\"",
            template_key=NotificationTemplateKey.COMMENT_ADDED,
            action_url=path,
            payload={
                "entity_label": label,
                "title": parent.title,
                "path": path,
                "actor_name": actor.name or actor.email,
                "excerpt": excerpt,
            },
            entity_type=parent_type,
            entity_id=parent.id,
        ))
    return intents


def deadline_intent(task: Task, days: int) -> NotificationIntent:
    """Reminder for an assigned task due in `days` days"""
    when = "today" if days == 0 else ("tomorrow" if days == 1 else f"in {days} days")
    path = entity_path(EntityType.TASK, task.id)
    due = format_iso(task.due_date) if task.due_date else ""
    return NotificationIntent(
        recipient_id=task.assignee_id,
        title="Deadline approaching",
        message=f"\"{task.title}\" is due {when}",
        template_key=NotificationTemplateKey.DEADLINE_APPROACHING,
        type=NotificationType.WARNING if days else NotificationType.ERROR,
        action_url=path,
        payload={
            "title": task.title,
            "path": path,
            "days_until_due": days,
            "due_date": due,
            "priority": task.priority,
            "status": task.status,
        },
        entity_type=EntityType.TASK,
        entity_id=task.id,
        dedup_key=f"deadline:{task.id}:{due[:10]}:{days}",
    )


def _recipients(*user_ids: Optional[str], exclude: Optional[str] = None) -> List[str]:
    seen: List[str] = []
    for user_id in user_ids:
        if user_id and user_id != exclude and user_id not in seen:
            seen.append(user_id)
    return seen


# =============================================================================
# Dispatcher
# =============================================================================

class SideEffectDispatcher:
    """
    Emit the side effects of a committed mutation

    - exactly one audit entry per call
    - one in-app notification per intent
    - one outbox email per intent when SMTP is configured

    Writes that fail are deferred to the side-effect queue and replayed by
    `retry_deferred`.
    """

    def __init__(self):
        self.audit_writer = AuditWriter()
        self.inapp_repo = InAppNotificationRepository()
        self.outbox_repo = NotificationRepository()
        self.deferred_repo = SideEffectRepository()
        self.staff_repo = StaffUserRepository()
        self.consumer_repo = ConsumerUserRepository()

    def dispatch(
        self,
        action: AuditAction,
        entity_type: EntityType,
        entity_id: str,
        actor: Principal,
        changes: Optional[Dict[str, Any]] = None,
        intents: Iterable[Optional[NotificationIntent]] = ()
    ) -> None:
        """Record the mutation and fan out notifications. Never raises."""
        entry = self.audit_writer.build(action, entity_type, entity_id, actor, changes=changes)
        try:
            self.audit_writer.append(entry)
        except Exception as e:
            logger.error(
                f"Failed to write audit entry for {action.value} {entity_type.value} {entity_id}: {e}",
                exc_info=True,
                extra={"entity_type": entity_type.value, "entity_id": entity_id, "action": action.value}
            )
            self._defer(SideEffectKind.AUDIT_ENTRY, entry.to_document(), entity_type, entity_id, e)

        for intent in intents:
            if intent is not None:
                self.notify(intent)

    def notify(self, intent: NotificationIntent) -> bool:
        """Deliver one intent. Returns False if nothing was created."""
        if intent.notification_id is None:
            intent.notification_id = generate_entity_id("notification")
        try:
            return self._deliver(intent)
        except Exception as e:
            logger.error(
                f"Failed to dispatch notification to {intent.recipient_id}: {e}",
                exc_info=True,
                extra={"user_id": intent.recipient_id, "entity_id": intent.entity_id}
            )
            self._defer(SideEffectKind.NOTIFICATION, intent.to_document(), intent.entity_type, intent.entity_id, e)
            return False

    def retry_deferred(self, effect: PendingSideEffect) -> bool:
        """
        Replay one deferred side effect.

        Locking is handled by the scheduler before calling this method.
        Returns True once applied, False if the attempt failed (and was recorded).
        """
        try:
            if effect.kind == SideEffectKind.AUDIT_ENTRY.value:
                self.audit_writer.append(AuditLogEntry.model_validate(effect.document))
            else:
                self._deliver(NotificationIntent.from_document(effect.document))
            self.deferred_repo.mark_done(effect.id)
            logger.info(
                f"Replayed deferred {effect.kind} for {effect.entity_id}",
                extra={"queue_item_id": effect.id, "entity_id": effect.entity_id}
            )
            return True

        except Exception as e:
            self.deferred_repo.mark_failed(effect.id, str(e))
            return False

    def _deliver(self, intent: NotificationIntent) -> bool:
        recipient = self._find_recipient(intent.recipient_id)
        if recipient is None or recipient.status != UserStatus.ACTIVE.value:
            logger.info(
                f"Skipping notification for unknown or inactive user {intent.recipient_id}",
                extra={"user_id": intent.recipient_id}
            )
            return False

        if intent.dedup_key and self.inapp_repo.exists_with_key(intent.dedup_key, exclude_id=intent.notification_id):
            return False

        self.inapp_repo.create_notification(
            user_id=recipient.id,
            title=intent.title,
            message=intent.message,
            type=intent.type,
            action_url=intent.action_url,
            dedup_key=intent.dedup_key,
            notification_id=intent.notification_id
        )

        if settings.email_configured:
            self._queue_email(intent, recipient)
        return True

    def _defer(
        self,
        kind: SideEffectKind,
        document: Dict[str, Any],
        entity_type: Optional[EntityType],
        entity_id: Optional[str],
        error: Exception
    ) -> None:
        try:
            self.deferred_repo.enqueue(PendingSideEffect(
                id=generate_entity_id("side_effect"),
                kind=kind,
                document=document,
                entity_type=entity_type,
                entity_id=entity_id,
                last_error=str(error)[:500],
                created_at=utc_now()
            ))
        except Exception as e:
            logger.critical(
                f"Could not defer {kind.value} for {entity_id}, it is lost: {e}",
                exc_info=True,
                extra={"entity_id": entity_id}
            )

    def _find_recipient(self, user_id: str) -> Optional[Union[StaffUser, ConsumerUser]]:
        return self.staff_repo.get_by_id(user_id) or self.consumer_repo.get_by_id(user_id)

    def _queue_email(self, intent: NotificationIntent, recipient: Union[StaffUser, ConsumerUser]) -> None:
        rendered = get_email_template(intent.template_key, intent.payload, settings.frontend_url)
        self.outbox_repo.create_notification(NotificationOutbox(
            # One email per in-app notification, sharing its id suffix
            id="OBX-" + intent.notification_id.split("-", 1)[1],
            template_key=intent.template_key,
            recipient_id=recipient.id,
            recipient_email=recipient.email,
            subject=rendered["subject"],
            payload=intent.payload,
            entity_type=intent.entity_type,
            entity_id=intent.entity_id,
            created_at=utc_now()
        ))
