"""Repository modules - Data access layer"""
from .mongo_client import get_database, get_collection, create_indexes, health_check
from .customer_repo import CustomerRepository
from .project_repo import ProjectRepository
from .task_repo import TaskRepository
from .ticket_repo import TicketRepository
from .comment_repo import CommentRepository
from .user_repo import StaffUserRepository, ConsumerUserRepository
from .audit_repo import AuditRepository
from .notification_repo import NotificationRepository
from .side_effect_repo import SideEffectRepository
from .inapp_notification_repo import InAppNotificationRepository
from .cascade import CascadeDeleter, CascadeResult

__all__ = [
    "get_database",
    "get_collection",
    "create_indexes",
    "health_check",
    "CustomerRepository",
    "ProjectRepository",
    "TaskRepository",
    "TicketRepository",
    "CommentRepository",
    "StaffUserRepository",
    "ConsumerUserRepository",
    "AuditRepository",
    "NotificationRepository",
    "SideEffectRepository",
    "InAppNotificationRepository",
    "CascadeDeleter",
    "CascadeResult",
]
