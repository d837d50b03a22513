"""Service modules - Business logic layer"""
from .auth_service import AuthService
from .customer_service import CustomerService
from .project_service import ProjectService
from .task_service import TaskService
from .ticket_service import TicketService
from .comment_service import CommentService
from .user_service import UserService
from .notification_service import NotificationService
from .audit_service import AuditService
from .dashboard_service import DashboardService
from .deadline_service import DeadlineService

__all__ = [
    "AuthService",
    "CustomerService",
    "ProjectService",
    "TaskService",
    "TicketService",
    "CommentService",
    "UserService",
    "NotificationService",
    "AuditService",
    "DashboardService",
    "DeadlineService",
]
