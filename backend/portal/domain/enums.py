"""Domain Enumerations - All status and type definitions"""
from enum import Enum


# ============================================================================
# Identity
# ============================================================================

class Role(str, Enum):
    """Role hierarchy across staff and consumer users"""
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    MITARBEITER = "MITARBEITER"  # Staff member
    KUNDE = "KUNDE"  # Customer-facing consumer


STAFF_ROLES = (Role.ADMIN, Role.MANAGER, Role.MITARBEITER)


class PrincipalKind(str, Enum):
    """Which user collection a principal comes from"""
    STAFF = "STAFF"
    CONSUMER = "CONSUMER"


class UserStatus(str, Enum):
    """Account status for staff and consumer users"""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    PENDING = "PENDING"


class Department(str, Enum):
    """Routing tag, independent of role"""
    IT = "IT"
    DATENSCHUTZ = "DATENSCHUTZ"


# ============================================================================
# Access Control
# ============================================================================

class EntityType(str, Enum):
    """Entity types known to the permission policy"""
    CUSTOMER = "CUSTOMER"
    PROJECT = "PROJECT"
    TASK = "TASK"
    TICKET = "TICKET"
    COMMENT = "COMMENT"
    STAFF_USER = "STAFF_USER"
    CONSUMER_USER = "CONSUMER_USER"
    AUDIT_LOG = "AUDIT_LOG"
    NOTIFICATION = "NOTIFICATION"
    SYSTEM = "SYSTEM"


class Action(str, Enum):
    """Actions evaluated by the permission policy"""
    LIST = "LIST"
    READ = "READ"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ScopeRule(str, Enum):
    """Record-level condition attached to a granted action"""
    ANY = "ANY"  # No record condition
    OWN_CUSTOMER = "OWN_CUSTOMER"  # record.customer_id == principal.customer_id
    ASSIGNED = "ASSIGNED"  # principal is assignee or reporter
    AUTHOR = "AUTHOR"  # principal wrote the record
    SELF = "SELF"  # record is addressed to / is the principal


# ============================================================================
# Customers
# ============================================================================

class CustomerStatus(str, Enum):
    """Customer lifecycle status"""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    PROSPECT = "PROSPECT"
    SUSPENDED = "SUSPENDED"


class CustomerSize(str, Enum):
    """Customer company size"""
    STARTUP = "STARTUP"
    SME = "SME"
    ENTERPRISE = "ENTERPRISE"


class AddressType(str, Enum):
    """Embedded address kind"""
    BILLING = "BILLING"
    SHIPPING = "SHIPPING"
    OFFICE = "OFFICE"
    OTHER = "OTHER"


# ============================================================================
# Work Items
# ============================================================================

class ProjectStatus(str, Enum):
    """Project lifecycle status"""
    PLANNING = "PLANNING"
    ACTIVE = "ACTIVE"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TaskStatus(str, Enum):
    """Task lifecycle status"""
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


class TicketStatus(str, Enum):
    """Ticket lifecycle status"""
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class Priority(str, Enum):
    """Priority for tasks and tickets"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TicketType(str, Enum):
    """Ticket category"""
    BUG = "BUG"
    FEATURE = "FEATURE"
    SUPPORT = "SUPPORT"
    TASK = "TASK"


# ============================================================================
# Audit & Notifications
# ============================================================================

class AuditAction(str, Enum):
    """Audit log action"""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    EXPORT = "EXPORT"
    IMPORT = "IMPORT"


class NotificationType(str, Enum):
    """In-app notification severity"""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationStatus(str, Enum):
    """Outbox delivery status"""
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class SideEffectKind(str, Enum):
    """Kind of deferred side effect"""
    AUDIT_ENTRY = "AUDIT_ENTRY"
    NOTIFICATION = "NOTIFICATION"


class NotificationTemplateKey(str, Enum):
    """Email template per notification event"""
    ASSIGNED = "ASSIGNED"
    TICKET_STATUS_CHANGED = "TICKET_STATUS_CHANGED"
    COMMENT_ADDED = "COMMENT_ADDED"
    DEADLINE_APPROACHING = "DEADLINE_APPROACHING"
