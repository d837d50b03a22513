"""Access Engine - Policy, state machines, scoping and side effects"""
from .permission_guard import PermissionGuard, EntityScope, Decision
from .transition_resolver import TransitionResolver
from .query_scope import QueryScope
from .audit_writer import AuditWriter
from .dispatcher import SideEffectDispatcher, NotificationIntent

__all__ = [
    "PermissionGuard",
    "EntityScope",
    "Decision",
    "TransitionResolver",
    "QueryScope",
    "AuditWriter",
    "SideEffectDispatcher",
    "NotificationIntent",
]
