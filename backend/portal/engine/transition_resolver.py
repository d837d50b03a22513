"""Transition Resolver - Status state machines for projects, tasks and tickets"""
from typing import Dict, FrozenSet, Optional

from ..domain.models import Principal
from ..domain.enums import EntityType, ProjectStatus, TaskStatus, TicketStatus, Role
from ..domain.errors import InvalidTransitionError
from ..utils.logger import get_logger

logger = get_logger(__name__)


TRANSITIONS: Dict[EntityType, Dict[str, FrozenSet[str]]] = {
    EntityType.PROJECT: {
        ProjectStatus.PLANNING.value: frozenset({ProjectStatus.ACTIVE.value, ProjectStatus.CANCELLED.value}),
        ProjectStatus.ACTIVE.value: frozenset({
            ProjectStatus.ON_HOLD.value, ProjectStatus.COMPLETED.value, ProjectStatus.CANCELLED.value
        }),
        ProjectStatus.ON_HOLD.value: frozenset({ProjectStatus.ACTIVE.value, ProjectStatus.CANCELLED.value}),
        ProjectStatus.COMPLETED.value: frozenset({ProjectStatus.CANCELLED.value}),
        ProjectStatus.CANCELLED.value: frozenset(),
    },
    EntityType.TASK: {
        TaskStatus.TODO.value: frozenset({TaskStatus.IN_PROGRESS.value, TaskStatus.CANCELLED.value}),
        TaskStatus.IN_PROGRESS.value: frozenset({TaskStatus.DONE.value, TaskStatus.CANCELLED.value}),
        TaskStatus.DONE.value: frozenset(),
        TaskStatus.CANCELLED.value: frozenset(),
    },
    EntityType.TICKET: {
        TicketStatus.OPEN.value: frozenset({TicketStatus.IN_PROGRESS.value, TicketStatus.CANCELLED.value}),
        TicketStatus.IN_PROGRESS.value: frozenset({TicketStatus.RESOLVED.value, TicketStatus.CANCELLED.value}),
        TicketStatus.RESOLVED.value: frozenset({TicketStatus.CLOSED.value, TicketStatus.CANCELLED.value}),
        TicketStatus.CLOSED.value: frozenset(),
        TicketStatus.CANCELLED.value: frozenset(),
    },
}

# Reopening a finished task is the one role-dependent edge
REOPEN_OVERRIDE = {
    EntityType.TASK: (TaskStatus.DONE.value, TaskStatus.TODO.value, frozenset({Role.ADMIN, Role.MANAGER})),
}


class TransitionResolver:
    """
    Validate status changes against per-entity transition tables

    Writing the current status again is a no-op and always allowed.
    Every other change must be an edge of the table, except the
    ADMIN/MANAGER reopen of a DONE task.
    """

    def allowed_targets(
        self,
        entity_type: EntityType,
        from_status: str,
        principal: Optional[Principal] = None
    ) -> FrozenSet[str]:
        """Statuses reachable from `from_status` for this principal"""
        table = TRANSITIONS.get(entity_type)
        if table is None:
            raise ValueError(f"{entity_type.value} has no status lifecycle")

        targets = table.get(from_status, frozenset())
        override = REOPEN_OVERRIDE.get(entity_type)
        if override and principal is not None:
            source, target, roles = override
            if from_status == source and principal.role in roles:
                targets = targets | {target}
        return targets

    def is_allowed(
        self,
        entity_type: EntityType,
        from_status: str,
        to_status: str,
        principal: Optional[Principal] = None
    ) -> bool:
        if from_status == to_status:
            return True
        return to_status in self.allowed_targets(entity_type, from_status, principal)

    def check(
        self,
        entity_type: EntityType,
        from_status: str,
        to_status: str,
        principal: Optional[Principal] = None
    ) -> None:
        """
        Validate a status change

        Raises:
            InvalidTransitionError: If the edge is not in the table
        """
        if self.is_allowed(entity_type, from_status, to_status, principal):
            return

        logger.info(
            f"Rejected {entity_type.value.lower()} transition {from_status} -> {to_status}",
            extra={
                "entity_type": entity_type.value,
                "user_id": principal.id if principal else None,
                "status": to_status,
            }
        )
        raise InvalidTransitionError(entity_type.value, from_status, to_status)
