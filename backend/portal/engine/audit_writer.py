"""Audit Writer - Append-only audit entries"""
from typing import Any, Dict, Optional
from pymongo.errors import DuplicateKeyError

from ..domain.models import AuditLogEntry, Principal
from ..domain.enums import AuditAction, EntityType
from ..repositories.audit_repo import AuditRepository
from ..utils.idgen import generate_entity_id
from ..utils.time import utc_now
from ..utils.logger import get_correlation_id, get_logger

logger = get_logger(__name__)


class AuditWriter:
    """
    Write audit entries (append-only)

    Every committed mutation, login and export produces exactly one entry.
    The entry id is fixed when it is built, so appending it again after an
    uncertain failure cannot create a second entry.
    """

    def __init__(self):
        self.repo = AuditRepository()

    def build(
        self,
        action: AuditAction,
        entity_type: EntityType,
        entity_id: str,
        actor: Principal,
        changes: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None
    ) -> AuditLogEntry:
        return AuditLogEntry(
            id=generate_entity_id("audit"),
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=actor.id,
            user_email=actor.email,
            timestamp=utc_now(),
            ip_address=actor.ip_address,
            user_agent=actor.user_agent,
            changes=changes or {},
            correlation_id=correlation_id or get_correlation_id()
        )

    def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Store a built entry; an entry that is already stored is left alone"""
        try:
            return self.repo.create_entry(entry)
        except DuplicateKeyError:
            logger.info(f"Audit entry {entry.id} already stored", extra={"entity_id": entry.entity_id})
            return entry

