"""Audit Service - Audit log queries and CSV export (ADMIN only)"""
import csv
import io
import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..domain.models import AuditLogEntry, Principal, Pagination
from ..domain.enums import Action, AuditAction, EntityType
from ..domain.errors import ValidationError
from ..engine.permission_guard import PermissionGuard
from ..engine.dispatcher import SideEffectDispatcher
from ..repositories.audit_repo import AuditRepository
from ..utils.time import format_iso, resolve_date_range, ensure_utc
from ..utils.logger import get_logger

logger = get_logger(__name__)

CSV_COLUMNS = ["Timestamp", "User Email", "Action", "Entity Type", "Entity ID", "IP Address", "Details"]
MAX_EXPORT_ROWS = 10000


class AuditService:
    """Service for reading the audit log"""

    def __init__(self):
        self.repo = AuditRepository()
        self.guard = PermissionGuard()
        self.dispatcher = SideEffectDispatcher()

    def _build_query(
        self,
        entity_type: Optional[str] = None,
        action: Optional[str] = None,
        entity_id: Optional[str] = None,
        user_id: Optional[str] = None,
        date_range: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """A named range wins over explicit dates"""
        if date_range:
            try:
                date_from, date_to = resolve_date_range(date_range)
            except ValueError as e:
                raise ValidationError(str(e), details={"date_range": date_range})
        return AuditRepository.build_query(
            entity_type=entity_type,
            action=action,
            entity_id=entity_id,
            user_id=user_id,
            date_from=ensure_utc(date_from) if date_from else None,
            date_to=ensure_utc(date_to) if date_to else None
        )

    def list_entries(
        self,
        actor: Principal,
        page: int = 1,
        limit: int = 50,
        **filters: Any
    ) -> Tuple[List[AuditLogEntry], Pagination]:
        """Paginated entries, newest first"""
        self.guard.require(actor, Action.LIST, EntityType.AUDIT_LOG)
        query = self._build_query(**filters)
        entries, total = self.repo.list_entries(query, skip=(page - 1) * limit, limit=limit)
        return entries, Pagination.build(page, limit, total)

    def export_csv(self, actor: Principal, **filters: Any) -> str:
        """
        Flat CSV of the filtered entries (newest first, capped)

        The export itself is recorded as an EXPORT entry.
        """
        self.guard.require(actor, Action.READ, EntityType.AUDIT_LOG)
        query = self._build_query(**filters)

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_COLUMNS)
        rows = 0
        for entry in self.repo.iter_entries(query, max_rows=MAX_EXPORT_ROWS):
            writer.writerow([
                format_iso(entry.timestamp),
                entry.user_email or "",
                entry.action,
                entry.entity_type,
                entry.entity_id,
                entry.ip_address or "",
                json.dumps(entry.changes, default=str) if entry.changes else "",
            ])
            rows += 1

        self.dispatcher.dispatch(
            AuditAction.EXPORT, EntityType.AUDIT_LOG, "audit_logs", actor,
            changes={"rows": rows, "filters": {k: v for k, v in filters.items() if v}}
        )
        logger.info(f"Exported {rows} audit entries", extra={"user_id": actor.id})
        return buffer.getvalue()
