"""Audit Repository - Data access for audit log entries (append-only)"""
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple
from pymongo.collection import Collection
from pymongo import DESCENDING

from .mongo_client import get_collection
from ..domain.models import AuditLogEntry
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuditRepository:
    """Repository for audit log operations. Entries are never updated or deleted."""

    def __init__(self):
        self._audit_logs: Collection = get_collection("audit_logs")

    def create_entry(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Append an audit entry"""
        doc = entry.to_document()
        doc["_id"] = entry.id

        self._audit_logs.insert_one(doc)
        logger.info(
            f"Created audit entry: {entry.action} {entry.entity_type}",
            extra={
                "entity_type": entry.entity_type,
                "entity_id": entry.entity_id,
                "user_id": entry.user_id,
                "action": entry.action
            }
        )
        return entry

    @staticmethod
    def build_query(
        entity_type: Optional[str] = None,
        action: Optional[str] = None,
        entity_id: Optional[str] = None,
        user_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Build the filter shared by listing and export"""
        query: Dict[str, Any] = {}
        if entity_type:
            query["entity_type"] = entity_type
        if action:
            query["action"] = action
        if entity_id:
            query["entity_id"] = entity_id
        if user_id:
            query["user_id"] = user_id
        if date_from or date_to:
            window: Dict[str, Any] = {}
            if date_from:
                window["$gte"] = date_from
            if date_to:
                window["$lte"] = date_to
            query["timestamp"] = window
        return query

    def list_entries(
        self,
        query: Dict[str, Any],
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[AuditLogEntry], int]:
        """Page through entries, newest first"""
        total = self._audit_logs.count_documents(query)
        cursor = self._audit_logs.find(query).sort("timestamp", DESCENDING).skip(skip).limit(limit)

        entries = []
        for doc in cursor:
            doc.pop("_id", None)
            entries.append(AuditLogEntry.model_validate(doc))
        return entries, total

    def iter_entries(self, query: Dict[str, Any], max_rows: int = 10000) -> Iterator[AuditLogEntry]:
        """Stream entries for export, newest first"""
        cursor = self._audit_logs.find(query).sort("timestamp", DESCENDING).limit(max_rows)
        for doc in cursor:
            doc.pop("_id", None)
            yield AuditLogEntry.model_validate(doc)

    def count_for_entity(self, entity_id: str, action: Optional[str] = None) -> int:
        query: Dict[str, Any] = {"entity_id": entity_id}
        if action:
            query["action"] = action
        return self._audit_logs.count_documents(query)
