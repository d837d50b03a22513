"""Entity Repository Base - Shared data access for scoped entity collections

Every read a request can reach takes a scope filter built by the query facade.
An out-of-scope record is indistinguishable from a missing one.
"""
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.collection import Collection

from .mongo_client import get_collection
from ..domain.enums import EntityType
from ..domain.errors import NotFoundError
from ..domain.models import DomainModel
from ..utils.logger import get_logger

logger = get_logger(__name__)

M = TypeVar("M", bound=DomainModel)


def merge_filters(*filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """AND together non-empty Mongo filters"""
    parts = [f for f in filters if f]
    if not parts:
        return {}
    if len(parts) == 1:
        return parts[0]
    return {"$and": parts}


class EntityRepository(Generic[M]):
    """Base repository for one entity collection"""

    collection_name: str
    model: Type[M]
    entity_type: EntityType
    sort_fields: Tuple[str, ...] = ("created_at", "updated_at")
    default_sort: str = "created_at"

    def __init__(self):
        self._collection: Collection = get_collection(self.collection_name)

    @property
    def collection(self) -> Collection:
        return self._collection

    def _to_model(self, doc: Dict[str, Any]) -> M:
        doc.pop("_id", None)
        return self.model.model_validate(doc)

    # =========================================================================
    # Writes
    # =========================================================================

    def insert(self, entity: M) -> M:
        """Insert a new entity"""
        doc = entity.to_document()
        doc["_id"] = entity.id
        self._collection.insert_one(doc)
        logger.info(
            f"Created {self.entity_type.value.lower()}: {entity.id}",
            extra={"entity_type": self.entity_type.value, "entity_id": entity.id}
        )
        return entity

    def update_fields(self, entity_id: str, updates: Dict[str, Any]) -> M:
        """Apply a $set of the given fields (last write wins per field)"""
        result = self._collection.find_one_and_update(
            {"id": entity_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER
        )
        if result is None:
            raise NotFoundError(self.entity_type.value, entity_id)
        logger.info(
            f"Updated {self.entity_type.value.lower()}: {entity_id}",
            extra={"entity_type": self.entity_type.value, "entity_id": entity_id}
        )
        return self._to_model(result)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_by_id(self, entity_id: str) -> Optional[M]:
        """
        Unscoped lookup for referential checks inside services.

        Never hand the result to a caller without a scoped read.
        """
        doc = self._collection.find_one({"id": entity_id})
        return self._to_model(doc) if doc else None

    def exists(self, entity_id: str) -> bool:
        return self._collection.find_one({"id": entity_id}, {"_id": 1}) is not None

    def get_scoped(self, entity_id: str, scope: Dict[str, Any]) -> M:
        """Read one entity inside the caller's scope or raise NotFoundError"""
        doc = self._collection.find_one(merge_filters({"id": entity_id}, scope))
        if doc is None:
            raise NotFoundError(self.entity_type.value, entity_id)
        return self._to_model(doc)

    def list_scoped(
        self,
        scope: Dict[str, Any],
        filters: Optional[Dict[str, Any]] = None,
        sort_by: Optional[str] = None,
        sort_order: str = "desc",
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[M], int]:
        """List entities inside the caller's scope, returning (page, total)"""
        query = merge_filters(scope, filters)
        if sort_by not in self.sort_fields:
            sort_by = self.default_sort
        direction = DESCENDING if sort_order == "desc" else ASCENDING

        total = self._collection.count_documents(query)
        cursor = (
            self._collection.find(query)
            .sort([(sort_by, direction), ("id", ASCENDING)])
            .skip(skip)
            .limit(limit)
        )
        return [self._to_model(doc) for doc in cursor], total

    def count_by_status(self, scope: Dict[str, Any]) -> Dict[str, int]:
        """Count entities per status inside the caller's scope"""
        pipeline: List[Dict[str, Any]] = []
        if scope:
            pipeline.append({"$match": scope})
        pipeline.append({"$group": {"_id": "$status", "count": {"$sum": 1}}})
        return {row["_id"]: row["count"] for row in self._collection.aggregate(pipeline)}

    def find_ids(self, query: Dict[str, Any]) -> List[str]:
        """IDs matching a raw filter (cascade planning)"""
        return [doc["id"] for doc in self._collection.find(query, {"id": 1})]

    # =========================================================================
    # Deletes
    # =========================================================================

    def delete(self, entity_id: str) -> bool:
        """Delete one leaf document (owners go through the cascade deleter)"""
        result = self._collection.delete_one({"id": entity_id})
        if result.deleted_count:
            logger.info(
                f"Deleted {self.entity_type.value.lower()}: {entity_id}",
                extra={"entity_type": self.entity_type.value, "entity_id": entity_id}
            )
        return result.deleted_count > 0

    def clear_references(self, field: str, value: str, updated_at: datetime) -> int:
        """Null out a reference field on every document pointing at `value`"""
        result = self._collection.update_many(
            {field: value},
            {"$set": {field: None, "updated_at": updated_at}}
        )
        return result.modified_count
