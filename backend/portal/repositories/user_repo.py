"""User Repositories - Data access for staff and consumer accounts

Password hashes are stored on the user document but never loaded into the
domain models; only `get_credentials` returns them.
"""
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .base_repo import EntityRepository
from ..domain.models import StaffUser, ConsumerUser
from ..domain.enums import EntityType
from ..utils.logger import get_logger

logger = get_logger(__name__)


class _AccountRepository:
    """Shared credential handling for both user collections"""

    def _to_model(self, doc: Dict[str, Any]):
        doc.pop("_id", None)
        doc.pop("password_hash", None)
        return self.model.model_validate(doc)

    def insert_with_password(self, user, password_hash: str):
        """Insert a user together with its password hash"""
        doc = user.to_document()
        doc["_id"] = user.id
        doc["email"] = user.email.lower()
        doc["password_hash"] = password_hash
        self._collection.insert_one(doc)
        logger.info(
            f"Created {self.entity_type.value.lower()}: {user.id}",
            extra={"entity_type": self.entity_type.value, "entity_id": user.id}
        )
        return user

    def get_by_email(self, email: str):
        doc = self._collection.find_one({"email": email.lower()})
        return self._to_model(doc) if doc else None

    def get_credentials(self, email: str) -> Tuple[Optional[Any], Optional[str]]:
        """Return (user, password_hash) for login"""
        doc = self._collection.find_one({"email": email.lower()})
        if not doc:
            return None, None
        password_hash = doc.get("password_hash")
        return self._to_model(doc), password_hash

    def set_password_hash(self, user_id: str, password_hash: str, updated_at: datetime) -> bool:
        result = self._collection.update_one(
            {"id": user_id},
            {"$set": {"password_hash": password_hash, "updated_at": updated_at}}
        )
        return result.matched_count > 0

    def touch_login(self, user_id: str, when: datetime) -> None:
        self._collection.update_one({"id": user_id}, {"$set": {"last_login_at": when}})


class StaffUserRepository(_AccountRepository, EntityRepository[StaffUser]):
    """Repository for staff users"""

    collection_name = "staff_users"
    model = StaffUser
    entity_type = EntityType.STAFF_USER
    sort_fields = ("created_at", "updated_at", "name", "email", "role")


class ConsumerUserRepository(_AccountRepository, EntityRepository[ConsumerUser]):
    """Repository for consumer (KUNDE) users"""

    collection_name = "consumer_users"
    model = ConsumerUser
    entity_type = EntityType.CONSUMER_USER
    sort_fields = ("created_at", "updated_at", "name", "email")


def email_in_use(email: str, exclude_id: Optional[str] = None) -> bool:
    """Emails are unique across staff and consumer accounts"""
    for repo in (StaffUserRepository(), ConsumerUserRepository()):
        user = repo.get_by_email(email)
        if user is not None and user.id != exclude_id:
            return True
    return False
