"""Customer Repository - Data access for customers and their embedded records"""
from datetime import datetime
from typing import Any, Dict, List

from .base_repo import EntityRepository
from ..domain.models import Customer
from ..domain.enums import EntityType


class CustomerRepository(EntityRepository[Customer]):
    """Repository for customer operations"""

    collection_name = "customers"
    model = Customer
    entity_type = EntityType.CUSTOMER
    sort_fields = ("created_at", "updated_at", "legal_name", "status")

    def replace_embedded(
        self,
        customer_id: str,
        field: str,
        items: List[Dict[str, Any]],
        updated_at: datetime
    ) -> Customer:
        """Overwrite an embedded list (addresses or contacts)"""
        return self.update_fields(customer_id, {field: items, "updated_at": updated_at})
