"""Customer Service - Customers with embedded addresses and contacts"""
import re
from typing import Any, Dict, List, Optional, Tuple

from .base_service import EntityService
from ..domain.models import Customer, Address, Contact, Principal, Pagination
from ..domain.inputs import (
    CustomerCreate, CustomerUpdate, AddressInput, AddressUpdate, ContactInput, ContactUpdate
)
from ..domain.enums import Action, AuditAction, EntityType
from ..domain.errors import NotFoundError
from ..repositories.customer_repo import CustomerRepository
from ..repositories.cascade import CascadeDeleter, CascadeResult
from ..utils.idgen import generate_entity_id
from ..utils.logger import get_logger

logger = get_logger(__name__)


# Embedded list name -> (model, id kind, NotFound label)
EMBEDDED = {
    "addresses": (Address, "address", "ADDRESS"),
    "contacts": (Contact, "contact", "CONTACT"),
}


class CustomerService(EntityService):
    """Service for customer operations"""

    def __init__(self):
        super().__init__()
        self.repo = CustomerRepository()
        self.cascade = CascadeDeleter()

    # =========================================================================
    # Customer CRUD
    # =========================================================================

    def list_customers(
        self,
        actor: Principal,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        sort_by: Optional[str] = None,
        sort_order: str = "desc"
    ) -> Tuple[List[Customer], Pagination]:
        filters: Dict[str, Any] = {}
        if status:
            filters["status"] = status
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            filters["$or"] = [{"legal_name": pattern}, {"trade_name": pattern}, {"vat_id": pattern}]
        return self._page(actor, self.repo, filters, page, limit, sort_by, sort_order)

    def get_customer(self, actor: Principal, customer_id: str) -> Customer:
        return self._load(actor, self.repo, customer_id)

    def create_customer(self, actor: Principal, data: CustomerCreate) -> Customer:
        """Create a customer (status defaults to ACTIVE)"""
        self.guard.require(actor, Action.CREATE, EntityType.CUSTOMER)

        now = self._now()
        values = data.model_dump(exclude={"addresses", "contacts"})
        customer = Customer(
            id=generate_entity_id("customer"),
            **values,
            addresses=self._single_primary([
                Address(id=generate_entity_id("address"), **a.model_dump()) for a in data.addresses
            ]),
            contacts=self._single_primary([
                Contact(id=generate_entity_id("contact"), **c.model_dump()) for c in data.contacts
            ]),
            created_by=actor.id,
            created_at=now,
            updated_at=now
        )
        self.repo.insert(customer)

        self.dispatcher.dispatch(
            AuditAction.CREATE, EntityType.CUSTOMER, customer.id, actor,
            changes={"legal_name": customer.legal_name, "status": customer.status}
        )
        return customer

    def update_customer(self, actor: Principal, customer_id: str, data: CustomerUpdate) -> Customer:
        customer = self._load(actor, self.repo, customer_id, Action.UPDATE)

        updates = data.changes()
        self._reject_nulls(updates, ("legal_name", "status", "tags"))
        updated, diff = self._commit_update(self.repo, customer, updates)

        self.dispatcher.dispatch(AuditAction.UPDATE, EntityType.CUSTOMER, customer_id, actor, changes=diff)
        return updated

    def delete_customer(self, actor: Principal, customer_id: str) -> CascadeResult:
        """Delete a customer with its projects, consumer users and all work items"""
        self._load(actor, self.repo, customer_id, Action.DELETE)

        result = self.cascade.delete(EntityType.CUSTOMER, customer_id)
        self.dispatcher.dispatch(
            AuditAction.DELETE, EntityType.CUSTOMER, customer_id, actor,
            changes={"deleted": result.deleted}
        )
        return result

    # =========================================================================
    # Embedded Addresses & Contacts
    # =========================================================================

    def add_address(self, actor: Principal, customer_id: str, data: AddressInput) -> Customer:
        return self._add_embedded(actor, customer_id, "addresses", data.model_dump())

    def update_address(self, actor: Principal, customer_id: str, address_id: str, data: AddressUpdate) -> Customer:
        return self._update_embedded(actor, customer_id, "addresses", address_id, data.changes())

    def remove_address(self, actor: Principal, customer_id: str, address_id: str) -> Customer:
        return self._remove_embedded(actor, customer_id, "addresses", address_id)

    def add_contact(self, actor: Principal, customer_id: str, data: ContactInput) -> Customer:
        return self._add_embedded(actor, customer_id, "contacts", data.model_dump())

    def update_contact(self, actor: Principal, customer_id: str, contact_id: str, data: ContactUpdate) -> Customer:
        return self._update_embedded(actor, customer_id, "contacts", contact_id, data.changes())

    def remove_contact(self, actor: Principal, customer_id: str, contact_id: str) -> Customer:
        return self._remove_embedded(actor, customer_id, "contacts", contact_id)

    def _add_embedded(self, actor: Principal, customer_id: str, field: str, values: Dict[str, Any]) -> Customer:
        customer = self._load(actor, self.repo, customer_id, Action.UPDATE)
        model, kind, _ = EMBEDDED[field]

        item = model(id=generate_entity_id(kind), **values)
        items = list(getattr(customer, field)) + [item]
        if item.is_primary:
            items = self._single_primary(items, keep=item.id)

        return self._save_embedded(actor, customer, field, items, {field: {"added": item.id}})

    def _update_embedded(
        self,
        actor: Principal,
        customer_id: str,
        field: str,
        item_id: str,
        updates: Dict[str, Any]
    ) -> Customer:
        customer = self._load(actor, self.repo, customer_id, Action.UPDATE)
        model, _, label = EMBEDDED[field]

        items = list(getattr(customer, field))
        for index, existing in enumerate(items):
            if existing.id == item_id:
                items[index] = model.model_validate({**existing.model_dump(), **updates})
                break
        else:
            raise NotFoundError(label, item_id)

        if updates.get("is_primary"):
            items = self._single_primary(items, keep=item_id)
        return self._save_embedded(actor, customer, field, items, {field: {"updated": item_id}})

    def _remove_embedded(self, actor: Principal, customer_id: str, field: str, item_id: str) -> Customer:
        customer = self._load(actor, self.repo, customer_id, Action.UPDATE)
        _, _, label = EMBEDDED[field]

        items = [item for item in getattr(customer, field) if item.id != item_id]
        if len(items) == len(getattr(customer, field)):
            raise NotFoundError(label, item_id)
        return self._save_embedded(actor, customer, field, items, {field: {"removed": item_id}})

    def _save_embedded(
        self,
        actor: Principal,
        customer: Customer,
        field: str,
        items: List[Any],
        changes: Dict[str, Any]
    ) -> Customer:
        updated = self.repo.replace_embedded(
            customer.id, field, [item.to_document() for item in items], self._touch_time(customer)
        )
        self.dispatcher.dispatch(AuditAction.UPDATE, EntityType.CUSTOMER, customer.id, actor, changes=changes)
        return updated

    @staticmethod
    def _single_primary(items: List[Any], keep: Optional[str] = None) -> List[Any]:
        """At most one primary entry: `keep` wins, else the first flagged one"""
        if keep is None:
            flagged = [item.id for item in items if item.is_primary]
            keep = flagged[0] if flagged else None
        return [
            item.model_copy(update={"is_primary": item.id == keep}) if item.is_primary or item.id == keep else item
            for item in items
        ]
