"""Ticket Repository - Data access for tickets"""
from .base_repo import EntityRepository
from ..domain.models import Ticket
from ..domain.enums import EntityType


class TicketRepository(EntityRepository[Ticket]):
    """Repository for ticket operations"""

    collection_name = "tickets"
    model = Ticket
    entity_type = EntityType.TICKET
    sort_fields = ("created_at", "updated_at", "title", "status", "priority", "due_date")
