"""Project Repository - Data access for projects"""
from .base_repo import EntityRepository
from ..domain.models import Project
from ..domain.enums import EntityType


class ProjectRepository(EntityRepository[Project]):
    """Repository for project operations"""

    collection_name = "projects"
    model = Project
    entity_type = EntityType.PROJECT
    sort_fields = ("created_at", "updated_at", "name", "code", "status", "end_date")
