"""
Route Schemas

Response envelopes shared by the API endpoints.
"""

from typing import Any, Dict, Iterable, List
from pydantic import BaseModel, Field

from ...domain.models import DomainModel, Pagination


class ListResponse(BaseModel):
    """Paginated list envelope"""
    items: List[Dict[str, Any]]
    pagination: Pagination


class ActionResponse(BaseModel):
    """Generic action response"""
    success: bool = True
    message: str = ""


class DeleteResponse(BaseModel):
    """Response after a (cascading) delete"""
    success: bool = True
    deleted: Dict[str, int] = Field(default_factory=dict)


class MarkReadResponse(BaseModel):
    """Response after marking notifications read"""
    success: bool = True
    marked_count: int = Field(0, serialization_alias="markedCount")


def page_response(items: Iterable[DomainModel], pagination: Pagination) -> ListResponse:
    return ListResponse(items=[item.to_api() for item in items], pagination=pagination)
