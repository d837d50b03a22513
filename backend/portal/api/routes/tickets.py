"""Tickets API - Tickets and ticket comments"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_current_user_dep, PageParams
from .schemas import ListResponse, ActionResponse, DeleteResponse, page_response
from ...domain.models import Principal
from ...domain.inputs import TicketCreate, TicketUpdate, QuickAssign, CommentCreate
from ...domain.enums import EntityType
from ...domain.errors import DomainError
from ...services.ticket_service import TicketService
from ...services.comment_service import CommentService

router = APIRouter()


@router.get("", response_model=ListResponse)
async def list_tickets(
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = Query(None),
    ticket_type: Optional[str] = Query(None, alias="type"),
    project_id: Optional[str] = Query(None, alias="projectId"),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    assignee_id: Optional[str] = Query(None, alias="assigneeId"),
    department: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    mine: bool = Query(False),
    paging: PageParams = Depends(),
    actor: Principal = Depends(get_current_user_dep)
):
    try:
        items, pagination = TicketService().list_tickets(
            actor,
            status=status_filter,
            priority=priority,
            type=ticket_type,
            project_id=project_id,
            customer_id=customer_id,
            assignee_id=assignee_id,
            department=department,
            search=search,
            mine=mine,
            **paging.as_kwargs()
        )
        return page_response(items, pagination)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_ticket(
    payload: TicketCreate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    """
    Open a ticket.

    Consumers always file against their own customer and cannot pick an assignee.
    """
    try:
        return TicketService().create_ticket(actor, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{ticket_id}")
async def get_ticket(
    ticket_id: str,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return TicketService().get_ticket(actor, ticket_id).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{ticket_id}")
async def update_ticket(
    ticket_id: str,
    payload: TicketUpdate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return TicketService().update_ticket(actor, ticket_id, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{ticket_id}/assignee")
async def assign_ticket(
    ticket_id: str,
    payload: QuickAssign,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return TicketService().assign_ticket(actor, ticket_id, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.delete("/{ticket_id}", response_model=DeleteResponse)
async def delete_ticket(
    ticket_id: str,
    actor: Principal = Depends(get_current_user_dep)
):
    try:
        result = TicketService().delete_ticket(actor, ticket_id)
        return DeleteResponse(deleted=result.deleted)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


# =============================================================================
# Comments
# =============================================================================

@router.get("/{ticket_id}/comments")
async def list_ticket_comments(
    ticket_id: str,
    actor: Principal = Depends(get_current_user_dep)
) -> List[Dict[str, Any]]:
    try:
        comments = CommentService().list_comments(actor, EntityType.TICKET, ticket_id)
        return [c.to_api() for c in comments]
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{ticket_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_ticket_comment(
    ticket_id: str,
    payload: CommentCreate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return CommentService().add_comment(actor, EntityType.TICKET, ticket_id, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.delete("/{ticket_id}/comments/{comment_id}", response_model=ActionResponse)
async def delete_ticket_comment(
    ticket_id: str,
    comment_id: str,
    actor: Principal = Depends(get_current_user_dep)
):
    try:
        CommentService().delete_comment(actor, EntityType.TICKET, ticket_id, comment_id)
        return ActionResponse(message="Comment deleted")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
