"""User Notifications API - In-app notification bell endpoints"""
from typing import Any, Dict
from fastapi import APIRouter, Depends, Query, HTTPException

from ..deps import get_current_user_dep
from .schemas import MarkReadResponse
from ...domain.models import Principal
from ...domain.errors import DomainError
from ...services.notification_service import NotificationService
from ...utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("")
async def get_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False, alias="unreadOnly"),
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    """
    Get notifications for current user

    Returns newest first with the total unread count for the bell badge.
    """
    try:
        return NotificationService().get_feed(actor, page=page, limit=limit, unread_only=unread_only)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/unread-count")
async def get_unread_count(actor: Principal = Depends(get_current_user_dep)) -> Dict[str, int]:
    try:
        return {"unreadCount": NotificationService().get_unread_count(actor)}
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/read-all", response_model=MarkReadResponse)
async def mark_all_as_read(actor: Principal = Depends(get_current_user_dep)):
    try:
        count = NotificationService().mark_all_as_read(actor)
        logger.info(f"Marked {count} notifications as read", extra={"user_id": actor.id})
        return MarkReadResponse(marked_count=count)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{notification_id}/read")
async def mark_as_read(
    notification_id: str,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    """Mark a single notification as read (only the recipient can)"""
    try:
        return NotificationService().mark_as_read(actor, notification_id)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
