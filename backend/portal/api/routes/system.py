"""System API - Cron triggers and operational status (ADMIN only)"""
from typing import Any, Dict
from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_current_user_dep
from ...config.settings import settings
from ...domain.models import Principal
from ...domain.enums import Action, EntityType
from ...domain.errors import DomainError
from ...engine.permission_guard import PermissionGuard
from ...repositories.mongo_client import health_check
from ...repositories.side_effect_repo import SideEffectRepository
from ...scheduler.dev_scheduler import get_scheduler
from ...services.deadline_service import DeadlineService
from ...services.notification_service import NotificationService
from ...utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/cron/task-deadlines")
async def run_task_deadlines(actor: Principal = Depends(get_current_user_dep)) -> Dict[str, Any]:
    """
    Run the deadline reminder scan now.

    Safe to call repeatedly; each reminder goes out once per task and due date.
    """
    try:
        PermissionGuard().require(actor, Action.UPDATE, EntityType.SYSTEM)
        sent = DeadlineService().run()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())

    logger.info("Deadline scan triggered manually", extra={"user_id": actor.id})
    return {"success": True, "sent": sent}


@router.get("/system/status")
async def system_status(actor: Principal = Depends(get_current_user_dep)) -> Dict[str, Any]:
    try:
        PermissionGuard().require(actor, Action.READ, EntityType.SYSTEM)
        outbox = NotificationService().outbox_stats()
        deferred = SideEffectRepository().count_by_status()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())

    return {
        "environment": settings.environment,
        "mongo": health_check(),
        "outbox": outbox,
        "deferredSideEffects": deferred,
        "emailConfigured": settings.email_configured,
        "scheduler": {
            "enabled": settings.scheduler_enabled,
            "running": get_scheduler().is_running,
        },
    }
