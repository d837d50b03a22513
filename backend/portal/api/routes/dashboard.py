"""Dashboard API"""
from typing import Any, Dict
from fastapi import APIRouter, Depends, HTTPException, Query

from ..deps import get_current_user_dep
from ...domain.models import Principal
from ...domain.errors import DomainError
from ...services.dashboard_service import DashboardService

router = APIRouter()


@router.get("")
async def get_dashboard(
    mine: bool = Query(False),
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    """Per-status counts over everything the caller may see"""
    try:
        return DashboardService().get_summary(actor, mine=mine)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
