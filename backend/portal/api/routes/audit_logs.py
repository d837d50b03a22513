"""Audit Log API - Listing and CSV export (ADMIN only)"""
from datetime import datetime
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from ..deps import get_current_user_dep
from .schemas import ListResponse, page_response
from ...domain.models import Principal
from ...domain.errors import DomainError
from ...services.audit_service import AuditService
from ...utils.time import utc_now

router = APIRouter()


class AuditFilters:
    """Query filters shared by listing and export"""

    def __init__(
        self,
        entity_type: Optional[str] = Query(None, alias="entityType"),
        action: Optional[str] = Query(None),
        entity_id: Optional[str] = Query(None, alias="entityId"),
        user_id: Optional[str] = Query(None, alias="userId"),
        date_range: Optional[str] = Query(None, alias="dateRange"),
        date_from: Optional[datetime] = Query(None, alias="dateFrom"),
        date_to: Optional[datetime] = Query(None, alias="dateTo")
    ):
        self.values: Dict[str, Any] = {
            "entity_type": entity_type,
            "action": action,
            "entity_id": entity_id,
            "user_id": user_id,
            "date_range": date_range,
            "date_from": date_from,
            "date_to": date_to,
        }


@router.get("", response_model=ListResponse)
async def list_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    filters: AuditFilters = Depends(),
    actor: Principal = Depends(get_current_user_dep)
):
    """Audit entries newest first; dateRange (today, week, month, year) wins over dateFrom/dateTo"""
    try:
        items, pagination = AuditService().list_entries(actor, page=page, limit=limit, **filters.values)
        return page_response(items, pagination)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/export")
async def export_audit_logs(
    filters: AuditFilters = Depends(),
    actor: Principal = Depends(get_current_user_dep)
):
    try:
        content = AuditService().export_csv(actor, **filters.values)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())

    filename = f"audit-logs-{utc_now().strftime('%Y%m%d-%H%M%S')}.csv"
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
