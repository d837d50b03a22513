"""Projects API"""
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_current_user_dep, PageParams
from .schemas import ListResponse, DeleteResponse, page_response
from ...domain.models import Principal
from ...domain.inputs import ProjectCreate, ProjectUpdate, QuickAssign
from ...domain.errors import DomainError
from ...services.project_service import ProjectService

router = APIRouter()


@router.get("", response_model=ListResponse)
async def list_projects(
    status_filter: Optional[str] = Query(None, alias="status"),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    search: Optional[str] = Query(None, max_length=200),
    mine: bool = Query(False),
    paging: PageParams = Depends(),
    actor: Principal = Depends(get_current_user_dep)
):
    """
    List projects visible to the caller.

    Consumers only ever see their own customer's projects; mine=true narrows
    to projects assigned to the caller.
    """
    try:
        items, pagination = ProjectService().list_projects(
            actor,
            status=status_filter,
            customer_id=customer_id,
            search=search,
            mine=mine,
            **paging.as_kwargs()
        )
        return page_response(items, pagination)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: ProjectCreate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return ProjectService().create_project(actor, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{project_id}")
async def get_project(
    project_id: str,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return ProjectService().get_project(actor, project_id).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{project_id}")
async def update_project(
    project_id: str,
    payload: ProjectUpdate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return ProjectService().update_project(actor, project_id, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{project_id}/assignee")
async def assign_project(
    project_id: str,
    payload: QuickAssign,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    """Quick assign (assigneeId: null unassigns)"""
    try:
        return ProjectService().assign_project(actor, project_id, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.delete("/{project_id}", response_model=DeleteResponse)
async def delete_project(
    project_id: str,
    actor: Principal = Depends(get_current_user_dep)
):
    try:
        result = ProjectService().delete_project(actor, project_id)
        return DeleteResponse(deleted=result.deleted)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
