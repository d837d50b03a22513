"""Staff Users API - Admin management of internal accounts"""
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_current_user_dep, PageParams
from .schemas import ListResponse, ActionResponse, page_response
from ...domain.models import Principal
from ...domain.inputs import StaffUserCreate, StaffUserUpdate, PasswordChange
from ...domain.errors import DomainError
from ...services.user_service import UserService

router = APIRouter()


@router.get("", response_model=ListResponse)
async def list_staff(
    role: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=200),
    paging: PageParams = Depends(),
    actor: Principal = Depends(get_current_user_dep)
):
    try:
        items, pagination = UserService().list_staff(
            actor, role=role, status=status_filter, search=search, **paging.as_kwargs()
        )
        return page_response(items, pagination)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_staff(
    payload: StaffUserCreate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return UserService().create_staff(actor, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{user_id}")
async def get_staff(
    user_id: str,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return UserService().get_staff(actor, user_id).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{user_id}")
async def update_staff(
    user_id: str,
    payload: StaffUserUpdate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return UserService().update_staff(actor, user_id, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.put("/{user_id}/password", response_model=ActionResponse)
async def set_staff_password(
    user_id: str,
    payload: PasswordChange,
    actor: Principal = Depends(get_current_user_dep)
):
    try:
        UserService().set_staff_password(actor, user_id, payload)
        return ActionResponse(message="Password updated")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.delete("/{user_id}", response_model=ActionResponse)
async def delete_staff(
    user_id: str,
    actor: Principal = Depends(get_current_user_dep)
):
    """Delete a staff account; their assigned work items become unassigned"""
    try:
        UserService().delete_staff(actor, user_id)
        return ActionResponse(message="User deleted")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
