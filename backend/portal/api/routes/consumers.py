"""Consumer Users API - Customer-side portal accounts"""
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_current_user_dep, PageParams
from .schemas import ListResponse, ActionResponse, page_response
from ...domain.models import Principal
from ...domain.inputs import ConsumerUserCreate, ConsumerUserUpdate, PasswordChange
from ...domain.errors import DomainError
from ...services.user_service import UserService

router = APIRouter()


@router.get("", response_model=ListResponse)
async def list_consumers(
    customer_id: Optional[str] = Query(None, alias="customerId"),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=200),
    paging: PageParams = Depends(),
    actor: Principal = Depends(get_current_user_dep)
):
    try:
        items, pagination = UserService().list_consumers(
            actor, customer_id=customer_id, status=status_filter, search=search, **paging.as_kwargs()
        )
        return page_response(items, pagination)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_consumer(
    payload: ConsumerUserCreate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return UserService().create_consumer(actor, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{user_id}")
async def get_consumer(
    user_id: str,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return UserService().get_consumer(actor, user_id).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{user_id}")
async def update_consumer(
    user_id: str,
    payload: ConsumerUserUpdate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return UserService().update_consumer(actor, user_id, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.put("/{user_id}/password", response_model=ActionResponse)
async def set_consumer_password(
    user_id: str,
    payload: PasswordChange,
    actor: Principal = Depends(get_current_user_dep)
):
    try:
        UserService().set_consumer_password(actor, user_id, payload)
        return ActionResponse(message="Password updated")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.delete("/{user_id}", response_model=ActionResponse)
async def delete_consumer(
    user_id: str,
    actor: Principal = Depends(get_current_user_dep)
):
    try:
        UserService().delete_consumer(actor, user_id)
        return ActionResponse(message="Consumer user deleted")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
