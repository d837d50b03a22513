"""Customers API - Customers with embedded addresses and contacts"""
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_current_user_dep, PageParams
from .schemas import ListResponse, DeleteResponse, page_response
from ...domain.models import Principal
from ...domain.inputs import (
    CustomerCreate, CustomerUpdate, AddressInput, AddressUpdate, ContactInput, ContactUpdate
)
from ...domain.enums import CustomerStatus
from ...domain.errors import DomainError
from ...services.customer_service import CustomerService

router = APIRouter()


# =============================================================================
# Customers
# =============================================================================

@router.get("", response_model=ListResponse)
async def list_customers(
    status_filter: Optional[CustomerStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=200),
    paging: PageParams = Depends(),
    actor: Principal = Depends(get_current_user_dep)
):
    """List customers (staff only)"""
    try:
        items, pagination = CustomerService().list_customers(
            actor,
            status=status_filter.value if status_filter else None,
            search=search,
            **paging.as_kwargs()
        )
        return page_response(items, pagination)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_customer(
    payload: CustomerCreate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return CustomerService().create_customer(actor, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{customer_id}")
async def get_customer(
    customer_id: str,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return CustomerService().get_customer(actor, customer_id).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{customer_id}")
async def update_customer(
    customer_id: str,
    payload: CustomerUpdate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return CustomerService().update_customer(actor, customer_id, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.delete("/{customer_id}", response_model=DeleteResponse)
async def delete_customer(
    customer_id: str,
    actor: Principal = Depends(get_current_user_dep)
):
    """Delete a customer with its projects, consumer users and work items"""
    try:
        result = CustomerService().delete_customer(actor, customer_id)
        return DeleteResponse(deleted=result.deleted)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


# =============================================================================
# Addresses
# =============================================================================

@router.post("/{customer_id}/addresses", status_code=status.HTTP_201_CREATED)
async def add_address(
    customer_id: str,
    payload: AddressInput,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return CustomerService().add_address(actor, customer_id, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{customer_id}/addresses/{address_id}")
async def update_address(
    customer_id: str,
    address_id: str,
    payload: AddressUpdate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return CustomerService().update_address(actor, customer_id, address_id, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.delete("/{customer_id}/addresses/{address_id}")
async def remove_address(
    customer_id: str,
    address_id: str,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return CustomerService().remove_address(actor, customer_id, address_id).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


# =============================================================================
# Contacts
# =============================================================================

@router.post("/{customer_id}/contacts", status_code=status.HTTP_201_CREATED)
async def add_contact(
    customer_id: str,
    payload: ContactInput,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return CustomerService().add_contact(actor, customer_id, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{customer_id}/contacts/{contact_id}")
async def update_contact(
    customer_id: str,
    contact_id: str,
    payload: ContactUpdate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return CustomerService().update_contact(actor, customer_id, contact_id, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.delete("/{customer_id}/contacts/{contact_id}")
async def remove_contact(
    customer_id: str,
    contact_id: str,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return CustomerService().remove_contact(actor, customer_id, contact_id).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
