"""Auth API - Session tokens and the current principal"""
from typing import Any, Dict
from fastapi import APIRouter, Depends, HTTPException, Request

from ..deps import get_current_user_dep, get_client_ip
from ...domain.models import Principal
from ...domain.inputs import LoginRequest
from ...domain.errors import DomainError
from ...services.auth_service import AuthService

router = APIRouter()


@router.post("/token")
async def login(payload: LoginRequest, request: Request) -> Dict[str, Any]:
    """
    Exchange email and password for a bearer token.

    Wrong email, wrong password and inactive accounts all return the same 401.
    """
    try:
        return AuthService().login(
            payload.email,
            payload.password,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("User-Agent")
        )
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict(), headers={"WWW-Authenticate": "Bearer"})


@router.get("/me")
async def get_me(actor: Principal = Depends(get_current_user_dep)) -> Dict[str, Any]:
    """The resolved principal (role, kind and customer)"""
    return {
        "id": actor.id,
        "email": actor.email,
        "name": actor.name,
        "role": actor.role.value,
        "kind": actor.kind.value,
        "customerId": actor.customer_id,
    }
