"""API Dependencies - Common dependencies for routes"""
from typing import Optional
from fastapi import Header, HTTPException, Query, Request, status

from ..domain.models import Principal
from ..domain.errors import AuthenticationError
from ..services.auth_service import AuthService
from ..utils.logger import set_actor_id


def get_client_ip(request: Request) -> Optional[str]:
    """First hop of X-Forwarded-For, else the socket peer"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def get_current_user_dep(
    request: Request,
    authorization: Optional[str] = Header(None)
) -> Principal:
    """
    Dependency to get the acting principal from the Authorization header

    Validates the session token and re-reads the user's role and status.

    Raises:
        HTTPException: 401 if token is invalid, missing or the user is inactive
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": {"code": "AUTHENTICATION_ERROR", "message": "Authorization header is missing", "details": {}}},
            headers={"WWW-Authenticate": "Bearer"}
        )

    try:
        principal = AuthService().resolve_principal(
            authorization,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("User-Agent")
        )
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.to_dict(),
            headers={"WWW-Authenticate": "Bearer"}
        )

    set_actor_id(principal.id)
    return principal


class PageParams:
    """Shared pagination and sorting query parameters"""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        sort_by: Optional[str] = Query(None, alias="sortBy"),
        sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$")
    ):
        self.page = page
        self.limit = limit
        self.sort_by = sort_by
        self.sort_order = sort_order

    def as_kwargs(self) -> dict:
        return {"page": self.page, "limit": self.limit, "sort_by": self.sort_by, "sort_order": self.sort_order}
