"""Session Token Issuing and Validation (HS256 shared secret)"""
import jwt
from datetime import timedelta
from typing import Any, Dict, Optional

from ..config.settings import settings
from ..domain.errors import AuthenticationError
from .time import utc_now
from .logger import get_logger

logger = get_logger(__name__)


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    kind: str,
    customer_id: Optional[str] = None,
    expires_minutes: Optional[int] = None
) -> str:
    """
    Issue a signed session token

    Args:
        user_id: Staff or consumer user id (the `sub` claim)
        role: ADMIN, MANAGER, MITARBEITER or KUNDE
        kind: STAFF or CONSUMER
        customer_id: Owning customer for consumers

    Returns:
        Encoded JWT
    """
    now = utc_now()
    claims: Dict[str, Any] = {
        "sub": user_id,
        "email": email,
        "role": role,
        "kind": kind,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes or settings.auth_token_ttl_minutes),
    }
    if customer_id:
        claims["customer_id"] = customer_id
    return jwt.encode(claims, settings.auth_secret, algorithm=settings.auth_algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Validate a session token and return its claims

    Raises:
        AuthenticationError: If the token is missing, malformed, forged or expired
    """
    if not token:
        raise AuthenticationError("Token is missing")

    # Remove 'Bearer ' prefix if present
    if token.startswith("Bearer "):
        token = token[7:]

    try:
        claims = jwt.decode(
            token,
            settings.auth_secret,
            algorithms=[settings.auth_algorithm],
            options={"require": ["sub", "exp"]}
        )
    except jwt.ExpiredSignatureError:
        logger.warning("Token expired")
        raise AuthenticationError("Token has expired")
    except jwt.PyJWTError as e:
        logger.warning(f"JWT validation error: {e}")
        raise AuthenticationError("Invalid token")

    if not claims.get("kind"):
        raise AuthenticationError("Invalid token")
    return claims
