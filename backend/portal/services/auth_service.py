"""Auth Service - Login and principal resolution"""
from typing import Any, Dict, Optional, Tuple, Union

from ..domain.models import Principal, StaffUser, ConsumerUser
from ..domain.enums import AuditAction, EntityType, PrincipalKind, UserStatus
from ..domain.errors import AuthenticationError
from ..engine.dispatcher import SideEffectDispatcher
from ..repositories.user_repo import StaffUserRepository, ConsumerUserRepository
from ..config.settings import settings
from ..utils.jwt import create_access_token, decode_token
from ..utils.passwords import verify_password
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

User = Union[StaffUser, ConsumerUser]


class AuthService:
    """
    Issue session tokens and turn them back into principals

    A token only carries identity. Role, status and customer are re-read from
    the user record on every request, so deactivation takes effect at once.
    """

    def __init__(self):
        self.staff_repo = StaffUserRepository()
        self.consumer_repo = ConsumerUserRepository()
        self.dispatcher = SideEffectDispatcher()

    @staticmethod
    def to_principal(
        user: User,
        kind: PrincipalKind,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> Principal:
        return Principal(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            kind=kind,
            customer_id=getattr(user, "customer_id", None),
            ip_address=ip_address,
            user_agent=user_agent
        )

    def _find_credentials(self, email: str) -> Tuple[Optional[User], Optional[str], Optional[PrincipalKind]]:
        user, password_hash = self.staff_repo.get_credentials(email)
        if user is not None:
            return user, password_hash, PrincipalKind.STAFF
        user, password_hash = self.consumer_repo.get_credentials(email)
        if user is not None:
            return user, password_hash, PrincipalKind.CONSUMER
        return None, None, None

    def login(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Verify credentials and issue a token

        Raises:
            AuthenticationError: Unknown email, wrong password or inactive account
                (all reported the same way)
        """
        user, password_hash, kind = self._find_credentials(email)
        if user is None or not verify_password(password, password_hash):
            logger.warning(f"Failed login for {email.lower()}")
            raise AuthenticationError("Invalid email or password")
        if user.status != UserStatus.ACTIVE.value:
            logger.warning(f"Login attempt for inactive account {user.id}", extra={"user_id": user.id})
            raise AuthenticationError("Invalid email or password")

        repo = self.staff_repo if kind == PrincipalKind.STAFF else self.consumer_repo
        repo.touch_login(user.id, utc_now())

        principal = self.to_principal(user, kind, ip_address, user_agent)
        token = create_access_token(
            user_id=user.id,
            email=user.email,
            role=user.role,
            kind=kind.value,
            customer_id=principal.customer_id
        )

        entity_type = EntityType.STAFF_USER if kind == PrincipalKind.STAFF else EntityType.CONSUMER_USER
        self.dispatcher.dispatch(AuditAction.LOGIN, entity_type, user.id, principal)

        logger.info(f"User logged in: {user.id}", extra={"user_id": user.id, "role": user.role})
        return {
            "accessToken": token,
            "tokenType": "bearer",
            "expiresIn": settings.auth_token_ttl_minutes * 60,
            "user": user.to_api(),
        }

    def resolve_principal(
        self,
        token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> Principal:
        """
        Decode a bearer token into the acting principal

        Raises:
            AuthenticationError: Bad token, unknown or inactive user
        """
        claims = decode_token(token)
        try:
            kind = PrincipalKind(claims["kind"])
        except ValueError:
            raise AuthenticationError("Invalid token")

        repo = self.staff_repo if kind == PrincipalKind.STAFF else self.consumer_repo
        user = repo.get_by_id(claims["sub"])
        if user is None or user.status != UserStatus.ACTIVE.value:
            raise AuthenticationError("User is unknown or inactive")

        return self.to_principal(user, kind, ip_address, user_agent)
