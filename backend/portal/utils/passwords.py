"""Password Hashing - bcrypt via passlib"""
from passlib.context import CryptContext

from ..config.settings import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds
)


def hash_password(password: str) -> str:
    """Hash a password for storage"""
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """Check a password against a stored hash; an empty or foreign hash never matches"""
    if not hashed or not pwd_context.identify(hashed):
        return False
    return pwd_context.verify(password, hashed)
