"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400
    retryable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Token missing, invalid, or expired"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class PermissionDeniedError(DomainError):
    """Policy gate failed. Never carries the failing rule."""
    error_code = "PERMISSION_DENIED"
    http_status = 403

    def __init__(self, message: str = "You are not allowed to perform this action"):
        super().__init__(message)


# Validation Errors
class ValidationError(DomainError):
    """Missing or malformed input"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


# Not Found Errors
class NotFoundError(DomainError):
    """Entity absent or outside the caller's scope"""
    error_code = "NOT_FOUND"
    http_status = 404

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(
            f"{entity_type} {entity_id} not found",
            details={"entity_type": entity_type, "entity_id": entity_id}
        )


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict"""
    error_code = "CONFLICT"
    http_status = 409


class AlreadyExistsError(ConflictError):
    """Resource already exists"""
    error_code = "ALREADY_EXISTS"


class InvalidTransitionError(ConflictError):
    """Status change not present in the entity's transition table"""
    error_code = "INVALID_TRANSITION"

    def __init__(self, entity_type: str, from_status: str, to_status: str):
        super().__init__(
            f"Cannot change {entity_type.lower()} status from {from_status} to {to_status}",
            details={
                "entity_type": entity_type,
                "from_status": from_status,
                "to_status": to_status
            }
        )


# Store Errors
class CascadeFailureError(DomainError):
    """Cascading delete aborted and rolled back"""
    error_code = "CASCADE_FAILURE"
    http_status = 500
    retryable = True

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(
            f"Deleting {entity_type.lower()} {entity_id} failed; no changes were kept",
            details={"entity_type": entity_type, "entity_id": entity_id, "retryable": True}
        )


class DependencyUnavailableError(DomainError):
    """Store or transport timed out"""
    error_code = "DEPENDENCY_UNAVAILABLE"
    http_status = 503
    retryable = True

    def __init__(self, dependency: str = "database"):
        super().__init__(
            f"The {dependency} is temporarily unavailable, please retry",
            details={"dependency": dependency, "retryable": True}
        )


# External Service Errors
class EmailSendError(DomainError):
    """Email sending failed"""
    error_code = "EMAIL_SEND_ERROR"
    http_status = 502
    retryable = True
