"""
Shared error handling for the JIT Access core.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class JitAccessException(Exception):
    """Base exception for JIT Access components."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class AuthorizationError(JitAccessException):
    """Authorization-related errors."""

    def __init__(self, code: str = "AUTHORIZATION_ERROR", message: str = "Authorization failed",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class ValidationError(JitAccessException):
    """Validation-related errors."""

    def __init__(self, code: str = "VALIDATION_ERROR", message: str = "Validation failed",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class ServiceError(JitAccessException):
    """Service-related errors."""

    def __init__(self, code: str = "SERVICE_ERROR", message: str = "Service error",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class ExternalServiceError(JitAccessException):
    """External service errors."""

    def __init__(self, service: str, message: str = "External service error",
                 details: Optional[Dict[str, Any]] = None, code: str = "EXTERNAL_SERVICE_ERROR"):
        self.service = service
        super().__init__(code, f"{service}: {message}", details)


class InvalidExpression(ValidationError):
    """Condition text is malformed or refers to unknown symbols."""

    def __init__(self, message: str = "Invalid expression", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_EXPRESSION", message, details)


class InvalidArgument(ValidationError):
    """A request or value was constructed from invalid arguments."""

    def __init__(self, message: str = "Invalid argument", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_ARGUMENT", message, details)


class AccessDenied(AuthorizationError):
    """The caller lacks rights to inspect a resource, group or request."""

    def __init__(self, message: str = "Access denied", details: Optional[Dict[str, Any]] = None):
        super().__init__("ACCESS_DENIED", message, details)


class InvalidToken(AuthorizationError):
    """A token failed signature or expiry verification."""

    def __init__(self, message: str = "Invalid token", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_TOKEN", message, details)


class IOFailure(ExternalServiceError):
    """Transport or collaborator failure."""

    def __init__(self, service: str, message: str = "I/O failure", details: Optional[Dict[str, Any]] = None):
        super().__init__(service, message, details, code="IO_FAILURE")


class UnsupportedOperation(ServiceError):
    """The capability is not available in this discovery strategy."""

    def __init__(self, message: str = "Operation not supported", details: Optional[Dict[str, Any]] = None):
        super().__init__("UNSUPPORTED_OPERATION", message, details)


def is_authorization_failure(error: Exception) -> bool:
    """Whether an error should surface as an authorization failure at the boundary."""
    return isinstance(error, (AccessDenied, InvalidToken))
