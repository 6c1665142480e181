"""
Shared error handling for the proxy entitlements connector.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class ConnectorException(Exception):
    """Base exception for connector operations."""

    status_code = 400

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


class NotFoundError(ConnectorException):
    """A required identity, account or source does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class ValidationError(ConnectorException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class ConfigurationError(ConnectorException):
    """Connector configuration cannot be used."""

    status_code = 400

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class RemoteError(ConnectorException):
    """A call to the identity platform was rejected or failed in transit."""

    status_code = 502

    def __init__(self, message: str = "Remote call failed", status_code: Optional[int] = None,
                 body: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        if status_code is not None:
            details["status_code"] = status_code
        if body:
            details["body"] = body
        super().__init__("REMOTE_ERROR", message, details)
        self.remote_status = status_code
        self.body = body
