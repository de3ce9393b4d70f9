"""
Shared error handling for the HN API proxy.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str
    code: str
    details: Dict[str, Any] = {}


class HnApiException(Exception):
    """Base exception for HN API proxy services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            error=self.message,
            code=self.code,
            details=self.details
        )


class ValidationError(HnApiException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(HnApiException):
    """Requested resource does not exist at the origin."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class ExternalServiceError(HnApiException):
    """External service errors."""

    status_code = 502

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)
        self.service = service
        self.reason = message


class TransportError(ExternalServiceError):
    """Network or protocol failure while talking to the origin."""

    def __init__(self, message: str = "Transport failure", details: Optional[Dict[str, Any]] = None):
        super().__init__("origin", message, details)
        self.code = "TRANSPORT_ERROR"


class OriginError(ExternalServiceError):
    """A root, listing or user fetch failed against the origin."""

    def __init__(self, message: str = "Origin fetch failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("origin", message, details)
        self.code = "ORIGIN_ERROR"


class GatewayTimeoutError(HnApiException):
    """The request ran past the service's deadline."""

    status_code = 504

    def __init__(self, message: str = "Request timed out", details: Optional[Dict[str, Any]] = None):
        super().__init__("GATEWAY_TIMEOUT", message, details)
