"""
Shared error handling for the Exoplanet Explorer proxy layer.

Every failure is surfaced to the caller as a JSON envelope
``{"error": <Kind>, "message": ...}`` with an HTTP status that reflects
the error family.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str
    message: Optional[str] = None
    status: Optional[int] = None
    body: Optional[str] = None
    request_id: Optional[str] = None


class ProxyLayerException(Exception):
    """Base exception for proxy layer services."""

    status_code = 500

    def __init__(
        self,
        error: str,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.error = error
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        self.headers = headers or {}
        super().__init__(message or error)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            error=self.error,
            message=self.message,
            request_id=request_id_var.get(),
        )


class ClientError(ProxyLayerException):
    """Malformed or missing input. Never retried."""

    status_code = 400


class MethodNotAllowedError(ClientError):
    """Request method not supported by the endpoint."""

    status_code = 405

    def __init__(self, method: str, allowed: str):
        super().__init__(
            "MethodNotAllowed",
            f"Method {method} not allowed",
            details={"method": method},
            headers={"Allow": allowed},
        )


class MissingQueryError(ClientError):
    """Archive request without a query string."""

    def __init__(self, message: str = "A query string is required, e.g. ?query=select+...&format=json"):
        super().__init__("MissingQuery", message)


class InvalidBodyError(ClientError):
    """Request body is not a JSON object."""

    def __init__(self, message: str = "Request body must be a JSON object"):
        super().__init__("InvalidBody", message)


class MissingPromptError(ClientError):
    """Chat request without a usable prompt."""

    def __init__(self, message: str = "Missing prompt in request body"):
        super().__init__("MissingPrompt", message)


class ConfigurationError(ProxyLayerException):
    """A required secret or endpoint is missing from the deployment."""

    status_code = 501

    def __init__(self, message: str = "Service not configured"):
        super().__init__("NotConfigured", message)


class UpstreamError(ProxyLayerException):
    """Upstream answered with a non-2xx status."""

    status_code = 502

    def __init__(self, service: str, upstream_status: int, upstream_body: str):
        self.service = service
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body
        super().__init__(
            "UpstreamError",
            f"{service} responded with status {upstream_status}",
            details={"service": service, "status": upstream_status},
        )

    def to_response(self) -> ErrorResponse:
        response = super().to_response()
        response.status = self.upstream_status
        response.body = self.upstream_body
        return response


class TransportFailure(ProxyLayerException):
    """Network-level failure (connect, read, timeout) talking to an upstream."""

    status_code = 500

    def __init__(
        self,
        service: str,
        message: str = "Upstream unreachable",
        status_code: Optional[int] = None,
        error: str = "ProxyError",
    ):
        self.service = service
        self.reason = message
        super().__init__(
            error,
            f"{service}: {message}",
            details={"service": service},
            status_code=status_code,
        )
