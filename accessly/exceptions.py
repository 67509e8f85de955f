"""Error taxonomy shared by the service layers and rendered by the API."""

from __future__ import annotations

from typing import Any, Optional


class AccesslyError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str, *, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict:
        payload = {"success": False, "error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class Unauthorized(AccesslyError):
    """Raised when no verified identity accompanies the request."""

    status_code = 401


class NotFound(AccesslyError):
    """Raised when a record or issue is missing or not owned by the caller."""

    status_code = 404


class BadRequest(AccesslyError):
    status_code = 400


class Conflict(AccesslyError):
    status_code = 409


class UpstreamError(AccesslyError):
    """Raised when an external service fails or misbehaves."""

    status_code = 502


class ServiceUnavailable(UpstreamError):
    """Transport failure or non-success status from an external service."""


class InvalidResponse(UpstreamError):
    """External service answered successfully but the body is unusable."""


class TranscriptionFailed(UpstreamError):
    status_code = 500


class QuotaExceeded(TranscriptionFailed):
    status_code = 429


class AuthError(TranscriptionFailed):
    status_code = 401


class BadInput(TranscriptionFailed):
    status_code = 400


class AltTextFailed(UpstreamError):
    """Vision model could not describe an image."""


class InternalError(AccesslyError):
    status_code = 500


class ConfigurationError(InternalError):
    """Raised when a required credential or connection string is missing."""


class PdfFixError(Exception):
    """Raised by the PDF fixer when a document cannot be mutated."""


__all__ = [
    "AccesslyError",
    "Unauthorized",
    "NotFound",
    "BadRequest",
    "Conflict",
    "UpstreamError",
    "ServiceUnavailable",
    "InvalidResponse",
    "TranscriptionFailed",
    "QuotaExceeded",
    "AuthError",
    "BadInput",
    "AltTextFailed",
    "InternalError",
    "ConfigurationError",
    "PdfFixError",
]
