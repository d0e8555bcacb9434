"""
Custom exception classes for the application.

All exceptions inherit from AppException and include:
- error_code: Machine-readable error code for i18n
- message: Human-readable error message
- status_code: HTTP status code to return
"""

from typing import Any


class AppException(Exception):
    """Base exception for all application errors."""

    error_code: str = "internal_error"
    message: str = "An unexpected error occurred"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(AppException):
    """Raised when a resource is not found."""

    error_code = "not_found"
    message = "Resource not found"
    status_code = 404


class ValidationError(AppException):
    """Raised when input validation fails."""

    error_code = "validation_error"
    message = "Invalid input"
    status_code = 422


class ExternalServiceError(AppException):
    """Raised when an external service fails."""

    error_code = "external_service_error"
    message = "External service unavailable"
    status_code = 503


class StorageError(AppException):
    """Raised when storage operation fails."""

    error_code = "storage_error"
    message = "Storage operation failed"
    status_code = 500


class CatalogStorageError(StorageError):
    """Raised when a catalog document cannot be written."""

    error_code = "catalog_storage_error"
    message = "Failed to write prompt catalog"


class CatalogReadOnlyError(AppException):
    """Raised when a write targets a read-only catalog."""

    error_code = "catalog_read_only"
    message = "Catalog is read-only"
    status_code = 403


class UnknownCatalogError(NotFoundError):
    """Raised when a catalog name is not recognised."""

    error_code = "catalog_not_found"
    message = "Catalog not found"


class EffectNotFoundError(NotFoundError):
    """Raised when a custom effect key does not exist."""

    error_code = "effect_not_found"
    message = "Effect not found"


class CatalogTransportError(ExternalServiceError):
    """Raised when the prompt API cannot be reached or fails."""

    error_code = "catalog_transport_error"
    message = "Prompt catalog service unavailable"
