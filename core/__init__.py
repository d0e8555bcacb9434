"""
Core modules for the Effect Studio API.

This package contains fundamental utilities used across the application:
- config: Application settings and configuration
- redis: Redis connection management
- exceptions: Custom exception classes
"""

from .config import Settings, get_settings
from .exceptions import (
    AppException,
    CatalogReadOnlyError,
    CatalogStorageError,
    CatalogTransportError,
    EffectNotFoundError,
    ExternalServiceError,
    NotFoundError,
    StorageError,
    UnknownCatalogError,
    ValidationError,
)

__all__ = [
    # Config
    "get_settings",
    "Settings",
    # Exceptions
    "AppException",
    "NotFoundError",
    "ValidationError",
    "ExternalServiceError",
    "StorageError",
    "CatalogStorageError",
    "CatalogReadOnlyError",
    "CatalogTransportError",
    "UnknownCatalogError",
    "EffectNotFoundError",
]
