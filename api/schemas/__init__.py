"""
Pydantic schemas for API request/response models.
"""

from .common import (
    HealthStatus,
    HealthCheckResponse,
    DetailedHealthCheckResponse,
    ComponentHealth,
)

from .prompts import (
    CUSTOM_PROMPT_KEY,
    CUSTOM_PROMPT_SENTINEL,
    DEFAULT_ICON,
    CatalogName,
    TransformationCategory,
    PromptFields,
    UpsertPromptRequest,
    UpsertPromptResponse,
    OkResponse,
    OverridePatch,
    OverrideSet,
    MergedPromptItem,
    TransformationListResponse,
)

from .websocket import WSMessageType

__all__ = [
    # Common
    "HealthStatus",
    "HealthCheckResponse",
    "DetailedHealthCheckResponse",
    "ComponentHealth",
    # Prompts
    "CUSTOM_PROMPT_KEY",
    "CUSTOM_PROMPT_SENTINEL",
    "DEFAULT_ICON",
    "CatalogName",
    "TransformationCategory",
    "PromptFields",
    "UpsertPromptRequest",
    "UpsertPromptResponse",
    "OkResponse",
    "OverridePatch",
    "OverrideSet",
    "MergedPromptItem",
    "TransformationListResponse",
    # WebSocket
    "WSMessageType",
]
