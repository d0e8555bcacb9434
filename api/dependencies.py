"""
FastAPI dependency injection for the catalog store and change bus.

Both live on ``app.state`` and are built by create_app(), so each app
instance (and each test app) has its own.
"""

from fastapi import Request

from core.config import Settings
from services.change_bus import ChangeBus
from services.prompt_store import PromptCatalogStore
from services.websocket_manager import WebSocketManager


def get_prompt_store(request: Request) -> PromptCatalogStore:
    """Get the PromptCatalogStore dependency."""
    return request.app.state.prompt_store


def get_change_bus(request: Request) -> ChangeBus:
    """Get the in-process ChangeBus dependency."""
    return request.app.state.bus


def get_ws_manager(request: Request) -> WebSocketManager:
    """Get the WebSocketManager dependency."""
    return request.app.state.ws_manager


def get_app_settings(request: Request) -> Settings:
    """Get the Settings the app was created with."""
    return request.app.state.settings
