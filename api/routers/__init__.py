"""
API routers for different endpoints.
"""

from .health import router as health_router
from .prompts import router as prompts_router
from .websocket import router as websocket_router

__all__ = [
    "health_router",
    "prompts_router",
    "websocket_router",
]
