"""
Pydantic schemas for WebSocket messages.
"""

from enum import StrEnum


class WSMessageType(StrEnum):
    """WebSocket message types."""

    # Client → Server
    PING = "ping"
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"

    # Server → Client
    CONNECTED = "connected"
    PONG = "pong"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"
    ERROR = "error"

    # Catalog events
    PROMPTS_CHANGED = "prompts:changed"

