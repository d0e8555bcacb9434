"""
WebSocket connection manager for catalog change notifications.

Browser tabs connect to /api/ws and receive a ``prompts:changed`` message
whenever a prompt catalog is written or changes on disk. New connections
start subscribed to the ``prompts`` channel; clients may unsubscribe and
subscribe again.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from fastapi import WebSocket

from api.schemas.websocket import WSMessageType
from services.change_bus import RESOURCE_PROMPTS, ChangeBus, ChangeEvent, Subscription

logger = logging.getLogger(__name__)

CHANNEL_PROMPTS = "prompts"

# Seconds without a ping before a connection is dropped
STALE_TIMEOUT = 90
HEARTBEAT_INTERVAL = 30


@dataclass
class Connection:
    """Represents a WebSocket connection."""

    id: str
    websocket: WebSocket
    connected_at: datetime = field(default_factory=datetime.now)
    last_ping: datetime = field(default_factory=datetime.now)
    subscriptions: set[str] = field(default_factory=set)


class WebSocketManager:
    """
    Manages WebSocket connections and change broadcasts.

    Features:
    - Connection management (connect/disconnect)
    - Channel subscriptions
    - Broadcasting bus events to subscribed connections
    - Heartbeat/ping-pong with stale connection cleanup
    """

    def __init__(self):
        self._connections: dict[str, Connection] = {}
        self._channel_subscriptions: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()
        self._heartbeat_task: asyncio.Task | None = None

    @property
    def connection_count(self) -> int:
        """Get the number of active connections."""
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> str:
        """Accept a new WebSocket connection and return its ID."""
        await websocket.accept()

        connection_id = str(uuid4())
        async with self._lock:
            self._connections[connection_id] = Connection(
                id=connection_id,
                websocket=websocket,
                subscriptions={CHANNEL_PROMPTS},
            )
            self._channel_subscriptions.setdefault(CHANNEL_PROMPTS, set()).add(connection_id)

        logger.info(f"WebSocket connected: {connection_id}")

        await self._send(
            websocket,
            {
                "type": WSMessageType.CONNECTED,
                "payload": {
                    "connection_id": connection_id,
                    "server_time": int(time.time() * 1000),
                    "channels": [CHANNEL_PROMPTS],
                },
            },
        )
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        """Forget a WebSocket connection and its subscriptions."""
        async with self._lock:
            connection = self._connections.pop(connection_id, None)
            if not connection:
                return

            for channel in connection.subscriptions:
                if channel in self._channel_subscriptions:
                    self._channel_subscriptions[channel].discard(connection_id)
                    if not self._channel_subscriptions[channel]:
                        del self._channel_subscriptions[channel]

        logger.info(f"WebSocket disconnected: {connection_id}")

    async def subscribe(self, connection_id: str, channel: str) -> bool:
        """Subscribe a connection to a channel."""
        async with self._lock:
            connection = self._connections.get(connection_id)
            if not connection:
                return False

            connection.subscriptions.add(channel)
            self._channel_subscriptions.setdefault(channel, set()).add(connection_id)

        logger.debug(f"Connection {connection_id} subscribed to {channel}")

        await self.send_to_connection(
            connection_id,
            {
                "type": WSMessageType.SUBSCRIBED,
                "payload": {"channel": channel},
            },
        )
        return True

    async def unsubscribe(self, connection_id: str, channel: str) -> bool:
        """Unsubscribe a connection from a channel."""
        async with self._lock:
            connection = self._connections.get(connection_id)
            if not connection:
                return False

            connection.subscriptions.discard(channel)
            if channel in self._channel_subscriptions:
                self._channel_subscriptions[channel].discard(connection_id)
                if not self._channel_subscriptions[channel]:
                    del self._channel_subscriptions[channel]

        await self.send_to_connection(
            connection_id,
            {
                "type": WSMessageType.UNSUBSCRIBED,
                "payload": {"channel": channel},
            },
        )
        return True

    async def send_to_connection(self, connection_id: str, message: dict[str, Any]) -> bool:
        """Send a message to a specific connection."""
        connection = self._connections.get(connection_id)
        if not connection:
            return False
        return await self._send(connection.websocket, message)

    async def broadcast_to_channel(self, channel: str, message: dict[str, Any]) -> int:
        """Broadcast a message to all subscribers of a channel."""
        connection_ids = self._channel_subscriptions.get(channel, set()).copy()
        sent = 0
        for connection_id in connection_ids:
            if await self.send_to_connection(connection_id, dict(message)):
                sent += 1
        return sent

    async def handle_ping(self, connection_id: str) -> None:
        """Handle a ping message from a client."""
        connection = self._connections.get(connection_id)
        if connection:
            connection.last_ping = datetime.now()

        await self.send_to_connection(
            connection_id,
            {
                "type": WSMessageType.PONG,
                "payload": {"server_time": int(time.time() * 1000)},
            },
        )

    async def handle_message(self, connection_id: str, message: dict[str, Any]) -> None:
        """Handle an incoming WebSocket message."""
        msg_type = message.get("type")
        payload = message.get("payload") or {}

        if msg_type == WSMessageType.PING:
            await self.handle_ping(connection_id)

        elif msg_type == WSMessageType.SUBSCRIBE:
            channel = payload.get("channel")
            if channel:
                await self.subscribe(connection_id, channel)

        elif msg_type == WSMessageType.UNSUBSCRIBE:
            channel = payload.get("channel")
            if channel:
                await self.unsubscribe(connection_id, channel)

        else:
            await self.send_to_connection(
                connection_id,
                {
                    "type": WSMessageType.ERROR,
                    "payload": {
                        "code": "unknown_message_type",
                        "message": f"Unknown message type: {msg_type}",
                    },
                },
            )

    async def _send(self, websocket: WebSocket, message: dict[str, Any]) -> bool:
        """Send a message to a WebSocket."""
        try:
            if "timestamp" not in message:
                message["timestamp"] = datetime.now().isoformat()
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"Failed to send WebSocket message: {e}")
            return False

    # ============ Change Broadcasts ============

    async def send_prompts_changed(self, event: ChangeEvent) -> int:
        """Tell subscribed clients that a prompt catalog changed."""
        return await self.broadcast_to_channel(
            CHANNEL_PROMPTS,
            {
                "type": WSMessageType.PROMPTS_CHANGED,
                "payload": {
                    "catalog": event.catalog,
                    "action": event.action,
                    "key": event.key,
                },
            },
        )

    def attach(self, bus: ChangeBus) -> Subscription:
        """Forward prompt change events from the bus to subscribed connections."""

        def _on_change(event: ChangeEvent) -> None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return
            task = loop.create_task(self.send_prompts_changed(event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        return bus.subscribe(_on_change, resources=(RESOURCE_PROMPTS,))

    async def wait_idle(self) -> None:
        """Wait for scheduled broadcasts to be sent."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ============ Heartbeat ============

    async def _remove_stale_connections(self) -> None:
        now = datetime.now()
        stale = [
            conn
            for conn in list(self._connections.values())
            if (now - conn.last_ping).total_seconds() > STALE_TIMEOUT
        ]
        for conn in stale:
            try:
                await conn.websocket.close(code=4002, reason="Stale connection")
            except Exception as e:
                logger.debug(f"Closing stale connection {conn.id} failed: {e}")
            await self.disconnect(conn.id)

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(HEARTBEAT_INTERVAL)
            await self._remove_stale_connections()

    def start_heartbeat(self) -> None:
        if self._heartbeat_task is None:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    async def stop_heartbeat(self) -> None:
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None
