"""
Unit tests for the WebSocket manager: subscriptions, change broadcasts
and stale connection cleanup.
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from api.schemas.websocket import WSMessageType
from services.change_bus import RESOURCE_OVERRIDES, RESOURCE_PROMPTS, ChangeBus, ChangeEvent
from services.websocket_manager import (
    CHANNEL_PROMPTS,
    STALE_TIMEOUT,
    Connection,
    WebSocketManager,
)


def _make_connection(conn_id: str, last_ping_offset: float = 0) -> Connection:
    """Create a mock Connection with configurable last_ping time."""
    ws = AsyncMock()
    ws.close = AsyncMock()
    return Connection(
        id=conn_id,
        websocket=ws,
        last_ping=datetime.now() - timedelta(seconds=last_ping_offset),
    )


def _sent_types(websocket) -> list[str]:
    return [call.args[0]["type"] for call in websocket.send_json.call_args_list]


async def _connect(manager: WebSocketManager) -> tuple[str, AsyncMock]:
    ws = AsyncMock()
    connection_id = await manager.connect(ws)
    return connection_id, ws


class TestConnect:
    """Connection lifecycle."""

    @pytest.mark.asyncio
    async def test_connect_sends_connected(self):
        manager = WebSocketManager()

        connection_id, ws = await _connect(manager)

        ws.accept.assert_awaited_once()
        message = ws.send_json.call_args.args[0]
        assert message["type"] == WSMessageType.CONNECTED
        assert message["payload"]["connection_id"] == connection_id
        assert message["payload"]["channels"] == [CHANNEL_PROMPTS]
        assert "timestamp" in message
        assert manager.connection_count == 1

    @pytest.mark.asyncio
    async def test_disconnect_cleans_up_channels(self):
        manager = WebSocketManager()
        connection_id, _ = await _connect(manager)

        await manager.disconnect(connection_id)
        await manager.disconnect(connection_id)

        assert manager.connection_count == 0
        assert manager._channel_subscriptions == {}


class TestMessages:
    """Client-to-server messages."""

    @pytest.mark.asyncio
    async def test_ping_updates_last_ping(self):
        manager = WebSocketManager()
        stale = _make_connection("c1", last_ping_offset=60)
        manager._connections["c1"] = stale
        before = stale.last_ping

        await manager.handle_message("c1", {"type": "ping"})

        assert stale.last_ping > before
        assert _sent_types(stale.websocket) == [WSMessageType.PONG]

    @pytest.mark.asyncio
    async def test_unsubscribe_and_subscribe(self):
        manager = WebSocketManager()
        connection_id, ws = await _connect(manager)

        await manager.handle_message(connection_id, {"type": "unsubscribe", "payload": {"channel": "prompts"}})
        assert CHANNEL_PROMPTS not in manager._channel_subscriptions

        await manager.handle_message(connection_id, {"type": "subscribe", "payload": {"channel": "prompts"}})
        assert manager._channel_subscriptions[CHANNEL_PROMPTS] == {connection_id}

        assert _sent_types(ws)[1:] == [WSMessageType.UNSUBSCRIBED, WSMessageType.SUBSCRIBED]

    @pytest.mark.asyncio
    async def test_unknown_message_type(self):
        manager = WebSocketManager()
        connection_id, ws = await _connect(manager)

        await manager.handle_message(connection_id, {"type": "dance"})

        message = ws.send_json.call_args.args[0]
        assert message["type"] == WSMessageType.ERROR
        assert message["payload"]["code"] == "unknown_message_type"

    @pytest.mark.asyncio
    async def test_send_to_unknown_connection(self):
        manager = WebSocketManager()

        assert await manager.send_to_connection("missing", {"type": "pong"}) is False


class TestPromptsChanged:
    """Catalog change broadcasts."""

    @pytest.mark.asyncio
    async def test_only_subscribers_notified(self):
        manager = WebSocketManager()
        subscribed, ws_subscribed = await _connect(manager)
        opted_out, ws_opted_out = await _connect(manager)
        await manager.unsubscribe(opted_out, CHANNEL_PROMPTS)

        sent = await manager.send_prompts_changed(
            ChangeEvent(resource=RESOURCE_PROMPTS, action="upserted", key="k", catalog="custom")
        )

        assert sent == 1
        message = ws_subscribed.send_json.call_args.args[0]
        assert message["type"] == "prompts:changed"
        assert message["payload"] == {"catalog": "custom", "action": "upserted", "key": "k"}
        assert WSMessageType.PROMPTS_CHANGED not in _sent_types(ws_opted_out)

    @pytest.mark.asyncio
    async def test_failed_send_is_not_counted(self):
        manager = WebSocketManager()
        _, ws_ok = await _connect(manager)
        _, ws_broken = await _connect(manager)
        ws_broken.send_json.side_effect = RuntimeError("socket closed")

        sent = await manager.send_prompts_changed(ChangeEvent(resource=RESOURCE_PROMPTS, action="cleared"))

        assert sent == 1

    @pytest.mark.asyncio
    async def test_attach_forwards_prompt_events(self):
        manager = WebSocketManager()
        bus = ChangeBus()
        _, ws = await _connect(manager)
        subscription = manager.attach(bus)

        bus.publish(ChangeEvent(resource=RESOURCE_PROMPTS, action="deleted", key="k", catalog="custom"))
        bus.publish(ChangeEvent(resource=RESOURCE_OVERRIDES, action="disabled", key="k"))
        await manager.wait_idle()

        assert _sent_types(ws).count(WSMessageType.PROMPTS_CHANGED) == 1

        subscription.unsubscribe()
        bus.publish(ChangeEvent(resource=RESOURCE_PROMPTS, action="cleared"))
        await manager.wait_idle()

        assert _sent_types(ws).count(WSMessageType.PROMPTS_CHANGED) == 1


class TestStaleConnectionCleanup:
    """Tests for stale WebSocket connection removal."""

    @pytest.mark.asyncio
    async def test_stale_connection_removed(self):
        """Stale connections (exceeding STALE_TIMEOUT) should be disconnected."""
        manager = WebSocketManager()

        # Add a stale connection (last ping was 120s ago, timeout is 90s)
        stale = _make_connection("stale1", last_ping_offset=STALE_TIMEOUT + 30)
        manager._connections["stale1"] = stale

        await manager._remove_stale_connections()

        assert "stale1" not in manager._connections
        stale.websocket.close.assert_called_once_with(code=4002, reason="Stale connection")

    @pytest.mark.asyncio
    async def test_active_connection_survives(self):
        """Active connections (within STALE_TIMEOUT) should not be removed."""
        manager = WebSocketManager()

        active = _make_connection("active1", last_ping_offset=10)
        manager._connections["active1"] = active

        await manager._remove_stale_connections()

        assert "active1" in manager._connections
        active.websocket.close.assert_not_called()

    @pytest.mark.asyncio
    async def test_stale_connection_close_failure(self):
        """Cleanup should continue even if closing a websocket fails."""
        manager = WebSocketManager()

        stale = _make_connection("stale1", last_ping_offset=STALE_TIMEOUT + 30)
        stale.websocket.close = AsyncMock(side_effect=RuntimeError("Already closed"))
        manager._connections["stale1"] = stale

        # Should not raise
        await manager._remove_stale_connections()

        assert "stale1" not in manager._connections

    @pytest.mark.asyncio
    async def test_start_stop_heartbeat(self):
        manager = WebSocketManager()

        manager.start_heartbeat()
        assert manager._heartbeat_task is not None
        assert not manager._heartbeat_task.done()

        await manager.stop_heartbeat()
        assert manager._heartbeat_task is None

    @pytest.mark.asyncio
    async def test_stop_heartbeat_when_not_started(self):
        manager = WebSocketManager()

        # Should not raise
        await manager.stop_heartbeat()
        assert manager._heartbeat_task is None
