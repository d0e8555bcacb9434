"""
WebSocket router for catalog change notifications.

Endpoint:
- WS /api/ws - WebSocket connection
"""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from api.schemas.websocket import WSMessageType

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for catalog change notifications.

    Message Protocol:
    - Client sends JSON messages with "type" and "payload" fields
    - Server responds with JSON messages with "type", "payload", and "timestamp" fields

    Client -> Server Messages:
    - {"type": "ping"} - Heartbeat
    - {"type": "subscribe", "payload": {"channel": "prompts"}}
    - {"type": "unsubscribe", "payload": {"channel": "prompts"}}

    Server -> Client Messages:
    - {"type": "connected", "payload": {"connection_id": "...", "server_time": 1234567890}}
    - {"type": "pong", "payload": {"server_time": 1234567890}}
    - {"type": "subscribed", "payload": {"channel": "prompts"}}
    - {"type": "prompts:changed", "payload": {"catalog": "custom", "action": "upserted", "key": "..."}}
    """
    ws_manager = websocket.app.state.ws_manager

    connection_id = await ws_manager.connect(websocket)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await ws_manager.send_to_connection(
                    connection_id,
                    {
                        "type": WSMessageType.ERROR,
                        "payload": {
                            "code": "invalid_json",
                            "message": "Invalid JSON message",
                        },
                    },
                )
                continue

            if not isinstance(message, dict):
                message = {}
            await ws_manager.handle_message(connection_id, message)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        await ws_manager.disconnect(connection_id)
