"""WebSocket live feed."""

import json

import structlog
from fastapi import APIRouter, WebSocket, status

from src.api.auth import principal_from_connection
from src.domains.fraud.errors import PipelineError
from src.runtime import Runtime

logger = structlog.get_logger()
router = APIRouter(tags=["live"])


def _event_name(raw: str) -> str | None:
    try:
        message = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(message, dict):
        return None
    return message.get("event")


@router.websocket("/ws/live")
async def live_feed(websocket: WebSocket) -> None:
    try:
        principal = principal_from_connection(websocket)
    except PipelineError as exc:
        logger.warning("live_connection_rejected", code=exc.code)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.code)
        return

    runtime: Runtime = websocket.app.state.runtime
    await websocket.accept()

    async def send(event_name: str, payload: dict) -> None:
        await websocket.send_json({"event": event_name, "data": payload})

    subscriber_id = runtime.hub.connect(principal, send)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug("live_client_disconnected", subscriber_id=subscriber_id)
                break
            text = message.get("text")
            if text is None:
                logger.debug("live_binary_frame_ignored", subscriber_id=subscriber_id)
                continue
            event_name = _event_name(text)
            if event_name == "requestStats":
                await runtime.hub.request_stats(subscriber_id)
            else:
                logger.debug("live_message_ignored", subscriber_id=subscriber_id, event_name=event_name)
    finally:
        await runtime.hub.disconnect(subscriber_id)
