import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from pagesy.background import spawn
from pagesy.hub import ClientHandle, EventHub
from pagesy.schemas import LiveFrame
from pagesy.settings.config import settings
from pagesy.users import authenticate_websocket

router = APIRouter(tags=["live"])
logger = logging.getLogger(__name__)


async def _write_pump(websocket: WebSocket, outbox: "asyncio.Queue[str]") -> None:
    # slow sockets only ever block their own pump, never the hub
    try:
        while True:
            frame = await outbox.get()
            await websocket.send_text(frame)
    except (WebSocketDisconnect, RuntimeError) as exc:
        logger.debug("live socket write failed: %r", exc)
    finally:
        if (
            websocket.application_state == WebSocketState.CONNECTED
            and websocket.client_state == WebSocketState.CONNECTED
        ):
            await websocket.close()


@router.websocket("/api/v1/ws")
async def live_events(websocket: WebSocket):
    user = await authenticate_websocket(websocket)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="unauthorized")
        return

    await websocket.accept()
    hub: EventHub = websocket.app.state.hub
    outbox: "asyncio.Queue[str]" = asyncio.Queue(settings.CLIENT_OUTBOX_SIZE)
    pump = spawn(_write_pump(websocket, outbox), name=f"ws-pump-{user.id}")
    handle = ClientHandle(
        user_id=str(user.id),
        is_admin=bool(user.is_superuser),
        outbox=outbox,
        close=pump.cancel,
    )
    await hub.connect(handle)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
            # text and binary frames are both parsed as JSON
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            try:
                LiveFrame.model_validate_json(raw)
            except ValidationError as exc:
                reply = json.dumps({"error": f"unable to unmarshal json, {exc.errors()[0]['msg']}"})
                try:
                    outbox.put_nowait(reply)
                except asyncio.QueueFull:
                    logger.debug("outbox full, dropping error reply to %s", user.id)
    except WebSocketDisconnect:
        logger.debug("live socket for %s closed by client", user.id)
    finally:
        await hub.disconnect(handle)


__all__ = ["router"]
