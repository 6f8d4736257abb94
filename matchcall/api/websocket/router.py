"""
WebSocket Router - Real-time match endpoints

- /ws/matches/{match_id}/events: call-request and call-block changes
- /ws/matches/{match_id}/signaling: WebRTC signaling relay

Both authenticate with ?token=<JWT> and require match participancy;
failures close the socket with code 1008.
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from matchcall.api.deps import authenticate_match_socket
from matchcall.models.database import get_db
from matchcall.services.connection import connection_manager
from matchcall.services.webrtc import (
    RedisSignalingChannel,
    SignalingFailed,
    SignalingMessage,
    require_signaling_message,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/matches/{match_id}/events")
async def match_events_ws(
    websocket: WebSocket,
    match_id: str,
    token: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """
    Stream change events of a match to one of its participants.

    Server -> client messages:
        - call_event: {"table", "event", "new", "old", "match_id"}
        - incoming_call_request: the other participant asked for a call

    Client -> server messages:
        - {"type": "ping"} answered with {"type": "pong"}
    """
    profile = await authenticate_match_socket(websocket, match_id, token, db)
    if profile is None:
        return

    user_id = profile.id
    await websocket.accept()
    await connection_manager.connect(websocket, match_id, user_id)

    try:
        while True:
            data = await websocket.receive_json()
            if isinstance(data, dict) and data.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info(f"[WebSocket] Events socket closed for {user_id} on match {match_id}")
    except ValueError:
        logger.warning(f"[WebSocket] Non-JSON frame from {user_id} on match {match_id}, closing")
    finally:
        await connection_manager.disconnect(match_id, user_id, websocket)


@router.websocket("/ws/matches/{match_id}/signaling")
async def signaling_ws(
    websocket: WebSocket,
    match_id: str,
    token: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """
    Relay WebRTC signaling between the two participants of a match.

    Frames are {"type": offer|answer|ice-candidate|call-end, "data", "to"};
    "from" is always set to the authenticated user. Messages addressed to
    this user are pushed back down the socket.
    """
    profile = await authenticate_match_socket(websocket, match_id, token, db)
    if profile is None:
        return

    user_id = profile.id
    await websocket.accept()

    async def forward(message: SignalingMessage) -> None:
        await websocket.send_json(message.to_wire())

    channel = RedisSignalingChannel(match_id, user_id)
    try:
        await channel.open(forward)
    except SignalingFailed as e:
        logger.error(f"[WebSocket] {e}")
        await websocket.close(code=1011, reason="Signaling unavailable")
        return

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                payload = json.loads(raw)
                if not isinstance(payload, dict):
                    raise SignalingFailed("Malformed signaling message")
                payload["from"] = user_id
                message = require_signaling_message(payload)
                await channel.send(message)
            except ValueError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
            except SignalingFailed as e:
                await websocket.send_json({"type": "error", "message": str(e)})
    except WebSocketDisconnect:
        logger.info(f"[WebSocket] Signaling socket closed for {user_id} on match {match_id}")
    finally:
        await channel.close()
