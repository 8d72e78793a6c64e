"""WebSocket endpoint for real-time conversation events.

Frames in both directions use the envelope ``{"type": ..., "data": {...}}``.

Client frames:
- ``authenticate {token}``: bind an access token to the socket
- ``joinRoom {conversationId | disputeId}``: receive that room's events
- ``leaveRoom {conversationId | disputeId}``
- ``ping``

Server frames: ``authenticated``, ``joinedRoom``, ``leftRoom``, ``pong``,
``newMessage`` and ``error {code, message}``. A bad frame gets an error
frame and the socket stays open.

Dispute rooms can be joined anonymously. Peer-to-peer rooms require an
authenticated socket whose wallet is one of the pair.
"""

import json
import logging
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError as PydanticValidationError

from errors import Forbidden, ServiceError, Unauthorized, ValidationError
from messages import dispute_conversation, normalize_conversation, pair_participants, is_participant

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["WebSocket"]
)

class WebSocketMessage(BaseModel):
    type: str
    data: dict = {}

def room_from(data: dict) -> str:
    """Read the target conversation out of a join/leave frame."""
    if data.get('conversationId') is not None:
        return normalize_conversation(str(data['conversationId']))
    if data.get('disputeId') is not None:
        return dispute_conversation(data['disputeId'])
    raise ValidationError("conversationId is required")

def frame_text(frame: dict) -> str:
    """Payload of a received frame. Binary frames must hold UTF-8 JSON."""
    if frame.get('text') is not None:
        return frame['text']
    try:
        return (frame.get('bytes') or b"").decode('utf-8')
    except UnicodeDecodeError:
        raise ValidationError("Binary frames must be UTF-8 encoded JSON")

class SocketSession:
    """Per-connection state for one /ws client."""

    def __init__(self, websocket: WebSocket, services):
        self.websocket = websocket
        self.services = services
        self.connection_id = uuid4().hex
        self.wallet: Optional[str] = None

    async def send(self, frame_type: str, data: Optional[dict] = None):
        frame = {"type": frame_type}
        if data is not None:
            frame["data"] = data
        await self.websocket.send_json(frame)

    async def send_error(self, code: str, message: str):
        await self.send("error", {"code": code, "message": message})

    async def handle(self, raw: str):
        """Dispatch one client frame."""
        try:
            message = WebSocketMessage(**json.loads(raw))
        except (json.JSONDecodeError, TypeError, PydanticValidationError):
            raise ValidationError("Frames must be JSON objects with a string 'type'")

        if message.type == "ping":
            await self.send("pong")
        elif message.type == "authenticate":
            claims = self.services.tokens.verify_access(message.data.get('token') or "")
            self.wallet = claims.wallet
            await self.send("authenticated", {"wallet": claims.wallet})
        elif message.type == "joinRoom":
            conversation_id = room_from(message.data)
            self.authorize_room(conversation_id)
            await self.services.broker.join(self.connection_id, conversation_id)
            await self.send("joinedRoom", {"conversationId": conversation_id})
        elif message.type == "leaveRoom":
            conversation_id = room_from(message.data)
            await self.services.broker.leave(self.connection_id, conversation_id)
            await self.send("leftRoom", {"conversationId": conversation_id})
        else:
            raise ValidationError(f"Unknown message type: {message.type}")

    def authorize_room(self, conversation_id: str):
        if pair_participants(conversation_id) is None:
            return
        if self.wallet is None:
            raise Unauthorized("Authenticate before joining a direct conversation")
        if not is_participant(conversation_id, self.wallet):
            raise Forbidden("Not a participant in this conversation")

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for room events."""
    await websocket.accept()
    session = SocketSession(websocket, websocket.app.state.services)
    broker = session.services.broker
    await broker.connect(session.connection_id, websocket)

    try:
        while True:
            frame = await websocket.receive()
            if frame['type'] == 'websocket.disconnect':
                break
            try:
                await session.handle(frame_text(frame))
            except ServiceError as e:
                await session.send_error(e.code, e.message)
    except WebSocketDisconnect:
        pass
    finally:
        await broker.disconnect(session.connection_id)

__all__ = ['router', 'WebSocketMessage']
