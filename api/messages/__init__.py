"""Conversation message endpoints.

A message is stored before it is published to the conversation's room,
so anyone who receives a ``newMessage`` event can also read it back.
"""

import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from auth import AuthenticatedIdentity, get_current_user
from errors import Forbidden, ValidationError
from messages import (
    Message, dispute_conversation, normalize_conversation, pair_participants, is_participant
)
from ..services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/messages",
    tags=["Messages"]
)

class MessageCreate(BaseModel):
    """Body of POST /messages. ``disputeId`` is accepted in place of ``conversationId``."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    conversation_id: Optional[str] = None
    dispute_id: Optional[Union[int, str]] = None
    content: str

    def resolve_conversation(self) -> str:
        if (self.conversation_id is None) == (self.dispute_id is None):
            raise ValidationError("Provide exactly one of conversationId or disputeId")
        if self.dispute_id is not None:
            return dispute_conversation(self.dispute_id)
        return normalize_conversation(self.conversation_id)

def message_event(message: Message) -> dict:
    return {
        "type": "newMessage",
        "data": message.model_dump(mode="json", by_alias=True)
    }

async def publish_message(services: Services, message: Message) -> None:
    """Fan a stored message out to its room."""
    delivered = await services.broker.publish(message.conversation_id, message_event(message))
    logger.debug(f"Message {message.id} delivered to {delivered} connections")

def ensure_participant(conversation_id: str, wallet: str) -> None:
    if not is_participant(conversation_id, wallet):
        raise Forbidden("Not a participant in this conversation")

@router.post("", response_model=Message, status_code=201)
async def post_message(
    request: MessageCreate,
    identity: AuthenticatedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Store a message in a conversation and publish it to the room."""
    conversation_id = request.resolve_conversation()
    ensure_participant(conversation_id, identity.wallet)

    receiver = None
    participants = pair_participants(conversation_id)
    if participants:
        first, second = participants
        receiver = second if identity.wallet == first else first

    message = await services.messages.append(
        conversation_id,
        identity.wallet,
        request.content,
        receiver=receiver
    )
    await publish_message(services, message)
    return message

@router.get("/{conversation_id}", response_model=List[Message])
async def list_messages(
    conversation_id: str,
    page: int = Query(1),
    limit: int = Query(50),
    identity: AuthenticatedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """List a conversation's messages, oldest first."""
    conversation_id = normalize_conversation(conversation_id)
    ensure_participant(conversation_id, identity.wallet)
    return await services.messages.list(conversation_id, page=page, limit=limit)

__all__ = ['router', 'publish_message', 'message_event']
