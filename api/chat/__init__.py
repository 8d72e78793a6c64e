"""Peer-to-peer chat endpoints.

A peer-to-peer conversation is addressed by the other party's wallet;
the server derives the shared conversation id from both addresses.
"""

from typing import List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from auth import AuthenticatedIdentity, get_current_user
from identities import normalize_address
from messages import Message, pair_conversation
from ..messages import publish_message
from ..services import Services, get_services

router = APIRouter(
    prefix="/chat",
    tags=["Chat"]
)

class ChatMessageCreate(BaseModel):
    to: str
    content: str

@router.post("/messages", response_model=Message, status_code=201)
async def send_message(
    request: ChatMessageCreate,
    identity: AuthenticatedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Send a direct message to another wallet."""
    conversation_id = pair_conversation(identity.wallet, request.to)
    message = await services.messages.append(
        conversation_id,
        identity.wallet,
        request.content,
        receiver=normalize_address(request.to, field="to")
    )
    await publish_message(services, message)
    return message

@router.get("/messages/{peer}", response_model=List[Message])
async def get_conversation(
    peer: str,
    page: int = Query(1),
    limit: int = Query(50),
    identity: AuthenticatedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Get the caller's conversation with ``peer``, oldest first."""
    conversation_id = pair_conversation(identity.wallet, peer)
    return await services.messages.list(conversation_id, page=page, limit=limit)

@router.get("/conversations", response_model=List[Message])
async def get_conversations(
    identity: AuthenticatedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Get every direct message the caller sent or received, newest first."""
    return await services.messages.list_for_participant(identity.wallet)

__all__ = ['router']
