"""Conversation id helpers.

Two kinds of conversation share one id space:

- dispute conversations, keyed by the on-chain dispute id ("42")
- peer-to-peer conversations, keyed by the two participant addresses,
  lower-cased and sorted, joined by a colon ("0xaaa...:0xbbb...")

Sorting makes the key independent of who sends first.
"""

import re
from typing import Optional, Tuple, Union

from errors import ValidationError
from identities import normalize_address

DISPUTE_ID_RE = re.compile(r'^\d{1,78}$')
PAIR_SEPARATOR = ':'

def dispute_conversation(dispute_id: Union[int, str]) -> str:
    """Return the conversation id for a dispute."""
    value = str(dispute_id).strip()
    if not DISPUTE_ID_RE.match(value):
        raise ValidationError("disputeId must be a non-negative integer")
    return str(int(value))

def pair_conversation(first: str, second: str) -> str:
    """Return the canonical conversation id for two wallets."""
    first = normalize_address(first, field="sender")
    second = normalize_address(second, field="to")
    if first == second:
        raise ValidationError("Cannot start a conversation with yourself")
    return PAIR_SEPARATOR.join(sorted((first, second)))

def pair_participants(conversation_id: str) -> Optional[Tuple[str, str]]:
    """Return the two wallets of a peer-to-peer conversation, or None for a dispute."""
    if PAIR_SEPARATOR not in conversation_id:
        return None
    first, _, second = conversation_id.partition(PAIR_SEPARATOR)
    return first, second

def normalize_conversation(conversation_id: str) -> str:
    """Validate a client-supplied conversation id and return its canonical form.

    Raises:
        ValidationError: If it is neither a dispute id nor a wallet pair
    """
    if not isinstance(conversation_id, str) or not conversation_id.strip():
        raise ValidationError("conversationId must not be empty")
    conversation_id = conversation_id.strip()
    if PAIR_SEPARATOR in conversation_id:
        first, _, second = conversation_id.partition(PAIR_SEPARATOR)
        return pair_conversation(first, second)
    return dispute_conversation(conversation_id)

def is_participant(conversation_id: str, wallet: str) -> bool:
    """Whether ``wallet`` may read or join ``conversation_id``.

    Dispute conversations are open to any caller.
    """
    participants = pair_participants(conversation_id)
    return participants is None or wallet in participants

__all__ = [
    'dispute_conversation',
    'pair_conversation',
    'pair_participants',
    'normalize_conversation',
    'is_participant',
]
