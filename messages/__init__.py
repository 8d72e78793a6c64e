"""Message store for dispute and peer-to-peer chat.

Messages are append-only. A message must be durably stored before it is
published to a room, so handlers always await ``append`` first.
Messages older than the retention window are hidden from reads and
hard-deleted by the retention sweep.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from uuid import uuid4

from database import get_pool
from errors import ValidationError
from utils import page_bounds, utcnow
from .conversations import (
    dispute_conversation, pair_conversation, pair_participants,
    normalize_conversation, is_participant
)
from .models import Message, MAX_CONTENT_LENGTH

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=14)
DEFAULT_PARTICIPANT_LIMIT = 100

MESSAGE_COLUMNS = 'id, conversation_id, sender, receiver, content, created_at'

def validate_content(content: str) -> str:
    """Strip and length-check message content."""
    content = (content or "").strip()
    if not content:
        raise ValidationError("content must not be empty")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(f"content must be at most {MAX_CONTENT_LENGTH} characters")
    return content

class BaseMessageStore(ABC):
    """Interface for message persistence."""

    def __init__(
        self,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] = utcnow
    ):
        self.retention = retention
        self.clock = clock

    def cutoff(self, now: Optional[datetime] = None) -> datetime:
        """Oldest creation time still inside the retention window."""
        return (now or self.clock()) - self.retention

    async def append(
        self,
        conversation_id: str,
        sender: str,
        content: str,
        receiver: Optional[str] = None
    ) -> Message:
        """Validate and store a message, returning the stored record.

        Raises:
            ValidationError: If the conversation id or content is invalid
        """
        conversation_id = normalize_conversation(conversation_id)
        content = validate_content(content)
        message = await self._insert(conversation_id, sender, receiver, content)
        logger.debug(f"Stored message {message.id} in {conversation_id}")
        return message

    async def list(self, conversation_id: str, page: int = 1, limit: int = 50) -> List[Message]:
        """List a conversation's live messages, oldest first."""
        offset, limit = page_bounds(page, limit)
        conversation_id = normalize_conversation(conversation_id)
        return await self._select(conversation_id, offset, limit, self.cutoff())

    @abstractmethod
    async def list_for_participant(
        self,
        wallet: str,
        limit: int = DEFAULT_PARTICIPANT_LIMIT
    ) -> List[Message]:
        """List live peer-to-peer messages sent or received by ``wallet``, newest first."""

    @abstractmethod
    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Hard-delete messages outside the retention window. Returns the count."""

    @abstractmethod
    async def count(self) -> int:
        """Number of stored messages, expired ones included."""

    @abstractmethod
    async def _insert(
        self,
        conversation_id: str,
        sender: str,
        receiver: Optional[str],
        content: str
    ) -> Message:
        pass

    @abstractmethod
    async def _select(
        self,
        conversation_id: str,
        offset: int,
        limit: int,
        cutoff: datetime
    ) -> List[Message]:
        pass

class MessageStore(BaseMessageStore):
    """Message store backed by the ``messages`` table."""

    def __init__(self, pool=None, **kwargs):
        """Initialize the message store.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
        """
        super().__init__(**kwargs)
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def _insert(
        self,
        conversation_id: str,
        sender: str,
        receiver: Optional[str],
        content: str
    ) -> Message:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f'''
                INSERT INTO messages (conversation_id, sender, receiver, content, created_at)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING {MESSAGE_COLUMNS}
                ''',
                conversation_id,
                sender,
                receiver,
                content,
                self.clock()
            )
        return _row_to_message(row)

    async def _select(
        self,
        conversation_id: str,
        offset: int,
        limit: int,
        cutoff: datetime
    ) -> List[Message]:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f'''
                SELECT {MESSAGE_COLUMNS}
                FROM messages
                WHERE conversation_id = $1
                AND created_at >= $2
                ORDER BY created_at ASC, id ASC
                LIMIT $3 OFFSET $4
                ''',
                conversation_id,
                cutoff,
                limit,
                offset
            )
        return [_row_to_message(row) for row in rows]

    async def list_for_participant(
        self,
        wallet: str,
        limit: int = DEFAULT_PARTICIPANT_LIMIT
    ) -> List[Message]:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f'''
                SELECT {MESSAGE_COLUMNS}
                FROM messages
                WHERE receiver IS NOT NULL
                AND (sender = $1 OR receiver = $1)
                AND created_at >= $2
                ORDER BY created_at DESC, id DESC
                LIMIT $3
                ''',
                wallet,
                self.cutoff(),
                limit
            )
        return [_row_to_message(row) for row in rows]

    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                'DELETE FROM messages WHERE created_at < $1',
                self.cutoff(now)
            )
        # asyncpg returns the command tag, e.g. "DELETE 3"
        return int(result.split()[-1])

    async def count(self) -> int:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            return await conn.fetchval('SELECT count(*) FROM messages')

class MemoryMessageStore(BaseMessageStore):
    """In-process message store. State is lost on restart."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._messages: List[Message] = []

    async def _insert(
        self,
        conversation_id: str,
        sender: str,
        receiver: Optional[str],
        content: str
    ) -> Message:
        message = Message(
            id=uuid4(),
            conversation_id=conversation_id,
            sender=sender,
            receiver=receiver,
            content=content,
            created_at=self.clock()
        )
        self._messages.append(message)
        return message

    async def _select(
        self,
        conversation_id: str,
        offset: int,
        limit: int,
        cutoff: datetime
    ) -> List[Message]:
        # Append order is creation order
        messages = [
            message for message in self._messages
            if message.conversation_id == conversation_id
            and message.created_at >= cutoff
        ]
        return messages[offset:offset + limit]

    async def list_for_participant(
        self,
        wallet: str,
        limit: int = DEFAULT_PARTICIPANT_LIMIT
    ) -> List[Message]:
        cutoff = self.cutoff()
        messages = [
            message for message in reversed(self._messages)
            if message.receiver is not None
            and wallet in (message.sender, message.receiver)
            and message.created_at >= cutoff
        ]
        return messages[:limit]

    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        cutoff = self.cutoff(now)
        kept = [message for message in self._messages if message.created_at >= cutoff]
        removed = len(self._messages) - len(kept)
        self._messages = kept
        return removed

    async def count(self) -> int:
        return len(self._messages)

def _row_to_message(row) -> Message:
    return Message(
        id=row['id'],
        conversation_id=row['conversation_id'],
        sender=row['sender'],
        receiver=row['receiver'],
        content=row['content'],
        created_at=row['created_at']
    )

__all__ = [
    'Message',
    'BaseMessageStore',
    'MessageStore',
    'MemoryMessageStore',
    'validate_content',
    'dispute_conversation',
    'pair_conversation',
    'pair_participants',
    'normalize_conversation',
    'is_participant',
    'DEFAULT_RETENTION',
]
