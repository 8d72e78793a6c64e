from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

MAX_CONTENT_LENGTH = 4000


class Message(BaseModel):
    """A stored chat message. Append-only; never edited."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: UUID
    conversation_id: str
    sender: str
    receiver: Optional[str] = None
    content: str
    created_at: datetime
