from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 5000
MAX_TAGS = 20
MAX_TAG_LENGTH = 32


class PaymentType(str, Enum):
    WEEKLY = "WEEKLY"
    ONE_OFF = "ONE_OFF"


class JobStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"


class Job(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: UUID
    payment_type: PaymentType
    title: str
    description: str
    tags: List[str]
    employer_address: str
    worker_address: Optional[str] = None
    status: JobStatus
    created_at: datetime
    updated_at: datetime


class JobFields(BaseModel):
    """Employer-supplied fields for a new job."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = Field(min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str = Field(default="", max_length=MAX_DESCRIPTION_LENGTH)
    payment_type: PaymentType
    tags: List[str] = Field(default_factory=list, max_length=MAX_TAGS)

    @field_validator('title')
    @classmethod
    def strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value

    @field_validator('tags')
    @classmethod
    def normalize_tags(cls, value: List[str]) -> List[str]:
        tags = set()
        for tag in value:
            tag = tag.strip().lower()
            if not tag:
                continue
            if len(tag) > MAX_TAG_LENGTH:
                raise ValueError(f"tags must be at most {MAX_TAG_LENGTH} characters")
            tags.add(tag)
        return sorted(tags)


class JobUpdate(BaseModel):
    """Body of PUT /jobs/{id}: assign a worker or mark finished."""
    employee_address: Optional[str] = Field(default=None, alias="employeeAddress")
    finish: Optional[bool] = None

    model_config = ConfigDict(populate_by_name=True)
