"""Small shared helpers."""

from datetime import datetime, timezone
from typing import Tuple

from errors import ValidationError
from .locks import KeyedLock

MAX_PAGE_SIZE = 100


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def page_bounds(page: int, limit: int) -> Tuple[int, int]:
    """Validate 1-based pagination and return (offset, limit).

    Raises:
        ValidationError: If page < 1 or limit is outside 1..MAX_PAGE_SIZE
    """
    if page < 1:
        raise ValidationError("page must be at least 1")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    return (page - 1) * limit, limit


__all__ = ['KeyedLock', 'utcnow', 'page_bounds', 'MAX_PAGE_SIZE']
