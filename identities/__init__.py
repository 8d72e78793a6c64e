"""Credential store for registered wallet identities.

An identity is created on a wallet's first successful signature
verification and never changes afterwards: there is deliberately no
update or delete operation here.

This module provides:
1. Wallet address validation and normalization
2. IdentityStore backed by the database pool
3. MemoryIdentityStore for single-process deployments and tests
"""

import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from database import get_pool
from errors import ValidationError
from utils import KeyedLock, utcnow

logger = logging.getLogger(__name__)

ADDRESS_RE = re.compile(r'^0x[0-9a-fA-F]{40}$')
MAX_DISPLAY_NAME_LENGTH = 64

class Role(str, Enum):
    EMPLOYER = "employer"
    WORKER = "worker"

class Identity(BaseModel):
    """A registered wallet. Immutable once created."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    wallet: str
    display_name: str
    role: Role
    created_at: datetime

def normalize_address(address: str, field: str = "wallet") -> str:
    """Validate a wallet address and return its lower-cased form.

    Raises:
        ValidationError: If the value is not a 0x-prefixed 20-byte hex address
    """
    if not isinstance(address, str) or not ADDRESS_RE.match(address.strip()):
        raise ValidationError(f"{field} must be a 0x-prefixed 40 character hex address")
    return address.strip().lower()

def validate_display_name(display_name: str) -> str:
    """Strip and length-check a display name."""
    name = (display_name or "").strip()
    if not name:
        raise ValidationError("displayName must not be empty")
    if len(name) > MAX_DISPLAY_NAME_LENGTH:
        raise ValidationError(
            f"displayName must be at most {MAX_DISPLAY_NAME_LENGTH} characters"
        )
    return name

def parse_role(role) -> Role:
    """Convert a role string to Role."""
    if isinstance(role, Role):
        return role
    try:
        return Role(str(role).strip().lower())
    except ValueError:
        raise ValidationError("role must be 'employer' or 'worker'")

class BaseIdentityStore(ABC):
    """Interface for identity persistence."""

    @abstractmethod
    async def get(self, wallet: str) -> Optional[Identity]:
        """Return the identity for a normalized wallet, or None."""

    @abstractmethod
    async def create_if_absent(
        self,
        wallet: str,
        display_name: str,
        role: Role
    ) -> Tuple[Identity, bool]:
        """Create the identity unless one already exists.

        Returns:
            The stored identity and whether this call created it. When an
            identity already exists it is returned unchanged and the
            supplied profile is ignored.
        """

    async def exists(self, wallet: str) -> bool:
        return await self.get(wallet) is not None

class IdentityStore(BaseIdentityStore):
    """Identity store backed by the ``identities`` table."""

    def __init__(self, pool=None):
        """Initialize identity store.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
        """
        self.pool = pool

    async def ensure_pool(self):
        """Ensure database pool is available."""
        if not self.pool:
            self.pool = await get_pool()

    async def get(self, wallet: str) -> Optional[Identity]:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                '''
                SELECT wallet, display_name, role, created_at
                FROM identities
                WHERE wallet = $1
                ''',
                wallet
            )
        return _row_to_identity(row) if row else None

    async def create_if_absent(
        self,
        wallet: str,
        display_name: str,
        role: Role
    ) -> Tuple[Identity, bool]:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            # ON CONFLICT keeps the first writer's profile under a race
            row = await conn.fetchrow(
                '''
                INSERT INTO identities (wallet, display_name, role)
                VALUES ($1, $2, $3)
                ON CONFLICT (wallet) DO NOTHING
                RETURNING wallet, display_name, role, created_at
                ''',
                wallet,
                display_name,
                role.value
            )
            if row:
                logger.info(f"Created identity for {wallet} as {role.value}")
                return _row_to_identity(row), True

            row = await conn.fetchrow(
                '''
                SELECT wallet, display_name, role, created_at
                FROM identities
                WHERE wallet = $1
                ''',
                wallet
            )
            return _row_to_identity(row), False

class MemoryIdentityStore(BaseIdentityStore):
    """In-process identity store. State is lost on restart."""

    def __init__(self):
        self._identities: Dict[str, Identity] = {}
        self._locks = KeyedLock()

    async def get(self, wallet: str) -> Optional[Identity]:
        return self._identities.get(wallet)

    async def create_if_absent(
        self,
        wallet: str,
        display_name: str,
        role: Role
    ) -> Tuple[Identity, bool]:
        async with self._locks.hold(wallet):
            existing = self._identities.get(wallet)
            if existing:
                return existing, False
            identity = Identity(
                wallet=wallet,
                display_name=display_name,
                role=role,
                created_at=utcnow()
            )
            self._identities[wallet] = identity
            logger.info(f"Created identity for {wallet} as {role.value}")
            return identity, True

def _row_to_identity(row) -> Identity:
    return Identity(
        wallet=row['wallet'],
        display_name=row['display_name'],
        role=Role(row['role']),
        created_at=row['created_at']
    )

__all__ = [
    'Role',
    'Identity',
    'BaseIdentityStore',
    'IdentityStore',
    'MemoryIdentityStore',
    'normalize_address',
    'validate_display_name',
    'parse_role',
]
