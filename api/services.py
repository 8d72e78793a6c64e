"""Service container shared by the HTTP and WebSocket routes.

The container is built once per app from the settings and stored on
``app.state.services``; routes reach it through the request.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict

from fastapi import Request

from auth import AuthGateway, ChallengeRegistry, TokenService
from identities import BaseIdentityStore, IdentityStore, MemoryIdentityStore
from jobs import BaseJobStore, JobManager, MemoryJobStore
from messages import BaseMessageStore, MessageStore, MemoryMessageStore
from realtime import RoomBroker
from utils import utcnow

logger = logging.getLogger(__name__)

@dataclass
class Services:
    settings: Dict[str, Any]
    challenges: ChallengeRegistry
    tokens: TokenService
    identities: BaseIdentityStore
    gateway: AuthGateway
    jobs: BaseJobStore
    messages: BaseMessageStore
    broker: RoomBroker
    started_at: datetime = field(default_factory=utcnow)

def build_services(
    settings: Dict[str, Any],
    pool=None,
    clock: Callable[[], datetime] = utcnow
) -> Services:
    """Wire up every service from validated settings.

    Args:
        settings: Validated settings, see ``config.validate_settings``
        pool: Database pool for postgres storage. When omitted the
            stores fetch the shared pool on first use.
        clock: Time source for challenges, tokens and message retention
    """
    challenges = ChallengeRegistry(
        ttl=timedelta(minutes=settings['challenge_ttl_minutes']),
        clock=clock
    )
    tokens = TokenService(
        access_secret=settings['access_token_secret'],
        refresh_secret=settings['refresh_token_secret'],
        access_ttl=timedelta(minutes=settings['access_token_minutes']),
        refresh_ttl=timedelta(days=settings['refresh_token_days']),
        algorithm=settings['jwt_algorithm'],
        rotate_refresh_tokens=settings['rotate_refresh_tokens'],
        clock=clock
    )
    retention = timedelta(days=settings['message_retention_days'])

    if settings['storage'] == 'memory':
        identities = MemoryIdentityStore()
        jobs = MemoryJobStore()
        messages = MemoryMessageStore(retention=retention, clock=clock)
    else:
        identities = IdentityStore(pool)
        jobs = JobManager(pool)
        messages = MessageStore(pool, retention=retention, clock=clock)

    logger.info(f"Using {settings['storage']} storage")
    return Services(
        settings=settings,
        challenges=challenges,
        tokens=tokens,
        identities=identities,
        gateway=AuthGateway(challenges, identities, tokens),
        jobs=jobs,
        messages=messages,
        broker=RoomBroker()
    )

def get_services(request: Request) -> Services:
    """FastAPI dependency returning the app's service container."""
    return request.app.state.services

__all__ = ['Services', 'build_services', 'get_services']
