"""Workers enforcing message retention and evicting stale challenges."""

import asyncio
import logging

from auth import ChallengeRegistry
from messages import BaseMessageStore

# Configure logging
logger = logging.getLogger(__name__)

async def purge_expired_messages(store: BaseMessageStore) -> int:
    """Hard-delete messages older than the retention window."""
    try:
        purged = await store.purge_expired()
        if purged:
            logger.info(f"Purged {purged} expired messages")
        return purged
    except Exception as e:
        logger.error(f"Error in purge_expired_messages: {str(e)}")
        return 0

async def reap_expired_challenges(registry: ChallengeRegistry) -> int:
    """Evict challenges that expired without being redeemed."""
    purged = await registry.purge_expired()
    if purged:
        logger.debug(f"Evicted {purged} expired challenges")
    return purged

async def run_retention_worker(store: BaseMessageStore, interval: int = 3600):
    """Message retention loop."""
    logger.info(f"Message retention worker starting up (every {interval}s)")
    while True:
        await purge_expired_messages(store)
        await asyncio.sleep(interval)

async def run_challenge_reaper(registry: ChallengeRegistry, interval: int = 60):
    """Challenge eviction loop."""
    logger.info(f"Challenge reaper starting up (every {interval}s)")
    while True:
        try:
            await reap_expired_challenges(registry)
        except Exception as e:
            logger.error(f"Error in challenge reaper: {str(e)}")
        await asyncio.sleep(interval)

__all__ = [
    'purge_expired_messages',
    'reap_expired_challenges',
    'run_retention_worker',
    'run_challenge_reaper',
]
