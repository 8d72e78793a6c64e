"""Background workers run alongside the API."""

from .retention import (
    purge_expired_messages,
    reap_expired_challenges,
    run_retention_worker,
    run_challenge_reaper
)

__all__ = [
    'purge_expired_messages',
    'reap_expired_challenges',
    'run_retention_worker',
    'run_challenge_reaper',
]
