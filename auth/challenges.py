"""Challenge registry for wallet signature authentication.

Holds at most one live challenge per wallet. Issuing replaces the
previous challenge immediately; redeeming is a compare-and-delete under
the wallet's lock, so exactly one caller can redeem a given nonce.

The registry is process-local. A horizontally scaled deployment needs a
shared store with the same per-wallet semantics.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from errors import ChallengeExpired, SignatureMismatch
from utils import KeyedLock, utcnow
from .signatures import recover_signer

logger = logging.getLogger(__name__)

CHALLENGE_PREFIX = "Sign this message to authenticate with the job board: "
DEFAULT_CHALLENGE_TTL = timedelta(minutes=10)

@dataclass(frozen=True)
class Challenge:
    """A single-use nonce bound to one wallet."""
    wallet: str
    nonce: str
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

class ChallengeRegistry:
    """In-memory per-wallet challenge slots."""

    def __init__(
        self,
        ttl: timedelta = DEFAULT_CHALLENGE_TTL,
        clock: Callable[[], datetime] = utcnow
    ):
        """Initialize the registry.

        Args:
            ttl: How long an issued challenge stays redeemable
            clock: Returns the current aware datetime
        """
        self.ttl = ttl
        self.clock = clock
        self._challenges: Dict[str, Challenge] = {}
        self._locks = KeyedLock()

    async def issue(self, wallet: str) -> Challenge:
        """Issue a fresh challenge, replacing any live one for the wallet.

        Args:
            wallet: Normalized wallet address

        Returns:
            The new challenge. ``nonce`` is the exact text to sign.
        """
        now = self.clock()
        challenge = Challenge(
            wallet=wallet,
            nonce=f"{CHALLENGE_PREFIX}{secrets.token_hex(32)}",
            issued_at=now,
            expires_at=now + self.ttl
        )
        async with self._locks.hold(wallet):
            self._challenges[wallet] = challenge
        logger.info(f"Issued challenge for {wallet}, expires {challenge.expires_at.isoformat()}")
        return challenge

    async def redeem(
        self,
        wallet: str,
        signature: str,
        verifier: Callable[[str, str], str] = recover_signer
    ) -> bool:
        """Redeem the wallet's live challenge with a signature over it.

        Args:
            wallet: Normalized wallet address
            signature: Signature over the challenge nonce
            verifier: Recovers the signing address from (message, signature)

        Returns:
            True. Failures raise.

        Raises:
            ChallengeExpired: If no live challenge exists for the wallet
            SignatureMismatch: If the signature was not made by the wallet
        """
        async with self._locks.hold(wallet):
            challenge = self._challenges.get(wallet)
            if challenge is None:
                raise ChallengeExpired("No challenge issued for this wallet")

            if challenge.is_expired(self.clock()):
                del self._challenges[wallet]
                raise ChallengeExpired("Challenge has expired")

            recovered = verifier(challenge.nonce, signature)
            if recovered.lower() != wallet:
                raise SignatureMismatch("Signature does not match wallet")

            # Compare-and-delete: only the nonce we verified may be consumed
            if self._challenges.get(wallet) is challenge:
                del self._challenges[wallet]
                return True

        raise ChallengeExpired("Challenge was replaced during verification")

    def peek(self, wallet: str) -> Optional[Challenge]:
        """Return the wallet's live, unexpired challenge if any."""
        challenge = self._challenges.get(wallet)
        if challenge and not challenge.is_expired(self.clock()):
            return challenge
        return None

    async def purge_expired(self) -> int:
        """Evict every expired challenge.

        Returns:
            Number of challenges evicted
        """
        now = self.clock()
        expired = [
            wallet for wallet, challenge in list(self._challenges.items())
            if challenge.is_expired(now)
        ]
        purged = 0
        for wallet in expired:
            async with self._locks.hold(wallet):
                challenge = self._challenges.get(wallet)
                if challenge and challenge.is_expired(now):
                    del self._challenges[wallet]
                    purged += 1
        return purged

    def __len__(self) -> int:
        return len(self._challenges)

__all__ = ['Challenge', 'ChallengeRegistry', 'CHALLENGE_PREFIX', 'DEFAULT_CHALLENGE_TTL']
