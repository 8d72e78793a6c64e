"""Challenge/response authentication gateway.

Per wallet the protocol moves ANONYMOUS -> CHALLENGED -> AUTHENTICATED:

- request_challenge(wallet) always (re)enters CHALLENGED, replacing any
  earlier challenge, which supports client retries and wallet switches.
- submit_signature(...) redeems the challenge, creates the identity on
  first sign-up and returns a token pair.
- An unredeemed challenge falls back to ANONYMOUS once it expires.

AUTHENTICATED is not held server-side: it is the client holding a valid
token pair. Tokens are bound to one wallet; a client whose active
wallet changes must drop them and start again from ANONYMOUS.
"""

import logging
from enum import Enum
from typing import Callable, Optional, Tuple

from errors import MissingProfile, ServiceError
from identities import (
    BaseIdentityStore, Identity, normalize_address, parse_role, validate_display_name
)
from .challenges import Challenge, ChallengeRegistry
from .signatures import recover_signer
from .tokens import TokenPair, TokenService

logger = logging.getLogger(__name__)

class SessionState(str, Enum):
    ANONYMOUS = "ANONYMOUS"
    CHALLENGED = "CHALLENGED"
    AUTHENTICATED = "AUTHENTICATED"

class AuthGateway:
    """Orchestrates challenge issuance, signature verification and token issuance."""

    def __init__(
        self,
        challenges: ChallengeRegistry,
        identities: BaseIdentityStore,
        tokens: TokenService,
        verifier: Callable[[str, str], str] = recover_signer
    ):
        self.challenges = challenges
        self.identities = identities
        self.tokens = tokens
        self.verifier = verifier

    async def request_challenge(self, wallet: str) -> Challenge:
        """Issue a challenge for the wallet (any state -> CHALLENGED)."""
        return await self.challenges.issue(normalize_address(wallet))

    async def submit_signature(
        self,
        wallet: str,
        signature: str,
        display_name: Optional[str] = None,
        role: Optional[str] = None
    ) -> Tuple[Identity, TokenPair]:
        """Verify a signed challenge and issue tokens (CHALLENGED -> AUTHENTICATED).

        Args:
            wallet: The wallet claiming to have signed the challenge
            signature: Signature over the challenge text
            display_name: Required on first sign-up, ignored afterwards
            role: Required on first sign-up, ignored afterwards

        Returns:
            The stored identity and a fresh token pair

        Raises:
            MissingProfile: First sign-up without displayName and role. The
                challenge is left live so the client can resubmit.
            ChallengeExpired: No live challenge for the wallet
            SignatureMismatch: Signature not made by the wallet
        """
        wallet = normalize_address(wallet)
        identity = await self.identities.get(wallet)

        profile = None
        if identity is None:
            if not display_name or not role:
                logger.warning(f"Sign-up for {wallet} rejected: missing profile")
                raise MissingProfile("displayName and role are required for first-time signup")
            profile = (validate_display_name(display_name), parse_role(role))

        try:
            await self.challenges.redeem(wallet, signature, self.verifier)
        except ServiceError as e:
            logger.warning(f"Verification failed for {wallet}: {e.code}")
            raise

        if identity is None:
            identity, created = await self.identities.create_if_absent(wallet, *profile)
            if not created:
                logger.info(f"Identity for {wallet} was created concurrently; keeping it")

        logger.info(f"Authenticated {wallet} as {identity.role.value}")
        return identity, self.tokens.issue(identity)

    def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new access token."""
        return self.tokens.refresh(refresh_token)

    def session_state(self, wallet: str) -> SessionState:
        """Server-side view of the wallet's protocol state."""
        if self.challenges.peek(normalize_address(wallet)):
            return SessionState.CHALLENGED
        return SessionState.ANONYMOUS

__all__ = ['AuthGateway', 'SessionState']
