"""Access and refresh token issuance and verification.

Both token classes are stateless HS256 JWTs carrying the wallet and its
role. They are signed with different secrets and tagged with a ``type``
claim, so a refresh token never verifies as an access token and vice
versa.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from jose import jwt, JWTError

from errors import TokenExpired, TokenInvalid
from identities import Identity, Role
from utils import utcnow

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"

@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of a token."""
    wallet: str
    role: Role
    token_type: str
    issued_at: datetime
    expires_at: datetime

@dataclass(frozen=True)
class TokenPair:
    """Result of issuing or refreshing tokens.

    ``refresh_token`` is None when a refresh did not rotate it.
    """
    access_token: str
    access_expires_at: datetime
    refresh_token: Optional[str] = None
    refresh_expires_at: Optional[datetime] = None

class TokenService:
    """Signs and verifies access and refresh tokens."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        algorithm: str = "HS256",
        rotate_refresh_tokens: bool = False,
        clock: Callable[[], datetime] = utcnow
    ):
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh tokens must use different secrets")
        self._secrets = {ACCESS: access_secret, REFRESH: refresh_secret}
        self._ttls = {ACCESS: access_ttl, REFRESH: refresh_ttl}
        self.algorithm = algorithm
        self.rotate_refresh_tokens = rotate_refresh_tokens
        self.clock = clock

    def issue(self, identity: Identity) -> TokenPair:
        """Issue an access token and a refresh token for an identity."""
        access, access_exp = self._encode(identity.wallet, identity.role, ACCESS)
        refresh, refresh_exp = self._encode(identity.wallet, identity.role, REFRESH)
        return TokenPair(
            access_token=access,
            access_expires_at=access_exp,
            refresh_token=refresh,
            refresh_expires_at=refresh_exp
        )

    def verify_access(self, token: str) -> TokenClaims:
        """Verify an access token.

        Raises:
            TokenExpired: If the token is past its expiry
            TokenInvalid: If the token is malformed, forged or not an access token
        """
        return self._decode(token, ACCESS)

    def verify_refresh(self, token: str) -> TokenClaims:
        """Verify a refresh token. Same failures as verify_access."""
        return self._decode(token, REFRESH)

    def refresh(self, refresh_token: str) -> TokenPair:
        """Mint a new access token from a valid refresh token.

        The refresh token is only replaced when rotation is enabled; the
        old one remains valid until it expires either way.
        """
        claims = self.verify_refresh(refresh_token)
        access, access_exp = self._encode(claims.wallet, claims.role, ACCESS)
        if not self.rotate_refresh_tokens:
            return TokenPair(access_token=access, access_expires_at=access_exp)

        refresh, refresh_exp = self._encode(claims.wallet, claims.role, REFRESH)
        return TokenPair(
            access_token=access,
            access_expires_at=access_exp,
            refresh_token=refresh,
            refresh_expires_at=refresh_exp
        )

    def _encode(self, wallet: str, role: Role, token_type: str):
        now = self.clock()
        expires_at = now + self._ttls[token_type]
        claims = {
            'sub': wallet,
            'role': role.value,
            'type': token_type,
            'iat': int(now.timestamp()),
            'exp': int(expires_at.timestamp()),
            'jti': uuid.uuid4().hex
        }
        token = jwt.encode(claims, self._secrets[token_type], algorithm=self.algorithm)
        return token, datetime.fromtimestamp(claims['exp'], tz=timezone.utc)

    def _decode(self, token: str, token_type: str) -> TokenClaims:
        if not token:
            raise TokenInvalid("Token missing")
        if not isinstance(token, str):
            raise TokenInvalid("Token must be a string")
        try:
            # Expiry is checked below against the injected clock
            payload = jwt.decode(
                token,
                self._secrets[token_type],
                algorithms=[self.algorithm],
                options={'verify_exp': False}
            )
        except JWTError as e:
            logger.debug(f"Rejected {token_type} token: {e}")
            raise TokenInvalid("Invalid token")

        if payload.get('type') != token_type:
            raise TokenInvalid(f"Expected a {token_type} token")

        try:
            wallet = payload['sub']
            role = Role(payload['role'])
            issued_at = datetime.fromtimestamp(int(payload['iat']), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload['exp']), tz=timezone.utc)
        except (KeyError, TypeError, ValueError):
            raise TokenInvalid("Token claims are incomplete")

        if self.clock() >= expires_at:
            raise TokenExpired(f"{token_type.capitalize()} token has expired")

        return TokenClaims(
            wallet=wallet,
            role=role,
            token_type=token_type,
            issued_at=issued_at,
            expires_at=expires_at
        )

__all__ = ['TokenService', 'TokenClaims', 'TokenPair', 'ACCESS', 'REFRESH']
