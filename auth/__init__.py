"""Authentication module using wallet signature challenges and signed tokens.

This module provides:
1. Single-use challenges, one live challenge per wallet
2. EIP-191 signature recovery to prove wallet ownership
3. Short-lived access tokens and long-lived refresh tokens
4. The gateway orchestrating the challenge -> signature -> token flow
5. Dependencies for protecting routes
"""

from errors import (
    ChallengeExpired, SignatureMismatch, MissingProfile,
    TokenInvalid, TokenExpired, Unauthorized
)
from .challenges import Challenge, ChallengeRegistry
from .signatures import recover_signer
from .tokens import TokenService, TokenClaims, TokenPair
from .gateway import AuthGateway, SessionState
from .middleware import AuthenticatedIdentity, get_current_user, require_role

# Export public interface
__all__ = [
    'Challenge',
    'ChallengeRegistry',
    'recover_signer',
    'TokenService',
    'TokenClaims',
    'TokenPair',
    'AuthGateway',
    'SessionState',
    'AuthenticatedIdentity',
    'get_current_user',
    'require_role',
    'ChallengeExpired',
    'SignatureMismatch',
    'MissingProfile',
    'TokenInvalid',
    'TokenExpired',
    'Unauthorized',
]
