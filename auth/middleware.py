"""Authorization dependencies for protected routes.

``get_current_user`` validates the bearer access token and exposes the
verified wallet and role to downstream handlers. It never mutates any
state; it only gates.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from errors import Forbidden, Unauthorized
from identities import Role
from .tokens import TokenClaims

@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Verified caller attached to the request."""
    wallet: str
    role: Role
    claims: TokenClaims

# auto_error=False so a missing header renders through our error handler
auth_scheme = HTTPBearer(
    auto_error=False,
    description="Access token from /auth/verify or /auth/refresh"
)

async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme)
) -> AuthenticatedIdentity:
    """FastAPI dependency returning the authenticated caller.

    Raises:
        Unauthorized: If no bearer token was sent
        TokenExpired: If the access token has expired
        TokenInvalid: If the token is forged, malformed or a refresh token
    """
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Bearer access token required")

    claims = request.app.state.services.tokens.verify_access(credentials.credentials)
    identity = AuthenticatedIdentity(wallet=claims.wallet, role=claims.role, claims=claims)
    request.state.identity = identity
    return identity

def require_role(role: Role):
    """Build a dependency that also requires the caller to hold ``role``."""
    async def dependency(
        identity: AuthenticatedIdentity = Depends(get_current_user)
    ) -> AuthenticatedIdentity:
        if identity.role != role:
            raise Forbidden(f"Only {role.value}s may perform this action")
        return identity
    return dependency

__all__ = ['AuthenticatedIdentity', 'auth_scheme', 'get_current_user', 'require_role']
