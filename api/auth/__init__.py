"""Authentication API endpoints."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from auth import AuthenticatedIdentity, get_current_user
from identities import Role
from ..services import Services, get_services

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class ChallengeRequest(CamelModel):
    """Request model for creating a challenge."""
    wallet: str

class ChallengeResponse(CamelModel):
    """The exact text the wallet must sign."""
    challenge: str
    expires_at: datetime

class VerifyRequest(CamelModel):
    """Request model for verifying a signed challenge.

    ``display_name`` and ``role`` are only read on first sign-up.
    """
    wallet: str
    signature: str
    display_name: Optional[str] = None
    role: Optional[str] = None

class TokenResponse(CamelModel):
    access_token: str
    refresh_token: Optional[str] = None

class RefreshRequest(CamelModel):
    refresh_token: str

class SessionResponse(CamelModel):
    wallet: str
    role: Role
    expires_at: datetime

@router.post("/challenge", response_model=ChallengeResponse)
async def create_challenge(
    request: ChallengeRequest,
    services: Services = Depends(get_services)
):
    """Issue a new challenge for a wallet, replacing any earlier one."""
    challenge = await services.gateway.request_challenge(request.wallet)
    return ChallengeResponse(challenge=challenge.nonce, expires_at=challenge.expires_at)

@router.post("/verify", response_model=TokenResponse)
async def verify(
    request: VerifyRequest,
    services: Services = Depends(get_services)
):
    """Verify a signed challenge and issue an access and refresh token."""
    _, tokens = await services.gateway.submit_signature(
        request.wallet,
        request.signature,
        display_name=request.display_name,
        role=request.role
    )
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token
    )

@router.post(
    "/refresh",
    response_model=TokenResponse,
    response_model_exclude_none=True
)
async def refresh(
    request: RefreshRequest,
    services: Services = Depends(get_services)
):
    """Exchange a refresh token for a new access token."""
    tokens = services.gateway.refresh(request.refresh_token)
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token
    )

@router.get("/session", response_model=SessionResponse)
async def session(identity: AuthenticatedIdentity = Depends(get_current_user)):
    """Report which wallet the presented access token belongs to."""
    return SessionResponse(
        wallet=identity.wallet,
        role=identity.role,
        expires_at=identity.claims.expires_at
    )

# Export the router
__all__ = ['router']
