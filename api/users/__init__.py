"""Identity lookup endpoints."""

from fastapi import APIRouter, Depends, Response

from errors import NotFound, ValidationError
from identities import Identity, normalize_address
from ..services import Services, get_services

router = APIRouter(
    prefix="/users",
    tags=["Users"]
)

@router.get("/{wallet}", response_model=Identity)
async def get_user(wallet: str, services: Services = Depends(get_services)):
    """Get the registered identity for a wallet."""
    wallet = normalize_address(wallet)
    identity = await services.identities.get(wallet)
    if identity is None:
        raise NotFound(f"No identity registered for {wallet}")
    return identity

@router.head("/{wallet}")
async def user_exists(wallet: str, services: Services = Depends(get_services)):
    """200 if the wallet has registered, 404 otherwise, malformed addresses included."""
    try:
        wallet = normalize_address(wallet)
    except ValidationError:
        return Response(status_code=404)
    if not await services.identities.exists(wallet):
        return Response(status_code=404)
    return Response(status_code=200)

__all__ = ['router']
