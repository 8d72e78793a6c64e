"""System health endpoint."""

import logging
from typing import Optional

import psutil
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from utils import utcnow
from ..services import Services, get_services

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    prefix="/system",
    tags=["System"]
)

class SystemHealth(BaseModel):
    """Model for system health data."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: str
    uptime: float
    storage: str
    database_status: str
    websocket_connections: int
    rooms: int
    pending_challenges: int
    memory_usage: Optional[float] = None

async def check_database(services: Services) -> str:
    """Round-trip the message store to see whether storage answers."""
    try:
        await services.messages.count()
        return "connected"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return "unavailable"

@router.get("/health", response_model=SystemHealth)
async def get_system_health(services: Services = Depends(get_services)):
    """Get system health status.

    Returns:
        SystemHealth object containing process and connection metrics
    """
    if services.settings['storage'] == 'memory':
        database_status = "not configured"
    else:
        database_status = await check_database(services)

    stats = services.broker.stats()
    return SystemHealth(
        status="healthy" if database_status != "unavailable" else "degraded",
        uptime=(utcnow() - services.started_at).total_seconds(),
        storage=services.settings['storage'],
        database_status=database_status,
        websocket_connections=stats['connections'],
        rooms=stats['rooms'],
        pending_challenges=len(services.challenges),
        memory_usage=psutil.virtual_memory().percent
    )

# Export the router
__all__ = ['router']
