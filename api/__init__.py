"""REST and WebSocket API for the wallet session gateway.

This module provides HTTP endpoints for:
- Wallet signature authentication and token refresh
- Identity lookup
- Job posting, assignment and completion
- Dispute and peer-to-peer messages
- Real-time room events via WebSocket
- System health monitoring
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings_conf
from workers import run_challenge_reaper, run_retention_worker
from .errors import register_exception_handlers
from .services import Services, build_services

# Configure logging
logging.basicConfig(
    level=settings_conf['log_level'],
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def create_app(services: Optional[Services] = None, run_workers: bool = True) -> FastAPI:
    """Build the FastAPI app around a service container.

    Args:
        services: Services to serve. Built from settings.conf when omitted.
        run_workers: Start the retention sweep and challenge reaper while
            the app is running
    """
    if services is None:
        services = build_services(settings_conf)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown events."""
        logger.info("Initializing API...")
        # The database pool is managed by the entry point, not here
        tasks = []
        if run_workers:
            settings = services.settings
            tasks = [
                asyncio.create_task(run_retention_worker(
                    services.messages, settings['retention_sweep_seconds']
                )),
                asyncio.create_task(run_challenge_reaper(
                    services.challenges, settings['challenge_reap_seconds']
                ))
            ]

        yield

        logger.info("Shutting down API...")
        for task in tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    app = FastAPI(
        title="Wallet Session Gateway",
        description="Wallet signature authentication, jobs and real-time messaging",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.services = services

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=services.settings['cors_origins'],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    from .auth import router as auth_router
    from .users import router as users_router
    from .jobs import router as jobs_router
    from .messages import router as messages_router
    from .chat import router as chat_router
    from .websockets import router as websocket_router
    from .system import router as system_router

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(jobs_router)
    app.include_router(messages_router)
    app.include_router(chat_router)
    app.include_router(websocket_router)
    app.include_router(system_router)

    @app.get("/")
    async def root():
        return {
            "name": "Wallet Session Gateway",
            "version": "1.0.0",
            "status": "running"
        }

    return app

app = create_app()

__all__ = ['app', 'create_app', 'Services', 'build_services']
