"""Run the API server on its own: ``python -m api``.

Background workers run inside the app's lifespan. Use ``main.py`` to run
them as separately supervised tasks instead.
"""
import asyncio
import logging

import uvicorn

from config import settings_conf
from database import init_db, close as db_close

logger = logging.getLogger(__name__)

async def serve():
    """Initialize storage and serve until uvicorn exits."""
    if settings_conf['storage'] == 'postgres':
        logger.info("Initializing database...")
        await init_db(settings_conf['db_url'])

    config = uvicorn.Config(
        "api:app",
        host=settings_conf['host'],
        port=settings_conf['port'],
        log_level=settings_conf['log_level'].lower()
    )
    try:
        await uvicorn.Server(config).serve()
    finally:
        if settings_conf['storage'] == 'postgres':
            logger.info("Closing database connections...")
            await db_close()

if __name__ == "__main__":
    asyncio.run(serve())
