"""Run the API server together with its background workers."""
import asyncio
import logging
import signal

import uvicorn

from config import settings_conf
from database import init_db, close as db_close

# Configure logging
logging.basicConfig(
    level=settings_conf['log_level'],
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global instances
server = None
should_exit = False

def handle_shutdown(signum, frame):
    """Handle shutdown signals gracefully."""
    global should_exit
    logger.info("Shutdown signal received. Cleaning up...")
    should_exit = True

async def startup():
    """Initialize storage and build the app."""
    from api import build_services, create_app

    pool = None
    if settings_conf['storage'] == 'postgres':
        logger.info("Initializing database...")
        pool = await init_db(settings_conf['db_url'])

    services = build_services(settings_conf, pool=pool)
    return services, create_app(services, run_workers=False)

class UvicornServer:
    """Wrapper for running uvicorn with proper lifecycle management."""

    def __init__(self, app, host: str = "0.0.0.0", port: int = 8000):
        self.config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level=settings_conf['log_level'].lower()
        )
        self.server = uvicorn.Server(self.config)

    async def run(self):
        """Run the server in a way that can be stopped."""
        await self.server.serve()

    async def stop(self):
        """Stop the server."""
        self.server.should_exit = True

async def main():
    """Run the API server, message retention worker and challenge reaper."""
    global server, should_exit

    from workers import run_challenge_reaper, run_retention_worker

    tasks = []
    try:
        # Uvicorn installs its own handlers when serving; these cover startup
        signal.signal(signal.SIGINT, handle_shutdown)
        signal.signal(signal.SIGTERM, handle_shutdown)

        services, app = await startup()
        server = UvicornServer(app, settings_conf['host'], settings_conf['port'])

        tasks = [
            asyncio.create_task(server.run(), name="api"),
            asyncio.create_task(
                run_retention_worker(services.messages, settings_conf['retention_sweep_seconds']),
                name="retention"
            ),
            asyncio.create_task(
                run_challenge_reaper(services.challenges, settings_conf['challenge_reap_seconds']),
                name="challenge-reaper"
            )
        ]

        logger.info("All services started")

        # Wait for shutdown signal
        while not should_exit:
            await asyncio.sleep(1)

            # Check if any tasks stopped
            for task in tasks:
                if task.done() and not task.cancelled():
                    exc = task.exception()
                    if exc:
                        logger.error(f"Task {task.get_name()} failed with error: {exc}")
                    else:
                        logger.info(f"Task {task.get_name()} exited")
                    should_exit = True
                    break

        logger.info("Starting cleanup...")

    except Exception as e:
        logger.error(f"Fatal error: {e}")
    finally:
        if server:
            logger.info("Stopping API server...")
            await server.stop()

        for task in tasks:
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        logger.info("Closing database connections...")
        await db_close()

        logger.info("Cleanup complete.")

if __name__ == "__main__":
    asyncio.run(main())
