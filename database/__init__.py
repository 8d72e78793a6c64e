"""Database module for managing the PostgreSQL/CockroachDB connection pool.

This module handles:
- Database connection pool initialization
- Schema management
- Connection lifecycle
"""

import logging
import ssl
from typing import Optional, Dict, Any
import backoff
import asyncpg
from urllib.parse import urlparse, parse_qs

from .exceptions import DatabaseError, DatabaseConnectionError, DatabaseSchemaError
from .lib.schema_manager import SchemaManager

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.Pool] = None
_schema_manager: Optional[SchemaManager] = None

RETRYABLE_ERRORS = (
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.CannotConnectNowError,
    ConnectionRefusedError,
)

def _get_connection_kwargs(db_url: str) -> Dict[str, Any]:
    """Get connection kwargs from database URL.

    SSL is enabled unless the URL says ``sslmode=disable``.

    Args:
        db_url: Database connection URL

    Returns:
        Dict of connection parameters
    """
    params = parse_qs(urlparse(db_url).query)
    sslmode = params.get('sslmode', ['require'])[0]

    kwargs: Dict[str, Any] = {
        'server_settings': {
            'statement_timeout': '30000',  # 30 seconds
        }
    }
    if sslmode != 'disable':
        ssl_context = ssl.create_default_context()
        ssl_context.verify_mode = ssl.CERT_REQUIRED
        ssl_context.check_hostname = True
        kwargs['ssl'] = ssl_context
    else:
        kwargs['ssl'] = False

    return kwargs

@backoff.on_exception(
    backoff.expo,
    RETRYABLE_ERRORS,
    max_tries=5
)
async def init_db(db_url: Optional[str] = None) -> asyncpg.Pool:
    """Initialize the database connection pool and schema.

    Args:
        db_url: Optional database URL. If not provided, will use settings.

    Returns:
        The connection pool

    Raises:
        ValueError: If database URL is not provided
        DatabaseSchemaError: If migrations fail
    """
    global _pool, _schema_manager

    if _pool:
        return _pool

    # Import here to avoid circular imports
    from config import settings_conf

    url = db_url or settings_conf.get('db_url')
    if not url:
        raise ValueError("Database URL not provided")

    # asyncpg does not understand sslmode, it is handled in kwargs
    dsn = url.split('?', 1)[0]
    logger.info(f"Connecting to database at {urlparse(dsn).hostname}")

    pool = await asyncpg.create_pool(
        dsn,
        min_size=2,
        max_size=20,
        max_inactive_connection_lifetime=300.0,
        command_timeout=60.0,
        **_get_connection_kwargs(url)
    )

    try:
        _schema_manager = SchemaManager(pool)
        await _schema_manager.initialize()
    except Exception:
        await pool.close()
        _schema_manager = None
        raise

    _pool = pool
    return _pool

async def get_pool() -> asyncpg.Pool:
    """Get the database connection pool.

    Returns:
        The connection pool

    Raises:
        DatabaseConnectionError: If pool hasn't been initialized
    """
    if not _pool:
        await init_db()
    if not _pool:
        raise DatabaseConnectionError("Failed to initialize database pool")
    return _pool

async def close() -> None:
    """Close the database connection pool."""
    global _pool, _schema_manager

    if _pool:
        await _pool.close()
        _pool = None
        _schema_manager = None
        logger.info("Database pool closed")

# Export public interface
__all__ = [
    'init_db',
    'get_pool',
    'close',
    'DatabaseError',
    'DatabaseConnectionError',
    'DatabaseSchemaError',
]
