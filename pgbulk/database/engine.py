import logging
from typing import Optional

import asyncpg

from ..setup.config.models import DatabaseConfig, LoadingConfig


async def create_pool(
    database: DatabaseConfig,
    loading: LoadingConfig,
    logger: Optional[logging.Logger] = None,
) -> asyncpg.Pool:
    """
    Create the asyncpg connection pool a job draws its single load connection from.

    Args:
        database: Target connection settings
        loading: Pool sizing and statement timeout
        logger: Logger to report on (the module logger when omitted)

    Returns:
        asyncpg.Pool: Ready-to-use connection pool
    """
    logger = logger or logging.getLogger(__name__)
    dsn = database.get_connection_string()

    logger.info(
        f"[ConnectionFactory] Creating asyncpg pool "
        f"(min: {loading.pool_min_size}, max: {loading.pool_max_size})"
    )
    logger.debug(f"[ConnectionFactory] DSN: {dsn.split('@')[-1]}")

    try:
        pool = await asyncpg.create_pool(
            dsn,
            min_size=loading.pool_min_size,
            max_size=loading.pool_max_size,
            command_timeout=loading.command_timeout,
            server_settings={"application_name": "pgbulk"},
        )
    except (OSError, asyncpg.PostgresError) as e:
        logger.error(f"[ConnectionFactory] Failed to create asyncpg pool: {e}")
        raise
    logger.info("[ConnectionFactory] AsyncPG pool created successfully")
    return pool
