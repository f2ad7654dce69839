"""
Database Configuration
======================

Connection configuration for the cardano db-sync PostgreSQL database the
ledger sync reads publication records from.
"""
import asyncio
import logging
from dataclasses import dataclass

import asyncpg

from curator.config.settings import Settings
from curator.errors import SetupError

logger = logging.getLogger(__name__)


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""
    host: str
    port: int
    user: str
    password: str
    database: str
    ssl_mode: str = "disable"
    min_size: int = 1
    max_size: int = 5

    @classmethod
    def from_settings(cls, settings: Settings, min_size: int = 1, max_size: int = 5) -> 'PostgresConfig':
        """Create config from curator settings."""
        return cls(
            host=settings.postgres_host,
            port=settings.postgres_port,
            user=settings.postgres_user,
            password=settings.postgres_password,
            database=settings.postgres_db,
            ssl_mode=settings.postgres_ssl_mode,
            min_size=min_size,
            max_size=max_size,
        )

    def to_asyncpg_kwargs(self) -> dict:
        """Convert to asyncpg.create_pool kwargs."""
        kwargs = {
            'host': self.host,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'database': self.database,
            'min_size': self.min_size,
            'max_size': self.max_size,
        }
        if self.ssl_mode and self.ssl_mode != "disable":
            kwargs['ssl'] = self.ssl_mode
        return kwargs


async def create_postgres_pool(
    config: PostgresConfig,
    attempts: int = 12,
    retry_delay: float = 5.0,
) -> asyncpg.Pool:
    """
    Create the db-sync connection pool, waiting for the database to come up.

    Raises:
        SetupError: database still unreachable after all attempts
    """
    last_error = None
    for attempt in range(1, attempts + 1):
        logger.info(f"Checking if cardano db is ready ({attempt}/{attempts}): {config.host}:{config.port}")
        try:
            pool = await asyncpg.create_pool(**config.to_asyncpg_kwargs())
            logger.info("Cardano db is ready")
            return pool
        except (OSError, asyncpg.PostgresError) as e:
            last_error = e
            logger.warning(f"Cardano db not ready: {e}")
            if attempt < attempts:
                await asyncio.sleep(retry_delay)

    raise SetupError(f"cannot connect to cardano db at {config.host}:{config.port}: {last_error}")
