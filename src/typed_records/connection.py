"""
Connection acquisition and release.

Wraps redis-py's connection pool. Every transaction acquires one client for
its lifetime and releases it on every exit path.
"""

from __future__ import annotations

from typing import Callable

import redis

from typed_records.config import StoreConfig
from typed_records.logger import get_logger

logger = get_logger(__name__)


class ConnectionPool:
    """Hands out store clients and takes them back."""

    def __init__(
        self,
        client_factory: Callable[[], redis.Redis],
        pool: redis.ConnectionPool | None = None,
    ) -> None:
        """
        Args:
            client_factory: Builds a client per acquisition.
            pool: Underlying redis-py pool, disconnected by close().
        """
        self._client_factory = client_factory
        self._pool = pool
        self.acquired = 0
        self.released = 0

    @classmethod
    def from_config(cls, config: StoreConfig) -> ConnectionPool:
        """Build a pool for the configured server."""
        pool = redis.ConnectionPool(
            host=config.host,
            port=config.port,
            db=config.db,
            password=config.password,
            max_connections=config.pool_size,
            decode_responses=True,
        )
        logger.info(f"Connection pool created for {config.host}:{config.port}/{config.db}")
        return cls(lambda: redis.Redis(connection_pool=pool), pool=pool)

    def acquire(self) -> redis.Redis:
        """Get a client for one execution context."""
        client = self._client_factory()
        self.acquired += 1
        return client

    def release(self, client: redis.Redis) -> None:
        """Return a client acquired from this pool."""
        self.released += 1
        client.close()

    @property
    def in_use(self) -> int:
        """Clients acquired and not yet released."""
        return self.acquired - self.released

    def close(self) -> None:
        """Disconnect every pooled connection."""
        if self._pool is not None:
            self._pool.disconnect()
            logger.info("Connection pool closed.")
