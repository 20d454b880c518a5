"""
Configuration for the store connection.

Values come from the environment, optionally seeded from a ``.env`` file:

    TYPED_RECORDS_REDIS_HOST      (default: localhost)
    TYPED_RECORDS_REDIS_PORT      (default: 6379)
    TYPED_RECORDS_REDIS_DB        (default: 0)
    TYPED_RECORDS_REDIS_PASSWORD  (default: unset)
    TYPED_RECORDS_POOL_SIZE       (default: 10)
    TYPED_RECORDS_LOG_LEVEL       (default: WARNING)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from collections.abc import Mapping

from dotenv import find_dotenv, load_dotenv

ENV_PREFIX = "TYPED_RECORDS_"


class ConfigError(Exception):
    """Configuration validation error."""
    pass


@dataclass
class StoreConfig:
    """Connection and logging settings."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str | None = None
    pool_size: int = 10
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, dotenv: bool = True) -> StoreConfig:
        """Build a config from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.
            dotenv: Load the nearest ``.env`` file, searched upwards from the
                working directory, into ``os.environ`` first.

        Raises:
            ConfigError: If a numeric setting is not an integer.
        """
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))
        env = os.environ if environ is None else environ

        def _get(name: str, default: str | None) -> str | None:
            return env.get(ENV_PREFIX + name, default)

        def _get_int(name: str, default: int) -> int:
            raw = _get(name, str(default))
            try:
                return int(raw)  # type: ignore[arg-type]
            except ValueError:
                raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")

        config = cls(
            host=_get("REDIS_HOST", "localhost") or "localhost",
            port=_get_int("REDIS_PORT", 6379),
            db=_get_int("REDIS_DB", 0),
            password=_get("REDIS_PASSWORD", None) or None,
            pool_size=_get_int("POOL_SIZE", 10),
            log_level=(_get("LOG_LEVEL", "WARNING") or "WARNING").upper(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate settings."""
        if self.pool_size < 1:
            raise ConfigError(f"pool size must be at least 1, got {self.pool_size}")
        if not 0 < self.port < 65536:
            raise ConfigError(f"invalid port: {self.port}")
        if self.db < 0:
            raise ConfigError(f"invalid database number: {self.db}")
