"""Connection settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .client import DEFAULT_TIMEOUT
from .transport.tcp_connection import DEFAULT_PORT

ENV_PREFIX = "MIKROTIK_"


@dataclass
class Settings:
    """Router address and login used when a tool call does not supply them."""

    host: str = "192.168.88.1"
    port: int = DEFAULT_PORT
    username: str = "admin"
    password: str = field(default="", repr=False)
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        """Build settings from ``MIKROTIK_HOST``, ``MIKROTIK_PORT``,
        ``MIKROTIK_USERNAME``, ``MIKROTIK_PASSWORD`` and ``MIKROTIK_TIMEOUT``.

        Raises:
            ValueError: If the port or timeout is not a number.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str, default):
            value = env.get(ENV_PREFIX + name)
            if value is None or not value.strip():
                return default
            return value.strip()

        try:
            port = int(get("PORT", defaults.port))
        except ValueError as e:
            raise ValueError(f"{ENV_PREFIX}PORT must be an integer: {e}") from e
        try:
            timeout = float(get("TIMEOUT", defaults.timeout))
        except ValueError as e:
            raise ValueError(f"{ENV_PREFIX}TIMEOUT must be a number: {e}") from e

        return cls(
            host=get("HOST", defaults.host),
            port=port,
            username=get("USERNAME", defaults.username),
            password=env.get(ENV_PREFIX + "PASSWORD", defaults.password),
            timeout=timeout,
        )
