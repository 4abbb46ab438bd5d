"""
Directory Config - Connection, retry and cache settings for DirectoryClient.

Settings can be given as keyword arguments, a dict (snake_case or the
camelCase keys used by the platform's JSON configs) or the environment:

    UFDS_URL, UFDS_BIND_DN, UFDS_BIND_PASSWORD,
    UFDS_CACHE (false disables), UFDS_CACHE_SIZE, UFDS_CACHE_EXPIRY,
    UFDS_CACHE_BACKEND (memory|redis), UFDS_REDIS_URL,
    UFDS_CLIENT_TIMEOUT, UFDS_CONNECT_TIMEOUT, UFDS_MAX_CONNECTIONS,
    UFDS_RETRIES, UFDS_RETRY_MIN_TIMEOUT, UFDS_RETRY_MAX_TIMEOUT
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from ufds_client.ports.cache_port import CachePort

CACHE_BACKENDS = ("memory", "redis")

_FALSE = ("0", "false", "no", "off")


@dataclass
class RetryPolicy:
    """
    Exponential backoff for the initial bind.

    Delays are in milliseconds. retries=None retries forever.
    """
    retries: Optional[int] = None
    min_timeout: int = 100
    max_timeout: int = 30000

    def __post_init__(self):
        if self.retries is not None and self.retries < 0:
            raise ValueError("retry.retries must not be negative")
        if self.min_timeout <= 0:
            raise ValueError("retry.min_timeout must be positive")
        if self.max_timeout < self.min_timeout:
            raise ValueError("retry.max_timeout must be at least retry.min_timeout")

    def delay(self, attempt: int) -> float:
        """Seconds to wait before retrying after failed attempt number `attempt` (0-based)."""
        return min(self.min_timeout * (2 ** attempt), self.max_timeout) / 1000

    def exhausted(self, attempt: int) -> bool:
        """True once `attempt` failures leave no retries."""
        return self.retries is not None and attempt >= self.retries

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RetryPolicy":
        retries = data.get("retries")
        return cls(
            retries=int(retries) if retries is not None else None,
            min_timeout=int(data.get("min_timeout", data.get("minTimeout", 100))),
            max_timeout=int(data.get("max_timeout", data.get("maxTimeout", 30000))),
        )


@dataclass
class CacheConfig:
    """Search result cache settings (expiry in seconds)."""
    size: int = 1000
    expiry: int = 60
    backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"

    def __post_init__(self):
        if self.size <= 0:
            raise ValueError("cache.size must be positive")
        if self.expiry <= 0:
            raise ValueError("cache.expiry must be positive")
        if self.backend not in CACHE_BACKENDS:
            raise ValueError(f"cache.backend must be one of {', '.join(CACHE_BACKENDS)}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheConfig":
        return cls(
            size=int(data.get("size", 1000)),
            expiry=int(data.get("expiry", 60)),
            backend=data.get("backend", "memory"),
            redis_url=data.get("redis_url", data.get("redisUrl", "redis://localhost:6379/0")),
        )


@dataclass
class DirectoryConfig:
    """
    Settings for one DirectoryClient.

    Example:
        config = DirectoryConfig(
            url="ldaps://10.99.99.18",
            bind_dn="cn=root",
            bind_password="secret",
            cache=CacheConfig(size=100, expiry=30),
        )
    """
    url: str
    bind_dn: str
    bind_password: str
    log: Optional[logging.Logger] = None
    cache: Optional[CacheConfig] = None
    max_connections: int = 5
    client_timeout: Optional[int] = 5000
    connect_timeout: Optional[int] = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    hidden: bool = True

    def __post_init__(self):
        for name in ("url", "bind_dn", "bind_password"):
            if not getattr(self, name):
                raise ValueError(f"{name} is required")
        if self.max_connections <= 0:
            raise ValueError("max_connections must be positive")
        if self.client_timeout is not None and self.client_timeout <= 0:
            raise ValueError("client_timeout must be positive")
        if self.connect_timeout is not None and self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")

    def __repr__(self) -> str:
        return (
            f"DirectoryConfig(url={self.url!r}, bind_dn={self.bind_dn!r}, "
            f"cache={self.cache!r}, max_connections={self.max_connections})"
        )

    def build_cache(self) -> Optional[CachePort]:
        """
        Create the configured cache adapter.

        Returns:
            Cache adapter, or None when caching is disabled
        """
        if self.cache is None:
            return None

        if self.cache.backend == "redis":
            from ufds_client.adapters.redis_cache import RedisCacheAdapter
            return RedisCacheAdapter(
                url=self.cache.redis_url,
                size=self.cache.size,
                expiry=self.cache.expiry,
            )

        from ufds_client.adapters.memory_cache import MemoryCacheAdapter
        return MemoryCacheAdapter(size=self.cache.size, expiry=self.cache.expiry)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DirectoryConfig":
        """
        Create from a dict.

        Accepts snake_case names and the camelCase keys
        (bindDN, bindCredentials, bindPassword, clientTimeout,
        connectTimeout, maxConnections).
        """
        cache: Union[bool, Dict[str, Any], CacheConfig, None] = data.get("cache")
        if isinstance(cache, dict):
            cache = CacheConfig.from_dict(cache)
        elif cache is True:
            cache = CacheConfig()
        elif not isinstance(cache, CacheConfig):
            cache = None

        retry = data.get("retry") or {}
        if isinstance(retry, dict):
            retry = RetryPolicy.from_dict(retry)

        connect_timeout = data.get("connect_timeout", data.get("connectTimeout"))
        client_timeout = data.get("client_timeout", data.get("clientTimeout", 5000))

        return cls(
            url=data.get("url", ""),
            bind_dn=data.get("bind_dn", data.get("bindDN", "")),
            bind_password=data.get(
                "bind_password",
                data.get("bindCredentials", data.get("bindPassword", "")),
            ),
            log=data.get("log"),
            cache=cache,
            max_connections=int(data.get("max_connections", data.get("maxConnections", 5))),
            client_timeout=int(client_timeout) if client_timeout is not None else None,
            connect_timeout=int(connect_timeout) if connect_timeout is not None else None,
            retry=retry,
            hidden=bool(data.get("hidden", True)),
        )

    @classmethod
    def from_env(cls, prefix: str = "UFDS_") -> "DirectoryConfig":
        """
        Create from environment variables.

        Args:
            prefix: Prefix for environment variables (default UFDS_)
        """
        def env(key: str, default: Optional[str] = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{key}", default)

        cache: Optional[CacheConfig] = None
        enabled = env("CACHE")
        if enabled is None or enabled.lower() not in _FALSE:
            if enabled is not None or env("CACHE_SIZE") or env("CACHE_EXPIRY") or env("CACHE_BACKEND"):
                cache = CacheConfig(
                    size=int(env("CACHE_SIZE", "1000")),
                    expiry=int(env("CACHE_EXPIRY", "60")),
                    backend=env("CACHE_BACKEND", "memory"),
                    redis_url=env("REDIS_URL", "redis://localhost:6379/0"),
                )

        retries = env("RETRIES")
        connect_timeout = env("CONNECT_TIMEOUT")

        return cls(
            url=env("URL", ""),
            bind_dn=env("BIND_DN", ""),
            bind_password=env("BIND_PASSWORD", ""),
            cache=cache,
            max_connections=int(env("MAX_CONNECTIONS", "5")),
            client_timeout=int(env("CLIENT_TIMEOUT", "5000")),
            connect_timeout=int(connect_timeout) if connect_timeout else None,
            retry=RetryPolicy(
                retries=int(retries) if retries else None,
                min_timeout=int(env("RETRY_MIN_TIMEOUT", "100")),
                max_timeout=int(env("RETRY_MAX_TIMEOUT", "30000")),
            ),
        )
