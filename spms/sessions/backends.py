# sessions/backends.py
"""Session persistence backends.

A backend is a plain key-value store: keys are session identifiers, values are
serialized session records. The session format itself belongs to
:class:`spms.sessions.SessionManager`.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class SessionBackend(ABC):
    """Abstract base class for session backends."""

    def __init__(self, **config):
        self.config = config

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Get a serialized session."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """Store a serialized session with optional TTL."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a session."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a session exists."""
        pass

    @abstractmethod
    async def clear(self) -> bool:
        """Drop every stored session."""
        pass

    async def close(self):
        """Close backend connections."""
        pass


class InMemorySessionBackend(SessionBackend):
    """In-process session backend.

    Expired entries are dropped when read, and swept from the whole store on
    the first write after each ``sweep_interval`` seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.time, sweep_interval: float = 60, **config):
        super().__init__(**config)
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self.sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        expired = [
            key for key, (_, expires_at) in self._data.items()
            if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            del self._data[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired sessions")
        return len(expired)

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            self._data.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        now = self._clock()
        if now >= self._next_sweep:
            self.purge_expired()
            self._next_sweep = now + self.sweep_interval

        expires_at = now + ttl if ttl is not None else None
        self._data[key] = (value, expires_at)
        return True

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def clear(self) -> bool:
        self._data.clear()
        return True

    def __len__(self) -> int:
        return len(self._data)


class RedisSessionBackend(SessionBackend):
    """Redis session backend.

    Every request does one ``GET`` and at most one ``SETEX`` (plus a ``DEL``
    when the session identifier was rotated), so Redis' per-command atomicity
    is all the consistency the session layer relies on.
    """

    def __init__(self, url: str = "redis://localhost:6379", prefix: str = "spms:session:",
                 client: Any = None, **config):
        super().__init__(**config)
        self.url = url
        self.prefix = prefix
        self.redis = client

    async def _get_redis(self):
        """Get Redis connection."""
        if self.redis is None:
            try:
                from redis import asyncio as aioredis
            except ImportError:
                raise ImportError("redis is required for the Redis session backend. Install with: pip install 'spms[redis]'")
            self.redis = aioredis.from_url(self.url, decode_responses=True)
            logger.info("Connected session backend to Redis")
        return self.redis

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        redis = await self._get_redis()
        value = await redis.get(self._key(key))
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        redis = await self._get_redis()
        if ttl is not None:
            await redis.setex(self._key(key), ttl, value)
        else:
            await redis.set(self._key(key), value)
        return True

    async def delete(self, key: str) -> bool:
        redis = await self._get_redis()
        result = await redis.delete(self._key(key))
        return result > 0

    async def exists(self, key: str) -> bool:
        redis = await self._get_redis()
        result = await redis.exists(self._key(key))
        return result > 0

    async def clear(self) -> bool:
        redis = await self._get_redis()
        keys = [key async for key in redis.scan_iter(match=f"{self.prefix}*")]
        if keys:
            await redis.delete(*keys)
        return True

    async def close(self):
        """Close Redis connection."""
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None


def create_backend(name: str, redis_url: Optional[str] = None, **config) -> SessionBackend:
    """Build the backend named by ``SESSION_BACKEND``."""
    if name == "memory":
        return InMemorySessionBackend(**config)
    if name == "redis":
        return RedisSessionBackend(url=redis_url or "redis://localhost:6379", **config)
    raise ValueError(f"Unknown session backend: {name}")
