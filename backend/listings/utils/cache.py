"""
Tag-aware response cache.

Values are JSON-encoded. Every entry may carry tags; invalidating a tag
removes all entries stored under it. Read and write errors are logged and
treated as a miss so a broken cache never fails a request.
"""

import json
import time
from collections import OrderedDict
from datetime import timedelta
from typing import Any, Dict, Iterable, Optional, Set, Tuple, Union

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from listings.core.config import Settings
from listings.core.exceptions import CacheError
from listings.core.logging import get_logger

logger = get_logger(__name__)

TTL = Union[int, timedelta, None]


def _seconds(ttl: TTL, default: int) -> int:
    if ttl is None:
        return default
    if isinstance(ttl, timedelta):
        return int(ttl.total_seconds())
    return int(ttl)


def tag_key(tag: str) -> str:
    return f"tag:{tag}"


class RedisCache:
    """
    Cache backed by Redis; each tag is a Redis set of member keys.

    Tag sets expire no earlier than their longest-lived member (EXPIRE NX
    and GT need Redis 7).
    """

    def __init__(self, url: str, default_ttl: int = 300, client=None):
        self.url = url
        self.redis = client
        self.default_ttl = default_ttl

    async def connect(self):
        """
        Connect to Redis
        """
        if not self.redis:
            try:
                self.redis = aioredis.from_url(
                    self.url,
                    encoding="utf-8",
                    decode_responses=True
                )
                logger.info("Connected to Redis cache")
            except (RedisError, ValueError) as e:
                logger.error("Failed to connect to Redis", error=str(e))
                raise CacheError("Failed to connect to Redis", error_code="CACHE_CONNECT") from e

    async def disconnect(self):
        """
        Disconnect from Redis
        """
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Disconnected from Redis cache")

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache
        """
        try:
            if not self.redis:
                await self.connect()
            value = await self.redis.get(key)
            if value:
                return json.loads(value)
            return None
        except (RedisError, CacheError, ValueError) as e:
            logger.error("Cache get error", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, ttl: TTL = None, tags: Iterable[str] = ()) -> bool:
        """
        Set value in cache and register it under each tag
        """
        try:
            if not self.redis:
                await self.connect()
            seconds = _seconds(ttl, self.default_ttl)
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(key, json.dumps(value, default=str), ex=seconds)
                for tag in tags:
                    pipe.sadd(tag_key(tag), key)
                    pipe.expire(tag_key(tag), seconds, nx=True)
                    pipe.expire(tag_key(tag), seconds, gt=True)
                await pipe.execute()
            return True
        except (RedisError, CacheError) as e:
            logger.error("Cache set error", key=key, error=str(e))
            return False

    async def invalidate(self, tag: str) -> int:
        """
        Delete every key stored under ``tag``; returns the number removed.

        Raises CacheError when Redis is unreachable.
        """
        try:
            if not self.redis:
                await self.connect()
            keys = await self.redis.smembers(tag_key(tag))
            removed = 0
            if keys:
                removed = await self.redis.delete(*keys)
            await self.redis.delete(tag_key(tag))
            return removed
        except RedisError as e:
            raise CacheError(f"Failed to invalidate tag {tag}", error_code="CACHE_INVALIDATE") from e

    async def clear(self) -> None:
        try:
            if not self.redis:
                await self.connect()
            await self.redis.flushdb()
        except RedisError as e:
            raise CacheError("Failed to clear cache", error_code="CACHE_CLEAR") from e

    async def ping(self) -> bool:
        try:
            if not self.redis:
                await self.connect()
            return bool(await self.redis.ping())
        except (RedisError, CacheError):
            return False


class MemoryCache:
    """
    In-process cache with TTL expiry, used for development and tests.

    Holds at most ``max_entries`` values; expired entries are swept on every
    write and the least recently used entry is evicted when full.
    """

    def __init__(self, default_ttl: int = 300, max_entries: int = 1000, clock=time.monotonic):
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, str]]" = OrderedDict()
        self._tags: Dict[str, Set[str]] = {}
        self._key_tags: Dict[str, Set[str]] = {}

    async def connect(self):
        pass

    async def disconnect(self):
        await self.clear()

    def size(self) -> int:
        return len(self._entries)

    def tag_size(self, tag: str) -> int:
        return len(self._tags.get(tag, ()))

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        for tag in self._key_tags.pop(key, set()):
            members = self._tags.get(tag)
            if members is None:
                continue
            members.discard(key)
            if not members:
                del self._tags[tag]
        return entry is not None

    def _purge_expired(self) -> int:
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            self._remove(key)
        return len(expired)

    def _evict_lru(self) -> None:
        while self._entries and len(self._entries) >= self.max_entries:
            key = next(iter(self._entries))
            self._remove(key)
            logger.debug("Evicted cache entry", key=key)

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if expires_at <= self._clock():
            self._remove(key)
            return None
        self._entries.move_to_end(key)
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl: TTL = None, tags: Iterable[str] = ()) -> bool:
        payload = json.dumps(value, default=str)
        self._remove(key)
        self._purge_expired()
        self._evict_lru()

        self._entries[key] = (self._clock() + _seconds(ttl, self.default_ttl), payload)
        key_tags = set(tags)
        self._key_tags[key] = key_tags
        for tag in key_tags:
            self._tags.setdefault(tag, set()).add(key)
        return True

    async def invalidate(self, tag: str) -> int:
        removed = 0
        for key in list(self._tags.get(tag, ())):
            if self._remove(key):
                removed += 1
        self._tags.pop(tag, None)
        return removed

    async def clear(self) -> None:
        self._entries.clear()
        self._tags.clear()
        self._key_tags.clear()

    async def ping(self) -> bool:
        return True


def build_cache(settings: Settings):
    """Pick the cache backend from settings"""
    if settings.REDIS_URL:
        return RedisCache(settings.REDIS_URL, default_ttl=settings.CACHE_TTL_SECONDS)
    return MemoryCache(default_ttl=settings.CACHE_TTL_SECONDS, max_entries=settings.CACHE_MAX_ENTRIES)
