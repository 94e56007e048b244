"""Distributed (Redis) cache tier for current person lookups."""
import json
import logging
from dataclasses import dataclass

from redis.asyncio import Redis
from redis.exceptions import RedisError

from schemas.person import PersonRecord

logger = logging.getLogger(__name__)

# Cache schema version - included in all cache keys (e.g., "person:v1:current:...")
#
# Bump this version when PersonRecord or CachedPersonEntry fields are added,
# removed, or renamed. Old entries are then never found and expire via their TTL.
CACHE_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class CachedPersonEntry:
    """
    A resolved current person together with what it was resolved for.

    person is None for a negative entry: the caller has no directory entry.
    local_data_attributes is the exact set of local data attributes requested
    when the person was fetched.
    """

    identifier: str
    person: PersonRecord | None
    local_data_attributes: frozenset[str]

    def satisfies(self, requested_local_data: frozenset[str]) -> bool:
        """
        Check whether this entry can answer a request.

        A negative entry answers every request for its identifier. A positive
        entry answers names-only requests and requests for exactly the local
        data attributes it was fetched with.
        """
        if self.person is None or not requested_local_data:
            return True
        return self.local_data_attributes == requested_local_data


class PersonCache:
    """
    Redis-backed cache of current person lookups, scoped per login session.

    The cache is optional: without a Redis connection (disabled, unreachable at
    startup, or failing per operation) reads are misses and writes are skipped,
    so lookups fall through to the directory.
    """

    def __init__(self, redis: Redis | None) -> None:
        self._redis = redis

    @classmethod
    async def connect(cls, url: str, enabled: bool = True, pool_size: int = 20) -> "PersonCache":
        """Open a pooled connection and verify it; unreachable Redis gives a cache without one."""
        if not enabled:
            logger.info("Person cache disabled by configuration")
            return cls(None)
        redis = Redis.from_url(url, max_connections=pool_size)
        try:
            await redis.ping()
        except RedisError as e:
            logger.warning("Person cache unavailable, Redis connection failed: %s", e)
            await redis.aclose()
            return cls(None)
        logger.info("Person cache connected to Redis")
        return cls(redis)

    async def close(self) -> None:
        """Release the Redis connection pool."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def ping(self) -> bool:
        """Check that Redis answers."""
        if self._redis is None:
            return False
        try:
            return bool(await self._redis.ping())
        except RedisError:
            return False

    def _cache_key(self, session_cache_key: str, identifier: str) -> str:
        """Generate cache key for a (session, identifier) pair."""
        return f"person:v{CACHE_SCHEMA_VERSION}:current:{session_cache_key}:{identifier}"

    async def get(self, session_cache_key: str, identifier: str) -> CachedPersonEntry | None:
        """
        Get the cached entry for the caller of a session.

        Returns:
            CachedPersonEntry if found in cache, None on cache miss, unavailable
            Redis or an unreadable payload.
        """
        if self._redis is None:
            return None
        try:
            data = await self._redis.get(self._cache_key(session_cache_key, identifier))
        except RedisError as e:
            logger.warning("person_cache_get_failed identifier=%s error=%s", identifier, e)
            return None
        if not data:
            logger.debug("person_cache_miss identifier=%s", identifier)
            return None
        entry = self._deserialize(data)
        if entry is not None:
            logger.debug("person_cache_hit identifier=%s", identifier)
        return entry

    async def set(self, session_cache_key: str, entry: CachedPersonEntry, ttl: int) -> bool:
        """
        Cache an entry for ttl seconds.

        Returns:
            False if the entry could not be stored (the caller just skips caching).
        """
        if self._redis is None or ttl <= 0:
            return False
        try:
            await self._redis.setex(
                self._cache_key(session_cache_key, entry.identifier),
                ttl,
                self._serialize(entry),
            )
        except RedisError as e:
            logger.warning("person_cache_set_failed identifier=%s error=%s", entry.identifier, e)
            return False
        logger.debug(
            "person_cache_set identifier=%s negative=%s ttl=%s",
            entry.identifier,
            entry.person is None,
            ttl,
        )
        return True

    def _serialize(self, entry: CachedPersonEntry) -> str:
        return json.dumps({
            "identifier": entry.identifier,
            "person": entry.person.to_dict() if entry.person is not None else None,
            "local_data_attributes": sorted(entry.local_data_attributes),
        })

    def _deserialize(self, data: bytes | str) -> CachedPersonEntry | None:
        """Deserialize cached data, treating unreadable payloads as a miss."""
        try:
            d = json.loads(data)
            person = PersonRecord(**d["person"]) if d["person"] is not None else None
            return CachedPersonEntry(
                identifier=d["identifier"],
                person=person,
                local_data_attributes=frozenset(d["local_data_attributes"]),
            )
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("person_cache_unreadable_entry error=%s", e)
            return None


# Global person cache instance (set during app startup, read by the health check)
_person_cache: PersonCache | None = None


def get_person_cache() -> PersonCache | None:
    """Get the global person cache instance."""
    return _person_cache


def set_person_cache(cache: PersonCache | None) -> None:
    """Set the global person cache instance."""
    global _person_cache  # noqa: PLW0603
    _person_cache = cache
