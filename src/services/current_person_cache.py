"""Resolution and caching of the person record of the calling principal."""
import asyncio
import logging
from collections.abc import Awaitable, Callable

from core.person_cache import CachedPersonEntry, PersonCache
from core.user_session import UserSession
from schemas.person import PersonRecord
from schemas.person_query import PersonQueryOptions, is_empty_filter
from services.exceptions import PersonNotFoundError

logger = logging.getLogger(__name__)

PersonFetcher = Callable[[str, PersonQueryOptions], Awaitable[PersonRecord]]


class CurrentPersonCache:
    """
    Request-scoped resolver for "the person making this request".

    Create one instance per request (see PersonService.for_session) and drop it
    when the request ends. Lookups go through two tiers:

    1. an in-memory holder with the last entry resolved by this instance
    2. the distributed PersonCache, keyed by (session cache key, identifier) and
       kept for twice the session TTL so it outlives the session that wrote it

    before falling back to a directory lookup. An entry is only reused when it
    was resolved for the same identifier and (for requests that ask for local
    data) for exactly the same set of local data attributes.

    Lookups with an ad-hoc filter always go to the directory and are never
    cached, so filtered views cannot leak into later unfiltered lookups.
    "Not found" results are cached like any other, and raise
    PersonNotFoundError on every hit.
    """

    def __init__(
        self,
        session: UserSession,
        fetch: PersonFetcher,
        distributed_cache: PersonCache | None = None,
    ) -> None:
        self._session = session
        self._fetch = fetch
        self._distributed_cache = distributed_cache
        self._holder: CachedPersonEntry | None = None
        # The holder is read, checked and replaced across awaits
        self._lock = asyncio.Lock()

    @property
    def identifier(self) -> str | None:
        """Identifier of the current caller, None for anonymous/service callers."""
        return self._session.current_identifier

    @property
    def cache_ttl(self) -> int:
        """TTL of distributed entries: twice the session TTL."""
        return self._session.session_ttl * 2

    async def resolve(self, options: PersonQueryOptions | None = None) -> PersonRecord | None:
        """
        Get the current caller's person.

        Returns:
            The person, or None if there is no interactive caller.

        Raises:
            PersonNotFoundError: If the caller has no directory entry.
        """
        options = options or PersonQueryOptions()
        identifier = self.identifier
        if identifier is None:
            return None

        if not is_empty_filter(options.filter):
            logger.debug("current_person_filtered_lookup identifier=%s", identifier)
            return await self._fetch(identifier, options)

        requested = options.requested_local_data
        async with self._lock:
            entry = self._holder
            if entry is None or entry.identifier != identifier or not entry.satisfies(requested):
                entry = await self._get_distributed(identifier, requested)
                if entry is None:
                    entry = await self._fetch_and_store(identifier, options)
                self._holder = entry

        if entry.person is None:
            raise PersonNotFoundError(identifier, current=True)
        return entry.person

    async def _get_distributed(
        self, identifier: str, requested: frozenset[str],
    ) -> CachedPersonEntry | None:
        if self._distributed_cache is None:
            return None
        entry = await self._distributed_cache.get(self._session.session_cache_key, identifier)
        if entry is None or entry.identifier != identifier or not entry.satisfies(requested):
            return None
        return entry

    async def _fetch_and_store(
        self, identifier: str, options: PersonQueryOptions,
    ) -> CachedPersonEntry:
        try:
            person: PersonRecord | None = await self._fetch(identifier, options)
        except PersonNotFoundError:
            person = None

        entry = CachedPersonEntry(
            identifier=identifier,
            person=person,
            local_data_attributes=options.requested_local_data,
        )
        if self._distributed_cache is not None:
            await self._distributed_cache.set(
                self._session.session_cache_key, entry, self.cache_ttl,
            )
        return entry
