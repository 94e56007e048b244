"""Service layer for person lookups against the directory."""
import logging
from collections.abc import Iterable

from core.attribute_mapper import (
    FAMILY_NAME_PATH,
    GIVEN_NAME_PATH,
    IDENTIFIER_PATH,
    AttributeMapper,
)
from core.config import Settings
from core.person_cache import PersonCache
from core.user_session import UserSession
from directory.gateway import (
    DirectoryError,
    DirectoryErrorCode,
    DirectoryGateway,
    RawRow,
    sanitize_error_message,
)
from schemas.person import PersonRecord
from schemas.person_query import (
    FilterOperator,
    PersonQueryOptions,
    combine_and,
    condition,
    is_empty_filter,
)
from services.current_person_cache import CurrentPersonCache
from services.exceptions import (
    DirectoryUnavailableError,
    PersonNotFoundError,
    TooManyResultsToSortError,
    UnsatisfiedLocalDataError,
)
from services.person_hooks import (
    ExternalServiceEvent,
    HookDispatcher,
    PersonAssembledEvent,
    PersonHooks,
)
from services.query_translation import translate_filter, translate_sort
from services.record_assembler import RecordAssembler, source_attributes
from services.search_expansion import expand_search

logger = logging.getLogger(__name__)


class PersonService:
    """
    Resolves persons from the directory.

    Callers speak logical attribute paths; this service translates filters and
    sort fields to source attributes, queries the gateway and assembles the
    returned rows into PersonRecord objects.

    The service itself holds no per-request state and can be shared. Current
    person lookups go through a request-scoped CurrentPersonCache obtained
    from for_session().
    """

    def __init__(
        self,
        gateway: DirectoryGateway,
        mapper: AttributeMapper,
        assembler: RecordAssembler,
        hooks: Iterable[PersonHooks] = (),
        person_cache: PersonCache | None = None,
    ) -> None:
        self._gateway = gateway
        self._mapper = mapper
        self._assembler = assembler
        self._hooks = HookDispatcher(hooks)
        self._person_cache = person_cache

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        gateway: DirectoryGateway,
        hooks: Iterable[PersonHooks] = (),
        person_cache: PersonCache | None = None,
    ) -> "PersonService":
        """Build a service with the attribute mapping configured in settings."""
        mapper = settings.build_attribute_mapper()
        assembler = RecordAssembler(mapper, settings.local_data_attributes)
        return cls(gateway, mapper, assembler, hooks=hooks, person_cache=person_cache)

    @property
    def mapper(self) -> AttributeMapper:
        """The attribute mapping in use."""
        return self._mapper

    def for_session(self, session: UserSession) -> CurrentPersonCache:
        """Create the current person cache for one request."""
        return CurrentPersonCache(
            session=session,
            fetch=self.get_person_item,
            distributed_cache=self._person_cache,
        )

    async def get_person(
        self,
        identifier: str,
        options: PersonQueryOptions | None = None,
        current: CurrentPersonCache | None = None,
    ) -> PersonRecord:
        """
        Get a person by identifier.

        Unfiltered lookups of the caller's own identifier are answered from the
        current person cache when one is given.

        Raises:
            PersonNotFoundError: If no person has the identifier.
            UnmappedFieldError: If the filter references an unknown attribute.
            DirectoryUnavailableError: If the directory cannot be reached.
        """
        options = options or PersonQueryOptions()
        if (
            current is not None
            and current.identifier == identifier
            and is_empty_filter(options.filter)
        ):
            person = await current.resolve(options)
            if person is not None:
                return person
        return await self.get_person_item(identifier, options)

    async def get_current_person(
        self,
        current: CurrentPersonCache,
        options: PersonQueryOptions | None = None,
    ) -> PersonRecord | None:
        """
        Get the person of the calling principal.

        Returns:
            None if the caller is not an interactive user.

        Raises:
            PersonNotFoundError: If the caller has no directory entry.
        """
        return await current.resolve(options)

    async def get_person_item(
        self,
        identifier: str,
        options: PersonQueryOptions | None = None,
    ) -> PersonRecord:
        """Look up a person by identifier in the directory, bypassing every cache."""
        identifier = self._hooks.identifier(identifier)
        options = self._hooks.pre_query(options or PersonQueryOptions())

        filter_node = combine_and(
            condition(IDENTIFIER_PATH, FilterOperator.EQUALS, identifier),
            options.filter,
        )
        translated = translate_filter(filter_node, self._mapper)

        try:
            rows = await self._gateway.search(1, 1, translated)
        except DirectoryError as e:
            if e.code == DirectoryErrorCode.NOT_FOUND:
                raise PersonNotFoundError(identifier) from e
            raise self._wrap_directory_error(
                e, f"Person with id '{identifier}' could not be loaded!",
            ) from e

        if not rows:
            raise PersonNotFoundError(identifier)

        person = self._create_person(rows[0], options)
        if person is None:
            logger.warning("directory entry without identifier attribute matched id=%s", identifier)
            raise PersonNotFoundError(identifier)
        return person

    async def get_persons(
        self,
        page_number: int,
        page_size: int,
        options: PersonQueryOptions | None = None,
    ) -> list[PersonRecord]:
        """
        Get one page of persons.

        search is expanded into name conditions (every term has to match the
        given or the family name) and AND-combined with the caller's filter.
        Rows without an identifier are skipped.

        Raises:
            UnmappedFieldError: If the filter or sort references an unknown attribute.
            TooManyResultsToSortError: If the directory cannot sort the result set.
            DirectoryUnavailableError: If the directory cannot be reached.
        """
        if page_number < 1 or page_size < 1:
            raise ValueError("page_number and page_size must be >= 1")
        options = self._hooks.pre_query(options or PersonQueryOptions())

        filter_node = combine_and(
            options.filter,
            expand_search(options.search, GIVEN_NAME_PATH, FAMILY_NAME_PATH),
        )
        translated = translate_filter(filter_node, self._mapper) if filter_node else None
        sort = translate_sort(options.sort, self._mapper)

        try:
            rows = await self._gateway.search(page_number, page_size, translated, sort or None)
        except DirectoryError as e:
            if e.code == DirectoryErrorCode.NOT_FOUND:
                return []
            raise self._wrap_directory_error(e, "People could not be loaded!") from e

        persons = []
        for row in rows:
            person = self._create_person(row, options)
            if person is None:  # entry without identifier
                continue
            persons.append(person)
        return persons

    async def get_person_for_external_service(self, service: str, service_id: str) -> PersonRecord:
        """
        Resolve a person from the identifier an external service uses for them.

        Raises:
            PersonNotFoundError: If no hook could resolve the person.
        """
        event = ExternalServiceEvent(service, service_id)
        self._hooks.external_service(event)
        if event.person is None:
            raise PersonNotFoundError(f"{service}:{service_id}")
        return event.person

    async def check_connection(self) -> None:
        """Raise DirectoryUnavailableError if the directory cannot be reached."""
        try:
            await self._gateway.check_connection()
        except DirectoryError as e:
            raise self._wrap_directory_error(e, "Directory connection failed!") from e

    async def assert_attributes_exist(self) -> None:
        """Raise DirectoryUnavailableError if a mapped source attribute is missing."""
        try:
            await self._gateway.assert_attributes_exist(self._mapper.all_source_attributes())
        except DirectoryError as e:
            raise self._wrap_directory_error(e, "Directory attribute check failed!") from e

    def _create_person(self, row: RawRow, options: PersonQueryOptions) -> PersonRecord | None:
        attributes = source_attributes(row)
        person = self._assembler.assemble(attributes, options.local_data_attributes)
        if person is None:
            return None

        event = PersonAssembledEvent(
            person,
            attributes,
            self._assembler.unmapped_local_data(options.local_data_attributes),
        )
        self._hooks.post_assemble(event)
        if event.pending_local_data:
            raise UnsatisfiedLocalDataError(event.pending_local_data)
        return event.person

    @staticmethod
    def _wrap_directory_error(error: DirectoryError, context: str) -> Exception:
        if error.code == DirectoryErrorCode.TOO_MANY_RESULTS_TO_SORT:
            return TooManyResultsToSortError()
        message = sanitize_error_message(error.message)
        logger.warning("%s code=%s message=%s", context, error.code, message)
        return DirectoryUnavailableError(f"{context} Message: {message}")
