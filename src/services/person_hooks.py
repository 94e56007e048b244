"""Extension points that let integrators rewrite queries and post-process persons."""
from collections.abc import Iterable

from directory.gateway import RawRow
from schemas.person import LocalDataValue, PersonRecord
from schemas.person_query import PersonQueryOptions


class PersonAssembledEvent:
    """
    Passed to hooks after a person was assembled from a directory row.

    pending_local_data holds the requested local data attributes that no
    mapping entry provided yet; a hook satisfies one by calling
    set_local_data_value(). Hooks may also replace the person.
    """

    def __init__(
        self,
        person: PersonRecord,
        source_attributes: RawRow,
        pending_local_data: Iterable[str],
    ) -> None:
        self.person = person
        self.source_attributes = source_attributes
        self._pending = set(pending_local_data)

    @property
    def pending_local_data(self) -> frozenset[str]:
        """Requested local data attributes that are still unsatisfied."""
        return frozenset(self._pending)

    def is_local_data_requested(self, name: str) -> bool:
        """Check whether a local data attribute still needs a value."""
        return name in self._pending

    def set_local_data_value(self, name: str, value: LocalDataValue) -> None:
        """Provide a value for a pending local data attribute."""
        self.person.set_local_data_value(name, value)
        self._pending.discard(name)


class ExternalServiceEvent:
    """Lookup of a person by the identifier some external service knows them by."""

    def __init__(self, service: str, service_id: str) -> None:
        self.service = service
        self.service_id = service_id
        self.person: PersonRecord | None = None


class PersonHooks:
    """
    Base class for person hooks; every method is a no-op by default.

    Hooks are called synchronously, in registration order.
    """

    def on_identifier(self, identifier: str) -> str:
        """Called before looking up a person by identifier; may substitute it."""
        return identifier

    def on_pre_query(self, options: PersonQueryOptions) -> PersonQueryOptions:
        """Called before a directory query is built; may rewrite the options."""
        return options

    def on_post_assemble(self, event: PersonAssembledEvent) -> None:
        """Called after each person is assembled."""

    def on_external_service(self, event: ExternalServiceEvent) -> None:
        """Called to resolve a person from an external service identifier."""


class HookDispatcher:
    """Calls a list of hooks in order and threads their results through."""

    def __init__(self, hooks: Iterable[PersonHooks] = ()) -> None:
        self._hooks = list(hooks)

    def identifier(self, identifier: str) -> str:
        for hook in self._hooks:
            identifier = hook.on_identifier(identifier)
        return identifier

    def pre_query(self, options: PersonQueryOptions) -> PersonQueryOptions:
        for hook in self._hooks:
            options = hook.on_pre_query(options)
        return options

    def post_assemble(self, event: PersonAssembledEvent) -> None:
        for hook in self._hooks:
            hook.on_post_assemble(event)

    def external_service(self, event: ExternalServiceEvent) -> None:
        for hook in self._hooks:
            hook.on_external_service(event)
            if event.person is not None:
                return
