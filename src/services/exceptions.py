"""Exceptions raised by the person lookup service."""
from collections.abc import Iterable


class UnmappedFieldError(Exception):
    """
    Raised when a filter or sort references an attribute this deployment does not expose.

    This is a client input error and is never retried.
    """

    def __init__(self, path: str, usage: str = "filter") -> None:
        self.path = path
        self.usage = usage
        super().__init__(f"undefined person attribute to {usage} by: {path}")


class PersonNotFoundError(Exception):
    """Raised when no person matches the requested identifier."""

    def __init__(self, identifier: str, current: bool = False) -> None:
        self.identifier = identifier
        self.current = current
        label = "Current person" if current else "Person"
        super().__init__(f"{label} with id '{identifier}' could not be found!")


class TooManyResultsToSortError(Exception):
    """Raised when the directory refuses to sort a result set beyond its capacity."""

    def __init__(self) -> None:
        super().__init__("too many results to sort. please refine your search.")


class DirectoryUnavailableError(Exception):
    """
    Raised when the directory cannot be reached or bound to.

    The message carries the operation context and an already sanitized
    transport message.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


class UnsatisfiedLocalDataError(Exception):
    """Raised when requested local data attributes could not be provided."""

    def __init__(self, attributes: Iterable[str]) -> None:
        self.attributes = sorted(attributes)
        super().__init__(
            "the following requested local data attributes could not be provided: "
            + ", ".join(self.attributes),
        )
