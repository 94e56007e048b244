"""Mapping between logical person attribute paths and directory attribute names."""

IDENTIFIER_PATH = "identifier"
GIVEN_NAME_PATH = "givenName"
FAMILY_NAME_PATH = "familyName"
LOCAL_DATA_PREFIX = "localData."


class AttributeMapper:
    """
    Logical attribute path -> source (directory) attribute name table.

    Populated once at startup from configuration and only read afterwards, so a
    single instance can be shared between concurrent requests.

    Logical paths are what callers use in filters and sort fields (e.g.
    'familyName', 'localData.email'); source attributes are the directory's
    native names (e.g. 'sn', 'mail').
    """

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def add_mapping(self, logical_path: str, source_attribute: str) -> "AttributeMapper":
        """Insert or overwrite the mapping for a logical path."""
        if not logical_path or not source_attribute:
            raise ValueError("Attribute mapping entries must be non-empty strings")
        self._entries[logical_path] = source_attribute
        return self

    def resolve(self, logical_path: str) -> str | None:
        """
        Get the source attribute for a logical path.

        Returns:
            The source attribute name, or None if this deployment does not expose
            the logical path.
        """
        return self._entries.get(logical_path)

    def all_source_attributes(self) -> set[str]:
        """All source attribute names referenced by the mapping."""
        return set(self._entries.values())

    @property
    def entries(self) -> dict[str, str]:
        """Copy of the mapping in insertion order."""
        return dict(self._entries)

    def __contains__(self, logical_path: object) -> bool:
        return logical_path in self._entries

    def __len__(self) -> int:
        return len(self._entries)
