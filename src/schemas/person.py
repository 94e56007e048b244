"""Person record and its API representation."""
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

LocalDataValue = str | list[str] | None


@dataclass
class PersonRecord:
    """
    A person resolved from the directory.

    identifier is never empty: rows without an identifier do not produce a
    record at all. local_data only holds requested extra attributes.

    IMPORTANT: When adding, removing, or renaming fields in this class, you MUST bump
    CACHE_SCHEMA_VERSION in core/person_cache.py, since cached entries are
    deserialized straight into this class.
    """

    identifier: str
    given_name: str = ""
    family_name: str = ""
    local_data: dict[str, LocalDataValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.identifier:
            raise ValueError("PersonRecord requires a non-empty identifier")

    def set_local_data_value(self, name: str, value: LocalDataValue) -> None:
        """Set a local data value."""
        self.local_data[name] = value

    def to_dict(self) -> dict[str, Any]:
        """Plain dict representation for caching."""
        return {
            "identifier": self.identifier,
            "given_name": self.given_name,
            "family_name": self.family_name,
            "local_data": dict(self.local_data),
        }


class PersonResponse(BaseModel):
    """Schema for person responses, using the logical attribute names."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    identifier: str
    given_name: str = Field(serialization_alias="givenName")
    family_name: str = Field(serialization_alias="familyName")
    local_data: dict[str, LocalDataValue] = Field(
        default_factory=dict, serialization_alias="localData",
    )


class PersonListResponse(BaseModel):
    """Schema for a page of persons."""

    items: list[PersonResponse]
    page: int
    per_page: int
