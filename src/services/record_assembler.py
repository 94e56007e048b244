"""Assembly of person records from raw directory rows."""
from collections.abc import Iterable, Mapping

from core.attribute_mapper import (
    FAMILY_NAME_PATH,
    GIVEN_NAME_PATH,
    IDENTIFIER_PATH,
    LOCAL_DATA_PREFIX,
    AttributeMapper,
)
from core.config import LocalDataMappingEntry
from directory.gateway import NUMERIC_STRING, RawRow
from schemas.person import LocalDataValue, PersonRecord


def _is_numeric_key(key: object) -> bool:
    """Numbers and numeric strings such as "3", "-1.5", "+1", ".5" or "1e3"."""
    if isinstance(key, int | float):
        return True
    return isinstance(key, str) and bool(NUMERIC_STRING.match(key))


def source_attributes(row: Mapping[object, object]) -> RawRow:
    """
    Normalize a raw row: drop numeric keys and make every value a list of strings.

    Directory libraries return some entries under numeric indexes next to the
    named attributes; only the named ones are attributes.
    """
    attributes: RawRow = {}
    for key, value in row.items():
        if _is_numeric_key(key) or value is None:
            continue
        if isinstance(value, list | tuple):
            attributes[str(key)] = [str(v) for v in value]
        else:
            attributes[str(key)] = [str(value)]
    return attributes


class RecordAssembler:
    """Maps raw directory rows to PersonRecord objects using the attribute mapping."""

    def __init__(
        self,
        mapper: AttributeMapper,
        local_data_mapping: Mapping[str, LocalDataMappingEntry] | None = None,
    ) -> None:
        self._mapper = mapper
        self._local_data_mapping = dict(local_data_mapping or {})

    def _first_value(self, attributes: RawRow, logical_path: str) -> str | None:
        source = self._mapper.resolve(logical_path)
        if source is None:
            return None
        values = attributes.get(source)
        return values[0] if values else None

    def _local_data_value(self, attributes: RawRow, name: str) -> LocalDataValue:
        entry = self._local_data_mapping[name]
        source = self._mapper.resolve(LOCAL_DATA_PREFIX + name) or entry.source_attribute
        values = attributes.get(source)
        if not values:
            return entry.default_value
        return list(values) if entry.is_array else values[0]

    def unmapped_local_data(self, requested: Iterable[str]) -> set[str]:
        """Requested local data attributes with no mapping entry."""
        return {name for name in requested if name not in self._local_data_mapping}

    def assemble(
        self, attributes: RawRow, requested_local_data: Iterable[str] = (),
    ) -> PersonRecord | None:
        """
        Build a person from normalized row attributes (see source_attributes()).

        Only requested local data attributes that have a mapping entry are
        filled in; absent ones get the entry's default value.

        Returns:
            None if the row has no identifier.
        """
        identifier = self._first_value(attributes, IDENTIFIER_PATH)
        if not identifier:
            return None

        local_data = {
            name: self._local_data_value(attributes, name)
            for name in requested_local_data
            if name in self._local_data_mapping
        }
        return PersonRecord(
            identifier=identifier,
            given_name=self._first_value(attributes, GIVEN_NAME_PATH) or "",
            family_name=self._first_value(attributes, FAMILY_NAME_PATH) or "",
            local_data=local_data,
        )
