"""In-memory directory gateway over a fixed list of raw rows."""
import json
import logging
from collections.abc import Iterable
from pathlib import Path

from directory.gateway import NUMERIC_STRING, DirectoryError, DirectoryErrorCode, RawRow
from schemas.person_query import (
    ConditionNode,
    FilterOperator,
    LogicalNode,
    LogicalOperator,
    SortDirection,
    SortField,
)

logger = logging.getLogger(__name__)


def _attribute_values(row: RawRow, attribute: str) -> list[str]:
    values = row.get(attribute)
    if values is None:
        return []
    if isinstance(values, list):
        return [str(v) for v in values]
    return [str(values)]


def _as_number(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str) and NUMERIC_STRING.match(value):
        return float(value)
    return None


def _compare(left: str, right: object) -> tuple[object, object]:
    """Compare numerically when both sides are numbers or numeric strings, as strings otherwise."""
    left_number, right_number = _as_number(left), _as_number(right)
    if left_number is not None and right_number is not None:
        return left_number, right_number
    return left, str(right)


def matches_condition(row: RawRow, node: ConditionNode) -> bool:  # noqa: PLR0911
    """Evaluate a condition against a multi-valued row; any matching value matches."""
    values = _attribute_values(row, node.path)
    operator = node.operator

    if operator == FilterOperator.IS_NULL:
        return not values
    if operator == FilterOperator.IN_ARRAY:
        wanted = {str(v) for v in node.value or []}
        return any(v in wanted for v in values)
    if operator == FilterOperator.EQUALS:
        return any(v == str(node.value) for v in values)

    if operator in (FilterOperator.GREATER_OR_EQUAL, FilterOperator.LESS_OR_EQUAL):
        for v in values:
            left, right = _compare(v, node.value)
            if operator == FilterOperator.GREATER_OR_EQUAL and left >= right:
                return True
            if operator == FilterOperator.LESS_OR_EQUAL and left <= right:
                return True
        return False

    needle = str(node.value).casefold()
    if operator == FilterOperator.I_CONTAINS:
        return any(needle in v.casefold() for v in values)
    if operator == FilterOperator.I_STARTS_WITH:
        return any(v.casefold().startswith(needle) for v in values)
    if operator == FilterOperator.I_ENDS_WITH:
        return any(v.casefold().endswith(needle) for v in values)
    raise ValueError(f"Unsupported filter operator: {operator}")


def matches_filter(row: RawRow, node: ConditionNode | LogicalNode | None) -> bool:
    """Evaluate a (translated) filter tree against a row."""
    if node is None:
        return True
    if isinstance(node, ConditionNode):
        return matches_condition(row, node)
    if node.operator == LogicalOperator.AND:
        return all(matches_filter(row, child) for child in node.children)
    if node.operator == LogicalOperator.OR:
        return any(matches_filter(row, child) for child in node.children)
    return not all(matches_filter(row, child) for child in node.children)


def sort_rows(rows: list[RawRow], sort: list[SortField]) -> list[RawRow]:
    """
    Multi-key sort on the first value of each attribute.

    Rows are sorted by the last key first; Python's stable sort then leaves the
    first field as the primary key. Missing values sort before present ones.
    """
    result = list(rows)
    for field in reversed(sort):
        def key(row: RawRow, attribute: str = field.path) -> tuple[bool, str]:
            values = _attribute_values(row, attribute)
            return (bool(values), values[0].casefold() if values else "")

        result.sort(key=key, reverse=field.direction == SortDirection.DESC)
    return result


class InMemoryDirectory:
    """
    Directory gateway backed by a list of raw rows.

    Used by the bundled application (seeded from a JSON file) and by tests.
    query_count counts search/get_entries calls, fail_with() makes every
    following call raise the given error until reset with fail_with(None).
    """

    def __init__(
        self,
        rows: Iterable[RawRow] | None = None,
        max_sort_results: int = 1000,
        attributes: Iterable[str] | None = None,
    ) -> None:
        self._rows: list[RawRow] = [dict(row) for row in rows or []]
        self._max_sort_results = max_sort_results
        self._attributes = set(attributes) if attributes is not None else None
        self._error: DirectoryError | None = None
        self.query_count = 0

    @classmethod
    def from_file(cls, path: str | Path, max_sort_results: int = 1000) -> "InMemoryDirectory":
        """Load rows from a JSON file containing a list of objects."""
        rows = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(rows, list):
            raise ValueError(f"Directory seed file must contain a JSON list: {path}")
        logger.info("Loaded %d directory entries from %s", len(rows), path)
        return cls(rows, max_sort_results=max_sort_results)

    def fail_with(self, error: DirectoryError | None) -> None:
        """Make every following operation raise error (None to recover)."""
        self._error = error

    def _raise_if_failing(self) -> None:
        if self._error is not None:
            raise self._error

    async def search(
        self,
        page_number: int,
        page_size: int,
        filter_node: ConditionNode | LogicalNode | None = None,
        sort: list[SortField] | None = None,
    ) -> list[RawRow]:
        """Return one page of matching rows."""
        if page_number < 1 or page_size < 1:
            raise ValueError("page_number and page_size must be >= 1")
        self.query_count += 1
        self._raise_if_failing()

        matches = [row for row in self._rows if matches_filter(row, filter_node)]
        if sort:
            if len(matches) > self._max_sort_results:
                raise DirectoryError(
                    DirectoryErrorCode.TOO_MANY_RESULTS_TO_SORT,
                    f"sort limit of {self._max_sort_results} entries exceeded",
                )
            matches = sort_rows(matches, sort)

        start = (page_number - 1) * page_size
        return [dict(row) for row in matches[start:start + page_size]]

    async def get_entries(
        self, filter_node: ConditionNode | LogicalNode | None = None,
    ) -> list[RawRow]:
        """Return all matching rows."""
        self.query_count += 1
        self._raise_if_failing()
        return [dict(row) for row in self._rows if matches_filter(row, filter_node)]

    async def check_connection(self) -> None:
        """Raise the configured failure, if any."""
        self._raise_if_failing()

    async def assert_attributes_exist(self, attributes: Iterable[str]) -> None:
        """Check the attributes against the declared schema (or the attributes in use)."""
        self._raise_if_failing()
        known = self._attributes
        if known is None:
            known = {name for row in self._rows for name in row}
        missing = sorted(set(attributes) - known)
        if missing:
            raise DirectoryError(
                DirectoryErrorCode.NOT_FOUND,
                f"attributes not found in directory: {', '.join(missing)}",
            )
