"""Pydantic schemas for person queries: filter trees, sort fields and query options."""
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

FilterValue = str | int | float | bool | list[str] | None


class FilterOperator(StrEnum):
    """Operators of a filter condition."""

    EQUALS = "equals"
    I_CONTAINS = "i_contains"
    I_STARTS_WITH = "i_starts_with"
    I_ENDS_WITH = "i_ends_with"
    GREATER_OR_EQUAL = "greater_or_equal"
    LESS_OR_EQUAL = "less_or_equal"
    IN_ARRAY = "in_array"
    IS_NULL = "is_null"


class LogicalOperator(StrEnum):
    """Operators combining child filter nodes."""

    AND = "and"
    OR = "or"
    NOT = "not"


class SortDirection(StrEnum):
    """Sort direction of a sort field."""

    ASC = "asc"
    DESC = "desc"


class ConditionNode(BaseModel):
    """
    Leaf of a filter tree: <path> <operator> <value>.

    path is a logical attribute path until the tree is translated, a source
    attribute name afterwards.
    """

    model_config = ConfigDict(frozen=True)

    node_type: Literal["condition"] = "condition"
    path: str = Field(min_length=1)
    operator: FilterOperator
    value: FilterValue = None

    @model_validator(mode="after")
    def validate_value_for_operator(self) -> "ConditionNode":
        """IN_ARRAY needs a list, every other operator except IS_NULL needs a scalar."""
        if self.operator == FilterOperator.IN_ARRAY:
            if not isinstance(self.value, list):
                raise ValueError("in_array conditions require a list value")
        elif self.operator != FilterOperator.IS_NULL:
            if self.value is None or isinstance(self.value, list):
                raise ValueError(f"{self.operator} conditions require a scalar value")
        return self


class LogicalNode(BaseModel):
    """
    Inner node of a filter tree.

    An empty AND matches everything, an empty OR matches nothing. NOT negates the
    conjunction of its children.
    """

    model_config = ConfigDict(frozen=True)

    node_type: Literal["logical"] = "logical"
    operator: LogicalOperator
    children: list["FilterNode"] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_not_has_children(self) -> "LogicalNode":
        """A NOT node without children has no meaning."""
        if self.operator == LogicalOperator.NOT and not self.children:
            raise ValueError("not nodes require at least one child")
        return self


FilterNode = Annotated[ConditionNode | LogicalNode, Field(discriminator="node_type")]

LogicalNode.model_rebuild()

filter_node_adapter: TypeAdapter[ConditionNode | LogicalNode] = TypeAdapter(FilterNode)


class SortField(BaseModel):
    """One sort key; the first field of a sort list is the primary key."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(min_length=1)
    direction: SortDirection = SortDirection.ASC


class PersonQueryOptions(BaseModel):
    """
    Caller-facing query options, expressed in logical attribute paths.

    Example:
        PersonQueryOptions(
            search="jo do",
            filter=condition("localData.email", FilterOperator.I_ENDS_WITH, "@example.com"),
            sort=[SortField(path="familyName"), SortField(path="givenName")],
            local_data_attributes=["email"],
        )
    """

    search: str | None = None
    filter: FilterNode | None = None
    sort: list[SortField] = Field(default_factory=list)
    local_data_attributes: list[str] = Field(default_factory=list)

    @field_validator("local_data_attributes")
    @classmethod
    def dedupe_local_data_attributes(cls, v: list[str]) -> list[str]:
        """Drop blanks and duplicates while keeping the requested order."""
        return list(dict.fromkeys(name.strip() for name in v if name.strip()))

    @property
    def requested_local_data(self) -> frozenset[str]:
        """The requested local data attribute names as a set."""
        return frozenset(self.local_data_attributes)


def condition(path: str, operator: FilterOperator, value: FilterValue = None) -> ConditionNode:
    """Build a condition node."""
    return ConditionNode(path=path, operator=operator, value=value)


def and_(*children: ConditionNode | LogicalNode) -> LogicalNode:
    """Build an AND node."""
    return LogicalNode(operator=LogicalOperator.AND, children=list(children))


def or_(*children: ConditionNode | LogicalNode) -> LogicalNode:
    """Build an OR node."""
    return LogicalNode(operator=LogicalOperator.OR, children=list(children))


def not_(*children: ConditionNode | LogicalNode) -> LogicalNode:
    """Build a NOT node."""
    return LogicalNode(operator=LogicalOperator.NOT, children=list(children))


def is_empty_filter(node: ConditionNode | LogicalNode | None) -> bool:
    """True for a missing filter or an AND without children (matches everything)."""
    if node is None:
        return True
    return (
        isinstance(node, LogicalNode)
        and node.operator == LogicalOperator.AND
        and not node.children
    )


def combine_and(*nodes: ConditionNode | LogicalNode | None) -> ConditionNode | LogicalNode | None:
    """
    AND-combine filters, skipping missing and empty ones.

    Returns None when nothing remains and the single remaining filter unchanged
    when only one does.
    """
    remaining = [node for node in nodes if not is_empty_filter(node)]
    if not remaining:
        return None
    if len(remaining) == 1:
        return remaining[0]
    return and_(*remaining)


def parse_sort(value: str | None) -> list[SortField]:
    """
    Parse a comma separated sort string.

    A leading '-' sorts descending, e.g. 'familyName,-givenName'.
    """
    if not value:
        return []
    fields = []
    for part in value.split(","):
        part = part.strip()  # noqa: PLW2901
        if not part:
            continue
        if part.startswith("-"):
            fields.append(SortField(path=part[1:], direction=SortDirection.DESC))
        else:
            fields.append(SortField(path=part.lstrip("+"), direction=SortDirection.ASC))
    return fields


def parse_csv(value: str | None) -> list[str]:
    """Parse a comma separated list, dropping empty entries."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]
