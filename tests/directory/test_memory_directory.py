"""Tests for the in-memory directory gateway."""
import json
from pathlib import Path

import pytest

from directory.gateway import DirectoryError, DirectoryErrorCode
from directory.memory import InMemoryDirectory, matches_condition, matches_filter, sort_rows
from schemas.person_query import (
    FilterOperator,
    SortDirection,
    SortField,
    and_,
    condition,
    not_,
    or_,
)

ROW = {"cn": ["john"], "givenName": ["John"], "sn": ["Doe"], "mail": ["a@x.org", "b@y.org"],
       "age": ["42"]}


class TestMatchesCondition:
    """Tests for evaluating single conditions against a row."""

    @pytest.mark.parametrize(
        ("operator", "value", "expected"),
        [
            (FilterOperator.EQUALS, "john", True),
            (FilterOperator.EQUALS, "John", False),
            (FilterOperator.I_CONTAINS, "OH", True),
            (FilterOperator.I_STARTS_WITH, "JO", True),
            (FilterOperator.I_ENDS_WITH, "HN", True),
            (FilterOperator.I_ENDS_WITH, "jo", False),
        ],
    )
    def test__string_operators(
        self, operator: FilterOperator, value: str, expected: bool,
    ) -> None:
        assert matches_condition(ROW, condition("cn", operator, value)) is expected

    def test__multi_valued_attribute__matches_if_any_value_matches(self) -> None:
        assert matches_condition(ROW, condition("mail", FilterOperator.I_ENDS_WITH, "@y.org"))

    def test__in_array(self) -> None:
        assert matches_condition(ROW, condition("cn", FilterOperator.IN_ARRAY, ["max", "john"]))
        assert not matches_condition(ROW, condition("cn", FilterOperator.IN_ARRAY, ["max"]))

    def test__is_null(self) -> None:
        assert matches_condition(ROW, condition("phone", FilterOperator.IS_NULL))
        assert not matches_condition(ROW, condition("cn", FilterOperator.IS_NULL))

    def test__numeric_comparison(self) -> None:
        """Numbers compare numerically, so '42' >= 9."""
        assert matches_condition(ROW, condition("age", FilterOperator.GREATER_OR_EQUAL, 9))
        assert not matches_condition(ROW, condition("age", FilterOperator.LESS_OR_EQUAL, 9))

    def test__numeric_strings_compare_numerically(self) -> None:
        """'42' >= '9' and '10' >= '9' even though both fail as plain strings."""
        row = {"age": ["10"]}

        assert matches_condition(ROW, condition("age", FilterOperator.GREATER_OR_EQUAL, "9"))
        assert matches_condition(row, condition("age", FilterOperator.GREATER_OR_EQUAL, "9"))
        assert matches_condition(row, condition("age", FilterOperator.LESS_OR_EQUAL, "1e2"))

    def test__non_numeric_side__falls_back_to_string_comparison(self) -> None:
        assert not matches_condition(ROW, condition("age", FilterOperator.GREATER_OR_EQUAL, "abc"))
        assert matches_condition(ROW, condition("cn", FilterOperator.GREATER_OR_EQUAL, 9))

    def test__string_comparison(self) -> None:
        assert matches_condition(ROW, condition("sn", FilterOperator.LESS_OR_EQUAL, "E"))

    def test__missing_attribute__does_not_match(self) -> None:
        assert not matches_condition(ROW, condition("phone", FilterOperator.EQUALS, "1"))


class TestMatchesFilter:
    """Tests for evaluating logical nodes."""

    def test__none__matches_everything(self) -> None:
        assert matches_filter(ROW, None) is True

    def test__empty_and__matches_everything_and_empty_or__nothing(self) -> None:
        assert matches_filter(ROW, and_()) is True
        assert matches_filter(ROW, or_()) is False

    def test__nested_tree(self) -> None:
        node = and_(
            or_(
                condition("givenName", FilterOperator.EQUALS, "Max"),
                condition("sn", FilterOperator.EQUALS, "Doe"),
            ),
            not_(condition("cn", FilterOperator.EQUALS, "jane")),
        )

        assert matches_filter(ROW, node) is True

    def test__not__negates_conjunction_of_children(self) -> None:
        node = not_(
            condition("cn", FilterOperator.EQUALS, "john"),
            condition("sn", FilterOperator.EQUALS, "Mustermann"),
        )

        assert matches_filter(ROW, node) is True


class TestSortRows:
    """Tests for multi-key sorting."""

    def test__first_field_is_primary_key(self) -> None:
        rows = [
            {"sn": ["Doe"], "givenName": ["John"]},
            {"sn": ["Adams"], "givenName": ["Zoe"]},
            {"sn": ["Doe"], "givenName": ["Jane"]},
        ]

        result = sort_rows(rows, [SortField(path="sn"), SortField(path="givenName")])

        assert [r["givenName"][0] for r in result] == ["Zoe", "Jane", "John"]

    def test__descending_secondary_key(self) -> None:
        rows = [{"sn": ["Doe"], "givenName": ["Jane"]}, {"sn": ["Doe"], "givenName": ["John"]}]

        result = sort_rows(
            rows,
            [SortField(path="sn"), SortField(path="givenName", direction=SortDirection.DESC)],
        )

        assert [r["givenName"][0] for r in result] == ["John", "Jane"]

    def test__missing_values_sort_first_ascending(self) -> None:
        rows = [{"sn": ["Doe"]}, {}]

        assert sort_rows(rows, [SortField(path="sn")]) == [{}, {"sn": ["Doe"]}]


class TestInMemoryDirectory:
    """Tests for the gateway operations."""

    async def test__search__pages_through_matches(self, directory: InMemoryDirectory) -> None:
        sort = [SortField(path="cn")]

        first = await directory.search(1, 2, sort=sort)
        second = await directory.search(2, 2, sort=sort)

        # the entry without cn sorts first
        assert [r.get("cn") for r in first] == [None, ["jane"]]
        assert [r["cn"] for r in second] == [["john"], ["max"]]
        assert directory.query_count == 2

    async def test__search__page_past_end_is_empty(self, directory: InMemoryDirectory) -> None:
        assert await directory.search(10, 30) == []

    async def test__search__rejects_page_zero(self, directory: InMemoryDirectory) -> None:
        with pytest.raises(ValueError, match=">= 1"):
            await directory.search(0, 10)

    async def test__search__sort_over_limit_raises(self) -> None:
        directory = InMemoryDirectory([{"cn": [str(i)]} for i in range(3)], max_sort_results=2)

        with pytest.raises(DirectoryError) as exc_info:
            await directory.search(1, 10, sort=[SortField(path="cn")])

        assert exc_info.value.code == DirectoryErrorCode.TOO_MANY_RESULTS_TO_SORT

    async def test__search__unsorted_over_limit_is_allowed(self) -> None:
        directory = InMemoryDirectory([{"cn": [str(i)]} for i in range(3)], max_sort_results=2)

        assert len(await directory.search(1, 10)) == 3

    async def test__search__returns_copies(self, directory: InMemoryDirectory) -> None:
        rows = await directory.search(1, 1, condition("cn", FilterOperator.EQUALS, "john"))
        rows[0]["cn"] = ["changed"]

        again = await directory.search(1, 1, condition("cn", FilterOperator.EQUALS, "john"))
        assert again[0]["cn"] == ["john"]

    async def test__get_entries__returns_all_matches(self, directory: InMemoryDirectory) -> None:
        rows = await directory.get_entries(condition("sn", FilterOperator.EQUALS, "Doe"))

        assert sorted(r["cn"][0] for r in rows) == ["jane", "john"]

    async def test__fail_with__raises_until_reset(self, directory: InMemoryDirectory) -> None:
        directory.fail_with(DirectoryError(DirectoryErrorCode.CONNECTION_FAILURE, "down"))

        with pytest.raises(DirectoryError, match="down"):
            await directory.search(1, 1)
        with pytest.raises(DirectoryError):
            await directory.check_connection()

        directory.fail_with(None)
        await directory.check_connection()

    async def test__assert_attributes_exist__reports_missing(
        self, directory: InMemoryDirectory,
    ) -> None:
        await directory.assert_attributes_exist(["cn", "sn", "mail"])

        with pytest.raises(DirectoryError, match="phone") as exc_info:
            await directory.assert_attributes_exist(["cn", "phone"])
        assert exc_info.value.code == DirectoryErrorCode.NOT_FOUND

    async def test__assert_attributes_exist__uses_declared_schema(self) -> None:
        directory = InMemoryDirectory([], attributes=["cn", "phone"])

        await directory.assert_attributes_exist(["phone"])

    async def test__from_file__loads_rows(self, tmp_path: Path) -> None:
        seed = tmp_path / "people.json"
        seed.write_text(json.dumps([{"cn": ["john"], "sn": ["Doe"]}]), encoding="utf-8")

        directory = InMemoryDirectory.from_file(seed)

        assert await directory.get_entries() == [{"cn": ["john"], "sn": ["Doe"]}]

    def test__from_file__rejects_non_list(self, tmp_path: Path) -> None:
        seed = tmp_path / "people.json"
        seed.write_text("{}", encoding="utf-8")

        with pytest.raises(ValueError, match="JSON list"):
            InMemoryDirectory.from_file(seed)
