"""
Unit tests for projection parsing and comparison helpers.
"""

import pytest

from localbase.errors import QueryError
from localbase.query import loose_equals, parse_projection, sort_rows, strict_equals


class TestParseProjection:
    """Tests for parse_projection()."""

    def test_default(self):
        """None, empty and "*" all mean every column."""
        for text in (None, "", "*", "  *  "):
            projection = parse_projection(text)
            assert projection.star is True
            assert projection.joins == ()
            assert projection.is_default is True

    def test_columns(self):
        """Bare names select base columns."""
        projection = parse_projection("id, name ,status")
        assert projection.star is False
        assert projection.columns == ("id", "name", "status")
        assert projection.is_default is False

    def test_star_with_join(self):
        """A join next to "*" keeps every base column."""
        projection = parse_projection("*, category:categories(*)")
        assert projection.star is True
        assert projection.is_default is False
        join = projection.joins[0]
        assert (join.alias, join.table, join.fk, join.star) == ("category", "categories", None, True)

    def test_join_columns(self):
        """Join columns are parsed, whitespace ignored."""
        join = parse_projection("*, service:services(id, name, type)").joins[0]
        assert join.star is False
        assert join.columns == ("id", "name", "type")

    def test_join_without_alias(self):
        """The table name doubles as alias."""
        join = parse_projection("categories(name)").joins[0]
        assert join.alias == "categories"

    def test_join_only_keeps_base_row(self):
        """A projection of only joins keeps whole base rows."""
        assert parse_projection("category:categories(*)").star is True

    def test_explicit_fk(self):
        """!fk is captured."""
        join = parse_projection("owner:profiles!user_id(email)").joins[0]
        assert join.fk == "user_id"
        assert join.table == "profiles"

    def test_empty_join_columns_means_all(self):
        """table() with no columns keeps every joined column."""
        assert parse_projection("c:categories()").joins[0].star is True

    def test_nested_join_rejected(self):
        """Joins nest one level only."""
        with pytest.raises(QueryError):
            parse_projection("*, service:services(*, category:categories(*))")

    def test_unbalanced(self):
        """Unbalanced parentheses are rejected."""
        with pytest.raises(QueryError):
            parse_projection("a:b(c")
        with pytest.raises(QueryError):
            parse_projection("a)")

    def test_garbage_item(self):
        """Items that are neither names nor joins are rejected."""
        with pytest.raises(QueryError):
            parse_projection("id; drop table")

    def test_project_row(self):
        """project() keeps listed columns, filling missing ones with None."""
        projection = parse_projection("id, missing")
        assert projection.project({"id": 1, "other": 2}) == {"id": 1, "missing": None}


class TestComparisons:
    """Tests for equality and ordering helpers."""

    def test_loose_equals(self):
        """Numeric strings equal their numbers; None only equals None."""
        assert loose_equals("5", 5)
        assert loose_equals(5.0, "5")
        assert loose_equals(None, None)
        assert not loose_equals(None, 0)
        assert not loose_equals("abc", 5)
        assert not loose_equals("", 0)

    def test_strict_equals(self):
        """Different kinds are never equal."""
        assert strict_equals(1, 1.0)
        assert not strict_equals("1", 1)
        assert not strict_equals(True, 1)
        assert strict_equals(True, True)
        assert strict_equals(None, None)

    def test_sort_rows_mixed_types(self):
        """Incomparable values tie instead of raising."""
        rows = [{"v": "b"}, {"v": 1}, {"v": "a"}]
        result = sort_rows(rows, "v")
        assert len(result) == 3

    def test_sort_rows_missing_column(self):
        """Missing columns sort like None."""
        rows = [{"id": 1}, {"id": 2, "v": 2}, {"id": 3, "v": 1}]
        assert [r["id"] for r in sort_rows(rows, "v")] == [3, 2, 1]
        assert [r["id"] for r in sort_rows(rows, "v", ascending=False)] == [1, 2, 3]
