"""
Tests for filter translation
"""

import logging

import pytest

from platformq_scylla_adapter.exceptions import QueryError, UnsupportedSearchError
from platformq_scylla_adapter.query import (
    EngineQuery,
    FilterTranslator,
    Projection,
    QueryCondition,
    QueryOperator,
)


@pytest.fixture
def translator():
    return FilterTranslator()


class TestTranslate:
    """Test translation of q, search, limit and select"""

    def test_empty_filters(self, translator):
        query = translator.translate(None)
        assert query.conditions == []
        assert query.limit is None
        assert query.allow_filtering is True

    def test_literal_becomes_equality(self, translator):
        query = translator.translate({"q": {"username": "Alice"}})
        assert query.conditions == [QueryCondition("username", QueryOperator.EQ, "Alice")]

    def test_query_alias_for_q(self, translator):
        query = translator.translate({"query": {"username": "Alice"}})
        assert list(query.predicates) == ["username"]

    def test_range_operators_on_one_field(self, translator):
        query = translator.translate({"q": {"age": {"$gt": 20, "$lte": 24}}})
        assert list(query.predicates) == ["age"]
        assert query.predicates["age"] == [
            QueryCondition("age", QueryOperator.GT, 20),
            QueryCondition("age", QueryOperator.LTE, 24),
        ]

    def test_one_predicate_entry_per_key(self, translator):
        q = {"username": "Alice", "age": {"$gte": 18}, "password": {"$eq": "x"}}
        query = translator.translate({"q": q})
        assert list(query.predicates) == list(q)

    def test_in_operator_requires_list(self, translator):
        query = translator.translate({"q": {"username": {"$in": ("a", "b")}}})
        assert query.conditions[0].operator == QueryOperator.IN
        assert query.conditions[0].value == ["a", "b"]

        with pytest.raises(QueryError):
            translator.translate({"q": {"username": {"$in": "a"}}})

    def test_unknown_operator_passes_through_with_warning(self, translator, caplog):
        with caplog.at_level(logging.WARNING, logger="platformq_scylla_adapter.query"):
            query = translator.translate({"q": {"tags": {"$contains_key": "env"}}})

        condition = query.conditions[0]
        assert condition.operator == QueryOperator.PASSTHROUGH
        assert condition.raw_operator == "$contains_key"
        assert condition.cql_operator == "CONTAINS KEY"
        assert "$contains_key" in caplog.text

    def test_rejects_unsafe_operator_name(self, translator):
        with pytest.raises(QueryError):
            translator.translate({"q": {"age": {"$gt; DROP": 1}}})

    def test_rejects_mixed_operator_object(self, translator):
        with pytest.raises(QueryError):
            translator.translate({"q": {"age": {"$gt": 1, "other": 2}}})

    def test_groupby_and_limit_clauses(self, translator):
        query = translator.translate({"q": {"$groupby": "username", "$limit": 5}})
        assert query.group_by == ["username"]
        assert query.limit == 5
        assert query.conditions == []

    def test_orderby_clause(self, translator):
        query = translator.translate({"q": {"age": {"$gt": 1}, "$orderby": {"$desc": "age"}}})
        assert query.order_by == [("age", "DESC")]
        assert list(query.predicates) == ["age"]

    def test_orderby_several_fields(self, translator):
        query = translator.translate({"q": {"$orderby": {"$asc": ["day", "hour"], "$desc": "id"}}})
        assert query.order_by == [("day", "ASC"), ("hour", "ASC"), ("id", "DESC")]

    @pytest.mark.parametrize("orderby", ["age", {}, {"$up": "age"}])
    def test_orderby_rejects_malformed_value(self, translator, orderby):
        with pytest.raises(QueryError):
            translator.translate({"q": {"$orderby": orderby}})

    def test_unknown_top_level_clause_passes_through_with_warning(self, translator, caplog):
        with caplog.at_level(logging.WARNING, logger="platformq_scylla_adapter.query"):
            query = translator.translate({"q": {"$per_partition_limit": 2}})

        assert query.clauses == [("$per_partition_limit", 2)]
        assert query.conditions == []
        assert "$per_partition_limit" in caplog.text

    def test_rejects_unsafe_top_level_clause(self, translator):
        with pytest.raises(QueryError):
            translator.translate({"q": {"$limit 1; DROP": 1}})

    def test_search_with_fields_adds_like_per_field(self, translator):
        query = translator.translate({"search": "Ali", "searchFields": ["username", "password"]})
        assert query.conditions == [
            QueryCondition("username", QueryOperator.LIKE, "%Ali%"),
            QueryCondition("password", QueryOperator.LIKE, "%Ali%"),
        ]

    def test_search_fields_as_string(self, translator):
        query = translator.translate({"search": "Ali", "searchFields": "username, password"})
        assert list(query.predicates) == ["username", "password"]

    def test_search_keeps_explicit_wildcards(self, translator):
        query = translator.translate({"search": "Ali%", "searchFields": ["username"]})
        assert query.conditions[0].value == "Ali%"

    @pytest.mark.parametrize("q", [None, {}, {"age": 1}, {"$or": []}, {"age": {"$in": 3}}])
    def test_search_without_fields_always_fails(self, translator, q):
        with pytest.raises(UnsupportedSearchError) as exc_info:
            translator.translate({"q": q, "search": "Alice"})
        assert "explicit target fields" in str(exc_info.value)

    def test_empty_search_is_ignored(self, translator):
        query = translator.translate({"search": ""})
        assert query.conditions == []

    @pytest.mark.parametrize("limit,expected", [(10, 10), (2.0, 2), (0, None), (-1, None), (True, None), ("5", None)])
    def test_limit_must_be_positive_number(self, translator, limit, expected):
        assert translator.translate({"limit": limit}).limit == expected

    def test_select_with_alias(self, translator):
        query = translator.translate({"select": ["username AS name", "age"]})
        assert query.select == [Projection("username", "name"), Projection("age")]

    def test_translate_query(self, translator):
        query = translator.translate_query({"username": "Bob"})
        assert query.conditions == [QueryCondition("username", QueryOperator.EQ, "Bob")]


class TestEngineQuery:
    """Test EngineQuery helpers"""

    def test_without_limit_keeps_original(self):
        query = EngineQuery(limit=3)
        query.add_condition(QueryCondition("age", QueryOperator.GT, 1))

        unlimited = query.without_limit()
        assert unlimited.limit is None
        assert unlimited.conditions == query.conditions
        assert query.limit == 3

    def test_with_limit(self):
        assert EngineQuery().with_limit(1).limit == 1

    def test_to_dict(self):
        query = EngineQuery(limit=2, group_by=["age"])
        query.add_condition(QueryCondition("age", QueryOperator.GTE, 18))
        assert query.to_dict() == {
            'conditions': [{'field': 'age', 'operator': '>=', 'value': 18}],
            'group_by': ['age'],
            'limit': 2,
        }
