"""
Pytest configuration and shared fixtures

FakeSession stands in for ScyllaSession: it evaluates statement objects
against in-memory rows so repository and bulk behaviour can be exercised
without a cluster.
"""

import asyncio
import re
from typing import Any, Dict, List, Optional, Tuple

import pytest
from cassandra import InvalidRequest

from platformq_scylla_adapter.bulk import BulkOperations
from platformq_scylla_adapter.models import TableSchema
from platformq_scylla_adapter.query import QueryOperator
from platformq_scylla_adapter.repository import APPLIED_COLUMN, RecordRepository
from platformq_scylla_adapter.statements import (
    DeleteStatement,
    InsertStatement,
    SelectStatement,
    UpdateStatement,
)


def like_to_regex(pattern: str):
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL)


def matches(row: Dict[str, Any], condition) -> bool:
    value = row.get(condition.field)
    op = condition.operator
    if op == QueryOperator.EQ:
        return value == condition.value
    if op == QueryOperator.IN:
        return value in condition.value
    if value is None:
        return False
    if op == QueryOperator.GT:
        return value > condition.value
    if op == QueryOperator.GTE:
        return value >= condition.value
    if op == QueryOperator.LT:
        return value < condition.value
    if op == QueryOperator.LTE:
        return value <= condition.value
    if op == QueryOperator.LIKE:
        return bool(like_to_regex(condition.value).fullmatch(str(value)))
    raise InvalidRequest(f"Unsupported operator {condition.cql_operator} on {condition.field}")


class FakeSession:
    """In-memory engine keyed by primary key"""

    def __init__(self, keyspace: str = "test_keyspace", key_columns: Tuple[str, ...] = ("id",)):
        self.keyspace = keyspace
        self.key_columns = key_columns
        self.rows: Dict[tuple, Dict[str, Any]] = {}
        self.statements: List[Any] = []
        self.raw_statements: List[str] = []
        self.failures: List[Tuple[type, BaseException]] = []
        self.delay = 0
        self.closed = False

    def fail_on(self, statement_type: type, error: BaseException):
        """Make the next statement of the given type fail with ``error``"""
        self.failures.append((statement_type, error))

    async def execute(self, statement) -> List[Dict[str, Any]]:
        self.statements.append(statement)
        if self.delay:
            await asyncio.sleep(self.delay)
        for index, (statement_type, error) in enumerate(self.failures):
            if isinstance(statement, statement_type):
                del self.failures[index]
                raise error

        if isinstance(statement, SelectStatement):
            return self._select(statement)
        if isinstance(statement, InsertStatement):
            row = dict(statement.values)
            self.rows[self._key(row)] = row
            return []
        if isinstance(statement, UpdateStatement):
            key = self._key(statement.key)
            if key not in self.rows:
                if statement.if_exists:
                    return [{APPLIED_COLUMN: False}]
                self.rows[key] = dict(statement.key)
            self.rows[key].update(statement.values)
            return [{APPLIED_COLUMN: True}] if statement.if_exists else []
        if isinstance(statement, DeleteStatement):
            self.rows.pop(self._key(statement.key), None)
            return []
        raise AssertionError(f"Unexpected statement {statement!r}")

    async def execute_raw(self, cql: str, params: Optional[list] = None) -> List[Dict[str, Any]]:
        self.raw_statements.append(cql)
        return [{"system.now()": None}]

    async def close(self):
        self.closed = True

    def _key(self, values: Dict[str, Any]) -> tuple:
        return tuple(values[name] for name in self.key_columns)

    def _select(self, statement: SelectStatement) -> List[Dict[str, Any]]:
        query = statement.query
        rows = [
            row for row in self.rows.values()
            if all(matches(row, c) for c in query.conditions)
        ]

        if query.group_by:
            grouped = {}
            for row in rows:
                grouped.setdefault(tuple(row.get(f) for f in query.group_by), row)
            rows = list(grouped.values())

        for order_field, direction in reversed(query.order_by):
            rows.sort(key=lambda row: row[order_field], reverse=direction == "DESC")

        if query.clauses:
            raise InvalidRequest(f"line 1: no viable alternative at input '{query.clauses[0][0]}'")

        if query.limit:
            rows = rows[:query.limit]

        if query.select:
            return [
                {p.alias or p.field: row.get(p.field) for p in query.select}
                for row in rows
            ]
        return [dict(row) for row in rows]


@pytest.fixture
def users_model():
    """Model mirroring a typical users service"""
    return {
        "fields": {
            "id": "uuid",
            "username": "text",
            "password": "text",
            "age": "int",
        },
        "key": ["id"],
        "table_name": "users",
        "indexes": ["username"],
        "options": {
            "timestamps": {
                "createdAt": "created_at",
                "updatedAt": "updated_at",
            }
        },
    }


@pytest.fixture
def users_schema(users_model):
    return TableSchema.from_model("users", users_model)


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def repository(fake_session, users_schema):
    return RecordRepository(fake_session, users_schema)


@pytest.fixture
def bulk(repository):
    return BulkOperations(repository)
