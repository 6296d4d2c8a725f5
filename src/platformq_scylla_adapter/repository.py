"""Single-record operations over a bound table"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

from prometheus_client import Counter, Histogram

from .exceptions import DataAccessError, QueryError, ReadError, WriteError
from .identifiers import generate, parse
from .models import TableSchema
from .query import EngineQuery, FilterTranslator, QueryCondition, QueryOperator
from .session import ScyllaSession
from .statements import (
    CqlStatement,
    DeleteStatement,
    InsertStatement,
    SelectStatement,
    TableRef,
    UpdateStatement,
)

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

# Prometheus metrics
record_operations = Counter('platformq_scylla_operations_total', 'Total record operations', ['operation', 'table'])
record_operation_duration = Histogram('platformq_scylla_operation_duration_seconds', 'Record operation duration', ['operation', 'table'])
record_operation_errors = Counter('platformq_scylla_operation_errors_total', 'Record operation errors', ['operation', 'table', 'error_type'])

APPLIED_COLUMN = "[applied]"


class RecordRepository:
    """Insert, fetch, update and delete single records.

    Every mutation re-reads the row afterwards and returns what the engine
    stored rather than what the caller sent. A missing row is reported as
    ``None``, never as an exception.
    """

    def __init__(self, session: ScyllaSession, schema: TableSchema,
                 translator: Optional[FilterTranslator] = None):
        self.session = session
        self.schema = schema
        self.translator = translator or FilterTranslator()
        self.table = TableRef(session.keyspace, schema.table_name)

    async def insert(self, record: Record) -> Optional[Record]:
        """Insert a record under a freshly generated identifier"""
        with self._track('insert'):
            data = self.schema.apply_defaults(record)
            identifier = generate(self.schema.id_kind)
            data[self.schema.id_field] = identifier
            data = self.schema.stamp(data, is_create=True)

            await self._write('insert', InsertStatement(self.table, data))
            return await self.find_by_id(identifier)

    async def find(self, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        """Find records matching a filter description"""
        return await self.find_query(self.translator.translate(filters))

    async def find_query(self, query: EngineQuery) -> List[Record]:
        """Run an already translated query"""
        with self._track('find'):
            return await self._read('find', SelectStatement(self.table, query))

    async def find_one(self, query: Optional[Dict[str, Any]] = None) -> Optional[Record]:
        """Find the first record matching a ``q``-style query"""
        engine_query = self.translator.translate_query(query).with_limit(1)
        rows = await self.find_query(engine_query)
        return rows[0] if rows else None

    async def find_by_id(self, id: Any) -> Optional[Record]:
        """Get a record by identifier, or None"""
        identifier = parse(id)
        with self._track('find_by_id'):
            rows = await self._read('find_by_id', SelectStatement(self.table, self._id_query(QueryOperator.EQ, identifier)))
            return rows[0] if rows else None

    async def find_by_ids(self, ids: Iterable[Any]) -> List[Record]:
        """Get all records whose identifier is in ``ids``; order is not preserved"""
        identifiers = [parse(i) for i in ids]
        if not identifiers:
            return []
        with self._track('find_by_ids'):
            return await self._read('find_by_ids', SelectStatement(self.table, self._id_query(QueryOperator.IN, identifiers)))

    async def update_by_id(self, id: Any, patch: Record, options: Optional[Dict[str, Any]] = None) -> Optional[Record]:
        """Apply a partial update and return the stored record.

        Options:
            if_exists: guard the update with a lightweight transaction
            ttl: expire the written cells after this many seconds
        """
        options = options or {}
        identifier = parse(id)
        values = self._normalize_patch(patch)
        if_exists = bool(options.get("if_exists"))

        with self._track('update_by_id'):
            if if_exists and self.schema.keyed_by_id:
                key = {self.schema.id_field: identifier}
            else:
                # CQL UPDATE upserts, so absent rows must be detected up front
                current = await self.find_by_id(identifier)
                if current is None:
                    return None
                key = self.schema.key_of(current)

            values = {name: value for name, value in values.items() if name not in key}
            if not values:
                return await self.find_by_id(identifier)
            values = self.schema.stamp(values, is_create=False)

            statement = UpdateStatement(self.table, key, values, ttl=options.get("ttl"), if_exists=if_exists)
            rows = await self._write('update_by_id', statement)
            if if_exists and not self._applied(rows):
                return None
            return await self.find_by_id(identifier)

    async def remove_by_id(self, id: Any) -> Optional[Record]:
        """Delete a record and return its pre-deletion snapshot"""
        identifier = parse(id)
        with self._track('remove_by_id'):
            snapshot = await self.find_by_id(identifier)
            if snapshot is None:
                return None
            await self._write('remove_by_id', DeleteStatement(self.table, self.schema.key_of(snapshot)))
            return snapshot

    # Helper methods

    def _id_query(self, operator: QueryOperator, value: Any) -> EngineQuery:
        query = EngineQuery(allow_filtering=not self.schema.keyed_by_id)
        query.add_condition(QueryCondition(self.schema.id_field, operator, value))
        return query

    @staticmethod
    def _normalize_patch(patch: Record) -> Record:
        if not isinstance(patch, dict):
            raise QueryError("Update must be a mapping of field names to values")
        operators = [k for k in patch if isinstance(k, str) and k.startswith("$")]
        if not operators:
            return dict(patch)
        if operators != ["$set"] or len(patch) != 1:
            raise QueryError(f"Unsupported update operators: {sorted(operators)}")
        return dict(patch["$set"])

    @staticmethod
    def _applied(rows: List[Record]) -> bool:
        if not rows:
            return True
        return bool(rows[0].get(APPLIED_COLUMN, True))

    async def _read(self, operation: str, statement: CqlStatement) -> List[Record]:
        try:
            return await self.session.execute(statement)
        except DataAccessError:
            raise
        except Exception as e:
            logger.error(f"Failed to {operation} on {self.table}: {e}")
            raise ReadError(operation, str(self.table), e) from e

    async def _write(self, operation: str, statement: CqlStatement) -> List[Record]:
        try:
            return await self.session.execute(statement)
        except DataAccessError:
            raise
        except Exception as e:
            logger.error(f"Failed to {operation} on {self.table}: {e}")
            raise WriteError(operation, str(self.table), e) from e

    @contextmanager
    def _track(self, operation: str):
        table = self.schema.table_name
        with record_operation_duration.labels(operation=operation, table=table).time():
            try:
                yield
            except Exception as e:
                record_operation_errors.labels(operation=operation, table=table, error_type=type(e).__name__).inc()
                raise
            record_operations.labels(operation=operation, table=table).inc()
