"""Keyspace and table synchronisation for bound models"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .exceptions import SchemaMismatchError
from .models import TableSchema, normalize_cql_type
from .session import ScyllaSession
from .statements import TableRef, quote_identifier

logger = logging.getLogger(__name__)

MIGRATION_SAFE = "safe"
MIGRATION_ALTER = "alter"
MIGRATION_DROP = "drop"


@dataclass
class SchemaDiff:
    """Differences between a model and the stored table"""
    added: Dict[str, str] = field(default_factory=dict)
    removed: List[str] = field(default_factory=list)
    changed_types: Dict[str, tuple] = field(default_factory=dict)
    key_changed: bool = False

    @property
    def empty(self) -> bool:
        return not (self.added or self.removed or self.changed_types or self.key_changed)

    @property
    def alterable(self) -> bool:
        return not (self.changed_types or self.key_changed)

    def describe(self) -> List[str]:
        parts = []
        for name, cql_type in self.added.items():
            parts.append(f"missing column {name} {cql_type}")
        for name in self.removed:
            parts.append(f"extra column {name}")
        for name, (stored, declared) in self.changed_types.items():
            parts.append(f"column {name} is {stored}, model declares {declared}")
        if self.key_changed:
            parts.append("primary key differs")
        return parts


def replication_literal(strategy: Dict[str, Any]) -> str:
    """Render a replication map as a CQL literal"""
    items = []
    for key, value in strategy.items():
        escaped = str(value).replace("'", "''")
        items.append(f"'{key}': '{escaped}'")
    return "{" + ", ".join(items) + "}"


class SchemaSynchronizer:
    """Creates or migrates the table backing a model"""

    def __init__(self, session: ScyllaSession, schema: TableSchema, keyspace: str,
                 replication_strategy: Dict[str, Any], migration: str = MIGRATION_SAFE):
        self.session = session
        self.schema = schema
        self.keyspace = keyspace
        self.replication_strategy = replication_strategy
        self.migration = migration
        self.table = TableRef(keyspace, schema.table_name)

    async def sync(self):
        """Bring the stored table in line with the model"""
        await self.session.execute_raw(
            f"CREATE KEYSPACE IF NOT EXISTS {quote_identifier(self.keyspace)} "
            f"WITH replication = {replication_literal(self.replication_strategy)}"
        )
        await self.session.refresh_keyspace(self.keyspace)

        table_meta = self.session.get_table_metadata(self.keyspace, self.schema.table_name)
        if table_meta is None:
            logger.info(f"Creating table {self.table}")
            await self._create_table()
        else:
            diff = self.diff(table_meta)
            if not diff.empty:
                await self._migrate(diff)

        await self._ensure_indexes()
        self.session.clear_prepared()

    def diff(self, table_meta) -> SchemaDiff:
        """Compare driver table metadata with the model"""
        declared = self.schema.column_types()
        stored = {name: normalize_cql_type(column.cql_type) for name, column in table_meta.columns.items()}

        diff = SchemaDiff()
        for name, cql_type in declared.items():
            if name not in stored:
                diff.added[name] = cql_type
            elif stored[name] != cql_type:
                diff.changed_types[name] = (stored[name], cql_type)
        diff.removed = [name for name in stored if name not in declared]

        stored_partition = [c.name for c in table_meta.partition_key]
        stored_clustering = [c.name for c in table_meta.clustering_key]
        diff.key_changed = (
            stored_partition != self.schema.partition_key
            or stored_clustering != self.schema.clustering_key
        )
        return diff

    async def _migrate(self, diff: SchemaDiff):
        differences = diff.describe()
        if self.migration == MIGRATION_SAFE:
            raise SchemaMismatchError(str(self.table), differences)

        if self.migration == MIGRATION_ALTER:
            if not diff.alterable:
                raise SchemaMismatchError(str(self.table), differences)
            for name, cql_type in diff.added.items():
                await self.session.execute_raw(f"ALTER TABLE {self.table} ADD {quote_identifier(name)} {cql_type}")
            for name in diff.removed:
                await self.session.execute_raw(f"ALTER TABLE {self.table} DROP {quote_identifier(name)}")
            logger.info(f"Altered table {self.table}: {'; '.join(differences)}")
            return

        logger.warning(f"Dropping and recreating table {self.table}: {'; '.join(differences)}")
        await self.session.execute_raw(f"DROP TABLE IF EXISTS {self.table}")
        await self._create_table()

    async def _create_table(self):
        await self.session.execute_raw(self.create_table_cql())

    def create_table_cql(self) -> str:
        columns = [
            f"{quote_identifier(name)} {column.cql_type}"
            for name, column in self.schema.columns.items()
        ]
        partition = ", ".join(quote_identifier(k) for k in self.schema.partition_key)
        if len(self.schema.partition_key) > 1:
            partition = f"({partition})"
        key_parts = [partition] + [quote_identifier(k) for k in self.schema.clustering_key]
        columns.append(f"PRIMARY KEY ({', '.join(key_parts)})")
        return f"CREATE TABLE IF NOT EXISTS {self.table} ({', '.join(columns)})"

    async def _ensure_indexes(self):
        for index_field in self.schema.indexes:
            index_name = quote_identifier(f"{self.schema.table_name}_{index_field}_idx")
            await self.session.execute_raw(
                f"CREATE INDEX IF NOT EXISTS {index_name} ON {self.table} ({quote_identifier(index_field)})"
            )
