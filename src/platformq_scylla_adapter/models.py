"""Table schema binding for adapter models"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .exceptions import SchemaDefinitionError
from .identifiers import TIMEUUID_KIND, UUID_KIND

ID_FIELD = "id"
DEFAULT_CREATED_AT = "created_at"
DEFAULT_UPDATED_AT = "updated_at"

_TYPE_ALIASES = {
    "varchar": "text",
}


def normalize_cql_type(cql_type: str) -> str:
    """Normalize a CQL type so declared and stored types compare equal"""
    normalized = re.sub(r"\s+", "", cql_type.lower())
    return _TYPE_ALIASES.get(normalized, normalized)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Column:
    """Column definition for a model field"""
    name: str
    cql_type: str
    default: Any = None

    @classmethod
    def from_definition(cls, model_name: str, name: str, definition: Any) -> "Column":
        if isinstance(definition, str):
            return cls(name=name, cql_type=definition)
        if not isinstance(definition, dict) or not definition.get("type"):
            raise SchemaDefinitionError(model_name, f"field '{name}' has no type")
        cql_type = definition["type"]
        type_def = definition.get("typeDef")
        if type_def:
            cql_type = f"{cql_type}{type_def}"
        return cls(name=name, cql_type=cql_type, default=definition.get("default"))

    def default_value(self) -> Any:
        return self.default() if callable(self.default) else self.default


@dataclass
class TableSchema:
    """Read-only view of a model definition"""
    model_name: str
    table_name: str
    columns: Dict[str, Column]
    partition_key: List[str]
    clustering_key: List[str] = field(default_factory=list)
    indexes: List[str] = field(default_factory=list)
    created_at_column: Optional[str] = None
    updated_at_column: Optional[str] = None
    id_field: str = ID_FIELD

    @classmethod
    def from_model(cls, model_name: str, model: Dict[str, Any]) -> "TableSchema":
        """Build a schema from a model definition mapping"""
        if not isinstance(model, dict):
            raise SchemaDefinitionError(model_name, "model must be a mapping")

        fields = model.get("fields")
        if not fields or not isinstance(fields, dict):
            raise SchemaDefinitionError(model_name, "'fields' must be a non-empty mapping")
        columns = {
            name: Column.from_definition(model_name, name, definition)
            for name, definition in fields.items()
        }

        id_column = columns.get(ID_FIELD)
        if id_column is None:
            raise SchemaDefinitionError(model_name, f"an '{ID_FIELD}' field is required")
        if normalize_cql_type(id_column.cql_type) not in (UUID_KIND, TIMEUUID_KIND):
            raise SchemaDefinitionError(model_name, f"'{ID_FIELD}' must be of type uuid or timeuuid")

        partition_key, clustering_key = cls._parse_key(model_name, model.get("key"))

        created_at, updated_at = cls._parse_timestamps(model_name, model.get("options") or {})
        for column_name in (created_at, updated_at):
            if column_name and column_name not in columns:
                columns[column_name] = Column(name=column_name, cql_type="timestamp")

        for key_field in partition_key + clustering_key:
            if key_field not in columns:
                raise SchemaDefinitionError(model_name, f"key field '{key_field}' is not declared")
        if ID_FIELD not in partition_key + clustering_key:
            raise SchemaDefinitionError(model_name, f"'{ID_FIELD}' must be part of the key")

        indexes = list(model.get("indexes") or [])
        for index_field in indexes:
            if index_field not in columns:
                raise SchemaDefinitionError(model_name, f"indexed field '{index_field}' is not declared")

        return cls(
            model_name=model_name,
            table_name=model.get("table_name") or model_name,
            columns=columns,
            partition_key=partition_key,
            clustering_key=clustering_key,
            indexes=indexes,
            created_at_column=created_at,
            updated_at_column=updated_at,
        )

    @staticmethod
    def _parse_key(model_name: str, key: Any):
        if not key or not isinstance(key, (list, tuple)):
            raise SchemaDefinitionError(model_name, "'key' must be a non-empty list")
        head, rest = key[0], list(key[1:])
        # A nested first element is a composite partition key
        partition = list(head) if isinstance(head, (list, tuple)) else [head]
        if not partition:
            raise SchemaDefinitionError(model_name, "partition key is empty")
        return partition, rest

    @staticmethod
    def _parse_timestamps(model_name: str, options: Dict[str, Any]):
        timestamps = options.get("timestamps")
        if not timestamps:
            return None, None
        if timestamps is True:
            return DEFAULT_CREATED_AT, DEFAULT_UPDATED_AT
        if not isinstance(timestamps, dict):
            raise SchemaDefinitionError(model_name, "'options.timestamps' must be a mapping or true")
        return timestamps.get("createdAt"), timestamps.get("updatedAt")

    @property
    def primary_key(self) -> List[str]:
        return self.partition_key + self.clustering_key

    @property
    def id_kind(self) -> str:
        return normalize_cql_type(self.columns[self.id_field].cql_type)

    @property
    def keyed_by_id(self) -> bool:
        """True when the identifier alone is the whole primary key"""
        return self.primary_key == [self.id_field]

    def key_of(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Primary key values of a stored record"""
        return {name: record[name] for name in self.primary_key}

    def column_types(self) -> Dict[str, str]:
        """Normalized column name -> CQL type mapping"""
        return {name: normalize_cql_type(c.cql_type) for name, c in self.columns.items()}

    def apply_defaults(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Fill in declared defaults for columns missing from the record"""
        data = dict(record)
        for name, column in self.columns.items():
            if column.default is not None and data.get(name) is None:
                data[name] = column.default_value()
        return data

    def stamp(self, record: Dict[str, Any], is_create: bool) -> Dict[str, Any]:
        """Set the managed timestamp columns"""
        data = dict(record)
        now = utcnow()
        if is_create and self.created_at_column:
            data[self.created_at_column] = now
        if self.updated_at_column:
            data[self.updated_at_column] = now
        return data

    def __repr__(self):
        return f"<TableSchema {self.model_name} table={self.table_name} key={self.primary_key}>"
