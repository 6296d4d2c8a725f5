"""PlatformQ ScyllaDB Adapter

CRUD and query access to ScyllaDB tables for services that are agnostic to the
underlying storage engine.
"""

from .adapters import AdapterState, DatabaseAdapter, ScyllaDbAdapter
from .bulk import BulkOperations, FailurePolicy, scatter_gather
from .config import ScyllaSettings
from .models import TableSchema
from .query import EngineQuery, FilterTranslator, QueryCondition, QueryOperator
from .repository import RecordRepository
from .exceptions import (
    DataAccessError,
    ConfigurationError,
    MissingSchemaError,
    SchemaDefinitionError,
    SchemaMismatchError,
    QueryError,
    UnsupportedSearchError,
    InvalidIdentifierFormat,
    ReadError,
    WriteError,
    AdapterStateError
)

__version__ = "0.1.0"

__all__ = [
    "ScyllaDbAdapter",
    "DatabaseAdapter",
    "AdapterState",
    "BulkOperations",
    "FailurePolicy",
    "scatter_gather",
    "ScyllaSettings",
    "TableSchema",
    "EngineQuery",
    "FilterTranslator",
    "QueryCondition",
    "QueryOperator",
    "RecordRepository",
    "DataAccessError",
    "ConfigurationError",
    "MissingSchemaError",
    "SchemaDefinitionError",
    "SchemaMismatchError",
    "QueryError",
    "UnsupportedSearchError",
    "InvalidIdentifierFormat",
    "ReadError",
    "WriteError",
    "AdapterStateError"
]
