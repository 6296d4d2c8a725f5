"""Custom exceptions for the ScyllaDB adapter"""

from typing import Any, List, Optional


class DataAccessError(Exception):
    """Base exception for data access errors"""
    pass


class ConfigurationError(DataAccessError):
    """Raised when the adapter is configured incorrectly"""
    pass


class MissingSchemaError(ConfigurationError):
    """Raised when the host service does not declare a model or a name"""
    def __init__(self, message: str = "Missing `modelName` or `name` definition in schema of service!"):
        super().__init__(message)


class SchemaDefinitionError(ConfigurationError):
    """Raised when a model definition is malformed"""
    def __init__(self, model_name: str, message: str):
        self.model_name = model_name
        super().__init__(f"Invalid model '{model_name}': {message}")


class SchemaMismatchError(DataAccessError):
    """Raised when the stored table differs from the model and migration cannot reconcile it"""
    def __init__(self, table: str, differences: List[str]):
        self.table = table
        self.differences = differences
        super().__init__(f"Schema of table '{table}' does not match model: {'; '.join(differences)}")


class QueryError(DataAccessError):
    """Raised when a filter description cannot be translated"""
    pass


class UnsupportedSearchError(QueryError):
    """Raised when free-text search is requested without target fields"""
    def __init__(self, message: str = "full-text search requires explicit target fields"):
        super().__init__(message)


class InvalidIdentifierFormat(DataAccessError, ValueError):
    """Raised when a value cannot be parsed into a UUID"""
    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Invalid identifier format: {value!r}")


class EngineError(DataAccessError):
    """Engine-reported failure; the driver exception is kept in `cause`"""
    def __init__(self, operation: str, table: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.table = table
        self.cause = cause
        super().__init__(f"Failed to {operation} on {table}: {cause}")


class ReadError(EngineError):
    """Raised when the engine rejects or fails a read"""
    pass


class WriteError(EngineError):
    """Raised when the engine rejects or fails a write"""
    pass


class AdapterStateError(DataAccessError, RuntimeError):
    """Raised when an operation is called in the wrong lifecycle state"""
    def __init__(self, operation: str, state: Any):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot call '{operation}' while adapter is {getattr(state, 'value', state)}")
