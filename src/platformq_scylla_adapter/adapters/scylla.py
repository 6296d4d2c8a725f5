"""ScyllaDB adapter for host services"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

from cassandra import OperationTimedOut
from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import EXEC_PROFILE_DEFAULT, Cluster, ExecutionProfile, NoHostAvailable, Session
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra.query import dict_factory
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..bulk import BulkOperations, FailurePolicy
from ..config import ScyllaSettings
from ..exceptions import AdapterStateError, MissingSchemaError
from ..identifiers import generate, parse
from ..models import TableSchema
from ..repository import RecordRepository
from ..schema_sync import SchemaSynchronizer
from ..session import ScyllaSession
from .base import DatabaseAdapter, Record

logger = logging.getLogger(__name__)


def _schema_value(schema: Any, key: str) -> Any:
    if isinstance(schema, Mapping):
        return schema.get(key)
    return getattr(schema, key, None)


class AdapterState(Enum):
    """Lifecycle states of the adapter"""
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class ScyllaDbAdapter(DatabaseAdapter):
    """
    Adapter exposing CRUD and query operations over one ScyllaDB table.

    Usage::

        adapter = ScyllaDbAdapter(contact_points=["127.0.0.1"], keyspace="test")
        adapter.init(broker, service)
        await adapter.connect()
        user = await adapter.insert({"username": "Alice", "age": 21})
    """

    def __init__(self, settings: Optional[ScyllaSettings] = None, **options):
        self.opts = options
        self.settings = settings or ScyllaSettings.from_options(options)
        self.state = AdapterState.UNINITIALIZED

        self.broker = None
        self.service = None
        self.model_name: Optional[str] = None
        self.schema: Optional[TableSchema] = None
        self.logger = logger

        self.session: Optional[ScyllaSession] = None
        self.repository: Optional[RecordRepository] = None
        self.bulk: Optional[BulkOperations] = None
        self.retry_wait = wait_exponential(multiplier=0.5, max=5)

    # Lifecycle

    def init(self, broker: Any, service: Any) -> None:
        """Bind the model declared by the host service"""
        if self.state == AdapterState.CONNECTED:
            raise AdapterStateError("init", self.state)

        self.broker = broker
        self.service = service

        service_schema = getattr(service, "schema", None) or {}
        model = _schema_value(service_schema, "model")
        model_name = (
            _schema_value(service_schema, "modelName")
            or _schema_value(service_schema, "model_name")
            or _schema_value(service_schema, "name")
        )
        if not model or not model_name:
            raise MissingSchemaError()

        self.schema = TableSchema.from_model(model_name, model)
        self.model_name = model_name
        self.logger = getattr(service, "logger", None) or logger
        self.state = AdapterState.INITIALIZED

    async def connect(self) -> None:
        """Open the session, synchronise the schema and notify the host service"""
        if self.state == AdapterState.CONNECTED:
            return
        if self.state == AdapterState.UNINITIALIZED:
            raise AdapterStateError("connect", self.state)

        cluster = self._create_cluster()
        try:
            raw_session = await self._open_session(cluster)
            session = ScyllaSession(raw_session, self.settings.keyspace, self.settings.prepared_cache_size)
            synchronizer = SchemaSynchronizer(
                session,
                self.schema,
                keyspace=self.settings.keyspace,
                replication_strategy=self.settings.replication_strategy,
                migration=self.settings.migration
            )
            await synchronizer.sync()
        except Exception as e:
            self.logger.error(f"Failed to connect ScyllaDB adapter for '{self.model_name}': {e}")
            await asyncio.get_running_loop().run_in_executor(None, cluster.shutdown)
            raise

        self.session = session
        self.repository = RecordRepository(session, self.schema)
        self.bulk = BulkOperations(self.repository, FailurePolicy(self.settings.bulk_failure_policy))
        self.state = AdapterState.CONNECTED

        await self._after_connected()
        self.logger.info("ScyllaDB adapter has connected successfully.")

    async def disconnect(self) -> None:
        """Close the session; calling it again is a no-op"""
        session, self.session = self.session, None
        self.repository = None
        self.bulk = None
        try:
            if session is not None:
                await session.close()
        finally:
            if self.state != AdapterState.UNINITIALIZED:
                self.state = AdapterState.DISCONNECTED

    # Single-record operations

    async def insert(self, entity: Record) -> Optional[Record]:
        return await self._connected("insert").insert(entity)

    async def find(self, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        return await self._connected("find").find(filters)

    async def find_one(self, query: Optional[Dict[str, Any]] = None) -> Optional[Record]:
        return await self._connected("find_one").find_one(query)

    async def find_by_id(self, id: Any) -> Optional[Record]:
        return await self._connected("find_by_id").find_by_id(id)

    async def find_by_ids(self, ids: List[Any]) -> List[Record]:
        return await self._connected("find_by_ids").find_by_ids(ids)

    async def update_by_id(self, id: Any, update: Record, options: Optional[Dict[str, Any]] = None) -> Optional[Record]:
        return await self._connected("update_by_id").update_by_id(id, update, options)

    async def remove_by_id(self, id: Any) -> Optional[Record]:
        return await self._connected("remove_by_id").remove_by_id(id)

    # Bulk operations

    async def insert_many(self, entities: List[Record]) -> List[Optional[Record]]:
        self._connected("insert_many")
        return await self.bulk.insert_many(entities)

    async def update_many(self, query: Optional[Dict[str, Any]], update: Record,
                          options: Optional[Dict[str, Any]] = None) -> List[Optional[Record]]:
        self._connected("update_many")
        return await self.bulk.update_many(query, update, options)

    async def remove_many(self, query: Optional[Dict[str, Any]]) -> List[Record]:
        self._connected("remove_many")
        return await self.bulk.remove_many(query)

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        self._connected("count")
        return await self.bulk.count(filters)

    async def clear(self) -> List[Record]:
        self._connected("clear")
        return await self.bulk.clear()

    # Utilities

    def string_id_to_uuid(self, id: str) -> UUID:
        """Cast a string identifier to a UUID"""
        return parse(id)

    def generate_uuid(self) -> UUID:
        """Generate an identifier suitable for the bound model"""
        kind = self.schema.id_kind if self.schema else "uuid"
        return generate(kind)

    async def health_check(self) -> Dict[str, Any]:
        """Check that the session can reach the cluster"""
        health = {'status': 'unhealthy', 'state': self.state.value}
        if self.state != AdapterState.CONNECTED:
            return health
        try:
            await self.session.execute_raw("SELECT now() FROM system.local")
            health['status'] = 'healthy'
        except Exception as e:
            health['error'] = str(e)
        return health

    # Private helpers

    def _connected(self, operation: str) -> RecordRepository:
        if self.state != AdapterState.CONNECTED:
            raise AdapterStateError(operation, self.state)
        return self.repository

    def _create_cluster(self) -> Cluster:
        settings = self.settings
        auth_provider = None
        if settings.username:
            auth_provider = PlainTextAuthProvider(
                username=settings.username,
                password=settings.password or ''
            )

        profile = ExecutionProfile(
            load_balancing_policy=TokenAwarePolicy(
                DCAwareRoundRobinPolicy(local_dc=settings.local_data_center)
            ),
            consistency_level=settings.consistency_level,
            request_timeout=settings.read_timeout,
            row_factory=dict_factory
        )

        return Cluster(
            contact_points=settings.contact_points,
            port=settings.port,
            auth_provider=auth_provider,
            execution_profiles={EXEC_PROFILE_DEFAULT: profile},
            connect_timeout=settings.connect_timeout
        )

    async def _open_session(self, cluster: Cluster) -> Session:
        loop = asyncio.get_running_loop()
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.connect_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception_type((NoHostAvailable, OperationTimedOut)),
            reraise=True
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    self.logger.warning(f"Retrying ScyllaDB connection (attempt {attempt.retry_state.attempt_number})")
                return await loop.run_in_executor(None, cluster.connect)

    async def _after_connected(self):
        hook = getattr(self.service, "after_connected", None) or getattr(self.service, "afterConnected", None)
        if hook is None:
            return
        result = hook()
        if inspect.isawaitable(result):
            await result
