"""
Engine session wrapper

Bridges the driver's callback-based ResponseFuture onto the running asyncio
event loop and caches prepared statements. One instance is created per
adapter connection and passed to every component that talks to the engine.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from cachetools import LRUCache
from cassandra.cluster import Session
from cassandra.query import PreparedStatement, SimpleStatement

from .statements import CqlStatement

logger = logging.getLogger(__name__)


class ScyllaSession:
    """Async facade over a connected driver session"""

    def __init__(self, session: Session, keyspace: str, prepared_cache_size: int = 512):
        self.session = session
        self.keyspace = keyspace
        self._prepared: LRUCache = LRUCache(maxsize=prepared_cache_size)

    async def execute(self, statement: CqlStatement) -> List[Dict[str, Any]]:
        """Execute a statement object and return every row"""
        cql, params = statement.to_cql()
        prepared = await self._prepare(cql)
        return await self._execute_async(prepared, params)

    async def execute_raw(self, cql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Execute unprepared CQL, mainly DDL"""
        return await self._execute_async(SimpleStatement(cql), params)

    async def refresh_keyspace(self, keyspace: str):
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.session.cluster.refresh_keyspace_metadata, keyspace)

    def get_table_metadata(self, keyspace: str, table: str):
        """Driver TableMetadata for the table, or None if it does not exist"""
        keyspace_meta = self.session.cluster.metadata.keyspaces.get(keyspace)
        if keyspace_meta is None:
            return None
        return keyspace_meta.tables.get(table)

    def clear_prepared(self):
        self._prepared.clear()

    async def close(self):
        """Shut down the session and its cluster"""
        loop = asyncio.get_running_loop()
        self._prepared.clear()
        await loop.run_in_executor(None, self.session.cluster.shutdown)

    async def _prepare(self, cql: str) -> PreparedStatement:
        prepared = self._prepared.get(cql)
        if prepared is None:
            loop = asyncio.get_running_loop()
            prepared = await loop.run_in_executor(None, self.session.prepare, cql)
            self._prepared[cql] = prepared
        return prepared

    async def _execute_async(self, statement: Any, params: Optional[Sequence[Any]]) -> List[Dict[str, Any]]:
        loop = asyncio.get_running_loop()
        result = loop.create_future()
        rows: List[Dict[str, Any]] = []

        def resolve(value):
            if not result.done():
                result.set_result(value)

        def reject(error):
            if not result.done():
                result.set_exception(error)

        response_future = self.session.execute_async(statement, params)

        # Callbacks run on the driver's event thread once per page
        def on_page(page):
            rows.extend(page or [])
            if response_future.has_more_pages:
                response_future.start_fetching_next_page()
            else:
                loop.call_soon_threadsafe(resolve, rows)

        def on_error(error):
            loop.call_soon_threadsafe(reject, error)

        response_future.add_callbacks(on_page, on_error)
        return await result
