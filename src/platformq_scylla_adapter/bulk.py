"""
Bulk operations

The engine has no predicate-based multi-row write or delete, so every bulk
operation resolves its target rows first and then fans out single-record
operations concurrently (scatter-gather). There is no isolation between the
resolve step and the per-row mutations.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Sequence, TypeVar

from .query import FilterTranslator
from .repository import Record, RecordRepository

logger = logging.getLogger(__name__)

T = TypeVar('T')


class FailurePolicy(Enum):
    """How a fan-out reacts to the first failing operation"""
    FIRST_ERROR = "first_error"    # cancel what is still pending, raise at once
    COLLECT_ALL = "collect_all"    # let everything finish, then raise


async def scatter_gather(operations: Sequence[Awaitable[T]],
                         policy: FailurePolicy = FailurePolicy.FIRST_ERROR) -> List[T]:
    """Run operations concurrently and return their results in input order.

    With FIRST_ERROR the asyncio tasks that are still pending when the first
    failure arrives are cancelled; requests already handed to the driver may
    still be applied by the engine. With COLLECT_ALL every operation runs to
    completion and the first failure in input order is raised.
    """
    if not operations:
        return []

    tasks = [asyncio.ensure_future(op) for op in operations]
    try:
        if policy == FailurePolicy.COLLECT_ALL:
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, BaseException):
                    raise result
            return list(results)

        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        raise

    if pending:
        logger.warning(f"Cancelling {len(pending)} pending operations after a failure")
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    first_error = None
    for task in tasks:
        if task.done() and not task.cancelled():
            error = task.exception()
            if error is not None and first_error is None:
                first_error = error
    if first_error is not None:
        raise first_error
    return [task.result() for task in tasks]


class BulkOperations:
    """Multi-record operations composed from single-record primitives"""

    def __init__(self, repository: RecordRepository,
                 policy: FailurePolicy = FailurePolicy.FIRST_ERROR,
                 translator: Optional[FilterTranslator] = None):
        self.repository = repository
        self.policy = policy
        self.translator = translator or repository.translator

    @property
    def id_field(self) -> str:
        return self.repository.schema.id_field

    async def insert_many(self, records: Sequence[Record]) -> List[Optional[Record]]:
        """Insert all records concurrently; results follow input order"""
        results = await scatter_gather([self.repository.insert(r) for r in records], self.policy)
        logger.debug(f"Inserted {len(results)} records into {self.repository.table}")
        return results

    async def update_many(self, query: Optional[Dict[str, Any]], patch: Record,
                          options: Optional[Dict[str, Any]] = None) -> List[Optional[Record]]:
        """Update every record matching ``query``.

        Records deleted between the lookup and their update come back as
        ``None`` entries.
        """
        targets = await self.repository.find({"q": query or {}})
        return await scatter_gather(
            [self.repository.update_by_id(row[self.id_field], patch, options) for row in targets],
            self.policy
        )

    async def remove_many(self, query: Optional[Dict[str, Any]]) -> List[Record]:
        """Remove every record matching ``query`` and return the snapshots"""
        targets = await self.repository.find({"q": query or {}})
        removed = await scatter_gather(
            [self.repository.remove_by_id(row[self.id_field]) for row in targets],
            self.policy
        )
        return [snapshot for snapshot in removed if snapshot is not None]

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count matching records; any limit in ``filters`` is ignored"""
        query = self.translator.translate(filters).without_limit()
        rows = await self.repository.find_query(query)
        return len(rows)

    async def clear(self) -> List[Record]:
        """Remove every record in the table"""
        return await self.remove_many({})
