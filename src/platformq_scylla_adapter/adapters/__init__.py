"""Adapters exposing the data access contract to host services"""

from .base import DatabaseAdapter
from .scylla import AdapterState, ScyllaDbAdapter

__all__ = [
    'DatabaseAdapter',
    'AdapterState',
    'ScyllaDbAdapter'
]
