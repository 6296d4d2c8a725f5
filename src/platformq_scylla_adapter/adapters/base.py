"""Storage-neutral adapter contract consumed by host services"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

Record = Dict[str, Any]


class DatabaseAdapter(ABC):
    """Abstract base class for database adapters held by a host service"""

    @abstractmethod
    def init(self, broker: Any, service: Any) -> None:
        """Bind the adapter to its host service and model"""
        pass

    @abstractmethod
    async def connect(self) -> None:
        """Open the engine session"""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the engine session"""
        pass

    @abstractmethod
    async def insert(self, entity: Record) -> Optional[Record]:
        """Create an entity"""
        pass

    @abstractmethod
    async def insert_many(self, entities: List[Record]) -> List[Optional[Record]]:
        """Create many entities"""
        pass

    @abstractmethod
    async def find(self, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        """Find entities matching a filter description"""
        pass

    @abstractmethod
    async def find_one(self, query: Optional[Dict[str, Any]] = None) -> Optional[Record]:
        """Find the first entity matching a query"""
        pass

    @abstractmethod
    async def find_by_id(self, id: Any) -> Optional[Record]:
        """Get an entity by ID"""
        pass

    @abstractmethod
    async def find_by_ids(self, ids: List[Any]) -> List[Record]:
        """Get entities by IDs"""
        pass

    @abstractmethod
    async def update_by_id(self, id: Any, update: Record, options: Optional[Dict[str, Any]] = None) -> Optional[Record]:
        """Update an entity by ID"""
        pass

    @abstractmethod
    async def update_many(self, query: Optional[Dict[str, Any]], update: Record,
                          options: Optional[Dict[str, Any]] = None) -> List[Optional[Record]]:
        """Update entities matching a query"""
        pass

    @abstractmethod
    async def remove_by_id(self, id: Any) -> Optional[Record]:
        """Remove an entity by ID"""
        pass

    @abstractmethod
    async def remove_many(self, query: Optional[Dict[str, Any]]) -> List[Record]:
        """Remove entities matching a query"""
        pass

    @abstractmethod
    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count entities matching a filter description"""
        pass

    @abstractmethod
    async def clear(self) -> List[Record]:
        """Remove every entity"""
        pass

    def entity_to_object(self, entity: Optional[Record]) -> Optional[Record]:
        """Convert a stored entity into a plain dictionary"""
        return dict(entity) if entity is not None else None

    def before_save_transform_id(self, entity: Record, id_field: str) -> Record:
        return entity

    def after_retrieve_transform_id(self, entity: Record, id_field: str) -> Record:
        return entity
