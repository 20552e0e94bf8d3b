from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from datajpa.data.query import Query
from datajpa.data.types import EntityMetadata


class DatabaseAdapter(ABC):
    """
    Storage backend used by repositories.

    Rows are exchanged as dicts keyed by entity field name. execute_query
    receives a Query whose parameters are already bound to literal values
    and returns:
    - FIND: a list of entity instances or projection values
    - COUNT: an int
    - EXISTS: a bool
    """

    @abstractmethod
    async def connect(self, url: Optional[str] = None, **options) -> None:
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    @abstractmethod
    async def create_table_if_not_exists(self, metadata: EntityMetadata) -> None:
        pass

    @abstractmethod
    async def insert(self, metadata: EntityMetadata, values: Dict[str, Any]) -> Any:
        """Store a new row and return its generated id."""
        pass

    @abstractmethod
    async def update(
        self, metadata: EntityMetadata, entity_id: Any, values: Dict[str, Any]
    ) -> bool:
        """Overwrite a stored row. Returns False when the id is not stored."""
        pass

    @abstractmethod
    async def find_by_id(
        self, metadata: EntityMetadata, entity_id: Any
    ) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def find_all(
        self,
        metadata: EntityMetadata,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def delete_by_id(self, metadata: EntityMetadata, entity_id: Any) -> bool:
        """Remove a row. Returns False when the id is not stored."""
        pass

    @abstractmethod
    async def delete_all(self, metadata: EntityMetadata) -> int:
        pass

    @abstractmethod
    async def count(self, metadata: EntityMetadata) -> int:
        pass

    @abstractmethod
    async def exists_by_id(self, metadata: EntityMetadata, entity_id: Any) -> bool:
        pass

    @abstractmethod
    async def execute_query(self, query: Query) -> Any:
        pass

    def get_connection(self):
        """Raw connection context for hand-written queries, where supported."""
        raise NotImplementedError(
            f"{type(self).__name__} does not expose a database connection"
        )
