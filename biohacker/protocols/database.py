"""
Database protocol for MongoDB operations.

The subset of Motor's collection API the stores and services rely on.
"""

from typing import Protocol, Any, Optional, runtime_checkable, Dict, List


@runtime_checkable
class IAsyncCursor(Protocol):
    """Async cursor returned by find()"""

    def sort(self, key_or_list: Any, direction: Optional[int] = None) -> "IAsyncCursor":
        ...

    def limit(self, limit: int) -> "IAsyncCursor":
        ...

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        ...

    def __aiter__(self) -> "IAsyncCursor":
        ...

    async def __anext__(self) -> Dict[str, Any]:
        ...


@runtime_checkable
class ICollection(Protocol):
    """A single collection (db.cycles, db.dose_events, ...)"""

    async def find_one(
        self, filter: Dict[str, Any], *args: Any, **kwargs: Any
    ) -> Optional[Dict[str, Any]]:
        ...

    def find(
        self, filter: Dict[str, Any], *args: Any, **kwargs: Any
    ) -> IAsyncCursor:
        ...

    async def insert_one(
        self, document: Dict[str, Any], *args: Any, **kwargs: Any
    ) -> Any:
        ...

    async def update_one(
        self, filter: Dict[str, Any], update: Dict[str, Any], *args: Any, **kwargs: Any
    ) -> Any:
        """Update one document; pass upsert=True to insert when missing."""
        ...

    async def delete_one(
        self, filter: Dict[str, Any], *args: Any, **kwargs: Any
    ) -> Any:
        ...

    async def delete_many(
        self, filter: Dict[str, Any], *args: Any, **kwargs: Any
    ) -> Any:
        ...

    async def count_documents(
        self, filter: Dict[str, Any], *args: Any, **kwargs: Any
    ) -> int:
        ...

    async def create_index(
        self, keys: Any, *args: Any, **kwargs: Any
    ) -> str:
        ...


@runtime_checkable
class IDatabase(Protocol):
    """
    Protocol for database access.

    Matches Motor's AsyncIOMotorDatabase so MockDatabase can stand in for it.
    """

    def __getattr__(self, name: str) -> ICollection:
        ...

    def __getitem__(self, name: str) -> ICollection:
        ...

    def get_collection(self, name: str) -> ICollection:
        ...
