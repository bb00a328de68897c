"""Storage adapter contract shared by the local and remote backends."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from domain import PartialUpdate

Record = Dict[str, Any]
PartialFields = Union[PartialUpdate, Mapping[str, Any]]

UPDATED_AT = "updatedAt"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StorageAdapter(ABC):
    """Collection store contract.

    Every method is a coroutine and a single unit of work: no locking, no
    retries, and no transaction spanning more than one call. Both backends
    must be interchangeable behind this interface.
    """

    backend: str = ""

    @abstractmethod
    async def read_all(self, collection: str) -> List[Record]:
        """Return every record of a collection; ``[]`` if it is absent."""

    @abstractmethod
    async def read_one(self, collection: str, record_id: str) -> Optional[Record]:
        """Return one record, or ``None`` if it does not exist."""

    @abstractmethod
    async def write_all(self, collection: str, records: Sequence[Mapping[str, Any]]) -> None:
        """Replace the collection: clear it, then write each record."""

    @abstractmethod
    async def write_one(self, collection: str, record_id: str, record: Mapping[str, Any]) -> None:
        """Insert or fully replace one record."""

    @abstractmethod
    async def update_partial(
        self, collection: str, record_id: str, fields: PartialFields
    ) -> Optional[Record]:
        """Merge fields into an existing record and stamp ``updatedAt``.

        Raises:
            NotFoundError: if the record does not exist.
        """

    @abstractmethod
    async def update_bulk(self, collection: str, updates: Sequence[Any]) -> int:
        """Apply many partial updates; returns the number of entries applied."""

    @abstractmethod
    async def delete_one(self, collection: str, record_id: str) -> bool:
        """Delete one record; ``True`` only if it existed."""

    @abstractmethod
    async def exists(self, collection: str) -> bool:
        """Whether the collection has ever been populated."""

    @abstractmethod
    async def clear(self, collection: str) -> None:
        """Remove every record of the collection."""

    @abstractmethod
    async def backup(self) -> str:
        """Serialize the whole store to a backup document (JSON text)."""

    @abstractmethod
    async def restore(self, document: Union[str, Mapping[str, Any]]) -> List[str]:
        """Replace every collection present in the document.

        Returns the names of the restored collections.

        Raises:
            BackupCorruptionError: before anything is cleared, if the
                document is invalid.
        """


__all__ = ["StorageAdapter", "Record", "PartialFields", "UPDATED_AT", "utc_now"]
