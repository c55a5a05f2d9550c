"""
StorageEngine and WriteBatch: the capability set BlockStore relies on.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from blockdb.options import IterateOptions


class WriteBatch(ABC):
    """
    Accumulates puts and deletes for one atomic, all-or-nothing commit.

    Operations are applied in the order they were queued. A batch can be
    written once.
    """

    @abstractmethod
    def put(self, key: str, value: str) -> "WriteBatch":
        """Queue an upsert. Returns the batch for chaining."""
        pass

    @abstractmethod
    def delete(self, key: str) -> "WriteBatch":
        """Queue a deletion. Returns the batch for chaining."""
        pass

    @abstractmethod
    async def write(self) -> None:
        """
        Commit every queued operation atomically.

        Concurrent readers observe either none or all of the batch.

        Raises:
            EngineError: If the commit fails or the batch was already written.
        """
        pass

    @abstractmethod
    def __len__(self) -> int:
        """Number of queued operations."""
        pass


class StorageEngine(ABC):
    """
    Sorted key-value store with point access, atomic batches and ordered scans.

    Keys are compared byte-wise. Implementations must make individual point
    operations safe to call concurrently and must never expose a partially
    applied batch to a concurrent scan.
    """

    @abstractmethod
    async def get(self, key: str) -> str:
        """
        Retrieve a value by key.

        Raises:
            KeyNotFoundError: If the key is absent.
        """
        pass

    @abstractmethod
    async def try_get(self, key: str) -> str | None:
        """Retrieve a value by key, or None if absent. Never raises on absence."""
        pass

    @abstractmethod
    async def put(self, key: str, value: str) -> None:
        """Insert or update a single key."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a single key. Deleting an absent key is not an error."""
        pass

    @abstractmethod
    def batch(self) -> WriteBatch:
        """Start a new atomic write batch."""
        pass

    @abstractmethod
    def iterate(
        self, options: IterateOptions | None = None
    ) -> AsyncIterator[tuple[str, str | None]]:
        """
        Scan entries in key order.

        The returned iterator is finite and forward-only; call iterate again to
        restart. Values are None when options.keys_only is set. Engine failures
        are raised from the iteration itself.

        Args:
            options: Direction, bounds, limit and keys-only mode.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the engine's resources."""
        pass
