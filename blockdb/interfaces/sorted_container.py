"""
SortedContainer abstract base class for sorted key-value data structures.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import Any

from blockdb.options import KeyRange


class SortedContainer(ABC):
    """
    Abstract base class for sorted key-value containers backing a MemTable.

    Implementations:
    - SortedMap: bisect-maintained key list plus a dict
    """

    @abstractmethod
    def put(self, key: str, value: Any) -> None:
        """
        Insert or update a key-value pair.

        Args:
            key: The key to insert/update.
            value: The value to associate with the key.
        """
        pass

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """
        Retrieve the value for a given key.

        Returns:
            The value if found, None otherwise.
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key-value pair.

        Returns:
            True if the key was found and removed, False otherwise.
        """
        pass

    @abstractmethod
    def size(self) -> int:
        """Return the number of key-value pairs."""
        pass

    @abstractmethod
    def size_bytes(self) -> int:
        """Return the approximate size in bytes."""
        pass

    @abstractmethod
    def iterator(
        self, key_range: KeyRange | None = None, reverse: bool = False
    ) -> Iterator[tuple[str, Any]]:
        """
        Return an iterator over key-value pairs in the specified range.

        Args:
            key_range: Keys to include. If None, iterates over everything.
            reverse: Yield in descending key order.

        Returns:
            Iterator yielding (key, value) tuples in sorted order.
        """
        pass

    def __iter__(self) -> Iterator[tuple[str, Any]]:
        return self.iterator()
