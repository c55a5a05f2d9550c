"""
SortedMap - sorted key-value container backed by a bisect-maintained key list.
"""

import bisect
from collections.abc import Iterator
from typing import Any

from blockdb.interfaces.sorted_container import SortedContainer
from blockdb.options import KeyRange

# Rough per-entry bookkeeping overhead used for size estimates
_ENTRY_OVERHEAD = 64


class SortedMap(SortedContainer):
    """
    Sorted container keeping keys in a list and values in a dict.

    Lookups are O(1), inserts of new keys O(N) for the list shift, and range
    iteration is a binary search followed by an index walk in either direction.
    Block heights arrive mostly in ascending order, so inserts usually append.
    """

    def __init__(self) -> None:
        self._keys: list[str] = []
        self._values: dict[str, Any] = {}
        self._size_bytes: int = 0

    def put(self, key: str, value: Any) -> None:
        if key in self._values:
            self._size_bytes -= self._estimate(key, self._values[key])
        elif not self._keys or key > self._keys[-1]:
            self._keys.append(key)
        else:
            bisect.insort(self._keys, key)

        self._values[key] = value
        self._size_bytes += self._estimate(key, value)

    def get(self, key: str) -> Any | None:
        return self._values.get(key)

    def delete(self, key: str) -> bool:
        if key not in self._values:
            return False

        self._size_bytes -= self._estimate(key, self._values.pop(key))
        del self._keys[bisect.bisect_left(self._keys, key)]
        return True

    def size(self) -> int:
        return len(self._keys)

    def size_bytes(self) -> int:
        return self._size_bytes

    def iterator(
        self, key_range: KeyRange | None = None, reverse: bool = False
    ) -> Iterator[tuple[str, Any]]:
        """
        Walk the keys in range lazily by position.

        Nothing is copied up front, so the iterator must be drained or dropped
        before the map is written to again.
        """
        start, stop = (key_range or KeyRange()).slice(self._keys)
        positions = range(stop - 1, start - 1, -1) if reverse else range(start, stop)
        keys = self._keys
        values = self._values
        return ((keys[i], values[keys[i]]) for i in positions)

    @staticmethod
    def _estimate(key: str, value: Any) -> int:
        estimated_size = len(key.encode("utf-8")) + _ENTRY_OVERHEAD
        if hasattr(value, "size_bytes"):
            estimated_size += value.size_bytes()
        elif isinstance(value, str):
            estimated_size += len(value.encode("utf-8"))
        elif isinstance(value, bytes):
            estimated_size += len(value)
        return estimated_size
