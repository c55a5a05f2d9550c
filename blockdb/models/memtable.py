"""
MemTable - In-memory sorted table using a sorted container.
"""

from blockdb.interfaces.sorted_container import SortedContainer
from blockdb.models.value import Value
from blockdb.options import KeyRange


class MemTable:
    """
    In-memory sorted table backed by a SortedContainer.

    Supports:
    - Point put/get, with deletions stored as tombstones
    - Range snapshots in either direction
    - Immutability marking for flush to SSTable
    """

    def __init__(self, sorted_container: SortedContainer) -> None:
        """
        Initialize MemTable.

        Args:
            sorted_container: The backing sorted data structure.
        """
        self._container = sorted_container
        self._immutable = False

    @property
    def is_immutable(self) -> bool:
        return self._immutable

    def mark_immutable(self) -> None:
        self._immutable = True

    def put(self, key: str, value: Value) -> bool:
        """
        Insert or update a key. Tombstones are stored like any other value.

        Returns:
            True if successful, False if MemTable is immutable.
        """
        if self._immutable:
            return False

        self._container.put(key, value)
        return True

    def remove(self, key: str) -> bool:
        """
        Drop a key outright instead of shadowing it with a tombstone.

        Only valid when no older table can hold the key.

        Returns:
            True if the key was removed, False if absent or MemTable is immutable.
        """
        if self._immutable:
            return False

        return self._container.delete(key)

    def get(self, key: str) -> Value | None:
        """
        Retrieve value by key.

        Returns:
            The Value (possibly a tombstone) if present, None otherwise.
        """
        return self._container.get(key)

    def snapshot(
        self,
        key_range: KeyRange | None = None,
        reverse: bool = False,
        limit: int | None = None,
    ) -> list[tuple[str, Value]]:
        """
        Copy out entries in a range, in scan order.

        With a limit, copying stops once `limit` live entries have been taken.
        Tombstones met before that point are copied too and do not count.

        The copy is taken without yielding to the event loop, so it reflects
        either all or none of any batch applied to this table.
        """
        entries = []
        live = 0
        for key, value in self._container.iterator(key_range, reverse):
            if limit is not None and live >= limit:
                break
            entries.append((key, value))
            if not value.is_tombstone():
                live += 1
        return entries

    def size(self) -> int:
        return self._container.size()

    def size_bytes(self) -> int:
        return self._container.size_bytes()

    def __iter__(self):
        return self._container.iterator()
