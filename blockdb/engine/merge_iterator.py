"""
K-Way Merge Iterator for merging sorted sources.
"""

import functools
import heapq
from collections.abc import Iterator

from blockdb.models.value import Value


@functools.total_ordering
class _Descending:
    """Heap key that inverts string ordering, for reverse merges."""

    __slots__ = ("key",)

    def __init__(self, key: str) -> None:
        self.key = key

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _Descending) and self.key == other.key

    def __lt__(self, other: "_Descending") -> bool:
        return self.key > other.key


class KWayMergeIterator:
    """
    Merges K sorted iterators using a min-heap.

    Time Complexity: O(M log K) where M = total results, K = number of sources
    Space Complexity: O(K) for the heap

    Newer values (from sources earlier in the list) override older values.
    All sources must be sorted in the same direction as the merge.
    """

    def __init__(self, sources: list[Iterator[tuple[str, Value]]], reverse: bool = False) -> None:
        """
        Initialize k-way merge iterator.

        Args:
            sources: Sorted iterators, ordered by priority (newest first).
                    When duplicate keys exist, earlier sources take precedence.
            reverse: Sources yield descending keys; merge in descending order.
        """
        self._reverse = reverse
        self._heap: list[tuple[str | _Descending, int, str, Value]] = []
        self._source_iters: list[Iterator[tuple[str, Value]] | None] = list(sources)

        for i in range(len(self._source_iters)):
            self._advance_source(i)

    def _advance_source(self, source_idx: int) -> None:
        """Pull the next element of a source onto the heap."""
        source_iter = self._source_iters[source_idx]
        if source_iter is None:
            return

        try:
            key, value = next(source_iter)
        except StopIteration:
            self._source_iters[source_idx] = None
            return

        # Ties on key break on source_idx: lower index = newer data
        sort_key = _Descending(key) if self._reverse else key
        heapq.heappush(self._heap, (sort_key, source_idx, key, value))

    def __iter__(self) -> "KWayMergeIterator":
        return self

    def __next__(self) -> tuple[str, Value]:
        """
        Get next key-value pair in merge order, duplicates resolved newest-wins.

        Raises:
            StopIteration: When all sources are exhausted.
        """
        if not self._heap:
            raise StopIteration

        _, source_idx, current_key, current_value = heapq.heappop(self._heap)
        self._advance_source(source_idx)

        # Discard older versions of the same key
        while self._heap and self._heap[0][2] == current_key:
            _, dup_source_idx, _, _ = heapq.heappop(self._heap)
            self._advance_source(dup_source_idx)

        return current_key, current_value


def live_entries(
    sources: list[Iterator[tuple[str, Value]]], reverse: bool = False
) -> Iterator[tuple[str, Value]]:
    """Merge sources and drop keys whose newest version is a tombstone."""
    for key, value in KWayMergeIterator(sources, reverse=reverse):
        if not value.is_tombstone():
            yield key, value
