"""
Iteration options and the key range they describe.
"""

import bisect
from dataclasses import dataclass


@dataclass(frozen=True)
class KeyRange:
    """
    A contiguous range of keys with independently inclusive/exclusive bounds.

    A bound of None means unbounded on that side.
    """

    lower: str | None = None
    lower_inclusive: bool = True
    upper: str | None = None
    upper_inclusive: bool = False

    def contains(self, key: str) -> bool:
        if self.lower is not None:
            if key < self.lower or (key == self.lower and not self.lower_inclusive):
                return False
        if self.upper is not None:
            if key > self.upper or (key == self.upper and not self.upper_inclusive):
                return False
        return True

    def slice(self, sorted_keys: list[str]) -> tuple[int, int]:
        """
        Locate this range in a sorted key list using binary search.

        Returns:
            (start, stop) indices such that sorted_keys[start:stop] is the range.
        """
        if self.lower is None:
            start = 0
        elif self.lower_inclusive:
            start = bisect.bisect_left(sorted_keys, self.lower)
        else:
            start = bisect.bisect_right(sorted_keys, self.lower)

        if self.upper is None:
            stop = len(sorted_keys)
        elif self.upper_inclusive:
            stop = bisect.bisect_right(sorted_keys, self.upper)
        else:
            stop = bisect.bisect_left(sorted_keys, self.upper)

        return start, max(start, stop)


@dataclass(frozen=True)
class IterateOptions:
    """
    Options for StorageEngine.iterate.

    Attributes:
        reverse: Iterate in descending key order.
        limit: Maximum number of entries to yield (None for no limit).
        gt: Exclusive lower bound.
        gte: Inclusive lower bound.
        lt: Exclusive upper bound.
        lte: Inclusive upper bound.
        keys_only: Yield (key, None) and skip reading values.
    """

    reverse: bool = False
    limit: int | None = None
    gt: str | None = None
    gte: str | None = None
    lt: str | None = None
    lte: str | None = None
    keys_only: bool = False

    def __post_init__(self) -> None:
        if self.gt is not None and self.gte is not None:
            raise ValueError("Specify at most one of 'gt' and 'gte'")
        if self.lt is not None and self.lte is not None:
            raise ValueError("Specify at most one of 'lt' and 'lte'")
        if self.limit is not None and self.limit < 0:
            raise ValueError(f"limit must be >= 0, got {self.limit}")

    @property
    def key_range(self) -> KeyRange:
        return KeyRange(
            lower=self.gt if self.gt is not None else self.gte,
            lower_inclusive=self.gt is None,
            upper=self.lt if self.lt is not None else self.lte,
            upper_inclusive=self.lt is None,
        )
