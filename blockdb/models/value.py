"""
Value and ValueType for representing stored data and deletion markers.
"""

from dataclasses import dataclass, field
from enum import IntEnum


class ValueType(IntEnum):
    """Type of value stored in the engine."""

    REGULAR = 0  # Normal value
    TOMBSTONE = 1  # Deletion marker


@dataclass(frozen=True)
class Value:
    """
    A stored value, or a tombstone shadowing older values of the same key.

    Attributes:
        data: The stored string (None for tombstones).
        type: Whether this is a regular value or a tombstone.
    """

    data: str | None
    type: ValueType = ValueType.REGULAR
    _cached_bytes: bytes = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        data_bytes = self.data.encode("utf-8") if self.data is not None else b""

        # Format: [type:1][data_len:4][data]
        object.__setattr__(
            self,
            "_cached_bytes",
            self.type.to_bytes(1, "big") + len(data_bytes).to_bytes(4, "big") + data_bytes,
        )

    @classmethod
    def regular(cls, data: str) -> "Value":
        return cls(data=data, type=ValueType.REGULAR)

    @classmethod
    def tombstone(cls) -> "Value":
        return cls(data=None, type=ValueType.TOMBSTONE)

    def is_tombstone(self) -> bool:
        return self.type == ValueType.TOMBSTONE

    def __bytes__(self) -> bytes:
        return self._cached_bytes

    def size_bytes(self) -> int:
        return len(self._cached_bytes)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Value":
        """Deserialize from bytes."""
        value_type = ValueType(data[0])
        data_len = int.from_bytes(data[1:5], "big")
        if value_type == ValueType.TOMBSTONE:
            return cls.tombstone()
        return cls.regular(data[5 : 5 + data_len].decode("utf-8"))
