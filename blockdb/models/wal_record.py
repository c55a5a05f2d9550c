"""
WALRecord dataclass for Write-Ahead Log records.
"""

from dataclasses import dataclass, field

from blockdb.models.value import Value


@dataclass
class WALRecord:
    """
    One atomic unit of the Write-Ahead Log.

    A single put or delete is a record with one operation; a write batch is a
    record with all of its operations. Records are framed and checksummed as a
    whole, so recovery replays a batch completely or not at all.

    Attributes:
        seq: Sequence number for ordering records.
        ops: (key, value) pairs in application order; deletes carry tombstones.
    """

    seq: int
    ops: list[tuple[str, Value]] = field(default_factory=list)

    def __bytes__(self) -> bytes:
        """
        Serialize the record to bytes for storage.

        Format: [seq:8][op_count:4] then per op [key_len:4][key][value_len:4][value_bytes]
        """
        parts = [self.seq.to_bytes(8, "big"), len(self.ops).to_bytes(4, "big")]
        for key, value in self.ops:
            key_bytes = key.encode("utf-8")
            value_bytes = bytes(value)
            parts.append(len(key_bytes).to_bytes(4, "big"))
            parts.append(key_bytes)
            parts.append(len(value_bytes).to_bytes(4, "big"))
            parts.append(value_bytes)
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> "WALRecord":
        """Deserialize from bytes."""
        seq = int.from_bytes(data[0:8], "big")
        op_count = int.from_bytes(data[8:12], "big")
        offset = 12

        ops: list[tuple[str, Value]] = []
        for _ in range(op_count):
            key_len = int.from_bytes(data[offset : offset + 4], "big")
            offset += 4
            key = data[offset : offset + key_len].decode("utf-8")
            offset += key_len

            value_len = int.from_bytes(data[offset : offset + 4], "big")
            offset += 4
            value = Value.from_bytes(data[offset : offset + value_len])
            offset += value_len

            ops.append((key, value))

        return cls(seq=seq, ops=ops)
