"""
SSTable - Sorted String Table for on-disk storage.
"""

import asyncio
import os
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import BinaryIO

from blockdb.exceptions import EngineError
from blockdb.models.value import Value, ValueType
from blockdb.options import KeyRange


class SSTable:
    """
    Sorted String Table - immutable on-disk sorted key-value storage.

    File layout:
    - Data section: [key_len:4][key][value_len:4][value] ...
    - Index section: [num_entries:4] then [key_len:4][key][offset:8][type:1] ...
    - Footer: [index_offset:8]

    The index is loaded into memory on open. It records whether each entry is
    a tombstone, so keys-only scans never touch the data section.
    """

    def __init__(self, id: str, file_path: str) -> None:
        """
        Initialize SSTable.

        Args:
            id: Unique identifier for this SSTable.
            file_path: Path to the SSTable file.
        """
        self.id = id
        self.file_path = file_path
        self._file: BinaryIO | None = None
        self._index: dict[str, tuple[int, ValueType]] = {}  # key -> (offset, type)
        self._sorted_keys: list[str] = []

    def open(self) -> None:
        """Open the SSTable file and load index."""
        if not os.path.exists(self.file_path):
            raise FileNotFoundError(f"SSTable not found: {self.file_path}")

        self._file = open(self.file_path, "rb")
        self._load_index()

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    @property
    def closed(self) -> bool:
        return self._file is None

    def __len__(self) -> int:
        return len(self._sorted_keys)

    async def get(self, key: str) -> Value | None:
        """
        Retrieve value by key - runs file I/O in thread pool.

        Returns:
            The Value (possibly a tombstone) if present, None otherwise.
        """
        if key not in self._index:
            return None

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.get_sync, key)

    def get_sync(self, key: str) -> Value | None:
        """Blocking point lookup, safe to call from worker threads."""
        entry = self._index.get(key)
        if entry is None:
            return None

        offset, value_type = entry
        if value_type == ValueType.TOMBSTONE:
            return Value.tombstone()
        return self._read_value_at(offset, key)

    def iterator(
        self,
        key_range: KeyRange | None = None,
        reverse: bool = False,
        keys_only: bool = False,
    ) -> Iterator[tuple[str, Value]]:
        """
        Lazily iterate over entries in a range.

        In keys-only mode regular values are yielded with data=None; tombstones
        are always reported so that the merge can shadow older tables.
        """
        start, stop = (key_range or KeyRange()).slice(self._sorted_keys)
        return _SSTableIterator(self, start, stop, reverse, keys_only)

    def __iter__(self) -> Iterator[tuple[str, Value]]:
        return self.iterator()

    def __enter__(self) -> "SSTable":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _load_index(self) -> None:
        """Load the index from the file."""
        try:
            self._file.seek(-8, os.SEEK_END)
            index_offset = int.from_bytes(self._file.read(8), "big")
            self._file.seek(index_offset)

            num_entries = int.from_bytes(self._file.read(4), "big")
            for _ in range(num_entries):
                key_len = int.from_bytes(self._file.read(4), "big")
                key = self._file.read(key_len).decode("utf-8")
                offset = int.from_bytes(self._file.read(8), "big")
                value_type = ValueType(self._file.read(1)[0])

                self._index[key] = (offset, value_type)
                self._sorted_keys.append(key)
        except (OSError, ValueError, IndexError) as e:
            self.close()
            raise EngineError(f"Unreadable SSTable index in {self.file_path}: {e}") from e

    def _read_value_at(self, offset: int, expected_key: str) -> Value:
        """
        Read the entry at offset using pread (thread-safe).

        Uses os.pread which doesn't modify the file position, allowing
        concurrent reads from multiple threads.
        """
        if self._file is None:
            raise EngineError(f"SSTable {self.id} is closed")

        fd = self._file.fileno()

        key_len = int.from_bytes(os.pread(fd, 4, offset), "big")
        offset += 4
        key = os.pread(fd, key_len, offset).decode("utf-8")
        offset += key_len
        if key != expected_key:
            raise EngineError(
                f"SSTable {self.id} index mismatch: expected {expected_key!r}, found {key!r}"
            )

        value_len = int.from_bytes(os.pread(fd, 4, offset), "big")
        offset += 4
        value_bytes = os.pread(fd, value_len, offset)
        if len(value_bytes) < value_len:
            raise EngineError(f"SSTable {self.id} truncated at key {expected_key!r}")

        return Value.from_bytes(value_bytes)

    @staticmethod
    def write(file_path: str, entries: Iterable[tuple[str, Value]]) -> None:
        """
        Write sorted entries to file_path atomically via a temp file and rename.

        Args:
            file_path: Final path of the table.
            entries: (key, value) tuples in ascending key order.
        """
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        temp_path = file_path + ".tmp"

        index: list[tuple[str, int, ValueType]] = []

        with open(temp_path, "wb") as f:
            for key, value in entries:
                index.append((key, f.tell(), value.type))

                key_bytes = key.encode("utf-8")
                f.write(len(key_bytes).to_bytes(4, "big"))
                f.write(key_bytes)

                value_bytes = bytes(value)
                f.write(len(value_bytes).to_bytes(4, "big"))
                f.write(value_bytes)

            index_offset = f.tell()
            f.write(len(index).to_bytes(4, "big"))
            for key, offset, value_type in index:
                key_bytes = key.encode("utf-8")
                f.write(len(key_bytes).to_bytes(4, "big"))
                f.write(key_bytes)
                f.write(offset.to_bytes(8, "big"))
                f.write(value_type.to_bytes(1, "big"))

            f.write(index_offset.to_bytes(8, "big"))

            # Ensure durability before rename
            f.flush()
            os.fsync(f.fileno())

        os.replace(temp_path, file_path)

    @classmethod
    def create(cls, id: str, file_path: str, entries: Iterable[tuple[str, Value]]) -> "SSTable":
        """
        Create a new SSTable from sorted entries and open it.

        Args:
            id: Unique identifier.
            file_path: Path for the new file.
            entries: Iterator of (key, value) tuples in sorted order.
        """
        cls.write(file_path, entries)
        sstable = cls(id, file_path)
        sstable.open()
        return sstable


class _SSTableIterator(Iterator[tuple[str, Value]]):
    """Iterator over a slice of an SSTable's sorted keys."""

    def __init__(
        self, sstable: SSTable, start: int, stop: int, reverse: bool, keys_only: bool
    ) -> None:
        self._sstable = sstable
        self._keys_only = keys_only
        self._positions = range(stop - 1, start - 1, -1) if reverse else range(start, stop)
        self._pos = 0

    def __iter__(self) -> Iterator[tuple[str, Value]]:
        return self

    def __next__(self) -> tuple[str, Value]:
        if self._pos >= len(self._positions):
            raise StopIteration

        key = self._sstable._sorted_keys[self._positions[self._pos]]
        self._pos += 1

        offset, value_type = self._sstable._index[key]
        if value_type == ValueType.TOMBSTONE:
            return key, Value.tombstone()
        if self._keys_only:
            return key, Value(data=None)
        return key, self._sstable._read_value_at(offset, key)
