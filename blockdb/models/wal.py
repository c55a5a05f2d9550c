"""
WAL - append-only Write-Ahead Log of checksummed records.
"""

import asyncio
import os
import time
import zlib
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

from blockdb.exceptions import EngineError, WALCorruptionError
from blockdb.models.wal_record import WALRecord

MAX_FSYNC_INTERVAL_MS = 10000


class WAL:
    """
    Write-Ahead Log for durability.

    Every record is written as one frame: [length:4][record_bytes][crc32:4].
    Iteration stops quietly at a torn trailing frame (a crash mid-append), so
    a partially written batch is never replayed.
    """

    def __init__(self, id: str, file_path: str) -> None:
        """
        Initialize WAL.

        Args:
            id: Unique identifier for this WAL.
            file_path: Path to the WAL file.
        """
        self.id = id
        self.file_path = file_path
        self._file: BinaryIO | None = None
        self._read_only: bool = False
        self._seq: int = 0
        self._torn: bool = False

        # Periodic fsync configuration
        self._fsync_interval_ms: int = 0  # 0 = always fsync (default)
        self._last_fsync_time: float = 0.0  # time.monotonic()
        self._lock = asyncio.Lock()

    @property
    def seq(self) -> int:
        return self._seq

    def set_fsync_interval(self, fsync_interval_ms: int) -> None:
        """
        Configure fsync interval.

        Args:
            fsync_interval_ms: Milliseconds between fsyncs.
                              0 = always fsync (default).
                              Max 10000 (10 seconds).
        """
        if fsync_interval_ms < 0:
            raise ValueError(f"fsync_interval_ms must be >= 0, got {fsync_interval_ms}")
        if fsync_interval_ms > MAX_FSYNC_INTERVAL_MS:
            raise ValueError(
                f"fsync_interval_ms cannot exceed {MAX_FSYNC_INTERVAL_MS}ms, got {fsync_interval_ms}"
            )
        self._fsync_interval_ms = fsync_interval_ms

    def open(self, read_only: bool = False) -> None:
        """
        Open the WAL file.

        Args:
            read_only: If True, open for reading only.
        """
        self._read_only = read_only
        mode = "rb" if read_only else "ab+"
        Path(self.file_path).parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.file_path, mode)

        if not read_only:
            self._seq = self._get_last_seq()

    def mark_read_only(self) -> None:
        if self._file and not self._read_only:
            self._perform_flush()
            self._file.close()
            self._file = open(self.file_path, "rb")
            self._read_only = True

    def is_read_only(self) -> bool:
        return self._read_only

    def _should_flush(self) -> bool:
        if self._fsync_interval_ms == 0:
            return True

        current_time = time.monotonic()
        elapsed_ms = (current_time - self._last_fsync_time) * 1000

        if elapsed_ms >= self._fsync_interval_ms:
            self._last_fsync_time = current_time
            return True
        return False

    def _perform_flush(self) -> None:
        """Flush Python buffers and sync the file to disk."""
        self._file.flush()
        # Use fdatasync if available (Linux), fallback to fsync (macOS/Windows)
        _sync_data = getattr(os, "fdatasync", os.fsync)
        _sync_data(self._file.fileno())

    def close(self) -> None:
        """Close the WAL file, flushing if writable."""
        if self._file:
            if not self._read_only:
                self._perform_flush()
            self._file.close()
            self._file = None

    async def append(self, record: WALRecord) -> None:
        """
        Append a record as a single checksummed frame.

        A write or sync failure truncates the file back to where the frame
        started, so nothing from a failed append is ever replayed.

        Raises:
            EngineError: If WAL is read-only, not open, or the append fails.
        """
        if self._read_only:
            raise EngineError("Cannot append to read-only WAL")
        if self._file is None:
            raise EngineError("WAL is not open")

        record_bytes = bytes(record)
        checksum = zlib.crc32(record_bytes) & 0xFFFFFFFF
        frame = len(record_bytes).to_bytes(4, "big") + record_bytes + checksum.to_bytes(4, "big")

        async with self._lock:
            if self._torn:
                raise EngineError(f"WAL {self.file_path} ends in a torn frame")

            # Append mode opens at the end and nothing reads through this handle
            offset = self._file.tell()
            try:
                self._file.write(frame)
                if self._should_flush():
                    loop = asyncio.get_running_loop()
                    await loop.run_in_executor(None, self._perform_flush)
            except OSError as e:
                self._roll_back(offset)
                raise EngineError(f"WAL append failed for {self.file_path}: {e}") from e

        self._seq = record.seq + 1

    def _roll_back(self, offset: int) -> None:
        """Cut a failed frame off the end of the log."""
        try:
            self._truncate(offset)
        except OSError:
            # Frames appended after a torn one could never be replayed
            self._torn = True

    def _truncate(self, offset: int) -> None:
        self._file.truncate(offset)

    def destroy(self) -> None:
        """Delete the WAL file and close this instance."""
        self.close()
        if os.path.exists(self.file_path):
            os.remove(self.file_path)

    def __enter__(self) -> "WAL":
        if self._file is None:
            self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[WALRecord]:
        """Iterate over all complete records in the WAL."""
        return _WALIterator(self.file_path)

    def _get_last_seq(self) -> int:
        last_seq = 0
        with _WALIterator(self.file_path) as records:
            for record in records:
                last_seq = max(last_seq, record.seq + 1)
        return last_seq


class _WALIterator(Iterator[WALRecord]):
    """Iterator over WAL records."""

    def __init__(self, file_path: str) -> None:
        self._file: BinaryIO | None = None
        if os.path.exists(file_path):
            self._file = open(file_path, "rb")

    def __iter__(self) -> Iterator[WALRecord]:
        return self

    def __next__(self) -> WALRecord:
        if self._file is None:
            raise StopIteration

        entry_offset = self._file.tell()

        # Any short read means the last append never completed
        length_bytes = self._file.read(4)
        if len(length_bytes) < 4:
            self.close()
            raise StopIteration

        length = int.from_bytes(length_bytes, "big")
        record_bytes = self._file.read(length)
        checksum_bytes = self._file.read(4)
        if len(record_bytes) < length or len(checksum_bytes) < 4:
            self.close()
            raise StopIteration

        expected_checksum = int.from_bytes(checksum_bytes, "big")
        actual_checksum = zlib.crc32(record_bytes) & 0xFFFFFFFF
        if expected_checksum != actual_checksum:
            self.close()
            raise WALCorruptionError(
                expected=expected_checksum,
                actual=actual_checksum,
                entry_offset=entry_offset,
            )

        return WALRecord.from_bytes(record_bytes)

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def __del__(self) -> None:
        self.close()

    def __enter__(self) -> "_WALIterator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
