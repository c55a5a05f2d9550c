"""
EngineInitializer - Handle startup and crash recovery.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from blockdb.engine.recoverer import MemTableRecoverer
from blockdb.models.memtable import MemTable
from blockdb.models.sorted_map import SortedMap
from blockdb.models.sstable import SSTable
from blockdb.models.wal import WAL

logger = logging.getLogger(__name__)

WAL_DIR = "wal"
SSTABLE_DIR = "sstables"

_WAL_NAME = re.compile(r"^wal_(\d+)\.wal$")
_SSTABLE_NAME = re.compile(r"^(\d+)\.sst$")


@dataclass
class RecoveredState:
    """Everything the engine needs to resume from disk."""

    memtables_and_wals: list[tuple[MemTable, WAL]] = field(default_factory=list)
    sstables: list[SSTable] = field(default_factory=list)  # oldest first
    next_ss_id: int = 0
    next_wal_id: int = 0


class EngineInitializer:
    """
    Handles engine initialization and crash recovery.

    Responsibilities:
    - Create the storage layout if absent
    - Remove temp files left by interrupted flushes and compactions
    - Recover immutable MemTables from WALs
    - Load SSTables and compute the next file IDs
    """

    def __init__(self, storage_dir: str) -> None:
        self.storage_dir = storage_dir
        self._memtable_recoverer = MemTableRecoverer()
        self._wal_dir = os.path.join(storage_dir, WAL_DIR)
        self._sstable_dir = os.path.join(storage_dir, SSTABLE_DIR)

    def _list_numbered(self, directory: str, pattern: re.Pattern) -> list[tuple[int, str]]:
        """Return (id, path) pairs of files in directory matching pattern, sorted by id."""
        found = []
        for filename in os.listdir(directory):
            match = pattern.match(filename)
            if match:
                found.append((int(match.group(1)), os.path.join(directory, filename)))
        return sorted(found)

    def _cleanup_temp_files(self) -> None:
        """
        Remove orphaned .tmp files from interrupted operations.

        For flushes, the data is safe in the WAL and will be re-flushed.
        For compactions, the original SSTables are still intact.
        """
        for filename in os.listdir(self._sstable_dir):
            if filename.endswith(".tmp"):
                tmp_path = os.path.join(self._sstable_dir, filename)
                logger.info("Removing orphaned temp file %s", tmp_path)
                os.remove(tmp_path)

    def recover(self) -> RecoveredState:
        """Recover state from disk."""
        Path(self._wal_dir).mkdir(parents=True, exist_ok=True)
        Path(self._sstable_dir).mkdir(parents=True, exist_ok=True)

        self._cleanup_temp_files()

        state = RecoveredState()

        for wal_id, wal_path in self._list_numbered(self._wal_dir, _WAL_NAME):
            wal = WAL(id=str(wal_id), file_path=wal_path)
            wal.open(read_only=True)

            memtable = self._memtable_recoverer.recover(wal, SortedMap())
            state.next_wal_id = wal_id + 1
            if memtable.size() == 0:
                wal.destroy()
                continue

            memtable.mark_immutable()
            state.memtables_and_wals.append((memtable, wal))

        for ss_id, sstable_path in self._list_numbered(self._sstable_dir, _SSTABLE_NAME):
            sstable = SSTable(id=str(ss_id), file_path=sstable_path)
            sstable.open()
            state.sstables.append(sstable)
            state.next_ss_id = ss_id + 1

        if state.memtables_and_wals:
            logger.info(
                "Recovered %d memtable(s) from WAL in %s",
                len(state.memtables_and_wals),
                self.storage_dir,
            )

        return state
