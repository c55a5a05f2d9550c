"""
MemToSSTableConverter - Convert MemTable to SSTable on disk.
"""

import os

from blockdb.engine.initializer import SSTABLE_DIR
from blockdb.models.memtable import MemTable
from blockdb.models.sstable import SSTable
from blockdb.models.wal import WAL


class MemToSSTableConverter:
    """
    Converts an immutable MemTable to an SSTable on disk.

    Tombstones are written through: older SSTables may still hold values
    they need to shadow. The WAL is deleted once the SSTable file is in place.
    """

    def __init__(self, memtable: MemTable, wal: WAL, storage_dir: str) -> None:
        """
        Initialize converter.

        Args:
            memtable: The immutable MemTable to convert.
            wal: The WAL that backs the MemTable.
            storage_dir: Root storage directory.
        """
        self._memtable = memtable
        self._wal = wal
        self._storage_dir = storage_dir

    def initiate(self, ss_id: str) -> SSTable:
        """
        Write the MemTable out as SSTable ss_id.

        Returns:
            The created, opened SSTable.
        """
        if not self._memtable.is_immutable:
            raise RuntimeError("MemTable must be immutable before conversion")

        file_path = os.path.join(self._storage_dir, SSTABLE_DIR, f"{ss_id}.sst")
        sstable = SSTable.create(id=ss_id, file_path=file_path, entries=iter(self._memtable))

        self._wal.destroy()

        return sstable
