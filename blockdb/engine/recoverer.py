"""
MemTableRecoverer - Rebuild MemTable from WAL for crash recovery.
"""

from blockdb.interfaces.sorted_container import SortedContainer
from blockdb.models.memtable import MemTable
from blockdb.models.wal import WAL


class MemTableRecoverer:
    """
    Recovers a MemTable from a Write-Ahead Log.

    Used during startup to rebuild in-memory state from WAL records that
    weren't yet flushed to SSTable.
    """

    def recover(self, wal: WAL, container: SortedContainer) -> MemTable:
        """
        Recover a MemTable by replaying WAL records in order.

        A record is either replayed with all of its operations or, if its
        frame was torn by a crash, not at all.

        Args:
            wal: The WAL to replay.
            container: Empty sorted container to populate.

        Returns:
            Recovered MemTable with all complete records applied.
        """
        memtable = MemTable(container)

        for record in wal:
            for key, value in record.ops:
                memtable.put(key, value)

        return memtable
