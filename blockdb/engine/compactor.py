"""
SSTableCompactor - Compact every SSTable into one.

Trims and clears leave tombstones behind; compaction is what finally
reclaims the space of deleted heights.
"""

import os

from blockdb.engine.initializer import SSTABLE_DIR
from blockdb.engine.merge_iterator import live_entries
from blockdb.models.sstable import SSTable


class SSTableCompactor:
    """
    Compacts the full set of SSTables into a single SSTable.

    Responsibilities:
    - Merge entries with an iterative k-way merge (newer tables win)
    - Drop tombstones and shadowed values
    - Write output using the atomic temp file pattern

    Tombstones may only be dropped because the input is every SSTable the
    engine has: no older table remains for them to mask. Runs in a thread
    pool and does not modify shared state.
    """

    def __init__(self, sstables: list[SSTable], storage_dir: str) -> None:
        """
        Initialize compactor.

        Args:
            sstables: All SSTables, ordered newest to oldest.
            storage_dir: Root storage directory.
        """
        self._sstables = sstables
        self._storage_dir = storage_dir

    def compact(self, new_ss_id: str) -> SSTable:
        """
        Perform compaction synchronously.

        Args:
            new_ss_id: ID for the new compacted SSTable.

        Returns:
            The newly created compacted SSTable (possibly empty).
        """
        file_path = os.path.join(self._storage_dir, SSTABLE_DIR, f"{new_ss_id}.sst")
        sources = [sstable.iterator() for sstable in self._sstables]
        return SSTable.create(id=new_ss_id, file_path=file_path, entries=live_entries(sources))
