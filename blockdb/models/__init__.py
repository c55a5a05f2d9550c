"""
Data models for the storage engine.
"""

from blockdb.models.memtable import MemTable
from blockdb.models.sorted_map import SortedMap
from blockdb.models.sstable import SSTable
from blockdb.models.value import Value, ValueType
from blockdb.models.wal import WAL
from blockdb.models.wal_record import WALRecord

__all__ = [
    "MemTable",
    "SSTable",
    "SortedMap",
    "Value",
    "ValueType",
    "WAL",
    "WALRecord",
]
