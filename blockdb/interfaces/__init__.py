"""
Abstract base classes for the storage engine and its building blocks.
"""

from blockdb.interfaces.sorted_container import SortedContainer
from blockdb.interfaces.storage_engine import StorageEngine, WriteBatch

__all__ = ["SortedContainer", "StorageEngine", "WriteBatch"]
