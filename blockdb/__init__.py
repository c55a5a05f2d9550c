"""
Height-ordered persistent block store.

This package provides:
- BlockStore: blocks indexed by height, with atomic batch upserts,
  ordered scans, top-block lookup and range trimming
- Engine: the LSM-tree key-value engine it runs on
- encode_height / decode_key: the order-preserving height key codec
"""

from blockdb.block_store import Block, BlockStore
from blockdb.config import BlockStoreConfig
from blockdb.engine import Engine
from blockdb.exceptions import (
    BlockDBError,
    BlockNotFoundError,
    EngineError,
    HeightOverflowError,
    InvalidBlockError,
    KeyNotFoundError,
    WALCorruptionError,
)
from blockdb.interfaces import StorageEngine, WriteBatch
from blockdb.keys import KEY_WIDTH, MAX_HEIGHT, decode_key, encode_height
from blockdb.options import IterateOptions

__all__ = [
    "KEY_WIDTH",
    "MAX_HEIGHT",
    "Block",
    "BlockDBError",
    "BlockNotFoundError",
    "BlockStore",
    "BlockStoreConfig",
    "Engine",
    "EngineError",
    "HeightOverflowError",
    "InvalidBlockError",
    "IterateOptions",
    "KeyNotFoundError",
    "StorageEngine",
    "WALCorruptionError",
    "WriteBatch",
    "decode_key",
    "encode_height",
]
