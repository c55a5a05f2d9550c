"""
Shared pytest fixtures for block store and engine tests.
"""

import os
import tempfile

import pytest
import pytest_asyncio

from blockdb.block_store import BlockStore
from blockdb.engine.engine import Engine
from blockdb.models.memtable import MemTable
from blockdb.models.sorted_map import SortedMap
from blockdb.models.value import Value


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest_asyncio.fixture
async def engine(temp_dir):
    """Provide an initialized persistent Engine."""
    async with Engine(storage_dir=temp_dir) as eng:
        yield eng


@pytest_asyncio.fixture
async def engine_small_threshold(temp_dir):
    """Provide an Engine with small memtable threshold for rotation tests."""
    async with Engine(storage_dir=temp_dir, memtable_threshold=100) as eng:
        yield eng


@pytest_asyncio.fixture
async def memory_engine():
    """Provide an in-memory Engine."""
    async with Engine(persist=False) as eng:
        yield eng


@pytest_asyncio.fixture
async def block_store(engine):
    """Provide a BlockStore on a persistent engine."""
    yield BlockStore(engine)


@pytest_asyncio.fixture
async def memory_store(memory_engine):
    """Provide a BlockStore on an in-memory engine."""
    yield BlockStore(memory_engine)


def _make_block(height, indep_hash=None, previous_block=None, timestamp=1_600_000_000, **extra):
    block = {
        "height": height,
        "indep_hash": indep_hash or f"hash-{height}",
        "previous_block": previous_block if previous_block is not None else f"hash-{height - 1}",
        "timestamp": timestamp,
    }
    block.update(extra)
    return block


@pytest.fixture
def make_block():
    """Provide a factory for block records."""
    return _make_block


@pytest.fixture
def wal_path(temp_dir):
    """Provide a path for WAL file."""
    return os.path.join(temp_dir, "test.wal")


@pytest.fixture
def sstable_path(temp_dir):
    """Provide a path for SSTable file."""
    return os.path.join(temp_dir, "test.sst")


@pytest.fixture
def memtable():
    """Provide a fresh MemTable instance."""
    return MemTable(SortedMap())


@pytest.fixture
def sample_entries():
    """Provide sample key-value entries for testing."""
    return [
        ("key1", Value.regular("value1")),
        ("key2", Value.regular("value2")),
        ("key3", Value.regular("value3")),
    ]
