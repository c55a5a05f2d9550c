"""
Tests for BlockStoreConfig.
"""

import os

import pytest

from blockdb.config import DEFAULT_LOCATION, BlockStoreConfig
from blockdb.engine.engine import Engine


class TestBlockStoreConfig:
    """Tests for defaults and environment parsing."""

    def test_defaults(self):
        config = BlockStoreConfig()

        assert config.location == DEFAULT_LOCATION
        assert config.persist is True
        assert config.memtable_threshold == Engine.DEFAULT_MEMTABLE_THRESHOLD
        assert config.fsync_interval_ms == Engine.DEFAULT_FSYNC_INTERVAL_MS
        assert config.log_level == "INFO"

    def test_empty_environment_gives_defaults(self):
        assert BlockStoreConfig.from_env({}) == BlockStoreConfig()

    def test_from_env(self):
        config = BlockStoreConfig.from_env(
            {
                "BLOCKDB_LOCATION": "/var/lib/blocks",
                "BLOCKDB_PERSIST": "1",
                "BLOCKDB_MEMTABLE_THRESHOLD": "4096",
                "BLOCKDB_FSYNC_INTERVAL_MS": "0",
                "LOG_LEVEL": "debug",
            }
        )

        assert config.location == "/var/lib/blocks"
        assert config.persist is True
        assert config.memtable_threshold == 4096
        assert config.fsync_interval_ms == 0
        assert config.log_level == "DEBUG"

    @pytest.mark.parametrize("raw", ["0", "false", "No", " OFF "])
    def test_persist_disabled(self, raw):
        assert BlockStoreConfig.from_env({"BLOCKDB_PERSIST": raw}).persist is False

    def test_blank_numeric_uses_default(self):
        config = BlockStoreConfig.from_env({"BLOCKDB_MEMTABLE_THRESHOLD": "  "})
        assert config.memtable_threshold == Engine.DEFAULT_MEMTABLE_THRESHOLD

    def test_bad_numeric_names_variable(self):
        with pytest.raises(ValueError, match="BLOCKDB_FSYNC_INTERVAL_MS"):
            BlockStoreConfig.from_env({"BLOCKDB_FSYNC_INTERVAL_MS": "soon"})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("BLOCKDB_LOCATION", "from-env")
        assert BlockStoreConfig.from_env().location == "from-env"


class TestCreateEngine:
    """Tests for building engines from a config."""

    async def test_persistent_engine(self, temp_dir):
        location = os.path.join(temp_dir, "db")
        engine = await BlockStoreConfig(location=location).create_engine()
        try:
            assert engine.persistent
            assert engine.storage_dir == os.path.abspath(location)
        finally:
            await engine.close()

    async def test_in_memory_engine(self, temp_dir):
        location = os.path.join(temp_dir, "never-created")
        engine = await BlockStoreConfig(location=location, persist=False).create_engine()
        try:
            assert not engine.persistent
            assert not os.path.exists(location)
        finally:
            await engine.close()

    async def test_engine_validation_applies(self, temp_dir):
        with pytest.raises(ValueError):
            await BlockStoreConfig(location=temp_dir, memtable_threshold=0).create_engine()
