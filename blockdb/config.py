"""
BlockStoreConfig - where and how a block store is opened.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from blockdb.engine.engine import Engine

DEFAULT_LOCATION = ".db.ar-block-db"

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class BlockStoreConfig:
    """
    Settings for opening a BlockStore on the bundled Engine.

    Attributes:
        location: Storage directory, created if absent.
        persist: Keep data across restarts. False gives an in-memory store.
        memtable_threshold: MemTable rotation threshold in bytes.
        fsync_interval_ms: Milliseconds between WAL fsyncs (0 = every write).
        log_level: Level name used by the diagnostic entry point.
    """

    location: str = DEFAULT_LOCATION
    persist: bool = True
    memtable_threshold: int = Engine.DEFAULT_MEMTABLE_THRESHOLD
    fsync_interval_ms: int = Engine.DEFAULT_FSYNC_INTERVAL_MS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "BlockStoreConfig":
        """
        Build a config from environment variables, falling back to defaults.

        Reads BLOCKDB_LOCATION, BLOCKDB_PERSIST, BLOCKDB_MEMTABLE_THRESHOLD,
        BLOCKDB_FSYNC_INTERVAL_MS and LOG_LEVEL.

        Raises:
            ValueError: If a numeric variable is not an integer.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        return cls(
            location=env.get("BLOCKDB_LOCATION", defaults.location),
            persist=env.get("BLOCKDB_PERSIST", "1").strip().lower() not in _FALSE_VALUES,
            memtable_threshold=_int_from_env(
                env, "BLOCKDB_MEMTABLE_THRESHOLD", defaults.memtable_threshold
            ),
            fsync_interval_ms=_int_from_env(
                env, "BLOCKDB_FSYNC_INTERVAL_MS", defaults.fsync_interval_ms
            ),
            log_level=env.get("LOG_LEVEL", defaults.log_level).upper(),
        )

    async def create_engine(self) -> Engine:
        """Create and start the Engine described by this config."""
        return await Engine.create(
            storage_dir=self.location,
            persist=self.persist,
            memtable_threshold=self.memtable_threshold,
            fsync_interval_ms=self.fsync_interval_ms,
        )


def _int_from_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
