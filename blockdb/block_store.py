"""
BlockStore - height-indexed persistent store of block records.

Blocks are JSON objects stored under zero-padded height keys, so the
engine's lexicographic key order is numeric height order. Every scan-based
operation finishes its scan before returning or committing anything.
"""

import json
import logging
import time
from collections.abc import AsyncIterator, Iterable, Mapping
from typing import Any

from blockdb.config import BlockStoreConfig
from blockdb.exceptions import (
    BlockNotFoundError,
    EngineError,
    InvalidBlockError,
    KeyNotFoundError,
)
from blockdb.interfaces.storage_engine import StorageEngine
from blockdb.keys import encode_height
from blockdb.options import IterateOptions

logger = logging.getLogger(__name__)

Block = dict[str, Any]

# Characters of each hash shown by debug_dump
_DUMP_HASH_PREFIX = 5


class BlockStore:
    """
    Persistent database of blocks indexed by height.

    The store owns its engine for its whole lifetime; closing the store
    closes the engine.

    Note the two write paths key blocks differently: update_block uses the
    height argument, update_multiple_blocks uses each block's own "height"
    field. Nothing checks that the two agree.
    """

    def __init__(self, engine: StorageEngine) -> None:
        """
        Args:
            engine: Storage engine handle, owned exclusively by this store.
        """
        self._engine = engine

    @classmethod
    async def open(cls, config: BlockStoreConfig | None = None) -> "BlockStore":
        """
        Open (creating if absent) a store on the bundled Engine.

        Args:
            config: Location and engine settings. Defaults to BlockStoreConfig().
        """
        config = config or BlockStoreConfig()
        engine = await config.create_engine()
        logger.debug("Opened block store at %s (persist=%s)", config.location, config.persist)
        return cls(engine)

    @property
    def engine(self) -> StorageEngine:
        return self._engine

    async def close(self) -> None:
        await self._engine.close()

    async def __aenter__(self) -> "BlockStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def all_blocks(self) -> list[Block]:
        """
        Return every block, ordered by height, low to high.

        Materializes the whole store; use iter_blocks() to stream instead.
        """
        return [block async for block in self.iter_blocks()]

    async def iter_blocks(self, reverse: bool = False) -> AsyncIterator[Block]:
        """Stream blocks in height order (descending if reverse)."""
        async for key, value in self._engine.iterate(IterateOptions(reverse=reverse)):
            yield _decode(key, value)

    async def find_top_block(self) -> Block | None:
        """Return the block at the highest stored height, or None if the store is empty."""
        top = [
            (key, value)
            async for key, value in self._engine.iterate(IterateOptions(reverse=True, limit=1))
        ]
        if not top:
            return None
        return _decode(*top[0])

    async def update_block(self, height: int, block: Block) -> None:
        """
        Insert or update a block at height.

        The key comes from the height argument, not from block["height"].

        Raises:
            InvalidBlockError: If block has no indep_hash. Nothing is written.
            HeightOverflowError: If height is outside the key range.
        """
        key = encode_height(height)
        _validate(block)
        value = _encode(block)

        if block.get("height") != height:
            logger.debug(
                "Block %s reports height %r but is stored at %d",
                block["indep_hash"],
                block.get("height"),
                height,
            )

        await self._engine.put(key, value)

    async def update_multiple_blocks(
        self, blocks: Iterable[Block | None] | Mapping[Any, Block | None]
    ) -> None:
        """
        Insert or update many blocks in one atomic batch.

        Accepts blocks in any order, or a sparse mapping of index to block,
        since each block is keyed by its own reported height rather than by
        its position. None entries are skipped.

        Raises:
            InvalidBlockError: If any block lacks indep_hash or height.
                               Nothing from the batch is written.
            HeightOverflowError: If any block's height is outside the key range.
        """
        if isinstance(blocks, Mapping):
            blocks = blocks.values()

        entries: list[tuple[str, str]] = []
        for block in blocks:
            if block is None:
                continue
            _validate(block)
            entries.append((_block_key(block), _encode(block)))

        if not entries:
            return

        batch = self._engine.batch()
        for key, value in entries:
            batch.put(key, value)
        await batch.write()

    async def get_block(self, height: int) -> Block:
        """
        Get the block at height.

        Raises:
            BlockNotFoundError: If no block is stored at height.
        """
        key = encode_height(height)
        try:
            value = await self._engine.get(key)
        except KeyNotFoundError:
            raise BlockNotFoundError(height, key) from None
        return _decode(key, value)

    async def try_get_block(self, height: int) -> Block | None:
        """
        Get the block at height, or None if there is none.

        Only engine failures raise.
        """
        key = encode_height(height)
        value = await self._engine.try_get(key)
        if value is None:
            return None
        return _decode(key, value)

    async def count(self) -> int:
        """
        Count stored blocks.

        Walks every key; avoid calling this frequently on a large store.
        """
        total = 0
        async for _ in self._engine.iterate(IterateOptions(keys_only=True)):
            total += 1
        return total

    async def trim_past_height(self, height: int) -> int:
        """
        Remove every block below height in one atomic batch.

        Blocks at height and above are untouched.

        Returns:
            The number of blocks removed.
        """
        options = IterateOptions(lt=encode_height(height), keys_only=True)
        return await self._delete_scanned(options)

    async def clear_db(self) -> int:
        """
        Remove every block in one atomic batch.

        Returns:
            The number of blocks removed.
        """
        return await self._delete_scanned(IterateOptions(keys_only=True))

    async def _delete_scanned(self, options: IterateOptions) -> int:
        batch = self._engine.batch()
        async for key, _ in self._engine.iterate(options):
            batch.delete(key)

        removed = len(batch)
        if removed:
            await batch.write()
        return removed

    async def debug_dump(self, now: float | None = None) -> int:
        """
        Log one line per block, highest first: age, hash and previous hash.

        Args:
            now: Reference time in epoch seconds (defaults to time.time()).

        Returns:
            The number of blocks dumped.
        """
        now = time.time() if now is None else now

        dumped = 0
        async for key, value in self._engine.iterate(IterateOptions(reverse=True)):
            block = _decode(key, value)
            dumped += 1
            timestamp = block.get("timestamp")
            # Blocks without a numeric timestamp show as zero minutes old
            if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
                timestamp = now
            minutes_ago = (now - timestamp) / 60
            logger.info(
                "%d - %s - %.2f Minutes Ago, Hash:%s, Prev: %s",
                dumped,
                key,
                minutes_ago,
                str(block.get("indep_hash", ""))[:_DUMP_HASH_PREFIX],
                str(block.get("previous_block") or "")[:_DUMP_HASH_PREFIX],
            )
        return dumped


def _validate(block: Block) -> None:
    if not isinstance(block, Mapping):
        raise InvalidBlockError(f"expected a mapping, got {type(block).__name__}", block)

    indep_hash = block.get("indep_hash")
    if not isinstance(indep_hash, str) or not indep_hash:
        raise InvalidBlockError("missing 'indep_hash'", block)


def _block_key(block: Block) -> str:
    """Key for a block by its own reported height."""
    height = block.get("height")
    if isinstance(height, bool) or not isinstance(height, int):
        raise InvalidBlockError(f"'height' must be an int, got {height!r}", block)
    return encode_height(height)


def _encode(block: Block) -> str:
    try:
        return json.dumps(block, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise InvalidBlockError(f"not JSON serializable: {e}", block) from e


def _decode(key: str, value: str) -> Block:
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise EngineError(f"Corrupt block record at key {key}: {e}") from e
