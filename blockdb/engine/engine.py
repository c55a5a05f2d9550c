"""
Engine - LSM-tree storage engine implementing the StorageEngine interface.
"""

import asyncio
import logging
import os
from collections.abc import AsyncIterator, Iterator
from itertools import islice

from blockdb.engine.compactor import SSTableCompactor
from blockdb.engine.initializer import WAL_DIR, EngineInitializer
from blockdb.engine.mem_to_sstable import MemToSSTableConverter
from blockdb.engine.merge_iterator import live_entries
from blockdb.engine.write_batch import EngineWriteBatch
from blockdb.exceptions import EngineError, KeyNotFoundError
from blockdb.interfaces.storage_engine import StorageEngine
from blockdb.models.memtable import MemTable
from blockdb.models.sorted_map import SortedMap
from blockdb.models.sstable import SSTable
from blockdb.models.value import Value
from blockdb.models.wal import MAX_FSYNC_INTERVAL_MS, WAL
from blockdb.models.wal_record import WALRecord
from blockdb.options import IterateOptions

logger = logging.getLogger(__name__)


def _take(entries: Iterator[tuple[str, Value]], count: int) -> list[tuple[str, Value]]:
    return list(islice(entries, count))


class Engine(StorageEngine):
    """
    LSM-Tree based key-value storage engine.

    Provides:
    - get / try_get: point lookups
    - put / delete: single writes
    - batch(): atomic multi-key writes
    - iterate(options): ordered scans, forward or reverse, bounded and limited
    - compact(): merge all SSTables and drop tombstones

    Architecture:
    - Every write becomes one WAL record, then lands in the MemTable
    - When MemTable exceeds threshold, it's flushed to SSTable in the background
    - Reads check MemTable first, then immutable MemTables, then SSTables
      (newest to oldest)

    With persist=False nothing touches the disk: there is no WAL and the
    MemTable never rotates. Use it for ephemeral stores and tests.
    """

    # Default threshold for MemTable rotation (128MB)
    DEFAULT_MEMTABLE_THRESHOLD = 128 * 1024 * 1024

    MAX_MEMTABLE_THRESHOLD = 1024 * 1024 * 1024

    # Default FSYNC Interval for WAL used by create()
    DEFAULT_FSYNC_INTERVAL_MS = 1000

    # Entries fetched per executor round-trip while scanning SSTables
    SCAN_PAGE_SIZE = 256

    # Attempts per flush before the worker gives up
    FLUSH_RETRIES = 3

    def __init__(
        self,
        storage_dir: str | None = None,
        persist: bool = True,
        memtable_threshold: int = DEFAULT_MEMTABLE_THRESHOLD,
        fsync_interval_ms: int = 0,
    ) -> None:
        """
        Initialize the storage engine.

        Args:
            storage_dir: Directory for persistent storage, created if absent.
                         Required when persist is True.
            persist: Keep data on disk across restarts.
            memtable_threshold: Size threshold for MemTable rotation in bytes.
            fsync_interval_ms: Milliseconds between WAL fsyncs (default: 0 = always fsync).
                              Maximum: 10000 (10 seconds).
        """
        if memtable_threshold <= 0:
            raise ValueError(f"memtable_threshold must be positive, got {memtable_threshold}")
        if memtable_threshold > self.MAX_MEMTABLE_THRESHOLD:
            raise ValueError(
                f"memtable_threshold too large: {memtable_threshold} bytes. "
                f"Maximum 1GB to avoid OOM."
            )

        if fsync_interval_ms < 0:
            raise ValueError(f"fsync_interval_ms must be >= 0, got {fsync_interval_ms}")
        if fsync_interval_ms > MAX_FSYNC_INTERVAL_MS:
            raise ValueError(
                f"fsync_interval_ms cannot exceed {MAX_FSYNC_INTERVAL_MS}ms (10 seconds), "
                f"got {fsync_interval_ms}"
            )

        self._persist = persist
        self._storage_dir: str | None = None
        if persist:
            self._storage_dir = self._check_storage_dir(storage_dir)

        self._memtable_threshold = memtable_threshold
        self._fsync_interval_ms = fsync_interval_ms

        self._memtable = MemTable(SortedMap())
        self._wal: WAL | None = None

        # Immutable MemTables pending flush (newest first)
        self._immutable_memtables: list[tuple[MemTable, WAL]] = []

        # On-disk SSTables (newest first)
        self._sstables: list[SSTable] = []

        # Replaced by compaction; files are gone but handles stay open for in-flight scans
        self._retired_sstables: list[SSTable] = []

        self._ss_id_seq: int = 0
        self._wal_id_seq: int = 0

        self._write_lock = asyncio.Lock()
        self._sstables_lock = asyncio.Lock()

        # Background flush worker (started in async context)
        self._flush_queue: asyncio.Queue[tuple[MemTable, WAL, str]] = asyncio.Queue()
        self._flush_task: asyncio.Task | None = None
        self._started = False
        self._closed = False

        if persist:
            self._initialize()

    @staticmethod
    def _check_storage_dir(storage_dir: str | None) -> str:
        if not storage_dir or not storage_dir.strip():
            raise ValueError("storage_dir cannot be empty when persist is enabled")

        storage_dir = os.path.abspath(storage_dir)

        if not os.path.exists(storage_dir):
            parent = os.path.dirname(storage_dir)
            if not os.access(parent, os.W_OK):
                raise PermissionError(
                    f"Cannot create storage_dir: {storage_dir}. "
                    f"Parent directory not writable: {parent}"
                )
        elif not os.access(storage_dir, os.W_OK):
            raise PermissionError(f"storage_dir not writable: {storage_dir}")

        return storage_dir

    @classmethod
    async def create(
        cls,
        storage_dir: str | None = None,
        persist: bool = True,
        memtable_threshold: int = DEFAULT_MEMTABLE_THRESHOLD,
        fsync_interval_ms: int = DEFAULT_FSYNC_INTERVAL_MS,
    ) -> "Engine":
        """
        Async factory method to create and initialize engine.

        Returns:
            Initialized Engine instance with background flush worker running.
        """
        engine = cls(storage_dir, persist, memtable_threshold, fsync_interval_ms)
        await engine._ensure_started()
        return engine

    @property
    def persistent(self) -> bool:
        return self._persist

    @property
    def storage_dir(self) -> str | None:
        return self._storage_dir

    def _initialize(self) -> None:
        """Recover on-disk state and open a fresh WAL."""
        os.makedirs(self._storage_dir, exist_ok=True)

        state = EngineInitializer(self._storage_dir).recover()

        self._immutable_memtables = list(reversed(state.memtables_and_wals))
        self._sstables = list(reversed(state.sstables))
        self._ss_id_seq = state.next_ss_id
        self._wal_id_seq = state.next_wal_id

        self._create_new_memtable()

    def _create_new_memtable(self) -> None:
        self._memtable = MemTable(SortedMap())
        if not self._persist:
            return

        wal_id = str(self._wal_id_seq)
        self._wal_id_seq += 1
        wal_path = os.path.join(self._storage_dir, WAL_DIR, f"wal_{wal_id}.wal")

        self._wal = WAL(id=wal_id, file_path=wal_path)
        self._wal.set_fsync_interval(self._fsync_interval_ms)
        self._wal.open()

    async def _ensure_started(self) -> None:
        """Start the flush worker and queue any recovered MemTables, once."""
        if self._started:
            return
        self._started = True

        if not self._persist:
            return

        # Recovered tables were read newest first; flush oldest first
        for memtable, wal in reversed(self._immutable_memtables):
            await self._schedule_flush(memtable, wal)

        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.create_task(self._flush_worker())

    def _check_open(self) -> None:
        if self._closed:
            raise EngineError("Engine is closed")

    async def get(self, key: str) -> str:
        value = await self.try_get(key)
        if value is None:
            raise KeyNotFoundError(key)
        return value

    async def try_get(self, key: str) -> str | None:
        self._check_open()

        # Check active MemTable first (in-memory, fast)
        value = self._memtable.get(key)
        if value is not None:
            return value.data

        # Snapshot both lists under lock for consistency
        async with self._sstables_lock:
            immutable_snapshot = list(self._immutable_memtables)
            sstables_snapshot = list(self._sstables)

        for memtable, _ in immutable_snapshot:
            value = memtable.get(key)
            if value is not None:
                return value.data

        try:
            for sstable in sstables_snapshot:
                value = await sstable.get(key)
                if value is not None:
                    return value.data
        except OSError as e:
            raise EngineError(f"Read failed for key {key!r}: {e}") from e

        return None

    async def put(self, key: str, value: str) -> None:
        await self._apply([(key, Value.regular(value))])

    async def delete(self, key: str) -> None:
        await self._apply([(key, Value.tombstone())])

    def batch(self) -> EngineWriteBatch:
        return EngineWriteBatch(self)

    async def _apply(self, ops: list[tuple[str, Value]]) -> None:
        """
        Durably apply a list of operations as one atomic unit.

        The WAL record is written first. The MemTable updates that follow
        happen without yielding to the event loop, so no scan can observe
        a partially applied batch.
        """
        self._check_open()
        if not ops:
            return
        await self._ensure_started()

        async with self._write_lock:
            if self._persist:
                await self._wal.append(WALRecord(seq=self._wal.seq, ops=list(ops)))

            for key, value in ops:
                # Without SSTables nothing older can hold the key
                if not self._persist and value.is_tombstone():
                    self._memtable.remove(key)
                else:
                    self._memtable.put(key, value)

            await self._maybe_rotate_memtable()

    async def iterate(
        self, options: IterateOptions | None = None
    ) -> AsyncIterator[tuple[str, str | None]]:
        """
        Scan live entries in key order.

        Sources are snapshotted together, so the scan reflects a single point
        in time with respect to batch commits. SSTables are read lazily, a page
        at a time, in the default executor.
        """
        options = options or IterateOptions()
        self._check_open()
        await self._ensure_started()

        if options.limit == 0:
            return

        key_range = options.key_range
        async with self._sstables_lock:
            sources: list[Iterator[tuple[str, Value]]] = []
            # An older table may need one extra live entry per tombstone that
            # a newer table could use to hide one of its entries
            shadowing = 0
            for memtable in [self._memtable] + [m for m, _ in self._immutable_memtables]:
                limit = None if options.limit is None else options.limit + shadowing
                snapshot = memtable.snapshot(key_range, options.reverse, limit)
                shadowing += sum(1 for _, value in snapshot if value.is_tombstone())
                sources.append(iter(snapshot))
            sstables_snapshot = list(self._sstables)

        for sstable in sstables_snapshot:
            sources.append(sstable.iterator(key_range, options.reverse, options.keys_only))

        entries = live_entries(sources, reverse=options.reverse)
        remaining = options.limit
        loop = asyncio.get_running_loop()

        while True:
            page_size = self.SCAN_PAGE_SIZE if remaining is None else min(self.SCAN_PAGE_SIZE, remaining)
            try:
                if sstables_snapshot:
                    page = await loop.run_in_executor(None, _take, entries, page_size)
                else:
                    page = _take(entries, page_size)
            except OSError as e:
                raise EngineError(f"Scan failed: {e}") from e

            for key, value in page:
                yield key, None if options.keys_only else value.data

            if remaining is not None:
                remaining -= len(page)
                if remaining <= 0:
                    return
            if len(page) < page_size:
                return

    async def compact(self) -> None:
        """
        Merge every SSTable into one, dropping tombstones and shadowed values.

        Writes are held off while compacting so that no flush can slip in
        between the input snapshot and the swap.
        """
        self._check_open()
        if not self._persist:
            return
        await self._ensure_started()

        async with self._write_lock:
            await self._drain_flushes()
            if self._immutable_memtables:
                raise EngineError("Cannot compact while memtables are awaiting flush")

            async with self._sstables_lock:
                inputs = list(self._sstables)
            if not inputs:
                return

            ss_id = str(self._ss_id_seq)
            self._ss_id_seq += 1

            compactor = SSTableCompactor(inputs, self._storage_dir)
            loop = asyncio.get_running_loop()
            try:
                compacted = await loop.run_in_executor(None, compactor.compact, ss_id)
            except OSError as e:
                raise EngineError(f"Compaction failed: {e}") from e

            async with self._sstables_lock:
                if len(compacted) == 0:
                    compacted.close()
                    os.remove(compacted.file_path)
                    self._sstables = []
                else:
                    self._sstables = [compacted]
                self._retired_sstables.extend(inputs)

            # Inputs are unlinked now; open handles keep in-flight scans readable
            for sstable in inputs:
                os.remove(sstable.file_path)

            logger.info(
                "Compacted %d SSTable(s) into %d entries", len(inputs), len(compacted)
            )

    async def _maybe_rotate_memtable(self) -> None:
        """Rotate MemTable if size exceeds threshold."""
        if self._persist and self._memtable.size_bytes() >= self._memtable_threshold:
            await self._rotate_memtable()

    async def _rotate_memtable(self) -> None:
        """Mark current MemTable as immutable, queue it for flush and start a new one."""
        memtable, wal = self._memtable, self._wal
        memtable.mark_immutable()
        wal.mark_read_only()

        self._immutable_memtables.insert(0, (memtable, wal))
        self._create_new_memtable()

        await self._schedule_flush(memtable, wal)

    async def _schedule_flush(self, memtable: MemTable, wal: WAL) -> None:
        # Allocate SSTable ID in event loop
        ss_id = str(self._ss_id_seq)
        self._ss_id_seq += 1
        await self._flush_queue.put((memtable, wal, ss_id))

    async def _flush_worker(self) -> None:
        """Background worker that flushes queued MemTables in the thread pool."""
        loop = asyncio.get_running_loop()
        while True:
            try:
                memtable, wal, ss_id = await self._flush_queue.get()
            except asyncio.CancelledError:
                break

            for attempt in range(self.FLUSH_RETRIES):
                try:
                    sstable = await loop.run_in_executor(
                        None, self._flush_memtable_sync, memtable, wal, ss_id
                    )
                    break
                except OSError as e:
                    if attempt == self.FLUSH_RETRIES - 1:
                        logger.critical(
                            "Flush failed after %d attempts for SSTable %s: %s",
                            self.FLUSH_RETRIES,
                            ss_id,
                            e,
                        )
                        self._flush_queue.task_done()
                        raise EngineError(
                            f"Flush worker failed after {self.FLUSH_RETRIES} retries "
                            f"for SSTable {ss_id}. Shutting down."
                        ) from e

                    wait_time = 2**attempt
                    logger.warning(
                        "Flush failed (attempt %d/%d): %s. Retrying in %ss...",
                        attempt + 1,
                        self.FLUSH_RETRIES,
                        e,
                        wait_time,
                    )
                    await asyncio.sleep(wait_time)

            await self._register_flushed(memtable, wal, sstable)
            self._flush_queue.task_done()

    async def _drain_flushes(self) -> None:
        """Wait until the flush queue is empty or the worker has died."""
        if self._flush_task is None or self._flush_task.done():
            return

        join = asyncio.ensure_future(self._flush_queue.join())
        await asyncio.wait({join, self._flush_task}, return_when=asyncio.FIRST_COMPLETED)
        if not join.done():
            join.cancel()

    async def _register_flushed(self, memtable: MemTable, wal: WAL, sstable: SSTable) -> None:
        """Swap a flushed MemTable for its SSTable in the read path."""
        async with self._sstables_lock:
            self._sstables.insert(0, sstable)
            try:
                self._immutable_memtables.remove((memtable, wal))
            except ValueError:
                logger.warning("MemTable already flushed: %s", sstable.id)

    def _flush_memtable_sync(self, memtable: MemTable, wal: WAL, ss_id: str) -> SSTable:
        """
        Flush a MemTable to SSTable (runs in thread pool).

        Returns the SSTable without modifying shared state.
        """
        converter = MemToSSTableConverter(memtable=memtable, wal=wal, storage_dir=self._storage_dir)
        return converter.initiate(ss_id)

    async def close(self) -> None:
        """Flush pending data and release file handles. Safe to call twice."""
        if self._closed:
            return
        if not self._persist:
            self._closed = True
            return

        await self._ensure_started()

        if self._memtable.size() > 0:
            await self._rotate_memtable()

        await self._drain_flushes()

        flush_error: EngineError | None = None
        if self._flush_task is not None:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            except EngineError as e:
                flush_error = e

        # Anything the worker could not flush stays in its WAL for the next open
        if self._immutable_memtables:
            logger.critical(
                "%d memtable(s) were not flushed on shutdown; they will be replayed from WAL",
                len(self._immutable_memtables),
            )
            for _, wal in self._immutable_memtables:
                wal.close()

        for sstable in self._sstables + self._retired_sstables:
            sstable.close()

        # The active WAL is empty at this point
        self._wal.destroy()
        self._closed = True

        if flush_error is not None:
            raise flush_error

    async def __aenter__(self) -> "Engine":
        await self._ensure_started()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
