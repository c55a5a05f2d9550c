"""
Concurrency and stress tests for the engine and block store.
"""

import asyncio
import random
import tempfile

from blockdb.block_store import BlockStore
from blockdb.engine.engine import Engine


class TestHighConcurrency:
    """High concurrency stress tests."""

    async def test_many_concurrent_writers(self):
        """Test many concurrent write operations."""
        with tempfile.TemporaryDirectory() as tmpdir:
            async with Engine(storage_dir=tmpdir, fsync_interval_ms=1000) as engine:

                async def writer(writer_id: int, count: int) -> None:
                    for i in range(count):
                        await engine.put(f"writer{writer_id}_key{i}", f"value{i}")

                await asyncio.gather(*(writer(i, 100) for i in range(10)))

                for writer_id in range(10):
                    for i in range(100):
                        assert await engine.get(f"writer{writer_id}_key{i}") == f"value{i}"

    async def test_many_concurrent_readers(self):
        """Test many concurrent read operations."""
        with tempfile.TemporaryDirectory() as tmpdir:
            async with Engine(storage_dir=tmpdir, memtable_threshold=4096) as engine:
                batch = engine.batch()
                for i in range(1000):
                    batch.put(f"key{i:04d}", f"value{i}")
                await batch.write()

                async def reader(count: int) -> bool:
                    for _ in range(count):
                        i = random.randint(0, 999)
                        if await engine.get(f"key{i:04d}") != f"value{i}":
                            return False
                    return True

                results = await asyncio.gather(*(reader(100) for _ in range(20)))
                assert all(results)

    async def test_mixed_workload(self):
        """Test mixed read/write/delete workload."""
        with tempfile.TemporaryDirectory() as tmpdir:
            async with Engine(
                storage_dir=tmpdir, memtable_threshold=2048, fsync_interval_ms=1000
            ) as engine:
                for i in range(500):
                    await engine.put(f"key{i:04d}", f"initial{i}")

                async def mixed_worker(worker_id: int) -> None:
                    for i in range(100):
                        op = random.choice(["read", "write", "delete"])
                        key = f"key{random.randint(0, 999):04d}"

                        if op == "read":
                            await engine.try_get(key)
                        elif op == "write":
                            await engine.put(key, f"worker{worker_id}_{i}")
                        else:
                            await engine.delete(key)

                await asyncio.gather(*(mixed_worker(i) for i in range(10)))

    async def test_rapid_rotation(self):
        """Test rapid memtable rotation under load."""
        with tempfile.TemporaryDirectory() as tmpdir:
            async with Engine(storage_dir=tmpdir, memtable_threshold=50) as engine:

                async def writer(writer_id: int) -> None:
                    for i in range(20):
                        await engine.put(f"w{writer_id}_{i:02d}", "x" * 20)

                await asyncio.gather(*(writer(i) for i in range(5)))

                keys = [key async for key, _ in engine.iterate()]
                assert len(keys) == 100
                assert keys == sorted(keys)


class TestBatchAtomicity:
    """Scans observe all or none of a committed batch."""

    async def _check_scans_see_whole_batches(self, engine: Engine) -> None:
        store = BlockStore(engine)
        batch_size = 10
        rounds = 30
        observed: list[int] = []

        async def writer() -> None:
            for round_ in range(rounds):
                blocks = [
                    {"height": round_ * batch_size + i, "indep_hash": f"h{round_}-{i}"}
                    for i in range(batch_size)
                ]
                await store.update_multiple_blocks(blocks)
                await asyncio.sleep(0)

        async def reader() -> None:
            for _ in range(rounds * 2):
                observed.append(await store.count())
                await asyncio.sleep(0)

        await asyncio.gather(writer(), reader(), reader())

        assert all(count % batch_size == 0 for count in observed)
        assert await store.count() == rounds * batch_size

    async def test_in_memory_scans(self, memory_engine):
        await self._check_scans_see_whole_batches(memory_engine)

    async def test_persistent_scans_with_rotation(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            async with Engine(storage_dir=tmpdir, memtable_threshold=1024) as engine:
                await self._check_scans_see_whole_batches(engine)

    async def test_trim_during_writes(self):
        """A trim commits only the keys its own scan saw."""
        with tempfile.TemporaryDirectory() as tmpdir:
            async with Engine(storage_dir=tmpdir, memtable_threshold=2048) as engine:
                store = BlockStore(engine)
                await store.update_multiple_blocks(
                    [{"height": h, "indep_hash": f"h{h}"} for h in range(50)]
                )

                async def late_writer() -> None:
                    for h in range(50, 60):
                        await store.update_block(h, {"height": h, "indep_hash": f"h{h}"})

                removed, _ = await asyncio.gather(store.trim_past_height(100), late_writer())

                remaining = [b["height"] for b in await store.all_blocks()]
                assert removed + len(remaining) == 60
                assert remaining == list(range(60 - len(remaining), 60))


class TestDataIntegrity:
    """Data integrity tests under concurrent access."""

    async def test_no_lost_writes(self):
        """Verify no writes are lost under concurrency."""
        with tempfile.TemporaryDirectory() as tmpdir:
            async with Engine(storage_dir=tmpdir, memtable_threshold=1024) as engine:
                store = BlockStore(engine)

                async def writer(offset: int) -> None:
                    for h in range(offset, 200, 4):
                        await store.update_block(h, {"height": h, "indep_hash": f"h{h}"})

                await asyncio.gather(*(writer(i) for i in range(4)))

                assert await store.count() == 200
                assert (await store.find_top_block())["height"] == 199

    async def test_read_your_writes(self, block_store):
        for h in range(50):
            block = {"height": h, "indep_hash": f"h{h}"}
            await block_store.update_block(h, block)
            assert await block_store.get_block(h) == block


class TestPersistenceUnderLoad:
    """Test persistence behavior under load."""

    async def test_persistence_after_heavy_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            async with Engine(
                storage_dir=tmpdir, memtable_threshold=4096, fsync_interval_ms=1000
            ) as engine:
                store = BlockStore(engine)
                for start in range(0, 500, 50):
                    await store.update_multiple_blocks(
                        [{"height": h, "indep_hash": f"h{h}"} for h in range(start, start + 50)]
                    )

            async with Engine(storage_dir=tmpdir) as engine:
                store = BlockStore(engine)
                assert await store.count() == 500
                assert (await store.get_block(321))["indep_hash"] == "h321"

    async def test_multiple_restart_cycles(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            for cycle in range(5):
                async with Engine(storage_dir=tmpdir) as engine:
                    store = BlockStore(engine)
                    assert await store.count() == cycle * 10
                    await store.update_multiple_blocks(
                        [
                            {"height": cycle * 10 + i, "indep_hash": f"c{cycle}-{i}"}
                            for i in range(10)
                        ]
                    )
