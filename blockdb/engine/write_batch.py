"""
EngineWriteBatch - atomic batch builder for the LSM engine.
"""

from typing import TYPE_CHECKING

from blockdb.exceptions import EngineError
from blockdb.interfaces.storage_engine import WriteBatch
from blockdb.models.value import Value

if TYPE_CHECKING:
    from blockdb.engine.engine import Engine


class EngineWriteBatch(WriteBatch):
    """
    Collects operations in memory and commits them as one WAL record.

    Nothing touches the engine until write() is awaited.
    """

    def __init__(self, engine: "Engine") -> None:
        self._engine = engine
        self._ops: list[tuple[str, Value]] = []
        self._written = False

    def put(self, key: str, value: str) -> "EngineWriteBatch":
        self._ops.append((key, Value.regular(value)))
        return self

    def delete(self, key: str) -> "EngineWriteBatch":
        self._ops.append((key, Value.tombstone()))
        return self

    async def write(self) -> None:
        if self._written:
            raise EngineError("Write batch has already been written")
        self._written = True
        await self._engine._apply(self._ops)

    def __len__(self) -> int:
        return len(self._ops)
