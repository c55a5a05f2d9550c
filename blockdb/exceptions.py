"""
Exception hierarchy for the block store and its storage engine.
"""


class BlockDBError(Exception):
    """Base class for every error raised by blockdb."""


class EngineError(BlockDBError):
    """
    Raised for failures inside the storage engine (I/O, corruption, misuse).

    BlockStore never translates these; they reach the caller unchanged.
    """


class WALCorruptionError(EngineError):
    """
    Raised when a WAL record fails its checksum.

    This is a fail-fast error indicating data integrity issues.
    """

    def __init__(self, expected: int, actual: int, entry_offset: int):
        """
        Initialize corruption error.

        Args:
            expected: Expected CRC32 checksum.
            actual: Actual CRC32 checksum computed.
            entry_offset: File offset where corruption detected.
        """
        self.expected = expected
        self.actual = actual
        self.entry_offset = entry_offset
        super().__init__(
            f"WAL corruption detected at offset {entry_offset}: "
            f"expected CRC32 0x{expected:08x}, got 0x{actual:08x}"
        )


class KeyNotFoundError(BlockDBError, LookupError):
    """Raised by a strict engine lookup when the key is absent."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Key not found: {key!r}")


class BlockNotFoundError(KeyNotFoundError):
    """Raised by BlockStore.get_block when no block is stored at a height."""

    def __init__(self, height: int, key: str):
        self.height = height
        self.key = key
        BlockDBError.__init__(self, f"No block stored at height {height}")


class InvalidBlockError(BlockDBError, ValueError):
    """Raised when a block is missing the fields required to store it."""

    def __init__(self, reason: str, block: object = None):
        self.block = block
        super().__init__(f"Invalid block: {reason}")


class HeightOverflowError(BlockDBError, OverflowError):
    """Raised when a height falls outside the encodable key range."""

    def __init__(self, height: int):
        self.height = height
        super().__init__(f"Height out of range: {height}")
