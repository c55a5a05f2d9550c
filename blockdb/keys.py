"""
Height <-> key codec.

The engine orders keys byte-wise, so heights are stored as fixed-width,
zero-padded decimal strings. For any valid heights a < b,
encode_height(a) < encode_height(b).
"""

from blockdb.exceptions import HeightOverflowError

KEY_WIDTH = 13

# Exclusive upper bound: the largest height that fits in KEY_WIDTH digits is MAX_HEIGHT - 1
MAX_HEIGHT = 10**KEY_WIDTH


def encode_height(height: int) -> str:
    """
    Encode a block height as a sortable key.

    Args:
        height: Block height, 0 <= height < MAX_HEIGHT.

    Returns:
        KEY_WIDTH-character zero-padded decimal string.

    Raises:
        TypeError: If height is not an int (bool included).
        HeightOverflowError: If height is outside the encodable range.
    """
    if isinstance(height, bool) or not isinstance(height, int):
        raise TypeError(f"height must be an int, got {type(height).__name__}")
    if height < 0 or height >= MAX_HEIGHT:
        raise HeightOverflowError(height)
    return f"{height:0{KEY_WIDTH}d}"


def decode_key(key: str) -> int:
    """
    Decode a key produced by encode_height back into a height.

    Raises:
        ValueError: If key is not exactly KEY_WIDTH ASCII digits.
    """
    if len(key) != KEY_WIDTH or not key.isascii() or not key.isdigit():
        raise ValueError(f"Not a height key: {key!r}")
    return int(key)
