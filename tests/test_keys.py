"""
Tests for the height key codec.
"""

import pytest

from blockdb.exceptions import HeightOverflowError
from blockdb.keys import KEY_WIDTH, MAX_HEIGHT, decode_key, encode_height


class TestEncodeHeight:
    def test_zero_padded(self):
        assert encode_height(0) == "0000000000000"
        assert encode_height(42) == "0000000000042"
        assert len(encode_height(123456)) == KEY_WIDTH

    def test_largest_height(self):
        assert encode_height(MAX_HEIGHT - 1) == "9" * KEY_WIDTH

    def test_order_preserving(self):
        """Byte order of keys must match numeric order of heights."""
        heights = [0, 1, 9, 10, 99, 100, 1_000_000, 999_999_999, MAX_HEIGHT - 1]
        keys = [encode_height(h) for h in heights]
        assert keys == sorted(keys)

    @pytest.mark.parametrize("height", [-1, MAX_HEIGHT, MAX_HEIGHT * 10])
    def test_out_of_range(self, height):
        with pytest.raises(HeightOverflowError) as exc_info:
            encode_height(height)
        assert exc_info.value.height == height

    @pytest.mark.parametrize("height", ["5", 5.0, None, True])
    def test_non_integer_rejected(self, height):
        with pytest.raises(TypeError):
            encode_height(height)


class TestDecodeKey:
    def test_inverse_of_encode(self):
        for height in (0, 7, 1234, MAX_HEIGHT - 1):
            assert decode_key(encode_height(height)) == height

    @pytest.mark.parametrize("key", ["", "123", "00000000000001", "000000000000a", "-000000000001"])
    def test_malformed_key(self, key):
        with pytest.raises(ValueError):
            decode_key(key)
