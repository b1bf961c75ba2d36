"""
Unit tests for the fixed-point primitives.
"""

import pytest

from convpipe.fixed_point import (
    fixed_to_float,
    float_to_fixed,
    mac_shift,
    mul_shift,
    pack_word,
    quantize,
    relu,
    to_signed,
    to_unsigned,
    unpack_word,
)

SAMPLES_8BIT = list(range(-128, 128))


class TestWrap:
    """Two's complement wrapping."""

    def test_to_signed(self):
        assert to_signed(0x7F, 8) == 127
        assert to_signed(0x80, 8) == -128
        assert to_signed(0xFF, 8) == -1
        assert to_signed(256 + 5, 8) == 5

    def test_to_unsigned(self):
        assert to_unsigned(-1, 8) == 0xFF
        assert to_unsigned(-128, 8) == 0x80
        assert to_unsigned(3, 8) == 3


class TestMultiply:
    """Q-format multiply and multiply-accumulate."""

    def test_mul_shift_one(self):
        """1.0 x 1.0 = 1.0 in Q8.8."""
        assert mul_shift(256, 256, 8, 16) == 256

    def test_mul_shift_negative_truncates_down(self):
        """Arithmetic shift truncates toward negative infinity."""
        # -1 * 1 = -1, -1 >> 2 = -1
        assert mul_shift(-1, 1, 2, 8) == -1

    def test_mac_shift_sums_before_shift(self):
        """The sum is shifted once, not every product."""
        # Nine products of 1: 9 >> 2 = 2, per-product shifting would give 0
        assert mac_shift([1] * 9, [1] * 9, 2, 8) == 2
        assert mac_shift([-1] * 9, [-1] * 9, 2, 8) == 2

    def test_mac_shift_wraps(self):
        """Overflow wraps to N bits."""
        assert mac_shift([127, 127], [127, 127], 1, 8) == to_signed((2 * 127 * 127) >> 1, 8)

    def test_mac_shift_length_mismatch(self):
        with pytest.raises(ValueError):
            mac_shift([1, 2], [1], 1, 8)


class TestQuantize:
    """Truncating quantizer."""

    def test_clears_low_bits(self):
        # Q = 4 clears the bottom 3 bits
        assert quantize(0x7F, 8, 4) == 0x78
        assert quantize(-1, 8, 4) == -8

    def test_q1_is_identity(self):
        for x in SAMPLES_8BIT:
            assert quantize(x, 8, 1) == x

    def test_idempotent(self):
        """quantize(quantize(x)) == quantize(x)."""
        for q in range(1, 8):
            for x in SAMPLES_8BIT:
                once = quantize(x, 8, q)
                assert quantize(once, 8, q) == once

    def test_never_rounds_up(self):
        for x in SAMPLES_8BIT:
            assert quantize(x, 8, 4) <= x


class TestRelu:
    """Rectified linear unit."""

    def test_values(self):
        assert relu(-5) == 0
        assert relu(0) == 0
        assert relu(7) == 7

    def test_idempotent_and_monotonic(self):
        for x in SAMPLES_8BIT:
            assert relu(relu(x)) == relu(x)
        for x, y in zip(SAMPLES_8BIT, SAMPLES_8BIT[1:]):
            assert relu(y) >= relu(x)


class TestConversion:
    """Float conversion and word packing."""

    def test_float_to_fixed(self):
        assert float_to_fixed(1.0, 16, 8) == 256
        assert float_to_fixed(-0.5, 16, 8) == -128
        # Truncates toward negative infinity
        assert float_to_fixed(-0.001, 16, 8) == -1

    def test_float_to_fixed_saturates(self):
        assert float_to_fixed(1000.0, 8, 4) == 127
        assert float_to_fixed(-1000.0, 8, 4) == -128

    def test_fixed_to_float(self):
        assert fixed_to_float(384, 8) == 1.5
        assert fixed_to_float(-64, 8) == -0.25

    def test_pack_layout(self):
        """Element i occupies bits [i*N, (i+1)*N)."""
        word = pack_word([1, -1, 2], 8)
        assert word == 0x02FF01

    def test_unpack(self):
        assert unpack_word(0x02FF01, 3, 8) == [1, -1, 2]
