"""
Unit tests for the golden model and the stimulus generator.

These tests verify:
1. conv2d against hand-computed results
2. Pooling in both block orders, every reduction
3. End-to-end reference for the documented scenarios
4. LFSR determinism and period
"""

import numpy as np
import pytest

from convpipe.config import LayerConfig, PoolOrder, PoolType
from convpipe.util import (
    Lfsr,
    conv2d,
    layer_reference,
    lfsr_samples,
    make_stimulus,
    pool,
    quantize_map,
    reduce_block,
    relu_map,
)


class TestConv2dReference:
    """Test suite for the reference convolution."""

    def test_known_values(self):
        """2x2 ones kernel over a 3x3 ramp."""
        acts = np.arange(1, 10).reshape(3, 3)
        kern = np.ones((2, 2), dtype=np.int64)
        # Window sums 12, 16, 24, 28, then >> 1
        result = conv2d(acts, kern, frac_bits=1, bits=8)
        assert result.tolist() == [[6, 8], [12, 14]]

    def test_stride(self):
        acts = np.arange(25).reshape(5, 5)
        kern = np.zeros((3, 3), dtype=np.int64)
        kern[1, 1] = 2  # 2 >> 1 picks the centre pixel
        result = conv2d(acts, kern, frac_bits=1, bits=16, stride=2)
        assert result.tolist() == [[6, 8], [16, 18]]

    def test_wraps(self):
        acts = np.full((2, 2), 127)
        kern = np.full((2, 2), 127)
        result = conv2d(acts, kern, frac_bits=1, bits=8)
        expected = ((4 * 127 * 127) >> 1) & 0xFF
        expected = expected - 256 if expected >= 128 else expected
        assert result[0, 0] == expected


class TestPoolReference:
    """Test suite for the reference pooling."""

    @pytest.fixture
    def ramp(self):
        return np.arange(16).reshape(4, 4)

    def test_stream_order(self, ramp):
        """Consecutive samples form a block."""
        assert pool(ramp, 2, PoolType.MAX, PoolOrder.STREAM).tolist() == [3, 7, 11, 15]
        assert pool(ramp, 2, PoolType.FIRST, PoolOrder.STREAM).tolist() == [0, 4, 8, 12]

    def test_block_order(self, ramp):
        """True 2-D blocks of the row-major map."""
        assert pool(ramp, 2, PoolType.MAX, PoolOrder.BLOCK).tolist() == [5, 7, 13, 15]
        assert pool(ramp, 2, PoolType.MIN, PoolOrder.BLOCK).tolist() == [0, 2, 8, 10]
        assert pool(ramp, 2, PoolType.FIRST, PoolOrder.BLOCK).tolist() == [0, 2, 8, 10]

    def test_average_truncates_toward_zero(self):
        assert reduce_block([-1, -2, -2, -2], PoolType.AVG) == -1
        assert reduce_block([1, 2, 2, 2], PoolType.AVG) == 1
        assert reduce_block([-2, -2, -2, -2], PoolType.AVG) == -2

    def test_raw_codes(self, ramp):
        """Integer codes are accepted like the hardware port."""
        assert pool(ramp, 2, 0b01).tolist() == pool(ramp, 2, PoolType.AVG).tolist()

    def test_invalid_pool_type(self, ramp):
        with pytest.raises(ValueError):
            pool(ramp, 2, 4)

    def test_pool_size_must_divide(self):
        with pytest.raises(ValueError):
            pool(np.zeros((5, 5), dtype=np.int64), 2, PoolType.MAX)

    def test_membership_and_bounds(self):
        """Max/min pick a block element, the average lies in between."""
        acts, _ = make_stimulus(LayerConfig(in_size=8, kernel_size=1, pool_size=2), seed=7)
        for block in acts.reshape(-1, 4):
            values = block.tolist()
            assert reduce_block(values, PoolType.MAX) in values
            assert reduce_block(values, PoolType.MIN) in values
            assert min(values) <= reduce_block(values, PoolType.AVG) <= max(values)


class TestLayerReference:
    """End-to-end golden model."""

    def test_all_zero(self):
        cfg = LayerConfig()
        acts = np.zeros((6, 6), dtype=np.int64)
        kern = np.zeros((3, 3), dtype=np.int64)
        assert layer_reference(cfg, acts, kern, PoolType.MAX).tolist() == [0, 0, 0, 0]

    def test_all_ones_pattern_average(self):
        """All-1 bit patterns (-1) give a deterministic non-zero result."""
        cfg = LayerConfig(data_bits=8, frac_bits=2)
        acts = np.full((6, 6), -1)
        kern = np.full((3, 3), -1)
        # 9 >> 2 = 2, quantize keeps 2, ReLU keeps 2, average of 2s is 2
        assert layer_reference(cfg, acts, kern, PoolType.AVG).tolist() == [2, 2, 2, 2]

    def test_chain(self):
        cfg = LayerConfig(data_bits=8, frac_bits=4, in_size=5, kernel_size=2)
        acts, kern = make_stimulus(cfg, seed=3)
        conv = conv2d(acts, kern, 4, 8)
        expected = pool(relu_map(quantize_map(conv, 8, 4)), 2, PoolType.MIN)
        assert layer_reference(cfg, acts, kern, PoolType.MIN).tolist() == expected.tolist()

    def test_relu_map_nonnegative(self):
        fm = np.array([[-3, 2], [0, -1]])
        assert relu_map(fm).tolist() == [[0, 2], [0, 0]]


class TestStimulus:
    """LFSR stimulus generator."""

    def test_first_step(self):
        assert Lfsr(0xACE1).step() == 0xE270

    def test_zero_seed_rejected(self):
        with pytest.raises(ValueError):
            Lfsr(0)
        with pytest.raises(ValueError):
            Lfsr(0x10000)

    def test_maximal_period(self):
        lfsr = Lfsr(1)
        states = {lfsr.step() for _ in range(65535)}
        assert len(states) == 65535
        assert lfsr.state == 1

    def test_samples_in_range(self):
        samples = lfsr_samples(0x1234, 200, 6)
        assert all(-32 <= s < 32 for s in samples)

    def test_samples_bits_limit(self):
        with pytest.raises(ValueError):
            lfsr_samples(1, 4, 17)

    def test_deterministic(self):
        cfg = LayerConfig()
        a1, w1 = make_stimulus(cfg, seed=42)
        a2, w2 = make_stimulus(cfg, seed=42)
        a3, _ = make_stimulus(cfg, seed=43)
        assert np.array_equal(a1, a2)
        assert np.array_equal(w1, w2)
        assert not np.array_equal(a1, a3)

    def test_shapes(self):
        cfg = LayerConfig(in_size=8, kernel_size=3, pool_size=3)
        acts, kern = make_stimulus(cfg)
        assert acts.shape == (8, 8)
        assert kern.shape == (3, 3)
