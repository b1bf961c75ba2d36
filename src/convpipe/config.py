"""
Convpipe Configuration Module

This module defines the configuration dataclass for the streaming CNN layer.
All construction-time parameters (sample format, map and kernel geometry,
pooling and MAC structure) are specified here and propagate through the
design. Nothing in this dataclass can change at run time.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum


class PoolType(IntEnum):
    """
    Pooling reduction select, driven on the 2-bit ``pool_type`` port.

    FIRST is not a real pooling mode: it is the defined fallback for the
    otherwise unused code 0b11 and passes the first sample of the block.
    """

    MAX = 0b00
    AVG = 0b01
    MIN = 0b10
    FIRST = 0b11


class PoolOrder(Enum):
    """How the pooler groups its input stream into blocks."""

    STREAM = 0  # Every p*p consecutive samples form one block
    BLOCK = 1  # True p x p blocks of the row-major m x m map


@dataclass
class LayerConfig:
    """
    Configuration for one streaming convolution layer.

    Example:
        >>> config = LayerConfig(in_size=8, kernel_size=3, pool_size=2)
        >>> config.conv_out_size
        6
        >>> config.pool_outputs
        9
    """

    # =========================================================================
    # Sample Format (Q-format)
    # =========================================================================
    data_bits: int = 16
    """Total bit width N of every sample (activations, weights, outputs)."""

    frac_bits: int = 8
    """Fractional bit count Q of the fixed-point format."""

    # =========================================================================
    # Geometry
    # =========================================================================
    in_size: int = 6
    """Side n of the square input activation map."""

    kernel_size: int = 3
    """Side k of the square convolution kernel."""

    pool_size: int = 2
    """Side p of the square, non-overlapping pooling window."""

    stride: int = 1
    """Convolution stride s (same in both directions, no padding)."""

    # =========================================================================
    # Structure
    # =========================================================================
    mac_lanes: int = 1
    """
    Parallelism factor of the MAC reduction: the k*k products are summed in
    this many partial-sum lanes before the final adder tree. Structural only,
    every legal value produces the same result.
    """

    pool_order: PoolOrder = PoolOrder.STREAM
    """Grouping of the pooler input stream into blocks."""

    clock_period_ns: float = 10.0
    """Clock period used by the simulation driver (100 MHz reference)."""

    # =========================================================================
    # Computed Properties
    # =========================================================================
    @property
    def window_size(self) -> int:
        """Number of samples in one convolution window (k*k)."""
        return self.kernel_size * self.kernel_size

    @property
    def weight_bits(self) -> int:
        """Width of the packed weight word (k*k*N)."""
        return self.window_size * self.data_bits

    @property
    def input_samples(self) -> int:
        """Number of activations streamed per pass (n*n)."""
        return self.in_size * self.in_size

    @property
    def conv_out_size(self) -> int:
        """Side m of the convolution output map."""
        return (self.in_size - self.kernel_size) // self.stride + 1

    @property
    def conv_outputs(self) -> int:
        """Number of convolution results per pass."""
        return self.conv_out_size * self.conv_out_size

    @property
    def pool_window(self) -> int:
        """Number of samples reduced into one pooled output (p*p)."""
        return self.pool_size * self.pool_size

    @property
    def pool_out_size(self) -> int:
        """Side of the pooled output map."""
        return self.conv_out_size // self.pool_size

    @property
    def pool_outputs(self) -> int:
        """Number of valid_out pulses per pass."""
        return self.pool_out_size * self.pool_out_size

    @property
    def line_buffer_depth(self) -> int:
        """Registered samples held by the convolution line buffer."""
        return (self.kernel_size - 1) * self.in_size + self.kernel_size - 1

    @property
    def retained_samples(self) -> int:
        """Samples visible to the window: line buffer plus current input."""
        return self.line_buffer_depth + 1

    @property
    def product_bits(self) -> int:
        """Width of one signed sample x weight product."""
        return 2 * self.data_bits

    @property
    def acc_bits(self) -> int:
        """Accumulator width that holds the full sum of k*k products."""
        return self.product_bits + max(0, (self.window_size - 1).bit_length())

    @property
    def pool_sum_bits(self) -> int:
        """Accumulator width for the average-pooling sum (cannot overflow)."""
        return self.data_bits + max(0, (self.pool_window - 1).bit_length())

    @property
    def sample_min(self) -> int:
        """Most negative representable sample."""
        return -(1 << (self.data_bits - 1))

    @property
    def sample_max(self) -> int:
        """Most positive representable sample."""
        return (1 << (self.data_bits - 1)) - 1

    @property
    def scale(self) -> int:
        """Integer encoding of 1.0 in the Q-format."""
        return 1 << self.frac_bits

    @property
    def clock_period_s(self) -> float:
        """Clock period in seconds, as the simulator expects it."""
        return self.clock_period_ns * 1e-9

    def __post_init__(self):
        """Validate configuration parameters."""
        assert self.data_bits >= 2, "data_bits must be at least 2"
        assert 1 <= self.frac_bits < self.data_bits, "frac_bits must be in [1, data_bits)"
        assert self.in_size > 0, "in_size must be positive"
        assert self.kernel_size > 0, "kernel_size must be positive"
        assert self.kernel_size <= self.in_size, "kernel_size must not exceed in_size"
        assert self.stride > 0, "stride must be positive"
        assert self.pool_size > 0, "pool_size must be positive"
        assert self.conv_out_size % self.pool_size == 0, (
            "pool_size must divide the convolution output size"
        )
        assert 1 <= self.mac_lanes <= self.window_size, "mac_lanes must be in [1, k*k]"
        assert isinstance(self.pool_order, PoolOrder), "pool_order must be a PoolOrder"
        assert self.clock_period_ns > 0, "clock_period_ns must be positive"


# Pre-defined configurations
DEFAULT_LAYER_CONFIG = LayerConfig()
"""Reference configuration: 6x6 input, 3x3 kernel, 2x2 pooling, Q8.8."""

SMALL_LAYER_CONFIG = LayerConfig(
    data_bits=8,
    frac_bits=4,
    in_size=5,
    kernel_size=2,
    pool_size=2,
)
"""Small configuration for quick simulation."""

MNIST_LAYER_CONFIG = LayerConfig(
    in_size=28,
    kernel_size=5,
    pool_size=2,
    mac_lanes=5,
)
"""LeNet-style first layer: 28x28 input, 5x5 kernel, 24x24 -> 12x12."""
