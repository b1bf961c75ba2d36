"""
Deterministic stimulus generation.

A 16-bit Galois LFSR (taps 0xB400, maximal length 65535) produces
reproducible activations and weights from a seed, so any failing pass can
be replayed exactly.
"""

import numpy as np

from ..config import LayerConfig
from ..fixed_point import to_signed

LFSR_BITS = 16
LFSR_TAPS = 0xB400


class Lfsr:
    """
    16-bit Galois LFSR.

    Example:
        >>> lfsr = Lfsr(0xACE1)
        >>> hex(lfsr.step())
        '0xe270'
    """

    def __init__(self, seed: int):
        seed &= (1 << LFSR_BITS) - 1
        if seed == 0:
            raise ValueError("LFSR seed must be non-zero modulo 2**16")
        self.state = seed

    def step(self) -> int:
        """Advance one position and return the new state."""
        lsb = self.state & 1
        self.state >>= 1
        if lsb:
            self.state ^= LFSR_TAPS
        return self.state

    def __iter__(self):
        return self

    def __next__(self) -> int:
        return self.step()


def lfsr_samples(seed: int, count: int, bits: int) -> list[int]:
    """
    ``count`` signed samples of width ``bits`` (at most 16) from one LFSR.
    """
    if not 1 <= bits <= LFSR_BITS:
        raise ValueError(f"bits must be in [1, {LFSR_BITS}], got {bits}")
    lfsr = Lfsr(seed)
    mask = (1 << bits) - 1
    return [to_signed(lfsr.step() & mask, bits) for _ in range(count)]


def make_stimulus(
    config: LayerConfig,
    seed: int = 0xACE1,
    value_bits: int | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Activations (n x n) and weights (k x k) for one layer pass.

    Args:
        config: Layer configuration
        seed: LFSR seed; activations and weights come from one sequence
        value_bits: Signed width of the generated values, defaults to the
            sample width. Narrower values keep the MAC away from wrap.
    """
    bits = config.data_bits if value_bits is None else value_bits
    bits = min(bits, LFSR_BITS)
    if bits > config.data_bits:
        raise ValueError(f"value_bits {bits} exceeds data_bits {config.data_bits}")

    n = config.in_size
    k = config.kernel_size
    samples = lfsr_samples(seed, n * n + k * k, bits)

    activations = np.array(samples[: n * n], dtype=np.int64).reshape(n, n)
    weights = np.array(samples[n * n :], dtype=np.int64).reshape(k, k)
    return activations, weights
