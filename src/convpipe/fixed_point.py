"""
Fixed-Point Primitives.

Integer semantics of the Q-format arithmetic used by the layer datapath.
A sample is an N-bit two's complement integer whose real value is the
encoding divided by 2**Q. These functions are the golden definition the
hardware stages are checked against:

    mul_shift   one product rescaled by an arithmetic right shift of Q
    mac_shift   sum of products, shifted once, wrapped to N bits
    quantize    truncating scale reduction (bottom Q-1 bits cleared)
    relu        negative values clamped to zero

Python's ``>>`` on negative integers is an arithmetic shift, so truncation is
toward negative infinity, exactly like the hardware shifter.
"""

import math


def to_signed(value: int, bits: int) -> int:
    """Wrap an integer to ``bits``-bit two's complement."""
    value &= (1 << bits) - 1
    if value >> (bits - 1):
        value -= 1 << bits
    return value


def to_unsigned(value: int, bits: int) -> int:
    """Raw ``bits``-bit encoding of a signed integer."""
    return value & ((1 << bits) - 1)


def mul_shift(a: int, b: int, frac_bits: int, bits: int) -> int:
    """Signed Q-format multiply: ``(a * b) >> Q`` wrapped to ``bits``."""
    return to_signed((a * b) >> frac_bits, bits)


def mac_shift(xs, ws, frac_bits: int, bits: int) -> int:
    """
    Multiply-accumulate with a single rescale.

    The products are summed in arbitrary precision, the sum is shifted
    right by ``frac_bits`` (arithmetic) and the result wraps to ``bits``.
    """
    total = sum(int(x) * int(w) for x, w in zip(xs, ws, strict=True))
    return to_signed(total >> frac_bits, bits)


def quantize(x: int, bits: int, frac_bits: int) -> int:
    """
    Truncating quantizer.

    Keeps the sign bit and the top bits, forces the bottom ``frac_bits - 1``
    bits to zero. No rounding is applied, so negative values move toward
    negative infinity.
    """
    mask = ~((1 << (frac_bits - 1)) - 1)
    return to_signed(x & mask, bits)


def relu(x: int) -> int:
    """Rectified linear activation."""
    return 0 if x < 0 else x


def float_to_fixed(value: float, bits: int, frac_bits: int) -> int:
    """Convert a float to its Q-format encoding, saturating at the range ends."""
    lo = -(1 << (bits - 1))
    hi = (1 << (bits - 1)) - 1
    encoded = math.floor(value * (1 << frac_bits))
    return max(lo, min(hi, encoded))


def fixed_to_float(value: int, frac_bits: int) -> float:
    """Convert a Q-format encoding back to a float."""
    return value / (1 << frac_bits)


def pack_word(values, bits: int) -> int:
    """
    Pack samples into one word, element 0 in the least significant bits.

    This is the layout of the kernel weight word: weight ``i`` (row-major)
    occupies bits ``[i*bits, (i+1)*bits)``.
    """
    word = 0
    for i, v in enumerate(values):
        word |= to_unsigned(int(v), bits) << (i * bits)
    return word


def unpack_word(word: int, count: int, bits: int) -> list[int]:
    """Inverse of :func:`pack_word`."""
    mask = (1 << bits) - 1
    return [to_signed((word >> (i * bits)) & mask, bits) for i in range(count)]
