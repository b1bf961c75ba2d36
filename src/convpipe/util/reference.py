"""
Golden Reference Model.

Pure-Python computation of the layer's expected output stream. Every
function takes numpy integer arrays holding signed sample encodings and
reuses the primitives in :mod:`convpipe.fixed_point`, so the hardware is
compared against the same integer semantics bit for bit.

    conv2d          k x k valid convolution with stride, MAC rescale
    quantize_map    elementwise truncating quantizer
    relu_map        elementwise ReLU
    pool            block reduction in STREAM or BLOCK order
    layer_reference all of the above chained
"""

import numpy as np

from ..config import LayerConfig, PoolOrder, PoolType
from ..fixed_point import mac_shift, quantize, relu


def conv2d(
    activations: np.ndarray,
    weights: np.ndarray,
    frac_bits: int,
    bits: int,
    stride: int = 1,
) -> np.ndarray:
    """
    Valid (unpadded) convolution, one MAC rescale per output.

    Args:
        activations: n x n input map
        weights: k x k kernel
        frac_bits: Q
        bits: N, results wrap to this width
        stride: Step between windows in both directions

    Returns:
        m x m array with m = (n - k) // stride + 1
    """
    n = activations.shape[0]
    k = weights.shape[0]
    m = (n - k) // stride + 1
    flat_w = weights.flatten().tolist()

    out = np.zeros((m, m), dtype=np.int64)
    for r in range(m):
        for c in range(m):
            window = activations[r * stride : r * stride + k, c * stride : c * stride + k]
            out[r, c] = mac_shift(window.flatten().tolist(), flat_w, frac_bits, bits)
    return out


def quantize_map(feature_map: np.ndarray, bits: int, frac_bits: int) -> np.ndarray:
    """Apply the truncating quantizer to every element."""
    return np.vectorize(lambda x: quantize(int(x), bits, frac_bits), otypes=[np.int64])(
        feature_map
    )


def relu_map(feature_map: np.ndarray) -> np.ndarray:
    """Apply ReLU to every element."""
    return np.maximum(feature_map, 0).astype(np.int64)


def reduce_block(values, pool_type: PoolType) -> int:
    """
    Reduce one pooling block.

    ``values`` is in buffer order: element 0 is the oldest sample of the
    block (its top-left element in BLOCK order).
    """
    values = [int(v) for v in values]
    if pool_type == PoolType.MAX:
        return max(values)
    if pool_type == PoolType.MIN:
        return min(values)
    if pool_type == PoolType.AVG:
        total = sum(values)
        quotient = abs(total) // len(values)
        return -quotient if total < 0 else quotient
    return values[0]


def pool(
    feature_map: np.ndarray,
    pool_size: int,
    pool_type,
    order: PoolOrder = PoolOrder.STREAM,
) -> np.ndarray:
    """
    Non-overlapping pooling in hardware emission order.

    Args:
        feature_map: m x m map, m divisible by ``pool_size``
        pool_size: p
        pool_type: PoolType or its 2-bit code
        order: STREAM groups p*p consecutive row-major samples, BLOCK
            groups true p x p blocks

    Returns:
        1-D array of (m / p)² reduced samples

    Raises:
        ValueError: pool_type is not a 2-bit pooling code, or m is not a
            multiple of pool_size
    """
    pool_type = PoolType(pool_type)
    m = feature_map.shape[0]
    if m % pool_size:
        raise ValueError(f"pool_size {pool_size} does not divide map size {m}")

    pp = pool_size * pool_size
    if order == PoolOrder.STREAM:
        stream = feature_map.flatten()
        blocks = [stream[i : i + pp] for i in range(0, len(stream), pp)]
    else:
        blocks = [
            feature_map[r : r + pool_size, c : c + pool_size].flatten()
            for r in range(0, m, pool_size)
            for c in range(0, m, pool_size)
        ]

    return np.array([reduce_block(b, pool_type) for b in blocks], dtype=np.int64)


def layer_reference(
    config: LayerConfig,
    activations: np.ndarray,
    weights: np.ndarray,
    pool_type,
) -> np.ndarray:
    """
    Expected ``data_out`` stream of one layer pass.

    Example:
        >>> cfg = LayerConfig()
        >>> acts = np.zeros((6, 6), dtype=np.int64)
        >>> kern = np.zeros((3, 3), dtype=np.int64)
        >>> layer_reference(cfg, acts, kern, PoolType.MAX).tolist()
        [0, 0, 0, 0]
    """
    conv = conv2d(activations, weights, config.frac_bits, config.data_bits, config.stride)
    activated = relu_map(quantize_map(conv, config.data_bits, config.frac_bits))
    return pool(activated, config.pool_size, pool_type, config.pool_order)
