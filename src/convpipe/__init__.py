"""
Convpipe - A streaming fixed-point CNN layer in Amaranth HDL.

This package provides one configurable convolution layer (convolution,
quantization, ReLU and pooling) as synthesizable hardware, together with a
golden model and a simulation driver.
"""

from .config import LayerConfig, PoolOrder, PoolType
from .layer import ConvLayer, LayerState

__version__ = "0.1.0"
__all__ = ["LayerConfig", "PoolOrder", "PoolType", "ConvLayer", "LayerState", "__version__"]
