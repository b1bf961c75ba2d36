"""
Pipeline stages of the convolution layer.

Components:
    Convolver: Line buffer + MAC sliding-window engine
    Quantizer: Combinational Q-format truncation
    ReLU: Combinational rectifier
    Pooler: Block reduction (max / avg / min)
"""

from .activation import ReLU
from .convolver import ConvState, Convolver
from .mac import MACUnit, lane_partition
from .pooler import Pooler, PoolState, block_geometry
from .quantizer import Quantizer

__all__ = [
    "ConvState",
    "Convolver",
    "MACUnit",
    "PoolState",
    "Pooler",
    "Quantizer",
    "ReLU",
    "block_geometry",
    "lane_partition",
]
