"""
Streaming window extraction.

Components:
    LineBuffer: Ring arena plus combinational window taps
    ScanCounter: Raster position tracking and window-hit detection

Both the convolver (k x k windows over the n x n input) and the pooler
(p x p blocks over the m x m feature map, or p*p consecutive samples)
are built from these two pieces.
"""

from .line_buffer import LineBuffer
from .scan import ScanCounter

__all__ = [
    "LineBuffer",
    "ScanCounter",
]
