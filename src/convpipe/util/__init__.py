"""
Simulation and verification helpers.

Modules:
    reference: Golden model of the layer
    stimulus: LFSR-based deterministic activations and weights
    driver: Simulator harness that runs one layer pass
"""

from .driver import LayerResult, default_cycle_budget, make_simulator, run_layer
from .reference import conv2d, layer_reference, pool, quantize_map, reduce_block, relu_map
from .stimulus import Lfsr, lfsr_samples, make_stimulus

__all__ = [
    "LayerResult",
    "Lfsr",
    "conv2d",
    "default_cycle_budget",
    "layer_reference",
    "lfsr_samples",
    "make_simulator",
    "make_stimulus",
    "pool",
    "quantize_map",
    "reduce_block",
    "relu_map",
    "run_layer",
]
