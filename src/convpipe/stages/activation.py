"""
Activation stage: rectified linear unit.
"""

from amaranth import Module, Mux, signed
from amaranth.lib.wiring import Component, In, Out

from ..config import LayerConfig


class ReLU(Component):
    """
    Combinational ReLU: max(0, x).

    Ports:
        data_in: Sample from the Quant->ReLU pipeline register
        data_out: 0 when the sign bit is set, data_in otherwise
    """

    def __init__(self, config: LayerConfig):
        self.config = config

        super().__init__(
            {
                "data_in": In(signed(config.data_bits)),
                "data_out": Out(signed(config.data_bits)),
            }
        )

    def elaborate(self, _platform):
        m = Module()
        m.d.comb += self.data_out.eq(Mux(self.data_in < 0, 0, self.data_in))
        return m
