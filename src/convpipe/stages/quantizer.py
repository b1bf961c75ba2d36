"""
Quantizer: truncating Q-format scale reduction.

Keeps the sign bit and the top N-Q+1 bits of the sample and forces the
bottom Q-1 bits to zero. Pure combinational logic, no rounding.
"""

from amaranth import C, Cat, Module, signed
from amaranth.lib.wiring import Component, In, Out

from ..config import LayerConfig


class Quantizer(Component):
    """
    Ports:
        data_in: Sample from the Conv->Quant pipeline register
        data_out: Sample with the bottom Q-1 bits cleared
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
        dropped = self.config.frac_bits - 1

        if dropped:
            m.d.comb += self.data_out.eq(Cat(C(0, dropped), self.data_in[dropped:]))
        else:
            m.d.comb += self.data_out.eq(self.data_in)

        return m
