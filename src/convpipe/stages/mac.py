"""
MAC Unit for the Convolver.

Computes the fixed-point dot product between one k x k window and the
kernel in a single combinational step:

    out_sum    = Σ window[i] × weight[i]          (full precision)
    out_result = (out_sum >>> Q) truncated to N bits

The right shift is arithmetic (sign-extending) and no rounding is applied,
so the result truncates toward negative infinity. Overflow of the final
N-bit result wraps.

Architecture (k*k = 9, mac_lanes = 3):

    window[0..8] ──┐   weight[0..8] ──┐
                   ▼                  ▼
         ┌─────────────────────────────────┐
         │  9 signed multipliers (2N bits) │
         └──┬──────────┬──────────┬────────┘
            ▼          ▼          ▼
        lane 0:     lane 1:     lane 2:
        p0+p1+p2    p3+p4+p5    p6+p7+p8
            │          │          │
            └──────┬───┴──────────┘
                   ▼
             adder tree ──► >>> Q ──► [N-1:0]
"""

from amaranth import Module, Signal, signed, unsigned
from amaranth.lib.wiring import Component, In, Out

from ..config import LayerConfig


def lane_partition(count: int, lanes: int) -> list[range]:
    """Split ``count`` product indices into ``lanes`` contiguous groups."""
    return [range(i * count // lanes, (i + 1) * count // lanes) for i in range(lanes)]


class MACUnit(Component):
    """
    Combinational multiply-accumulate with Q-format rescale.

    Ports:
        in_window: k*k samples packed (from the line buffer)
        in_weights: k*k weights packed (kernel registers)
        out_sum: Full-precision sum of products
        out_result: Rescaled, N-bit wrapped result
    """

    def __init__(self, config: LayerConfig):
        self.config = config
        self.window_size = config.window_size

        super().__init__(
            {
                "in_window": In(unsigned(config.weight_bits)),
                "in_weights": In(unsigned(config.weight_bits)),
                "out_sum": Out(signed(config.acc_bits)),
                "out_result": Out(signed(config.data_bits)),
            }
        )

    def elaborate(self, _platform):
        m = Module()
        cfg = self.config
        n_bits = cfg.data_bits

        # =====================================================================
        # Multiplier Array
        # =====================================================================

        products = [
            Signal(signed(cfg.product_bits), name=f"prod_{i}") for i in range(self.window_size)
        ]

        for i in range(self.window_size):
            pixel = self.in_window[i * n_bits : (i + 1) * n_bits].as_signed()
            weight = self.in_weights[i * n_bits : (i + 1) * n_bits].as_signed()
            m.d.comb += products[i].eq(pixel * weight)

        # =====================================================================
        # Partial-Sum Lanes
        # =====================================================================

        current_level = []
        for lane, indices in enumerate(lane_partition(self.window_size, cfg.mac_lanes)):
            lane_sum = Signal(signed(cfg.acc_bits), name=f"lane_{lane}")
            m.d.comb += lane_sum.eq(sum(products[i] for i in indices))
            current_level.append(lane_sum)

        # =====================================================================
        # Adder Tree
        # =====================================================================

        level_num = 0
        while len(current_level) > 1:
            next_level = []
            for i in range(0, len(current_level), 2):
                if i + 1 < len(current_level):
                    sum_sig = Signal(signed(cfg.acc_bits), name=f"sum_L{level_num}_{i // 2}")
                    m.d.comb += sum_sig.eq(current_level[i] + current_level[i + 1])
                    next_level.append(sum_sig)
                else:
                    # Odd element, pass through
                    next_level.append(current_level[i])
            current_level = next_level
            level_num += 1

        m.d.comb += self.out_sum.eq(current_level[0])

        # =====================================================================
        # Rescale
        # =====================================================================

        shifted = Signal(signed(cfg.acc_bits), name="shifted")
        m.d.comb += [
            shifted.eq(self.out_sum >> cfg.frac_bits),
            self.out_result.eq(shifted[:n_bits]),
        ]

        return m
