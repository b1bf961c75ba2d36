"""
Pooler: non-overlapping p x p reduction over the activated feature map.

The pooler sees the m x m post-activation map as a stream qualified by
in_valid and emits one reduced sample per block, (m/p)² in total,
followed by done.

Block grouping depends on the construction-time PoolOrder:

    STREAM: every p*p consecutive samples form one block
            (window 1 x p*p over rows of p*p samples)

        stream:  s0 s1 s2 s3 | s4 s5 s6 s7 | ...
                 └─ block 0 ─┘ └─ block 1 ─┘

    BLOCK:  true p x p blocks of the row-major map
            (window p x p over rows of m samples, stride p)

        row 0:   a0 a1 | b0 b1
        row 1:   a2 a3 | b2 b3     block a = {a0..a3}, block b = {b0..b3}

Either way the block buffer is a LineBuffer and block completion comes
from a ScanCounter, exactly as in the convolver.

Reductions (pool_type):
    00  MAX    signed maximum
    01  AVG    sum / (p*p), truncating toward zero
    10  MIN    signed minimum
    11  FIRST  first (oldest) element of the block
"""

from enum import IntEnum

from amaranth import C, Module, Mux, Signal, signed, unsigned
from amaranth.lib.wiring import Component, In, Out

from ..config import LayerConfig, PoolOrder, PoolType
from ..window import LineBuffer, ScanCounter


class PoolState(IntEnum):
    """FSM states for the pooler."""

    IDLE = 0
    LOAD = 1
    COMPUTE = 2
    DONE = 3


def block_geometry(config: LayerConfig) -> dict:
    """
    Map geometry seen by the pooler's line buffer and scan counter.

    Returns width/height of the scanned map plus window and stride sizes.
    """
    p = config.pool_size
    pp = config.pool_window

    if config.pool_order == PoolOrder.STREAM:
        return {
            "width": pp,
            "height": config.pool_outputs,
            "window_h": 1,
            "window_w": pp,
            "stride_h": 1,
            "stride_w": pp,
        }

    m = config.conv_out_size
    return {
        "width": m,
        "height": m,
        "window_h": p,
        "window_w": p,
        "stride_h": p,
        "stride_w": p,
    }


class Pooler(Component):
    """
    Streaming pooling stage.

    Ports:
        en: Stage enable (held by the layer controller through the pass)
        in_valid: data_in carries a sample this cycle
        data_in: Post-activation sample
        pool_type: Reduction select (see PoolType)

        data_out: Reduced block value (registered)
        valid_out: One-cycle pulse per block
        done: Final block emitted (held in DONE)

        state: Current PoolState
        in_count: Samples accepted this pass
        block_count: Blocks emitted this pass
    """

    def __init__(self, config: LayerConfig):
        self.config = config
        self.geometry = block_geometry(config)

        super().__init__(
            {
                "en": In(1),
                "in_valid": In(1),
                "data_in": In(signed(config.data_bits)),
                "pool_type": In(unsigned(2)),
                "data_out": Out(signed(config.data_bits)),
                "valid_out": Out(1),
                "done": Out(1),
                "state": Out(unsigned(2)),
                "in_count": Out(range(config.conv_outputs + 1)),
                "block_count": Out(range(config.pool_outputs + 1)),
            }
        )

    def _reduce(self, m, elements):
        """Build the four reductions over ``elements`` and return them."""
        cfg = self.config
        n_bits = cfg.data_bits
        count = len(elements)

        # Running max/min, first element is the initial candidate
        max_val = elements[0]
        min_val = elements[0]
        for i, elem in enumerate(elements[1:], start=1):
            next_max = Signal(signed(n_bits), name=f"max_{i}")
            next_min = Signal(signed(n_bits), name=f"min_{i}")
            m.d.comb += [
                next_max.eq(Mux(elem > max_val, elem, max_val)),
                next_min.eq(Mux(elem < min_val, elem, min_val)),
            ]
            max_val = next_max
            min_val = next_min

        total = Signal(signed(cfg.pool_sum_bits), name="block_sum")
        m.d.comb += total.eq(sum(elements))

        # Floor division of (sum + count - 1) rounds negative sums toward zero
        adjusted = Signal(signed(cfg.pool_sum_bits + 1), name="block_sum_adj")
        avg_full = Signal(signed(cfg.pool_sum_bits + 1), name="avg_full")
        avg_val = Signal(signed(n_bits), name="avg")
        m.d.comb += [
            adjusted.eq(Mux(total < 0, total + (count - 1), total)),
            avg_full.eq(adjusted // C(count, unsigned(count.bit_length()))),
            avg_val.eq(avg_full[:n_bits]),
        ]

        return max_val, avg_val, min_val, elements[0]

    def elaborate(self, _platform):
        m = Module()
        cfg = self.config
        geo = self.geometry
        n_bits = cfg.data_bits

        # =====================================================================
        # Block Buffer and Scan
        # =====================================================================

        block_buffer = LineBuffer(n_bits, geo["width"], geo["window_h"], geo["window_w"])
        m.submodules.block_buffer = block_buffer

        scan = ScanCounter(**geo)
        m.submodules.scan = scan

        state = Signal(unsigned(2), init=PoolState.IDLE, name="state")
        block_count = Signal(range(cfg.pool_outputs + 1), name="block_count")

        accept = Signal(name="accept")
        active = (state == PoolState.LOAD) | (state == PoolState.COMPUTE)
        m.d.comb += accept.eq(active & self.en & self.in_valid)

        first_state = PoolState.COMPUTE if cfg.pool_window == 1 else PoolState.LOAD

        m.d.comb += [
            block_buffer.shift.eq(accept),
            block_buffer.data_in.eq(self.data_in),
            scan.advance.eq(accept),
            scan.clear.eq(state == PoolState.IDLE),
        ]

        # =====================================================================
        # Reduction
        # =====================================================================

        elements = [
            block_buffer.window[i * n_bits : (i + 1) * n_bits].as_signed()
            for i in range(cfg.pool_window)
        ]
        max_val, avg_val, min_val, first_val = self._reduce(m, elements)

        result = Signal(signed(n_bits), name="result")
        with m.Switch(self.pool_type):
            with m.Case(PoolType.MAX):
                m.d.comb += result.eq(max_val)
            with m.Case(PoolType.AVG):
                m.d.comb += result.eq(avg_val)
            with m.Case(PoolType.MIN):
                m.d.comb += result.eq(min_val)
            with m.Default():
                m.d.comb += result.eq(first_val)

        # =====================================================================
        # FSM
        # =====================================================================

        m.d.sync += self.valid_out.eq(0)

        with m.Switch(state):
            with m.Case(PoolState.IDLE):
                with m.If(self.en):
                    m.d.sync += [
                        block_count.eq(0),
                        state.eq(first_state),
                    ]

            with m.Case(PoolState.LOAD, PoolState.COMPUTE):
                with m.If(accept):
                    with m.If(state == PoolState.COMPUTE):
                        m.d.sync += [
                            self.data_out.eq(result),
                            self.valid_out.eq(1),
                            block_count.eq(block_count + 1),
                        ]

                    with m.If(scan.last):
                        m.d.sync += state.eq(PoolState.DONE)
                    with m.Elif(scan.next_hit):
                        m.d.sync += state.eq(PoolState.COMPUTE)
                    with m.Else():
                        m.d.sync += state.eq(PoolState.LOAD)

            with m.Case(PoolState.DONE):
                with m.If(~self.en):
                    m.d.sync += state.eq(PoolState.IDLE)

        m.d.comb += [
            self.done.eq(state == PoolState.DONE),
            self.state.eq(state),
            self.in_count.eq(scan.count),
            self.block_count.eq(block_count),
        ]

        return m
