"""
Convolver: sliding-window MAC engine over a streamed activation map.

The convolver consumes an n x n activation map as a row-major stream of
n*n samples, one per cycle while enabled, and produces ((n-k)/s + 1)²
results, each with a one-cycle valid pulse, followed by done.

Top-Level Architecture:
    ┌──────────────────────────────────────────────────────────────────┐
    │                           CONVOLVER                              │
    │                                                                  │
    │  data_in ──► LineBuffer ──► window (k×k) ──► MACUnit ──► out reg │
    │                  ▲                              ▲                │
    │                  │                              │                │
    │             ScanCounter                   weight_regs            │
    │        (row/col, window hit)         (latched on start)          │
    │                  │                                               │
    │                  ▼                                               │
    │           IDLE → LOAD ⇄ COMPUTE → DONE                           │
    └──────────────────────────────────────────────────────────────────┘

State semantics:
    IDLE:    Counters cleared. On en, latch the weight word and start.
    LOAD:    The sample consumed this cycle does not complete a window.
    COMPUTE: The sample consumed this cycle completes a stride-aligned
             window; the MAC result is registered with valid_out.
    DONE:    All n*n samples consumed. done is held until en drops.

A sample is consumed on every LOAD/COMPUTE cycle with en high (ready).
With en low the stage parks without losing position.
"""

from enum import IntEnum

from amaranth import Module, Signal, signed, unsigned
from amaranth.lib.wiring import Component, In, Out

from ..config import LayerConfig
from ..window import LineBuffer, ScanCounter
from .mac import MACUnit


class ConvState(IntEnum):
    """FSM states for the convolver."""

    IDLE = 0
    LOAD = 1
    COMPUTE = 2
    DONE = 3


class Convolver(Component):
    """
    Streaming k x k convolution with Q-format rescale.

    Ports:
        en: Advance enable (gated by the layer controller)
        data_in: Activation sample, consumed when ready
        weight: k*k weights packed, latched when the pass starts

        ready: data_in is consumed this cycle
        data_out: Convolution result (registered)
        valid_out: One-cycle pulse per result
        done: All input consumed (held in DONE)

        state: Current ConvState
        in_count: Samples consumed this pass
        row_count, col_count: Position of the next sample
        out_count: Results produced this pass
    """

    def __init__(self, config: LayerConfig):
        self.config = config

        n = config.in_size
        super().__init__(
            {
                # Stream input
                "en": In(1),
                "data_in": In(signed(config.data_bits)),
                "weight": In(unsigned(config.weight_bits)),
                # Stream output
                "ready": Out(1),
                "data_out": Out(signed(config.data_bits)),
                "valid_out": Out(1),
                "done": Out(1),
                # Status
                "state": Out(unsigned(2)),
                "in_count": Out(range(config.input_samples + 1)),
                "row_count": Out(range(max(2, n))),
                "col_count": Out(range(max(2, n))),
                "out_count": Out(range(config.conv_outputs + 1)),
            }
        )

    def elaborate(self, _platform):
        m = Module()
        cfg = self.config

        # =====================================================================
        # Submodule Instantiation
        # =====================================================================

        line_buffer = LineBuffer(cfg.data_bits, cfg.in_size, cfg.kernel_size, cfg.kernel_size)
        m.submodules.line_buffer = line_buffer

        scan = ScanCounter(
            width=cfg.in_size,
            height=cfg.in_size,
            window_h=cfg.kernel_size,
            window_w=cfg.kernel_size,
            stride_h=cfg.stride,
            stride_w=cfg.stride,
        )
        m.submodules.scan = scan

        mac = MACUnit(cfg)
        m.submodules.mac = mac

        # =====================================================================
        # Controller State
        # =====================================================================

        state = Signal(unsigned(2), init=ConvState.IDLE, name="state")
        weight_regs = Signal(unsigned(cfg.weight_bits), name="weight_regs")
        out_count = Signal(range(cfg.conv_outputs + 1), name="out_count")

        accept = Signal(name="accept")
        active = (state == ConvState.LOAD) | (state == ConvState.COMPUTE)
        m.d.comb += accept.eq(active & self.en)

        # A 1x1 kernel completes a window at the very first sample
        first_state = ConvState.COMPUTE if cfg.kernel_size == 1 else ConvState.LOAD

        # =====================================================================
        # Datapath Connections
        # =====================================================================

        m.d.comb += [
            line_buffer.shift.eq(accept),
            line_buffer.data_in.eq(self.data_in),
            mac.in_window.eq(line_buffer.window),
            mac.in_weights.eq(weight_regs),
            scan.advance.eq(accept),
            scan.clear.eq(state == ConvState.IDLE),
        ]

        # =====================================================================
        # FSM
        # =====================================================================

        m.d.sync += self.valid_out.eq(0)

        with m.Switch(state):
            with m.Case(ConvState.IDLE):
                with m.If(self.en):
                    m.d.sync += [
                        weight_regs.eq(self.weight),
                        out_count.eq(0),
                        state.eq(first_state),
                    ]

            with m.Case(ConvState.LOAD, ConvState.COMPUTE):
                with m.If(accept):
                    with m.If(state == ConvState.COMPUTE):
                        m.d.sync += [
                            self.data_out.eq(mac.out_result),
                            self.valid_out.eq(1),
                            out_count.eq(out_count + 1),
                        ]

                    with m.If(scan.last):
                        m.d.sync += state.eq(ConvState.DONE)
                    with m.Elif(scan.next_hit):
                        m.d.sync += state.eq(ConvState.COMPUTE)
                    with m.Else():
                        m.d.sync += state.eq(ConvState.LOAD)

            with m.Case(ConvState.DONE):
                with m.If(~self.en):
                    m.d.sync += state.eq(ConvState.IDLE)

        # =====================================================================
        # Status Outputs
        # =====================================================================

        m.d.comb += [
            self.ready.eq(accept),
            self.done.eq(state == ConvState.DONE),
            self.state.eq(state),
            self.in_count.eq(scan.count),
            self.row_count.eq(scan.row),
            self.col_count.eq(scan.col),
            self.out_count.eq(out_count),
        ]

        return m
