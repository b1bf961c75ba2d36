"""
Convolution Layer Top-Level Integration.

One CNN layer as a streaming fixed-point pipeline. The layer controller
sequences the convolver and the pooler; the quantizer and ReLU are
combinational stages between pipeline registers.

Top-Level Architecture:
    ┌───────────────────────────────────────────────────────────────────────┐
    │                             CONV LAYER                                │
    │                                                                       │
    │  activation_in ──► ┌───────────┐   ┌─────┐   ┌─────┐   ┌─────┐        │
    │  weight ─────────► │ Convolver │──►│ R0  │──►│  Q  │──►│ R1  │──┐     │
    │                    └───────────┘   └─────┘   └─────┘   └─────┘  │     │
    │                                                                 │     │
    │                   ┌─────────┐   ┌─────┐   ┌──────┐              │     │
    │  data_out ◄────── │ Pooler  │◄──│ R2  │◄──│ ReLU │◄─────────────┘     │
    │  valid_out        └─────────┘   └─────┘   └──────┘                    │
    │                                                                       │
    │  ┌─────────────────────────────────────────────────────────────────┐  │
    │  │            CONTROLLER FSM: IDLE → CONV → POOL → FINISH          │  │
    │  └─────────────────────────────────────────────────────────────────┘  │
    └───────────────────────────────────────────────────────────────────────┘

    R0..R2: (data, valid) pipeline registers, updated every cycle

Latency: a convolver result registered at cycle t reaches the pooler input
at cycle t+3. Reset is the sync domain reset and clears every register.
"""

from enum import IntEnum

from amaranth import Cat, Module, Signal, signed, unsigned
from amaranth.lib.wiring import Component, In, Out

from .config import LayerConfig
from .stages import Convolver, Pooler, Quantizer, ReLU

PIPELINE_STAGES = 3


class LayerState(IntEnum):
    """FSM states for the layer controller."""

    IDLE = 0
    CONV = 1
    POOL = 2
    FINISH = 3


class ConvLayer(Component):
    """
    Streaming conv -> quantize -> ReLU -> pool layer.

    Ports:
        # Input stream
        en: Level-sensitive enable, gates all stage advancement
        activation_in: One input sample per cycle while ready
        weight: k*k weights packed, stable before en rises
        pool_type: Reduction select (see PoolType)

        # Output stream
        data_out: Pooled sample
        valid_out: One-cycle pulse per pooled sample
        done: One-cycle pulse at the end of the pass

        # Status
        ready: activation_in is consumed this cycle
        state: Current LayerState
        conv_valid: Convolver result valid
        pipe_valid: Pipeline register valids, bit i = register i
    """

    def __init__(self, config: LayerConfig):
        self.config = config

        # Built here so tests can observe internal signals
        self.convolver = Convolver(config)
        self.quantizer = Quantizer(config)
        self.relu = ReLU(config)
        self.pooler = Pooler(config)

        super().__init__(
            {
                "en": In(1),
                "activation_in": In(signed(config.data_bits)),
                "weight": In(unsigned(config.weight_bits)),
                "pool_type": In(unsigned(2)),
                "data_out": Out(signed(config.data_bits)),
                "valid_out": Out(1),
                "done": Out(1),
                "ready": Out(1),
                "state": Out(unsigned(2)),
                "conv_valid": Out(1),
                "pipe_valid": Out(PIPELINE_STAGES),
            }
        )

    def elaborate(self, _platform):
        m = Module()
        cfg = self.config

        m.submodules.convolver = conv = self.convolver
        m.submodules.quantizer = quant = self.quantizer
        m.submodules.relu = relu = self.relu
        m.submodules.pooler = pool = self.pooler

        state = Signal(unsigned(2), init=LayerState.IDLE, name="state")

        # =====================================================================
        # Pipeline Registers
        # =====================================================================

        pipe_data = [
            Signal(signed(cfg.data_bits), name=f"pipe{i}_data") for i in range(PIPELINE_STAGES)
        ]
        pipe_valid = [Signal(name=f"pipe{i}_valid") for i in range(PIPELINE_STAGES)]

        m.d.comb += [
            quant.data_in.eq(pipe_data[0]),
            relu.data_in.eq(pipe_data[1]),
        ]

        m.d.sync += [
            pipe_data[0].eq(conv.data_out),
            pipe_valid[0].eq(conv.valid_out),
            pipe_data[1].eq(quant.data_out),
            pipe_valid[1].eq(pipe_valid[0]),
            pipe_data[2].eq(relu.data_out),
            pipe_valid[2].eq(pipe_valid[1]),
        ]

        # =====================================================================
        # Stage Connections
        # =====================================================================

        in_conv = state == LayerState.CONV
        in_pool = state == LayerState.POOL

        m.d.comb += [
            conv.en.eq(self.en & in_conv),
            conv.data_in.eq(self.activation_in),
            conv.weight.eq(self.weight),
            pool.en.eq(in_conv | in_pool),
            pool.in_valid.eq(pipe_valid[2]),
            pool.data_in.eq(pipe_data[2]),
            pool.pool_type.eq(self.pool_type),
        ]

        # =====================================================================
        # Controller FSM
        # =====================================================================

        with m.Switch(state):
            with m.Case(LayerState.IDLE):
                with m.If(self.en):
                    m.d.sync += state.eq(LayerState.CONV)

            with m.Case(LayerState.CONV):
                with m.If(conv.done):
                    m.d.sync += state.eq(LayerState.POOL)

            with m.Case(LayerState.POOL):
                with m.If(pool.done):
                    m.d.sync += state.eq(LayerState.FINISH)

            with m.Case(LayerState.FINISH):
                m.d.sync += state.eq(LayerState.IDLE)

        # =====================================================================
        # Outputs
        # =====================================================================

        m.d.comb += [
            self.data_out.eq(pool.data_out),
            self.valid_out.eq(pool.valid_out),
            self.done.eq(state == LayerState.FINISH),
            self.ready.eq(conv.ready & in_conv),
            self.state.eq(state),
            self.conv_valid.eq(conv.valid_out),
            self.pipe_valid.eq(Cat(*pipe_valid)),
        ]

        return m
