"""
Simulation driver for one layer pass.

Wraps a ConvLayer in a module with an explicit ``sync`` clock domain so the
testbench can drive the synchronous reset, then performs the pass:

    1. hold reset for two cycles
    2. raise en, present the weight word and pool_type
    3. stream activations in row-major order, one per ready cycle
    4. keep en high until done, then drop it
    5. run a few more cycles with en low, recording any stray pulses

Every cycle the driver records data_out on valid_out, the cycles on which
done is seen and the convolver state. Simulation is bounded by
``max_cycles``; a pass that does not finish in time is reported as
incomplete rather than raised.
"""

import logging
from dataclasses import dataclass, field

import numpy as np
from amaranth import ClockDomain, Module
from amaranth.sim import Simulator

from ..config import LayerConfig, PoolType
from ..fixed_point import pack_word
from ..layer import ConvLayer

log = logging.getLogger(__name__)

RESET_CYCLES = 2
DRAIN_CYCLES = 8


@dataclass
class LayerResult:
    """Observed behaviour of one simulated pass."""

    outputs: list[int] = field(default_factory=list)
    valid_cycles: list[int] = field(default_factory=list)
    done_cycles: list[int] = field(default_factory=list)
    cycles: int = 0
    consumed: int = 0
    completed: bool = False
    final_state: int = 0
    conv_states: list[int] = field(default_factory=list)


def default_cycle_budget(config: LayerConfig) -> int:
    """Generous upper bound on the cycles one pass needs."""
    return 2 * config.input_samples + 32


def make_simulator(dut) -> tuple[Simulator, ClockDomain]:
    """
    Simulator for ``dut`` with a reset-drivable ``sync`` domain.

    Returns:
        (simulator, clock domain); drive ``domain.rst`` to reset the design
    """
    m = Module()
    m.submodules.dut = dut
    m.domains.sync = cd_sync = ClockDomain("sync")
    return Simulator(m), cd_sync


def run_layer(
    config: LayerConfig,
    activations,
    weights,
    pool_type=PoolType.MAX,
    max_cycles: int | None = None,
    reset_at: int | None = None,
    stop_after: int | None = None,
    drain_cycles: int = DRAIN_CYCLES,
) -> LayerResult:
    """
    Simulate one pass of a ConvLayer.

    Args:
        config: Layer configuration
        activations: n x n signed samples (numpy array or nested lists)
        weights: k x k signed weights
        pool_type: PoolType or raw 2-bit code
        max_cycles: Simulation bound after reset, defaults to
            :func:`default_cycle_budget`
        reset_at: If set, assert reset on this cycle (counted from the first
            enabled cycle) and keep en low for the rest of the run
        stop_after: If set, drop en for good once this many samples have
            been consumed, starving the pass
        drain_cycles: Cycles to keep simulating with en low after done;
            any further valid_out or done pulses are recorded

    Returns:
        LayerResult with the recorded stream

    Raises:
        ValueError: Input shapes do not match the configuration, or
            pool_type is not a 2-bit code
    """
    activations = np.asarray(activations, dtype=np.int64)
    weights = np.asarray(weights, dtype=np.int64)

    n, k = config.in_size, config.kernel_size
    if activations.shape != (n, n):
        raise ValueError(f"activations must be {n}x{n}, got {activations.shape}")
    if weights.shape != (k, k):
        raise ValueError(f"weights must be {k}x{k}, got {weights.shape}")
    if not 0 <= int(pool_type) <= 3:
        raise ValueError(f"pool_type must be a 2-bit code, got {pool_type}")

    if max_cycles is None:
        max_cycles = default_cycle_budget(config)

    samples = activations.flatten().tolist()
    weight_word = pack_word(weights.flatten().tolist(), config.data_bits)

    dut = ConvLayer(config)
    sim, cd_sync = make_simulator(dut)
    result = LayerResult()

    async def testbench(ctx):
        ctx.set(dut.weight, weight_word)
        ctx.set(dut.pool_type, int(pool_type))

        ctx.set(cd_sync.rst, 1)
        for _ in range(RESET_CYCLES):
            await ctx.tick()
        ctx.set(cd_sync.rst, 0)

        ctx.set(dut.en, 1)
        idx = 0
        aborted = False
        drain = None

        for cycle in range(max_cycles + drain_cycles):
            if drain is None and cycle >= max_cycles:
                break

            result.conv_states.append(ctx.get(dut.convolver.state))

            if reset_at is not None and cycle == reset_at:
                log.info("asserting reset at cycle %d", cycle)
                ctx.set(dut.en, 0)
                ctx.set(cd_sync.rst, 1)
                await ctx.tick()
                ctx.set(cd_sync.rst, 0)
                aborted = True
                continue

            if stop_after is not None and idx >= stop_after:
                ctx.set(dut.en, 0)

            ctx.set(dut.activation_in, samples[idx] if idx < len(samples) else 0)

            ready = ctx.get(dut.ready)
            if ctx.get(dut.valid_out):
                value = ctx.get(dut.data_out)
                log.debug("cycle %d: data_out=%d", cycle, value)
                result.outputs.append(value)
                result.valid_cycles.append(cycle)

            done = ctx.get(dut.done)
            if done:
                log.debug("cycle %d: done", cycle)
                result.done_cycles.append(cycle)
                ctx.set(dut.en, 0)

            await ctx.tick()
            if ready:
                idx += 1
                result.consumed = idx

            if drain is None:
                result.cycles = cycle + 1
                # Keep watching with en low for stray pulses after done
                if done and not aborted:
                    result.completed = True
                    drain = drain_cycles
                    if drain <= 0:
                        break
            else:
                drain -= 1
                if drain <= 0:
                    break

        result.final_state = ctx.get(dut.state)

    sim.add_clock(config.clock_period_s)
    sim.add_testbench(testbench)
    sim.run()

    if result.completed:
        log.info(
            "pass complete: %d outputs in %d cycles", len(result.outputs), result.cycles
        )
        late_valid = [c for c in result.valid_cycles if c > result.done_cycles[0]]
        if len(result.done_cycles) > 1 or late_valid:
            log.warning(
                "pulses after done: done at %s, valid_out at %s",
                result.done_cycles,
                late_valid,
            )
    elif reset_at is None:
        log.warning(
            "pass did not complete within %d cycles (%d/%d inputs consumed)",
            max_cycles,
            result.consumed,
            len(samples),
        )

    return result
