#!/usr/bin/env python3
"""
Simulate one ConvLayer pass with LFSR stimulus and check it against the
golden model.

Example:
    python scripts/sim_layer.py --in-size 8 --kernel 3 --pool 2 --pool-type avg -v
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path if running from scripts/
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from convpipe.config import LayerConfig, PoolOrder, PoolType  # noqa: E402
from convpipe.util import layer_reference, make_stimulus, run_layer  # noqa: E402

log = logging.getLogger("sim_layer")


def parse_seed(text: str) -> int:
    return int(text, 0)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Simulate a streaming conv/quantize/ReLU/pool layer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    geom_group = parser.add_argument_group("Layer Geometry")
    geom_group.add_argument("--in-size", type=int, default=6, help="Input map side n (default: 6)")
    geom_group.add_argument("--kernel", type=int, default=3, help="Kernel side k (default: 3)")
    geom_group.add_argument("--pool", type=int, default=2, help="Pool window side p (default: 2)")
    geom_group.add_argument("--stride", type=int, default=1, help="Convolution stride (default: 1)")
    geom_group.add_argument(
        "--lanes", type=int, default=1, help="MAC partial-sum lanes (default: 1)"
    )

    fmt_group = parser.add_argument_group("Sample Format")
    fmt_group.add_argument("--bits", type=int, default=16, help="Sample width N (default: 16)")
    fmt_group.add_argument("--frac", type=int, default=8, help="Fractional bits Q (default: 8)")

    pool_group = parser.add_argument_group("Pooling")
    pool_group.add_argument(
        "--pool-type",
        choices=[t.name.lower() for t in PoolType],
        default="max",
        help="Reduction (default: max)",
    )
    pool_group.add_argument(
        "--order",
        choices=[o.name.lower() for o in PoolOrder],
        default="stream",
        help="Block grouping (default: stream)",
    )

    stim_group = parser.add_argument_group("Stimulus")
    stim_group.add_argument("--seed", type=parse_seed, default=0xACE1, help="LFSR seed")
    stim_group.add_argument(
        "--value-bits", type=int, default=None, help="Signed width of generated values"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every output")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = LayerConfig(
            data_bits=args.bits,
            frac_bits=args.frac,
            in_size=args.in_size,
            kernel_size=args.kernel,
            pool_size=args.pool,
            stride=args.stride,
            mac_lanes=args.lanes,
            pool_order=PoolOrder[args.order.upper()],
        )
    except AssertionError as e:
        parser.error(f"invalid configuration: {e}")

    pool_type = PoolType[args.pool_type.upper()]
    activations, weights = make_stimulus(config, seed=args.seed, value_bits=args.value_bits)

    result = run_layer(config, activations, weights, pool_type)
    expected = layer_reference(config, activations, weights, pool_type).tolist()

    log.info("expected: %s", expected)
    log.info("observed: %s", result.outputs)

    if not result.completed:
        log.error("layer did not signal done")
        sys.exit(1)
    if result.outputs != expected:
        log.error("MISMATCH against golden model")
        sys.exit(1)

    log.info("PASS: %d outputs match in %d cycles", len(expected), result.cycles)


if __name__ == "__main__":
    main()
