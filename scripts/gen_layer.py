#!/usr/bin/env python3
"""Generate ConvLayer Verilog from convpipe."""

import sys
from pathlib import Path

# Add src to path if running from scripts/
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from amaranth.back import verilog  # noqa: E402

from convpipe.config import DEFAULT_LAYER_CONFIG, SMALL_LAYER_CONFIG  # noqa: E402
from convpipe.layer import ConvLayer  # noqa: E402


def main():
    gen_dir = project_root / "gen"
    gen_dir.mkdir(exist_ok=True)

    # Reference 6x6 / 3x3 / 2x2 layer, used by the cocotb tests
    layer = ConvLayer(DEFAULT_LAYER_CONFIG)

    output_path = gen_dir / "conv_layer.v"
    with open(output_path, "w") as f:
        f.write(verilog.convert(layer, name="ConvLayer"))

    print(f"Generated {output_path}")

    # Also generate the small 8-bit layer
    layer_small = ConvLayer(SMALL_LAYER_CONFIG)

    output_path_small = gen_dir / "conv_layer_small.v"
    with open(output_path_small, "w") as f:
        f.write(verilog.convert(layer_small, name="ConvLayer_small"))

    print(f"Generated {output_path_small}")


if __name__ == "__main__":
    main()
