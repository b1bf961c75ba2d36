"""
Line Buffer for streaming window extraction.

The line buffer reconstructs a 2-D neighbourhood from a strictly sequential
1-D stream. It never stores the full map: a ring arena of registers holds
the most recent samples and the window is read at fixed distances behind
the newest one. The current input is the window's bottom-right element and
bypasses the arena, so a window_h x window_w view over rows of ``width``
samples retains exactly (window_h - 1) * width + window_w samples.

Architecture (window_h = 3, window_w = 3, width = n):

    data_in ──┬──────────────────────────────────────────────► tap d=0
              │
              ▼
    ┌──────────────────────────────────────────────────────────┐
    │  RING ARENA  depth = 2n + 2                              │
    │  slot[head] <- data_in on shift, head = (head+1) % depth │
    │                                                          │
    │  tap d  = slot[(head - d) mod depth]   for d >= 1        │
    │  d(i,j) = (2 - i) * n + (2 - j)                          │
    └──────────────────────────────────────────────────────────┘
                           │
                           ▼
               window: 9 samples, row-major,
               element (2, 2) = data_in

The same structure serves the pooler: a 1 x p*p window over rows of p*p
samples groups consecutive stream samples, a p x p window over rows of m
samples gives true 2-D blocks.
"""

from amaranth import Array, Module, Mux, Signal, signed, unsigned
from amaranth.lib.wiring import Component, In, Out


class LineBuffer(Component):
    """
    Ring-buffer line buffer with combinational window output.

    Ports:
        shift: Write data_in into the arena this cycle
        data_in: Newest sample (also the bottom-right window element)
        window: window_h x window_w samples packed, element (i, j) at
            bits [(i*window_w + j) * data_bits, ...)

    Parameters:
        data_bits: Sample width
        width: Samples per row of the streamed map
        window_h: Window height in rows
        window_w: Window width in samples
    """

    def __init__(self, data_bits: int, width: int, window_h: int, window_w: int):
        assert data_bits > 0, "data_bits must be positive"
        assert 1 <= window_w <= width, "window_w must be in [1, width]"
        assert window_h >= 1, "window_h must be positive"

        self.data_bits = data_bits
        self.width = width
        self.window_h = window_h
        self.window_w = window_w

        # Registered samples; the current input completes the window
        self.depth = (window_h - 1) * width + window_w - 1
        self.window_size = window_h * window_w

        super().__init__(
            {
                "shift": In(1),
                "data_in": In(signed(data_bits)),
                "window": Out(unsigned(self.window_size * data_bits)),
            }
        )

    def tap_distance(self, row: int, col: int) -> int:
        """Samples between window element (row, col) and the newest sample."""
        return (self.window_h - 1 - row) * self.width + (self.window_w - 1 - col)

    def elaborate(self, _platform):
        m = Module()
        n_bits = self.data_bits
        depth = self.depth

        # =====================================================================
        # Ring Arena
        # =====================================================================

        if depth > 0:
            slots = Array(Signal(signed(n_bits), name=f"slot_{i}") for i in range(depth))
            head = Signal(range(max(2, depth)), name="head")

            with m.If(self.shift):
                m.d.sync += slots[head].eq(self.data_in)
                with m.If(head == depth - 1):
                    m.d.sync += head.eq(0)
                with m.Else():
                    m.d.sync += head.eq(head + 1)

        # =====================================================================
        # Window Taps
        # =====================================================================

        for row in range(self.window_h):
            for col in range(self.window_w):
                flat_idx = row * self.window_w + col
                dist = self.tap_distance(row, col)

                if dist == 0:
                    tap = self.data_in
                else:
                    # (head - dist) mod depth without a negative intermediate
                    raw = Signal(range(2 * depth), name=f"raw_r{row}_c{col}")
                    idx = Signal(range(max(2, depth)), name=f"idx_r{row}_c{col}")
                    m.d.comb += [
                        raw.eq(head + (depth - dist)),
                        idx.eq(Mux(raw >= depth, raw - depth, raw)),
                    ]
                    tap = slots[idx]

                bit_start = flat_idx * n_bits
                bit_end = (flat_idx + 1) * n_bits
                m.d.comb += self.window[bit_start:bit_end].eq(tap)

        return m
