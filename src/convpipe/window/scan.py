"""
Raster scan position tracking.

Counts the row/column position of a row-major stream and flags the
positions where the newest sample completes a stride-aligned window.
"""

from amaranth import Module, Mux, Signal
from amaranth.lib.wiring import Component, In, Out


class ScanCounter(Component):
    """
    Row/column counter for a width x height row-major stream.

    A position (row, col) is a hit when a window_h x window_w window ending
    there lies inside the map and starts on a stride boundary:

        row >= window_h - 1, (row - window_h + 1) % stride_h == 0
        col >= window_w - 1, (col - window_w + 1) % stride_w == 0

    Ports:
        clear: Return to position (0, 0)
        advance: Consume one sample, move to the next position

        row, col: Current position (of the next sample to be consumed)
        count: Samples consumed since the last clear
        hit: Current position completes a window
        next_hit: The position after the current one completes a window
        last: Current position is the final sample of the map
    """

    def __init__(
        self,
        width: int,
        height: int,
        window_h: int,
        window_w: int,
        stride_h: int = 1,
        stride_w: int = 1,
    ):
        assert width > 0 and height > 0, "map dimensions must be positive"
        assert 1 <= window_h <= height, "window_h must be in [1, height]"
        assert 1 <= window_w <= width, "window_w must be in [1, width]"
        assert stride_h > 0 and stride_w > 0, "strides must be positive"

        self.width = width
        self.height = height
        self.window_h = window_h
        self.window_w = window_w
        self.stride_h = stride_h
        self.stride_w = stride_w

        super().__init__(
            {
                "clear": In(1),
                "advance": In(1),
                "row": Out(range(max(2, height))),
                "col": Out(range(max(2, width))),
                "count": Out(range(width * height + 1)),
                "hit": Out(1),
                "next_hit": Out(1),
                "last": Out(1),
            }
        )

    def _hit(self, row, col):
        cond = (row >= self.window_h - 1) & (col >= self.window_w - 1)
        if self.stride_h > 1:
            cond = cond & ((row - (self.window_h - 1)) % self.stride_h == 0)
        if self.stride_w > 1:
            cond = cond & ((col - (self.window_w - 1)) % self.stride_w == 0)
        return cond

    def elaborate(self, _platform):
        m = Module()

        row = Signal(range(max(2, self.height)), name="row")
        col = Signal(range(max(2, self.width)), name="col")
        count = Signal(range(self.width * self.height + 1), name="count")

        at_row_end = Signal(name="at_row_end")
        at_last_row = Signal(name="at_last_row")
        next_row = Signal(range(max(2, self.height)), name="next_row")
        next_col = Signal(range(max(2, self.width)), name="next_col")

        m.d.comb += [
            at_row_end.eq(col == self.width - 1),
            at_last_row.eq(row == self.height - 1),
            next_col.eq(Mux(at_row_end, 0, col + 1)),
            next_row.eq(Mux(at_row_end, Mux(at_last_row, 0, row + 1), row)),
        ]

        with m.If(self.clear):
            m.d.sync += [
                row.eq(0),
                col.eq(0),
                count.eq(0),
            ]
        with m.Elif(self.advance):
            m.d.sync += [
                row.eq(next_row),
                col.eq(next_col),
                count.eq(count + 1),
            ]

        m.d.comb += [
            self.row.eq(row),
            self.col.eq(col),
            self.count.eq(count),
            self.hit.eq(self._hit(row, col)),
            self.next_hit.eq(self._hit(next_row, next_col)),
            self.last.eq(at_row_end & at_last_row),
        ]

        return m
