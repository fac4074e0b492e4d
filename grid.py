from __future__ import annotations
from typing import List

import numpy as np
from numpy.typing import NDArray


DEFAULT_CELL = 0x20  # space


class Grid:
    """Rectangular matrix of byte cells that grows on out-of-range writes.

    Every row always holds exactly ``cols`` cells; growth appends whole rows
    and/or whole columns filled with ``DEFAULT_CELL`` and never moves existing
    content.
    """

    def __init__(self, rows: int, cols: int) -> None:
        # A program always needs one cell for the cursor to stand on.
        rows = max(int(rows), 1)
        cols = max(int(cols), 1)
        self._cells: NDArray[np.uint8] = np.full((rows, cols), DEFAULT_CELL, dtype=np.uint8)

    @classmethod
    def from_source(cls, text: str) -> "Grid":
        lines: List[str] = text.split("\n")
        # A trailing newline terminates the last row; it does not start a new one.
        if len(lines) > 1 and lines[-1] == "":
            lines.pop()
        cols = max((len(line) for line in lines), default=0)
        grid = cls(len(lines), cols)
        cells = grid._cells
        for row, line in enumerate(lines):
            for col, ch in enumerate(line):
                cells[row, col] = ord(ch) & 0xFF
        return grid

    @property
    def rows(self) -> int:
        return int(self._cells.shape[0])

    @property
    def cols(self) -> int:
        return int(self._cells.shape[1])

    def contains(self, row: int, col: int) -> bool:
        return 0 <= row < self.rows and 0 <= col < self.cols

    def read(self, row: int, col: int) -> int:
        # Cells outside the current extents read as blank; reading never grows.
        if not self.contains(row, col):
            return DEFAULT_CELL
        return int(self._cells[row, col])

    def write(self, row: int, col: int, value: int) -> None:
        if row >= self.rows or col >= self.cols:
            self._grow(row + 1, col + 1)
        self._cells[row, col] = value & 0xFF

    def _grow(self, min_rows: int, min_cols: int) -> None:
        rows = max(self.rows, min_rows)
        cols = max(self.cols, min_cols)
        grown = np.full((rows, cols), DEFAULT_CELL, dtype=np.uint8)
        grown[: self.rows, : self.cols] = self._cells
        self._cells = grown

    def snapshot(self) -> NDArray[np.uint8]:
        return self._cells.copy()

    def render(self) -> str:
        return "\n".join(row.tobytes().decode("latin-1") for row in self._cells)

    def __repr__(self) -> str:
        return f"Grid(rows={self.rows}, cols={self.cols})"
