from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Tuple

import numpy as np

from grid import Grid


class Direction(Enum):
    RIGHT = (0, 1)
    LEFT = (0, -1)
    UP = (-1, 0)
    DOWN = (1, 0)

    @property
    def delta(self) -> Tuple[int, int]:
        return self.value


# Order matters for samplers: index i of a draw maps to DIRECTIONS[i].
DIRECTIONS: Tuple[Direction, ...] = (Direction.RIGHT, Direction.LEFT, Direction.UP, Direction.DOWN)

DirectionSampler = Callable[[], Direction]


class RandomDirectionSampler:
    """Uniform draw over the four directions from a seedable numpy generator."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def __call__(self) -> Direction:
        return DIRECTIONS[int(self._rng.integers(len(DIRECTIONS)))]


class CyclingDirectionSampler:
    """Replays a fixed sequence of directions, wrapping at the end."""

    def __init__(self, sequence: Iterable[Direction]) -> None:
        self._sequence: List[Direction] = list(sequence)
        if not self._sequence:
            raise ValueError("CyclingDirectionSampler needs at least one direction")
        self._index = 0

    def __call__(self) -> Direction:
        choice = self._sequence[self._index]
        self._index = (self._index + 1) % len(self._sequence)
        return choice


@dataclass
class Cursor:
    row: int = 0
    col: int = 0
    direction: Direction = Direction.RIGHT

    @property
    def position(self) -> Tuple[int, int]:
        return self.row, self.col

    def advance(self, grid: Grid) -> None:
        # Extents are read on every move: the grid may have grown since the last one.
        d_row, d_col = self.direction.delta
        self.row = (self.row + d_row) % grid.rows
        self.col = (self.col + d_col) % grid.cols
