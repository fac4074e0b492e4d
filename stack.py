from __future__ import annotations
from typing import Callable, Dict, Iterator, List, Optional, Tuple


MASK8 = 0xFF

BinaryOp = Callable[[int, int], int]


def u8(value: int) -> int:
    """Mask to unsigned 8 bits."""
    return value & MASK8


def _div(a: int, b: int) -> int:
    # Division by zero yields 0 instead of faulting.
    return 0 if b == 0 else a // b


def _mod(a: int, b: int) -> int:
    return 0 if b == 0 else a % b


BINARY_OPS: Dict[str, BinaryOp] = {
    "ADD": lambda a, b: u8(a + b),
    "SUB": lambda a, b: u8(a - b),
    "MUL": lambda a, b: u8(a * b),
    "DIV": _div,
    "MOD": _mod,
    "GREATER": lambda a, b: 1 if a > b else 0,
}


class ByteStack:
    """LIFO of unsigned bytes.

    Underflow never raises: each operator applies its own recovery rule and
    either leaves the stack untouched or restores the operands it managed to
    pop.
    """

    def __init__(self, values: Optional[List[int]] = None) -> None:
        self._values: List[int] = [u8(v) for v in values] if values else []

    def push(self, value: int) -> None:
        self._values.append(u8(value))

    def pop(self) -> Optional[int]:
        if not self._values:
            return None
        return self._values.pop()

    def peek(self) -> Optional[int]:
        if not self._values:
            return None
        return self._values[-1]

    def pop_or_zero(self) -> int:
        value = self.pop()
        return 0 if value is None else value

    # ---- operators ----

    def binary(self, op: BinaryOp) -> None:
        right = self.pop()
        if right is None:
            return
        left = self.pop()
        if left is None:
            self.push(right)
            return
        self.push(op(left, right))

    def logical_not(self) -> None:
        value = self.pop()
        if value is not None:
            self.push(1 if value == 0 else 0)

    def dup(self) -> None:
        value = self.peek()
        if value is not None:
            self.push(value)

    def swap(self) -> None:
        top = self.pop()
        if top is None:
            return
        below = self.pop()
        if below is None:
            self.push(top)
            return
        self.push(top)
        self.push(below)

    def discard(self) -> None:
        self.pop()

    def pop_put_operands(self) -> Optional[Tuple[int, int, int]]:
        """Pop (col, row, value) for a grid write, or restore and return None."""
        col = self.pop()
        if col is None:
            return None
        row = self.pop()
        if row is None:
            self.push(col)
            return None
        value = self.pop()
        if value is None:
            self.push(row)
            self.push(col)
            return None
        return row, col, value

    def pop_get_operands(self) -> Optional[Tuple[int, int]]:
        """Pop (col, row) for a grid read, or restore and return None."""
        col = self.pop()
        if col is None:
            return None
        row = self.pop()
        if row is None:
            self.push(col)
            return None
        return row, col

    # ---- inspection ----

    def snapshot(self) -> List[int]:
        return list(self._values)

    def top(self, count: int) -> List[int]:
        if count <= 0:
            return []
        return self._values[-count:]

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[int]:
        return iter(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ByteStack):
            return self._values == other._values
        if isinstance(other, list):
            return self._values == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"ByteStack({self._values!r})"
