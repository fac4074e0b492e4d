from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple


class OpKind(Enum):
    PUSH = "PUSH"
    ADD = "ADD"
    SUB = "SUB"
    MUL = "MUL"
    DIV = "DIV"
    MOD = "MOD"
    NOT = "NOT"
    GREATER = "GREATER"
    RIGHT = "RIGHT"
    LEFT = "LEFT"
    UP = "UP"
    DOWN = "DOWN"
    RANDOM = "RANDOM"
    HORIZONTAL_IF = "HORIZONTAL_IF"
    VERTICAL_IF = "VERTICAL_IF"
    STRING = "STRING"
    DUP = "DUP"
    SWAP = "SWAP"
    POP = "POP"
    OUTPUT_INT = "OUTPUT_INT"
    OUTPUT_CHAR = "OUTPUT_CHAR"
    BRIDGE = "BRIDGE"
    PUT = "PUT"
    GET = "GET"
    INPUT_INT = "INPUT_INT"
    INPUT_CHAR = "INPUT_CHAR"
    END = "END"
    NOP = "NOP"


@dataclass(frozen=True)
class Op:
    kind: OpKind
    literal: int = 0

    @property
    def name(self) -> str:
        if self.kind is OpKind.PUSH:
            return f"PUSH({self.literal})"
        return self.kind.value


SYMBOLS: Dict[str, OpKind] = {
    "+": OpKind.ADD,
    "-": OpKind.SUB,
    "*": OpKind.MUL,
    "/": OpKind.DIV,
    "%": OpKind.MOD,
    "!": OpKind.NOT,
    "`": OpKind.GREATER,
    ">": OpKind.RIGHT,
    "<": OpKind.LEFT,
    "^": OpKind.UP,
    "v": OpKind.DOWN,
    "?": OpKind.RANDOM,
    "_": OpKind.HORIZONTAL_IF,
    "|": OpKind.VERTICAL_IF,
    '"': OpKind.STRING,
    ":": OpKind.DUP,
    "\\": OpKind.SWAP,
    "$": OpKind.POP,
    ".": OpKind.OUTPUT_INT,
    ",": OpKind.OUTPUT_CHAR,
    "#": OpKind.BRIDGE,
    "p": OpKind.PUT,
    "g": OpKind.GET,
    "&": OpKind.INPUT_INT,
    "~": OpKind.INPUT_CHAR,
    "@": OpKind.END,
}

STRING_DELIMITER = ord('"')

NOP = Op(OpKind.NOP)


def _build_table() -> Tuple[Op, ...]:
    table: List[Op] = [NOP] * 256
    for digit in range(10):
        table[ord("0") + digit] = Op(OpKind.PUSH, digit)
    for symbol, kind in SYMBOLS.items():
        table[ord(symbol)] = Op(kind)
    return tuple(table)


_TABLE = _build_table()


def decode(byte: int) -> Op:
    """Map a raw cell byte to its operation; unknown bytes decode to NOP."""
    return _TABLE[byte & 0xFF]
