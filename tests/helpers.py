"""Shared helpers for driving the interpreter in tests."""

from __future__ import annotations

import os
from typing import Iterable, List, Optional, Tuple

from interpreter import Interpreter

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
EXT_DIR = os.path.join(ROOT, "ext")


def make_interpreter(source: str, inputs: Optional[Iterable[str]] = None, **kwargs) -> Tuple[Interpreter, List[str]]:
    """Build an interpreter wired to an in-memory line source and sink.

    ``inputs`` are returned line by line; once exhausted the source reports
    end of stream with an empty string.
    """
    pending = list(inputs or [])
    output: List[str] = []

    def _source() -> str:
        return pending.pop(0) if pending else ""

    interp = Interpreter(source=source, input_provider=_source, output_sink=output.append, **kwargs)
    return interp, output


def run_program(source: str, inputs: Optional[Iterable[str]] = None, **kwargs) -> Tuple[Interpreter, str]:
    kwargs.setdefault("max_steps", 100_000)
    interp, output = make_interpreter(source, inputs, **kwargs)
    interp.run()
    return interp, "".join(output)
