"""Funge-Lang extension: step tracer.

Writes one line per traced step to stderr. Set FUNGE_TRACE_EVERY to trace
only every N-th step, or FUNGE_TRACE_OPS to a comma-separated list of rule
names (``PUT,GET``) to trace only those operations.
"""

from __future__ import annotations

import os
import sys
from typing import Any, List, Optional, TextIO

from extensions import ExtensionAPI, StepContext

FUNGE_LANG_EXTENSION_NAME = "trace"
FUNGE_LANG_EXTENSION_API_VERSION = 1


def _trace_every() -> int:
    raw = os.environ.get("FUNGE_TRACE_EVERY", "1")
    try:
        every = int(raw)
    except ValueError:
        every = 1
    return max(every, 1)


def _trace_ops() -> List[str]:
    raw = os.environ.get("FUNGE_TRACE_OPS", "")
    return [name.strip().upper() for name in raw.split(",") if name.strip()]


def format_step(interpreter: Any, ctx: StepContext) -> str:
    row, col = ctx.position
    top = interpreter.stack.top(8)
    return f"[trace] s_{ctx.step_index:06d} ({row},{col}) {ctx.rule:<14} {interpreter.direction.name:<5} stack={top}"


def funge_lang_register(ext: ExtensionAPI, stream: Optional[TextIO] = None) -> None:
    ext.metadata(name=FUNGE_LANG_EXTENSION_NAME, version="1.1.0")

    def _out() -> TextIO:
        return stream if stream is not None else sys.stderr

    def _trace(interpreter: Any, ctx: StepContext) -> None:
        out = _out()
        out.write(format_step(interpreter, ctx) + "\n")
        out.flush()

    ops = _trace_ops()
    if ops:
        ext.on_op(ops, _trace, name="trace_ops")
    else:
        ext.every_n_steps(_trace_every(), _trace, name="trace_step")

    @ext.on_event("program_end")
    def _done(interpreter: Any) -> None:
        _out().write(f"[trace] terminated after {interpreter.steps} steps\n")
