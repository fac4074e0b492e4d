"""Funge-Lang extension: per-operation execution counts.

Counts are kept on ``interpreter.op_histogram`` and summarized on stderr when
the program terminates.
"""

from __future__ import annotations

import sys
from collections import Counter
from typing import Any

from extensions import ExtensionAPI

FUNGE_LANG_EXTENSION_NAME = "histogram"
FUNGE_LANG_EXTENSION_API_VERSION = 1

TOP_N = 10


def _counter(interpreter: Any) -> Counter:
    counts = getattr(interpreter, "op_histogram", None)
    if counts is None:
        counts = Counter()
        interpreter.op_histogram = counts
    return counts


def funge_lang_register(ext: ExtensionAPI) -> None:
    ext.metadata(name=FUNGE_LANG_EXTENSION_NAME, version="1.0.0")

    @ext.on_event("program_start")
    def _reset(interpreter: Any) -> None:
        interpreter.op_histogram = Counter()

    @ext.on_event("after_step")
    def _count(interpreter: Any, entry: Any) -> None:
        _counter(interpreter)[entry.rule] += 1

    @ext.on_event("program_end")
    def _report(interpreter: Any) -> None:
        counts = _counter(interpreter)
        total = sum(counts.values())
        sys.stderr.write(f"[histogram] {total} steps\n")
        for rule, count in counts.most_common(TOP_N):
            sys.stderr.write(f"[histogram] {rule:<14} {count}\n")
