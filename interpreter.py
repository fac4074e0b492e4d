from __future__ import annotations
import json
import os
import re
import sys
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional, TextIO, Tuple

from cursor import Cursor, Direction, DirectionSampler, RandomDirectionSampler
from decoder import Op, OpKind, STRING_DELIMITER, decode
from extensions import HookRegistry, RuntimeServices, StepContext, build_default_services
from grid import Grid
from stack import BINARY_OPS, ByteStack


STATE_RUNNING = "Running"
STATE_STRING = "StringMode"
STATE_TERMINATED = "Terminated"

DEFAULT_HISTORY = 64
STACK_SNAPSHOT_DEPTH = 16

InputProvider = Callable[[], str]
OutputSink = Callable[[str], None]

_NUMBER_LINE = re.compile(r"\+?[0-9]+")


class FungeError(Exception):
    """Base class for interpreter errors."""


class FungeRuntimeError(FungeError):
    """Raised for faults that abort a run."""

    def __init__(
        self,
        message: str,
        *,
        position: Optional[Tuple[int, int]] = None,
        rule: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.position = position
        self.rule = rule
        self.step_index: Optional[int] = None


class FungeIOError(FungeRuntimeError):
    """The input source or output sink failed."""


class FungeStepLimitError(FungeRuntimeError):
    """The configured step budget ran out before the program terminated."""


def stream_source(stream: TextIO) -> InputProvider:
    return stream.readline


def stream_sink(stream: TextIO) -> OutputSink:
    """Write program output as UTF-8, bypassing the stream's own encoding when it has a byte buffer."""
    binary = getattr(stream, "buffer", None)

    def _sink(text: str) -> None:
        if binary is None:
            stream.write(text)
            stream.flush()
            return
        stream.flush()
        binary.write(text.encode("utf-8"))
        binary.flush()

    return _sink


def parse_number_line(line: str) -> int:
    """Parse one input line as an unsigned byte; anything unparsable is 0."""
    text = line.strip()
    if not _NUMBER_LINE.fullmatch(text):
        return 0
    value = int(text)
    return value if value <= 0xFF else 0


def parse_char_line(line: str) -> int:
    if not line:
        return 0
    return ord(line[0]) & 0xFF


@dataclass
class StateEntry:
    step_index: int
    state_id: str
    position: Tuple[int, int]
    byte: Optional[int]
    rule: str
    direction: str
    stack_snapshot: Optional[List[int]]


class StateLogger:
    def __init__(self, verbose: bool, history: int = DEFAULT_HISTORY) -> None:
        self.verbose = verbose
        # Programs may run forever, so only a window of recent steps is kept.
        self.entries: Deque[StateEntry] = deque(maxlen=max(int(history), 1))
        self.next_state_index = 0

    def record(
        self,
        *,
        position: Tuple[int, int],
        byte: Optional[int],
        rule: str,
        direction: Direction,
        stack_snapshot: Optional[List[int]] = None,
    ) -> StateEntry:
        step_index = self.next_state_index
        state_id = f"s_{step_index:06d}"
        entry = StateEntry(
            step_index=step_index,
            state_id=state_id,
            position=position,
            byte=byte,
            rule=rule,
            direction=direction.name,
            stack_snapshot=stack_snapshot,
        )
        self.entries.append(entry)
        self.next_state_index += 1
        return entry


class Interpreter:
    def __init__(
        self,
        *,
        source: str,
        filename: str = "<string>",
        verbose: bool = False,
        services: Optional[RuntimeServices] = None,
        input_provider: Optional[InputProvider] = None,
        output_sink: Optional[OutputSink] = None,
        sampler: Optional[DirectionSampler] = None,
        max_steps: Optional[int] = None,
        history: int = DEFAULT_HISTORY,
    ) -> None:
        self.source = source
        self.filename = filename if filename == "<string>" else os.path.abspath(filename)
        self.verbose = verbose
        self.services = services or build_default_services()
        self.hook_registry: HookRegistry = self.services.hook_registry
        self.input_provider: InputProvider = input_provider or stream_source(sys.stdin)
        self.output_sink: OutputSink = output_sink or stream_sink(sys.stdout)
        self.sampler: DirectionSampler = sampler or RandomDirectionSampler()
        if max_steps is not None and max_steps < 0:
            raise ValueError("max_steps must be non-negative")
        self.max_steps = max_steps

        self.grid = Grid.from_source(source)
        self.stack = ByteStack()
        self.cursor = Cursor()
        self.string_mode = False
        self.skip_next = False
        self.terminated = False

        self.logger = StateLogger(verbose=verbose, history=history)
        self.io_log: Deque[Dict[str, Any]] = deque(maxlen=max(int(history), 1))
        self._handlers = self._build_handlers()

    def _build_handlers(self) -> Dict[OpKind, Callable[[Op], None]]:
        table: Dict[OpKind, Callable[[Op], None]] = {
            OpKind.PUSH: self._op_push,
            OpKind.NOT: self._op_not,
            OpKind.RIGHT: self._op_set_direction,
            OpKind.LEFT: self._op_set_direction,
            OpKind.UP: self._op_set_direction,
            OpKind.DOWN: self._op_set_direction,
            OpKind.RANDOM: self._op_random,
            OpKind.HORIZONTAL_IF: self._op_horizontal_if,
            OpKind.VERTICAL_IF: self._op_vertical_if,
            OpKind.STRING: self._op_string,
            OpKind.DUP: self._op_dup,
            OpKind.SWAP: self._op_swap,
            OpKind.POP: self._op_pop,
            OpKind.OUTPUT_INT: self._op_output_int,
            OpKind.OUTPUT_CHAR: self._op_output_char,
            OpKind.BRIDGE: self._op_bridge,
            OpKind.PUT: self._op_put,
            OpKind.GET: self._op_get,
            OpKind.INPUT_INT: self._op_input_int,
            OpKind.INPUT_CHAR: self._op_input_char,
            OpKind.END: self._op_end,
            OpKind.NOP: self._op_nop,
        }
        for kind in BINARY_OPS_BY_KIND:
            table[kind] = self._op_binary
        missing = [kind.name for kind in OpKind if kind not in table]
        if missing:
            raise FungeError(f"No handler for operations: {', '.join(missing)}")
        return table

    # ---- state ----

    @property
    def state(self) -> str:
        if self.terminated:
            return STATE_TERMINATED
        if self.string_mode:
            return STATE_STRING
        return STATE_RUNNING

    @property
    def position(self) -> Tuple[int, int]:
        return self.cursor.position

    @property
    def direction(self) -> Direction:
        return self.cursor.direction

    @property
    def steps(self) -> int:
        return self.logger.next_state_index

    # ---- execution ----

    def run(self) -> None:
        try:
            self._emit_event("program_start", self)
            while self.step():
                pass
        except FungeRuntimeError as error:
            self._emit_event("on_error", self, error)
            if error.step_index is None:
                error.step_index = self.steps
            raise
        except Exception as exc:
            self._emit_event("on_error", self, exc)
            # Convert unexpected Python-level exceptions so callers can format
            # them with the step log.
            wrapped = FungeRuntimeError(f"Internal interpreter error: {exc}", position=self.position, rule="internal")
            wrapped.step_index = self.steps
            raise wrapped from exc
        else:
            self._emit_event("program_end", self)

    def step(self) -> bool:
        """Execute one step. Returns False once the program has terminated."""
        if self.terminated:
            return False
        if self.max_steps is not None and self.steps >= self.max_steps:
            raise FungeStepLimitError(
                f"Step limit of {self.max_steps} reached without termination",
                position=self.position,
                rule="LIMIT",
            )
        position = self.position
        self._emit_event("before_step", self, position)

        if self.skip_next:
            # The bridged cell is neither read nor decoded.
            self.skip_next = False
            self._log_step(position=position, byte=None, rule="SKIP")
            self.cursor.advance(self.grid)
            return True

        byte = self.grid.read(*position)
        if self.string_mode:
            if byte == STRING_DELIMITER:
                self.string_mode = False
                rule = "STRING_END"
            else:
                self.stack.push(byte)
                rule = "STRING_CHAR"
            self._log_step(position=position, byte=byte, rule=rule)
            self.cursor.advance(self.grid)
            return True

        op = decode(byte)
        self._handlers[op.kind](op)
        self._log_step(position=position, byte=byte, rule=op.name)
        if self.terminated:
            return False
        self.cursor.advance(self.grid)
        return True

    # ---- operations ----

    def _op_push(self, op: Op) -> None:
        self.stack.push(op.literal)

    def _op_binary(self, op: Op) -> None:
        self.stack.binary(BINARY_OPS_BY_KIND[op.kind])

    def _op_not(self, op: Op) -> None:
        self.stack.logical_not()

    def _op_set_direction(self, op: Op) -> None:
        self.cursor.direction = _DIRECTION_OPS[op.kind]

    def _op_random(self, op: Op) -> None:
        self.cursor.direction = self.sampler()

    def _op_horizontal_if(self, op: Op) -> None:
        self.cursor.direction = Direction.RIGHT if self.stack.pop_or_zero() == 0 else Direction.LEFT

    def _op_vertical_if(self, op: Op) -> None:
        self.cursor.direction = Direction.DOWN if self.stack.pop_or_zero() == 0 else Direction.UP

    def _op_string(self, op: Op) -> None:
        self.string_mode = True

    def _op_dup(self, op: Op) -> None:
        self.stack.dup()

    def _op_swap(self, op: Op) -> None:
        self.stack.swap()

    def _op_pop(self, op: Op) -> None:
        self.stack.discard()

    def _op_output_int(self, op: Op) -> None:
        value = self.stack.pop()
        if value is not None:
            self._write(str(value), op)

    def _op_output_char(self, op: Op) -> None:
        value = self.stack.pop()
        if value is not None:
            self._write(chr(value), op)

    def _op_bridge(self, op: Op) -> None:
        self.skip_next = True

    def _op_put(self, op: Op) -> None:
        operands = self.stack.pop_put_operands()
        if operands is not None:
            row, col, value = operands
            self.grid.write(row, col, value)

    def _op_get(self, op: Op) -> None:
        operands = self.stack.pop_get_operands()
        if operands is not None:
            row, col = operands
            self.stack.push(self.grid.read(row, col))

    def _op_input_int(self, op: Op) -> None:
        self.stack.push(parse_number_line(self._read_line(op)))

    def _op_input_char(self, op: Op) -> None:
        self.stack.push(parse_char_line(self._read_line(op)))

    def _op_end(self, op: Op) -> None:
        self.terminated = True

    def _op_nop(self, op: Op) -> None:
        pass

    # ---- I/O ----

    def _read_line(self, op: Op) -> str:
        try:
            line = self.input_provider()
        except EOFError:
            line = ""
        except (OSError, ValueError) as exc:
            raise FungeIOError(f"Input failed: {exc}", position=self.position, rule=op.name) from exc
        self.io_log.append({"event": "INPUT", "rule": op.name, "text": line})
        return line

    def _write(self, text: str, op: Op) -> None:
        try:
            self.output_sink(text)
        except (OSError, ValueError) as exc:
            raise FungeIOError(f"Output failed: {exc}", position=self.position, rule=op.name) from exc
        self.io_log.append({"event": "OUTPUT", "rule": op.name, "text": text})

    # ---- logging / hooks ----

    def _emit_event(self, event: str, *args: Any) -> None:
        try:
            self.hook_registry.emit(event, *args)
        except FungeRuntimeError:
            raise
        except Exception as exc:
            raise FungeRuntimeError(
                f"Extension hook '{event}' failed: {exc}",
                position=self.position,
                rule="EXT",
            ) from exc

    def _log_step(self, *, position: Tuple[int, int], byte: Optional[int], rule: str) -> None:
        snapshot = self.stack.top(STACK_SNAPSHOT_DEPTH) if self.verbose else None
        entry = self.logger.record(
            position=position,
            byte=byte,
            rule=rule,
            direction=self.cursor.direction,
            stack_snapshot=snapshot,
        )
        self._emit_event("after_step", self, entry)

        if not self.hook_registry.has_step_rules:
            return
        # Run extension step rules (every N steps) after recording.
        try:
            self.hook_registry.after_step(
                self,
                StepContext(step_index=entry.step_index, rule=rule, position=position, byte=byte),
            )
        except FungeRuntimeError:
            raise
        except Exception as exc:
            raise FungeRuntimeError(
                f"Extension step rule failed: {exc}",
                position=position,
                rule="EXT",
            ) from exc


BINARY_OPS_BY_KIND: Dict[OpKind, Callable[[int, int], int]] = {
    OpKind.ADD: BINARY_OPS["ADD"],
    OpKind.SUB: BINARY_OPS["SUB"],
    OpKind.MUL: BINARY_OPS["MUL"],
    OpKind.DIV: BINARY_OPS["DIV"],
    OpKind.MOD: BINARY_OPS["MOD"],
    OpKind.GREATER: BINARY_OPS["GREATER"],
}

_DIRECTION_OPS: Dict[OpKind, Direction] = {
    OpKind.RIGHT: Direction.RIGHT,
    OpKind.LEFT: Direction.LEFT,
    OpKind.UP: Direction.UP,
    OpKind.DOWN: Direction.DOWN,
}


class TracebackFormatter:
    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def format_text(self, error: FungeRuntimeError, verbose: bool) -> str:
        interp = self.interpreter
        lines = [f"Traceback (most recent step last), file \"{interp.filename}\":"]
        for entry in interp.logger.entries:
            row, col = entry.position
            cell = _render_byte(entry.byte)
            lines.append(f"  Step {entry.step_index} ({entry.state_id}) at row {row}, col {col} {cell}: {entry.rule}")
            if verbose and entry.stack_snapshot is not None:
                lines.append(f"    Stack top: {entry.stack_snapshot}")
        lines.append(
            f"  Grid {interp.grid.rows}x{interp.grid.cols}, direction {interp.direction.name}, stack depth {len(interp.stack)}"
        )
        rule = error.rule or "runtime"
        lines.append(f"{error.__class__.__name__}: {error.message} (rule: {rule})")
        return "\n".join(lines)

    def to_json(self, error: FungeRuntimeError) -> str:
        interp = self.interpreter
        steps: List[Dict[str, Any]] = []
        for entry in interp.logger.entries:
            record: Dict[str, Any] = {
                "step_index": entry.step_index,
                "state_id": entry.state_id,
                "position": list(entry.position),
                "byte": entry.byte,
                "rule": entry.rule,
                "direction": entry.direction,
            }
            if entry.stack_snapshot is not None:
                record["stack_snapshot"] = entry.stack_snapshot
            steps.append(record)
        data = {
            "error": {
                "type": error.__class__.__name__,
                "message": error.message,
                "rule": error.rule,
                "position": list(error.position) if error.position else None,
                "failing_step_index": error.step_index,
            },
            "file": interp.filename,
            "grid": {"rows": interp.grid.rows, "cols": interp.grid.cols},
            "steps": steps,
        }
        return json.dumps(data, indent=2)


def _render_byte(byte: Optional[int]) -> str:
    if byte is None:
        return "<skipped>"
    if 0x20 <= byte < 0x7F:
        return repr(chr(byte))
    return f"{byte:#04x}"
