"""Extension hooks for the Funge-Lang interpreter.

An extension is a Python module defining ``funge_lang_register(ext)``. It can
subscribe to interpreter events, or attach step rules that fire on a step
interval, on particular operations, or whenever the cursor executes a given
cell.
"""

from __future__ import annotations

import importlib.util
import inspect
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from decoder import OpKind


EXTENSION_API_VERSION = 1

# Positional arguments each event handler is called with.
EVENT_SIGNATURES: Dict[str, Tuple[str, ...]] = {
    "program_start": ("interpreter",),
    "before_step": ("interpreter", "position"),
    "after_step": ("interpreter", "entry"),
    "program_end": ("interpreter",),
    "on_error": ("interpreter", "error"),
}

# Rule names the step log can carry besides the decoded operations.
STEP_ONLY_RULES = frozenset({"SKIP", "STRING_CHAR", "STRING_END"})
RULE_NAMES = frozenset(kind.value for kind in OpKind) | STEP_ONLY_RULES


class FungeExtensionError(Exception):
    pass


@dataclass(frozen=True)
class ExtensionMetadata:
    name: str
    version: str = "0.0.0"


@dataclass(frozen=True)
class StepContext:
    step_index: int
    rule: str
    position: Tuple[int, int]
    byte: Optional[int]

    @property
    def base_rule(self) -> str:
        """Rule name without its literal, so ``PUSH(7)`` reads as ``PUSH``."""
        return self.rule.split("(", 1)[0]


StepHandler = Callable[[Any, StepContext], None]


@dataclass(frozen=True)
class StepRule:
    name: str
    handler: StepHandler
    ext_name: str
    every_n: int = 1
    rules: FrozenSet[str] = frozenset()
    cells: FrozenSet[Tuple[int, int]] = frozenset()

    def matches(self, ctx: StepContext) -> bool:
        if self.rules and ctx.base_rule not in self.rules:
            return False
        if self.cells and ctx.position not in self.cells:
            return False
        return ctx.step_index % self.every_n == 0


def _check_handler(event: str, handler: Callable[..., None]) -> None:
    params = EVENT_SIGNATURES[event]
    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError):
        return
    try:
        signature.bind(*params)
    except TypeError as exc:
        label = getattr(handler, "__name__", repr(handler))
        raise FungeExtensionError(
            f"Handler {label} for '{event}' must accept ({', '.join(params)}): {exc}"
        ) from exc


def _check_rule_names(names: Iterable[str]) -> FrozenSet[str]:
    wanted = frozenset(names)
    if not wanted:
        raise FungeExtensionError("on_op needs at least one rule name")
    unknown = sorted(wanted - RULE_NAMES)
    if unknown:
        raise FungeExtensionError(f"Unknown rule name(s): {', '.join(unknown)}")
    return wanted


@dataclass
class HookRegistry:
    # event -> [(priority, handler, ext_name)], highest priority first
    _events: Dict[str, List[Tuple[int, Callable[..., None], str]]] = field(default_factory=dict)
    _step_rules: List[StepRule] = field(default_factory=list)

    def on_event(self, event: str, handler: Callable[..., None], *, priority: int, ext_name: str) -> None:
        if event not in EVENT_SIGNATURES:
            raise FungeExtensionError(f"Unknown event '{event}'")
        _check_handler(event, handler)
        handlers = self._events.setdefault(event, [])
        handlers.append((priority, handler, ext_name))
        handlers.sort(key=lambda t: t[0], reverse=True)

    def emit(self, event: str, *args: Any) -> None:
        for _priority, handler, _ext in self._events.get(event, []):
            handler(*args)

    def add_step_rule(self, rule: StepRule) -> None:
        if rule.every_n <= 0:
            raise FungeExtensionError("every_n_steps must be >= 1")
        self._step_rules.append(rule)

    @property
    def has_step_rules(self) -> bool:
        return bool(self._step_rules)

    def after_step(self, interpreter: Any, ctx: StepContext) -> None:
        for rule in self._step_rules:
            if rule.matches(ctx):
                rule.handler(interpreter, ctx)


@dataclass
class RuntimeServices:
    metadata: List[ExtensionMetadata] = field(default_factory=list)
    hook_registry: HookRegistry = field(default_factory=HookRegistry)


def _attach(handler: Optional[Callable[..., None]], register: Callable[[Callable[..., None]], None]):
    """Register ``handler`` now, or return a decorator that registers it."""
    if handler is not None:
        register(handler)
        return handler

    def deco(fn: Callable[..., None]) -> Callable[..., None]:
        register(fn)
        return fn

    return deco


class ExtensionAPI:
    def __init__(self, *, services: RuntimeServices, ext_name: str) -> None:
        self._services = services
        self._ext_name = ext_name

    @property
    def name(self) -> str:
        return self._ext_name

    def metadata(self, *, name: str, version: str = "0.0.0") -> None:
        self._services.metadata.append(ExtensionMetadata(name=name, version=version))

    def on_event(self, event: str, handler: Optional[Callable[..., None]] = None, *, priority: int = 0):
        registry = self._services.hook_registry
        return _attach(
            handler,
            lambda fn: registry.on_event(event, fn, priority=priority, ext_name=self._ext_name),
        )

    def every_n_steps(self, every_n: int, handler: Optional[StepHandler] = None, *, name: str = ""):
        return self._step_rule(handler, name=name, every_n=every_n)

    def on_op(self, rules: Iterable[str], handler: Optional[StepHandler] = None, *, name: str = ""):
        """Fire after steps whose rule is one of ``rules`` (``PUT``, ``OUTPUT_CHAR``, ``SKIP``...)."""
        return self._step_rule(handler, name=name, rules=_check_rule_names(rules))

    def at_cell(self, row: int, col: int, handler: Optional[StepHandler] = None, *, name: str = ""):
        """Fire after every step executed at grid cell ``(row, col)``."""
        return self._step_rule(handler, name=name, cells=frozenset({(row, col)}))

    def _step_rule(self, handler: Optional[StepHandler], *, name: str, **match: Any):
        registry = self._services.hook_registry
        return _attach(
            handler,
            lambda fn: registry.add_step_rule(
                StepRule(name=name or fn.__name__, handler=fn, ext_name=self._ext_name, **match)
            ),
        )


def gather_extension_paths(paths: Sequence[str]) -> List[str]:
    """Expand ``--ext`` arguments: a directory contributes its public ``*.py`` files."""
    out: List[str] = []
    for path in paths:
        path = os.path.abspath(path)
        if os.path.isdir(path):
            out.extend(
                os.path.join(path, entry)
                for entry in sorted(os.listdir(path))
                if entry.endswith(".py") and not entry.startswith("_")
            )
        elif not os.path.exists(path):
            raise FungeExtensionError(f"Extension not found: {path}")
        elif not path.endswith(".py"):
            raise FungeExtensionError(f"Extension must be a .py file or a directory: {path}")
        else:
            out.append(path)
    return out


def load_extension_module(path: str, *, index: int = 0) -> Any:
    if not os.path.isfile(path):
        raise FungeExtensionError(f"Extension not found: {path}")
    stem = os.path.splitext(os.path.basename(path))[0]
    module_name = f"funge_lang_ext_{index}_{stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise FungeExtensionError(f"Failed to load extension module: {path}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise FungeExtensionError(f"Extension {stem} failed to import: {exc}") from exc
    return module


def build_default_services() -> RuntimeServices:
    return RuntimeServices()


def register_extension(services: RuntimeServices, module: Any, *, default_name: str) -> None:
    api_version = getattr(module, "FUNGE_LANG_EXTENSION_API_VERSION", EXTENSION_API_VERSION)
    if api_version != EXTENSION_API_VERSION:
        raise FungeExtensionError(
            f"Extension {default_name} requires API {api_version}, host supports {EXTENSION_API_VERSION}"
        )
    register = getattr(module, "funge_lang_register", None)
    if not callable(register):
        raise FungeExtensionError(f"Extension {default_name} must define callable funge_lang_register(ext)")
    ext_name = str(getattr(module, "FUNGE_LANG_EXTENSION_NAME", default_name))
    register(ExtensionAPI(services=services, ext_name=ext_name))


def load_runtime_services(paths: Sequence[str]) -> RuntimeServices:
    services = build_default_services()
    for index, path in enumerate(gather_extension_paths(paths)):
        module = load_extension_module(path, index=index)
        register_extension(services, module, default_name=os.path.splitext(os.path.basename(path))[0])
    return services
