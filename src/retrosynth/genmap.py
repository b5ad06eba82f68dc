"""Interpreter that builds a generator graph from a generator-map script.

A script starts with the ``%fm;`` signature and is evaluated on a value
stack. Numbers, quoted atoms, envelopes and generators are pushed; named
operations pop their arguments and push a result. When the script ends
exactly one generator must be left, which becomes the root of the graph.

Example::

    %fm;
    0 0 250 0 1 adsr @env
    [ "fop", "sine", "adsr", =env, "freq_mul", 2, "base_amp", 0.2 ]
    operator @mod
    [ "fop", "sine", "adsr", =env, "fm", =mod ] operator
    |;
"""

from __future__ import annotations

import enum
import math
import re
from dataclasses import dataclass
from typing import Any, Callable

from .adsr import Envelope
from .diagnostics import log_render_event
from .generator import (
    AdditiveGenerator,
    ClipGenerator,
    Generator,
    OpGenerator,
    ScaleGenerator,
    WaveFunction,
)
from .tokens import Entity, EntityKind, ScriptSyntaxError, iter_entities
from .utils import check_rate

SIGNATURE = "fm"
STACK_MAX = 65535
NEST_MAX = 32
DEFAULT_BASE_AMP = 20000.0

_INT_RE = re.compile(r"^[+-]?[0-9]+$")
_FLOAT_RE = re.compile(r"^[+-]?[0-9]+(\.[0-9]+)?([eE][+-]?[0-9]+)?$")
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class ErrorCode(enum.Enum):
    DUPNAME = "Duplicate definition of variable or constant name"
    UNDEF = "Undefined variable or constant"
    SETCONST = "Attempted to change value of constant"
    UNDERFLOW = "Stack underflow"
    OVERFLOW = "Stack overflow"
    NESTING = "Too much group nesting"
    GROUPCHK = "Group check failed"
    OPENGRP = "Open group at end of script"
    FINAL = "Exactly one element must be left on stack at end"
    RESULTYP = "Wrong type of object remains on stack at end"
    NOSIG = "Can't read valid generator map signature"
    BADSIG = "Unrecognized generator map signature"
    ENTTYPE = "Unsupported entity type"
    HUGEARR = "Array has too many elements"
    ATOM = "Unrecognized atom"
    NUMERIC = "Can't parse numeric literal"
    BADOP = "Unrecognized operation"
    PARAMTYP = "Wrong parameter type provided to operation"
    RANGE = "Parameter out of range"
    OPREDEF = "Operator parameter was redefined"
    OPMISS = "Missing required operator parameter"
    ARITH = "Arithmetic error during interpretation"
    SYNTAX = "Script syntax error"


class GenmapError(Exception):
    """Script interpretation failure with the offending line (0 if unknown)."""

    def __init__(self, code: ErrorCode, line: int = 0, detail: str | None = None) -> None:
        self.code = code
        self.line = int(line)
        self.detail = detail
        message = code.value
        if detail:
            message = f"{message}: {detail}"
        if self.line > 0:
            message = f"{message} (line {self.line})"
        super().__init__(message)


class Atom(enum.Enum):
    FOP = "fop"
    ADSR = "adsr"
    FREQ_MUL = "freq_mul"
    FREQ_BOOST = "freq_boost"
    BASE_AMP = "base_amp"
    FM = "fm"
    AM = "am"
    FM_FEEDBACK = "fm_feedback"
    AM_FEEDBACK = "am_feedback"
    FM_SCALE = "fm_scale"
    AM_SCALE = "am_scale"
    SINE = "sine"
    SQUARE = "square"
    TRIANGLE = "triangle"
    SAWTOOTH = "sawtooth"
    NOISE = "noise"


_WAVE_ATOMS = {
    Atom.SINE: WaveFunction.SINE,
    Atom.SQUARE: WaveFunction.SQUARE,
    Atom.TRIANGLE: WaveFunction.TRIANGLE,
    Atom.SAWTOOTH: WaveFunction.SAWTOOTH,
    Atom.NOISE: WaveFunction.NOISE,
}

# Float parameters of "operator": (keyword argument, default, minimum or None).
_FLOAT_PARAMS = {
    Atom.FREQ_MUL: ("freq_mul", 1.0, "positive"),
    Atom.FREQ_BOOST: ("freq_boost", 0.0, None),
    Atom.BASE_AMP: ("base_amp", DEFAULT_BASE_AMP, "non-negative"),
    Atom.FM_FEEDBACK: ("fm_feedback", 0.0, None),
    Atom.AM_FEEDBACK: ("am_feedback", 0.0, None),
    Atom.FM_SCALE: ("fm_scale", 1.0, None),
    Atom.AM_SCALE: ("am_scale", 1.0, None),
}


@dataclass(frozen=True, slots=True)
class GenmapResult:
    """Root of an interpreted graph and the instance slots it needs."""

    root: Generator
    icount: int


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class _Interpreter:
    """Stack machine state for one script run."""

    def __init__(self, rate: int) -> None:
        self.rate = rate
        self.stack: list[Any] = []
        self.groups: list[int] = []
        self.names: dict[str, tuple[bool, Any]] = {}
        self.ops: dict[str, Callable[[], None]] = {
            "adsr": self.op_adsr,
            "operator": self.op_operator,
            "additive": self.op_additive,
            "scale": self.op_scale,
            "clip": self.op_clip,
            "add": lambda: self.op_arith(lambda a, b: a + b),
            "sub": lambda: self.op_arith(lambda a, b: a - b),
            "mul": lambda: self.op_arith(lambda a, b: a * b),
            "div": lambda: self.op_arith(_divide),
        }

    # stack -----------------------------------------------------------------

    def height(self) -> int:
        base = self.groups[-1] if self.groups else 0
        return len(self.stack) - base

    def push(self, value: Any) -> None:
        if len(self.stack) >= STACK_MAX:
            raise GenmapError(ErrorCode.OVERFLOW)
        self.stack.append(value)

    def pop(self, count: int) -> list[Any]:
        """Pop ``count`` visible values, returned bottom to top."""

        if count > self.height():
            raise GenmapError(ErrorCode.UNDERFLOW)
        if count == 0:
            return []
        values = self.stack[-count:]
        del self.stack[-count:]
        return values

    def begin_group(self) -> None:
        if len(self.groups) >= NEST_MAX:
            raise GenmapError(ErrorCode.NESTING)
        self.groups.append(len(self.stack))

    def end_group(self) -> None:
        if not self.groups:
            raise GenmapError(ErrorCode.GROUPCHK)
        if self.height() != 1:
            raise GenmapError(ErrorCode.GROUPCHK)
        self.groups.pop()

    # names -----------------------------------------------------------------

    def define(self, name: str, constant: bool) -> None:
        (value,) = self.pop(1)
        if name in self.names:
            raise GenmapError(ErrorCode.DUPNAME, detail=name)
        self.names[name] = (constant, value)

    def assign(self, name: str) -> None:
        (value,) = self.pop(1)
        if name not in self.names:
            raise GenmapError(ErrorCode.UNDEF, detail=name)
        constant, _ = self.names[name]
        if constant:
            raise GenmapError(ErrorCode.SETCONST, detail=name)
        self.names[name] = (False, value)

    def get(self, name: str) -> None:
        if name not in self.names:
            raise GenmapError(ErrorCode.UNDEF, detail=name)
        self.push(self.names[name][1])

    # operations --------------------------------------------------------------

    def _count(self, minimum: int) -> int:
        (count,) = self.pop(1)
        if not isinstance(count, int) or isinstance(count, bool):
            raise GenmapError(ErrorCode.PARAMTYP)
        if count < minimum:
            raise GenmapError(ErrorCode.RANGE)
        if count > self.height():
            raise GenmapError(ErrorCode.UNDERFLOW)
        return count

    def op_adsr(self) -> None:
        values = self.pop(5)
        if not all(_is_number(v) for v in values):
            raise GenmapError(ErrorCode.PARAMTYP)
        attack, decay, release, limit, peak = (float(v) for v in values)
        if min(attack, decay, release, limit) < 0.0 or not peak > 0.0:
            raise GenmapError(ErrorCode.RANGE)
        self.push(Envelope.from_millis(attack, decay, release, limit, peak, self.rate))

    def op_operator(self) -> None:
        count = self._count(0)
        if count % 2:
            raise GenmapError(ErrorCode.RANGE)
        pairs = self.pop(count)
        fop: WaveFunction | None = None
        envelope: Envelope | None = None
        params: dict[str, Any] = {}
        seen: set[Atom] = set()
        for key, value in zip(pairs[0::2], pairs[1::2]):
            if not isinstance(key, Atom):
                raise GenmapError(ErrorCode.PARAMTYP)
            if key in seen:
                raise GenmapError(ErrorCode.OPREDEF, detail=key.value)
            seen.add(key)
            if key is Atom.FOP:
                if not isinstance(value, Atom):
                    raise GenmapError(ErrorCode.PARAMTYP)
                if value not in _WAVE_ATOMS:
                    raise GenmapError(ErrorCode.RANGE, detail=value.value)
                fop = _WAVE_ATOMS[value]
            elif key is Atom.ADSR:
                if not isinstance(value, Envelope):
                    raise GenmapError(ErrorCode.PARAMTYP)
                envelope = value
            elif key in (Atom.FM, Atom.AM):
                if not isinstance(value, Generator):
                    raise GenmapError(ErrorCode.PARAMTYP)
                params[key.value] = value
            elif key in _FLOAT_PARAMS:
                name, _, bound = _FLOAT_PARAMS[key]
                if not _is_number(value):
                    raise GenmapError(ErrorCode.PARAMTYP)
                number = float(value)
                if (
                    not math.isfinite(number)
                    or (bound == "positive" and number <= 0.0)
                    or (bound == "non-negative" and number < 0.0)
                ):
                    raise GenmapError(ErrorCode.RANGE, detail=key.value)
                params[name] = number
            else:
                raise GenmapError(ErrorCode.RANGE, detail=key.value)
        if fop is None or envelope is None:
            raise GenmapError(ErrorCode.OPMISS)
        for name, default, _ in _FLOAT_PARAMS.values():
            params.setdefault(name, default)
        self.push(OpGenerator(fop, envelope, **params))

    def op_additive(self) -> None:
        count = self._count(1)
        parts = self.pop(count)
        if not all(isinstance(p, Generator) for p in parts):
            raise GenmapError(ErrorCode.PARAMTYP)
        self.push(AdditiveGenerator(parts))

    def _generator_and_number(self) -> tuple[Generator, float]:
        base, number = self.pop(2)
        if not isinstance(base, Generator) or not _is_number(number):
            raise GenmapError(ErrorCode.PARAMTYP)
        return base, float(number)

    def op_scale(self) -> None:
        base, factor = self._generator_and_number()
        if not math.isfinite(factor):
            raise GenmapError(ErrorCode.RANGE)
        self.push(ScaleGenerator(base, factor))

    def op_clip(self) -> None:
        base, level = self._generator_and_number()
        if not (math.isfinite(level) and level >= 0.0):
            raise GenmapError(ErrorCode.RANGE)
        self.push(ClipGenerator(base, level))

    def op_arith(self, fn: Callable[[float, float], float]) -> None:
        a, b = self.pop(2)
        if not (_is_number(a) and _is_number(b)):
            raise GenmapError(ErrorCode.PARAMTYP)
        result = fn(float(a), float(b))
        if not math.isfinite(result):
            raise GenmapError(ErrorCode.ARITH)
        self.push(result)

    # entities ----------------------------------------------------------------

    def entity(self, ent: Entity) -> None:
        kind = ent.kind
        if kind is EntityKind.STRING:
            try:
                self.push(Atom(ent.key))
            except ValueError:
                raise GenmapError(ErrorCode.ATOM, detail=ent.key) from None
        elif kind is EntityKind.NUMERIC:
            self.push(_parse_numeric(ent.key))
        elif kind is EntityKind.VARIABLE:
            self.define(ent.key, constant=False)
        elif kind is EntityKind.CONSTANT:
            self.define(ent.key, constant=True)
        elif kind is EntityKind.ASSIGN:
            self.assign(ent.key)
        elif kind is EntityKind.GET:
            self.get(ent.key)
        elif kind is EntityKind.BEGIN_GROUP:
            self.begin_group()
        elif kind is EntityKind.END_GROUP:
            self.end_group()
        elif kind is EntityKind.ARRAY:
            if ent.count > _INT32_MAX:
                raise GenmapError(ErrorCode.HUGEARR)
            self.push(int(ent.count))
        elif kind is EntityKind.OPERATION:
            handler = self.ops.get(ent.key)
            if handler is None:
                raise GenmapError(ErrorCode.BADOP, detail=ent.key)
            handler()
        else:
            raise GenmapError(ErrorCode.ENTTYPE, detail=kind.value)


def _divide(a: float, b: float) -> float:
    if b == 0.0:
        raise GenmapError(ErrorCode.ARITH, detail="division by zero")
    return a / b


def _parse_numeric(text: str) -> int | float:
    if _INT_RE.match(text):
        value = int(text)
        if value < _INT32_MIN or value > _INT32_MAX:
            raise GenmapError(ErrorCode.NUMERIC, detail=text)
        return value
    if _FLOAT_RE.match(text):
        value = float(text)
        if not math.isfinite(value):
            raise GenmapError(ErrorCode.NUMERIC, detail=text)
        return value
    raise GenmapError(ErrorCode.NUMERIC, detail=text)


def _read_signature(entities) -> None:
    expected = (EntityKind.BEGIN_META, EntityKind.META_TOKEN, EntityKind.END_META)
    for kind in expected:
        ent = next(entities, None)
        if ent is None or ent.kind is not kind:
            raise GenmapError(ErrorCode.NOSIG)
        if kind is EntityKind.META_TOKEN and ent.key != SIGNATURE:
            raise GenmapError(ErrorCode.BADSIG, detail=ent.key)


def run(text: str, rate: int) -> GenmapResult:
    """Interpret ``text`` and return the bound root generator.

    Raises :class:`GenmapError` describing the first problem found.
    """

    rate = check_rate(rate)
    state = _Interpreter(rate)
    entities = iter_entities(text)
    line = 0
    try:
        _read_signature(entities)
        for ent in entities:
            line = ent.line
            try:
                state.entity(ent)
            except GenmapError as exc:
                if exc.line == 0:
                    raise GenmapError(exc.code, ent.line, exc.detail) from None
                raise
    except ScriptSyntaxError as exc:
        raise GenmapError(ErrorCode.SYNTAX, exc.line, exc.message) from exc

    if state.groups:
        raise GenmapError(ErrorCode.OPENGRP)
    if len(state.stack) != 1:
        raise GenmapError(ErrorCode.FINAL)
    root = state.stack[0]
    if not isinstance(root, Generator):
        raise GenmapError(ErrorCode.RESULTYP)
    icount = root.bind(0)
    log_render_event(f"genmap: interpreted {line} lines, {icount} operator instances")
    return GenmapResult(root=root, icount=icount)


def run_file(path, rate: int) -> GenmapResult:
    with open(path, "r", encoding="utf-8") as fh:
        text = fh.read()
    return run(text, rate)


__all__ = [
    "Atom",
    "DEFAULT_BASE_AMP",
    "ErrorCode",
    "GenmapError",
    "GenmapResult",
    "NEST_MAX",
    "STACK_MAX",
    "run",
    "run_file",
]
