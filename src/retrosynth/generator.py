# generator.py
"""Operator graph evaluated one sample at a time.

A generator graph is a DAG of :class:`OpGenerator` leaves and
:class:`AdditiveGenerator`, :class:`ScaleGenerator` and
:class:`ClipGenerator` combinators. The graph itself is immutable once
bound; all per-render state lives in a caller-owned list of
:class:`OpInstance` slots indexed by each operator's ``instance_index``.
"""

from __future__ import annotations

import enum
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from .adsr import Envelope
from .utils import RAW_DTYPE, check_rate, finite_or_zero, require_finite

# Instance slot sentinels for ``OpInstance.t``.
T_FRESH = -1
T_DISABLED = -2

NOISE_SEED = 0x5E7A


class WaveFunction(enum.Enum):
    SINE = "sine"
    SQUARE = "square"
    TRIANGLE = "triangle"
    SAWTOOTH = "sawtooth"
    NOISE = "noise"


@dataclass(slots=True)
class OpInstance:
    """Per-render scratch state of one operator."""

    freq: float
    dur: int
    rate: int
    ny_limit: int
    hlimit: int = 0
    w: float = 0.0
    current: float = 0.0
    last: float = 0.0
    t: int = T_FRESH
    partials: tuple[np.ndarray, np.ndarray] | None = field(default=None, repr=False)
    rng: np.random.Generator | None = field(default=None, repr=False)

    @classmethod
    def create(
        cls,
        freq: float,
        dur: int,
        rate: int,
        ny_limit: int | None = None,
        hlimit: int = 0,
    ) -> "OpInstance":
        freq = require_finite(freq, name="freq")
        if freq <= 0.0:
            raise ValueError(f"freq must be positive, got {freq}")
        dur = int(dur)
        if dur < 1:
            raise ValueError(f"dur must be at least 1, got {dur}")
        rate = check_rate(rate)
        ny_limit = rate // 2 if ny_limit is None else int(ny_limit)
        if ny_limit < 0 or ny_limit > rate:
            raise ValueError(f"ny_limit must be in [0, {rate}], got {ny_limit}")
        hlimit = int(hlimit)
        if hlimit < 0:
            raise ValueError(f"hlimit must be non-negative, got {hlimit}")
        return cls(freq=freq, dur=dur, rate=rate, ny_limit=ny_limit, hlimit=hlimit)

    @property
    def disabled(self) -> bool:
        return self.t == T_DISABLED


def make_instances(
    count: int,
    freq: float,
    dur: int,
    rate: int,
    ny_limit: int | None = None,
    hlimit: int = 0,
) -> list[OpInstance]:
    """Return ``count`` freshly initialised instance slots."""

    if count < 1:
        raise ValueError(f"instance count must be at least 1, got {count}")
    return [OpInstance.create(freq, dur, rate, ny_limit, hlimit) for _ in range(count)]


def _partials(fop: WaveFunction, f: float, ny_limit: int, hlimit: int) -> tuple[np.ndarray, np.ndarray]:
    """Return harmonic numbers and coefficients of a band-limited waveform."""

    top = int(math.ceil(ny_limit / f)) if f > 0.0 else 1
    k = np.arange(1, max(top, 1) + 1, dtype=RAW_DTYPE)
    k = k[k * f < ny_limit]
    if fop is WaveFunction.SAWTOOTH:
        coeff = np.where(k % 2 == 1, 1.0, -1.0) * 2.0 / (math.pi * k)
    else:
        k = k[k % 2 == 1]
        if fop is WaveFunction.SQUARE:
            coeff = 4.0 / (math.pi * k)
        else:
            sign = np.where(((k - 1) // 2) % 2 == 0, 1.0, -1.0)
            coeff = sign * 8.0 / (math.pi * math.pi * k * k)
    if hlimit > 0:
        k = k[:hlimit]
        coeff = coeff[:hlimit]
    return k, coeff


class Generator:
    """Base class for graph nodes."""

    __slots__ = ()

    def bind(self, start: int = 0) -> int:
        """Assign instance indices to every operator reachable from here.

        Returns the number of instance slots required, counting from
        ``start``. An operator shared by several parents is bound once.
        """

        return self._bind(int(start), set())

    def _bind(self, start: int, seen: set[int]) -> int:
        raise NotImplementedError

    def length(self, slots: Sequence[OpInstance]) -> int:
        raise NotImplementedError

    def invoke(self, slots: Sequence[OpInstance], t: int) -> float:
        raise NotImplementedError

    def walk(self):
        """Yield every node reachable from this one, each once."""

        seen: set[int] = set()
        stack: list[Generator] = [self]
        while stack:
            node = stack.pop()
            if id(node) in seen:
                continue
            seen.add(id(node))
            yield node
            stack.extend(reversed(node.children()))

    def children(self) -> tuple["Generator", ...]:
        return ()


class OpGenerator(Generator):
    """Oscillator operator with optional FM and AM modulators."""

    __slots__ = (
        "fop",
        "freq_mul",
        "freq_boost",
        "base_amp",
        "envelope",
        "fm_feedback",
        "am_feedback",
        "fm",
        "am",
        "fm_scale",
        "am_scale",
        "instance_index",
    )

    def __init__(
        self,
        fop: WaveFunction | str,
        envelope: Envelope,
        *,
        freq_mul: float = 1.0,
        freq_boost: float = 0.0,
        base_amp: float = 1.0,
        fm_feedback: float = 0.0,
        am_feedback: float = 0.0,
        fm: Generator | None = None,
        am: Generator | None = None,
        fm_scale: float = 0.0,
        am_scale: float = 0.0,
        instance_index: int | None = None,
    ) -> None:
        self.fop = WaveFunction(fop)
        if not isinstance(envelope, Envelope):
            raise TypeError("operator requires an Envelope")
        self.envelope = envelope
        self.freq_mul = require_finite(freq_mul, name="freq_mul")
        if self.freq_mul <= 0.0:
            raise ValueError(f"freq_mul must be positive, got {freq_mul}")
        self.freq_boost = require_finite(freq_boost, name="freq_boost")
        self.base_amp = require_finite(base_amp, name="base_amp")
        if self.base_amp < 0.0:
            raise ValueError(f"base_amp must be non-negative, got {base_amp}")
        self.fm_feedback = require_finite(fm_feedback, name="fm_feedback")
        self.am_feedback = require_finite(am_feedback, name="am_feedback")
        self.fm_scale = require_finite(fm_scale, name="fm_scale")
        self.am_scale = require_finite(am_scale, name="am_scale")
        for name, child in (("fm", fm), ("am", am)):
            if child is not None and not isinstance(child, Generator):
                raise TypeError(f"{name} modulator must be a Generator")
        # Dead modulation edges are pruned so they are never evaluated.
        if self.fm_scale == 0.0 or self.fop is WaveFunction.NOISE:
            fm = None
        if self.am_scale == 0.0:
            am = None
        self.fm = fm
        self.am = am
        if instance_index is not None and int(instance_index) < 0:
            raise ValueError("instance_index must be non-negative")
        self.instance_index = None if instance_index is None else int(instance_index)

    def __repr__(self) -> str:
        return (
            f"OpGenerator({self.fop.value}, freq_mul={self.freq_mul}, "
            f"base_amp={self.base_amp}, index={self.instance_index})"
        )

    def children(self) -> tuple[Generator, ...]:
        return tuple(child for child in (self.fm, self.am) if child is not None)

    def _bind(self, start: int, seen: set[int]) -> int:
        if id(self) in seen:
            return start
        seen.add(id(self))
        self.instance_index = start
        count = start + 1
        for child in self.children():
            count = child._bind(count, seen)
        return count

    def _slot(self, slots: Sequence[OpInstance]) -> OpInstance:
        index = self.instance_index
        if index is None:
            raise RuntimeError("operator used before bind()")
        if index >= len(slots):
            raise ValueError(f"instance index {index} out of range for {len(slots)} slots")
        return slots[index]

    def length(self, slots: Sequence[OpInstance]) -> int:
        return self.envelope.length(self._slot(slots).dur)

    def _wave(self, slot: OpInstance, f: float) -> float:
        fop = self.fop
        if fop is WaveFunction.SINE:
            return math.sin(2.0 * math.pi * slot.w)
        if fop is WaveFunction.NOISE:
            if slot.rng is None:
                slot.rng = np.random.default_rng(NOISE_SEED + int(self.instance_index))
            return float(slot.rng.uniform(-1.0, 1.0))
        if slot.partials is None:
            slot.partials = _partials(fop, f, slot.ny_limit, slot.hlimit)
        k, coeff = slot.partials
        return float(np.dot(coeff, np.sin(2.0 * math.pi * slot.w * k)))

    def invoke(self, slots: Sequence[OpInstance], t: int) -> float:
        slot = self._slot(slots)
        if slot.t == T_DISABLED:
            return 0.0
        if t == slot.t:
            return slot.current
        if t != slot.t + 1:
            raise RuntimeError(
                f"operator {self.instance_index} invoked at t={t} after t={slot.t}"
            )

        f = 0.0
        if self.fop is not WaveFunction.NOISE:
            f = slot.freq * self.freq_mul + self.freq_boost
            if not (math.isfinite(f) and 0.0 < f < slot.ny_limit):
                slot.t = T_DISABLED
                return 0.0

            w_adv = f / slot.rate
            if self.fm_feedback != 0.0:
                w_adv += self.fm_feedback * slot.last
            if self.fm is not None:
                w_adv += self.fm_scale * self.fm.invoke(slots, t)
            w = slot.w + w_adv
            if not math.isfinite(w):
                w = 0.0
            w -= math.trunc(w)
            if w < 0.0:
                w += 1.0
            if not (0.0 <= w < 1.0):
                w = 0.0
            slot.w = w

        wave = self._wave(slot, f)

        amp = self.base_amp * self.envelope.compute(t, slot.dur)
        if self.am_feedback != 0.0:
            amp += self.am_feedback * slot.last
        if self.am is not None:
            amp += self.am_scale * self.am.invoke(slots, t)
        amp = finite_or_zero(amp)

        slot.last = slot.current
        slot.current = finite_or_zero(amp * wave)
        slot.t = t
        return slot.current


class AdditiveGenerator(Generator):
    """Sum of one or more child generators."""

    __slots__ = ("parts",)

    def __init__(self, parts: Sequence[Generator]) -> None:
        parts = tuple(parts)
        if not parts:
            raise ValueError("additive generator needs at least one component")
        for part in parts:
            if not isinstance(part, Generator):
                raise TypeError("additive components must be Generators")
        self.parts = parts

    def children(self) -> tuple[Generator, ...]:
        return self.parts

    def _bind(self, start: int, seen: set[int]) -> int:
        for part in self.parts:
            start = part._bind(start, seen)
        return start

    def length(self, slots: Sequence[OpInstance]) -> int:
        return max(part.length(slots) for part in self.parts)

    def invoke(self, slots: Sequence[OpInstance], t: int) -> float:
        total = 0.0
        for part in self.parts:
            total += finite_or_zero(part.invoke(slots, t))
        return finite_or_zero(total)


class ScaleGenerator(Generator):
    """Child generator multiplied by a constant."""

    __slots__ = ("base", "factor")

    def __init__(self, base: Generator, factor: float) -> None:
        if not isinstance(base, Generator):
            raise TypeError("scale base must be a Generator")
        self.base = base
        self.factor = require_finite(factor, name="factor")

    def children(self) -> tuple[Generator, ...]:
        return (self.base,)

    def _bind(self, start: int, seen: set[int]) -> int:
        return self.base._bind(start, seen)

    def length(self, slots: Sequence[OpInstance]) -> int:
        return self.base.length(slots)

    def invoke(self, slots: Sequence[OpInstance], t: int) -> float:
        return finite_or_zero(self.base.invoke(slots, t) * self.factor)


class ClipGenerator(Generator):
    """Child generator hard-clipped to ``[-level, level]``."""

    __slots__ = ("base", "level")

    def __init__(self, base: Generator, level: float) -> None:
        if not isinstance(base, Generator):
            raise TypeError("clip base must be a Generator")
        self.base = base
        self.level = require_finite(level, name="level")
        if self.level < 0.0:
            raise ValueError(f"clip level must be non-negative, got {level}")

    def children(self) -> tuple[Generator, ...]:
        return (self.base,)

    def _bind(self, start: int, seen: set[int]) -> int:
        return self.base._bind(start, seen)

    def length(self, slots: Sequence[OpInstance]) -> int:
        return self.base.length(slots)

    def invoke(self, slots: Sequence[OpInstance], t: int) -> float:
        value = finite_or_zero(self.base.invoke(slots, t))
        return max(-self.level, min(self.level, value))


__all__ = [
    "AdditiveGenerator",
    "ClipGenerator",
    "Generator",
    "NOISE_SEED",
    "OpGenerator",
    "OpInstance",
    "ScaleGenerator",
    "T_DISABLED",
    "T_FRESH",
    "WaveFunction",
    "make_instances",
]
