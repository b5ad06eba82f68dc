"""Attack/decay/sustain/release amplitude envelope."""

from __future__ import annotations

import math
from dataclasses import dataclass

from .utils import check_rate


@dataclass(frozen=True, slots=True)
class Envelope:
    """Immutable ADSR envelope measured in samples.

    ``peak`` is the level reached at the end of the attack, after which the
    decay falls back to a sustain level of 1.0. When ``limit`` is positive
    the sustain fades out to zero over ``limit`` samples and the note is cut
    short at that point even if the event lasts longer.
    """

    attack: int
    decay: int
    release: int
    limit: int = 0
    peak: float = 1.0

    def __post_init__(self) -> None:
        for name in ("attack", "decay", "release", "limit"):
            value = getattr(self, name)
            if int(value) != value or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
            object.__setattr__(self, name, int(value))
        peak = float(self.peak)
        if not math.isfinite(peak) or peak <= 0.0:
            raise ValueError(f"peak must be finite and positive, got {self.peak!r}")
        object.__setattr__(self, "peak", peak)

    @classmethod
    def from_millis(
        cls,
        attack_ms: float,
        decay_ms: float,
        release_ms: float,
        limit_ms: float,
        peak: float,
        rate: int,
    ) -> "Envelope":
        rate = check_rate(rate)

        def to_samples(ms: float, name: str) -> int:
            ms = float(ms)
            if not math.isfinite(ms) or ms < 0.0:
                raise ValueError(f"{name} must be finite and non-negative, got {ms!r}")
            return int(round(ms * rate / 1000.0))

        return cls(
            attack=to_samples(attack_ms, "attack"),
            decay=to_samples(decay_ms, "decay"),
            release=to_samples(release_ms, "release"),
            limit=to_samples(limit_ms, "limit"),
            peak=peak,
        )

    def _end(self, dur: int) -> int:
        if self.limit > 0:
            return min(dur, self.attack + self.decay + self.limit)
        return dur

    def length(self, dur: int) -> int:
        """Return the total number of samples the envelope spans for ``dur``."""

        dur = _check_dur(dur)
        return self._end(dur) + self.release

    def _held(self, t: int) -> float:
        if t < self.attack:
            return self.peak * (t + 1) / self.attack
        t -= self.attack
        if t < self.decay:
            return self.peak + (1.0 - self.peak) * (t + 1) / self.decay
        if self.limit <= 0:
            return 1.0
        t -= self.decay
        return min(1.0, max(0.0, 1.0 - t / self.limit))

    def compute(self, t: int, dur: int) -> float:
        """Return the multiplier at sample ``t`` of an event ``dur`` samples long."""

        dur = _check_dur(dur)
        if t < 0:
            raise ValueError(f"t must be non-negative, got {t}")
        end = self._end(dur)
        if t < end:
            return self._held(t)
        if t >= end + self.release:
            return 0.0
        final = self._held(end - 1)
        return final * (1.0 - (t - end + 1) / (self.release + 1))


def _check_dur(dur: int) -> int:
    if dur < 1:
        raise ValueError(f"duration must be at least one sample, got {dur}")
    return dur


__all__ = ["Envelope"]
