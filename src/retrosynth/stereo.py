"""Stereo positions and pitch-dependent stereo fields."""

from __future__ import annotations

from dataclasses import dataclass

from . import quant
from .ttone import PITCH_MAX, PITCH_MIN


def _check_pos(pos: int) -> int:
    value = int(pos)
    if value < quant.QUANT_MIN or value > quant.QUANT_MAX:
        raise ValueError(f"stereo position must be in [{quant.QUANT_MIN}, {quant.QUANT_MAX}], got {pos}")
    return value


def _check_pitch(pitch: int) -> int:
    value = int(pitch)
    if value < PITCH_MIN or value > PITCH_MAX:
        raise ValueError(f"pitch must be in [{PITCH_MIN}, {PITCH_MAX}], got {pitch}")
    return value


@dataclass(frozen=True, slots=True)
class StereoPosition:
    """A fixed stereo position, or a field spread across a pitch range.

    For a field, pitches at or below ``low_pitch`` sit at ``low_pos``,
    pitches at or above ``high_pitch`` at ``high_pos``, and pitches in
    between are placed by linear interpolation.
    """

    low_pos: int
    low_pitch: int
    high_pos: int
    high_pitch: int

    @classmethod
    def constant(cls, pos: int) -> "StereoPosition":
        pos = _check_pos(pos)
        return cls(low_pos=pos, low_pitch=0, high_pos=pos, high_pitch=0)

    @classmethod
    def field(cls, low_pos: int, low_pitch: int, high_pos: int, high_pitch: int) -> "StereoPosition":
        low_pos = _check_pos(low_pos)
        high_pos = _check_pos(high_pos)
        low_pitch = _check_pitch(low_pitch)
        high_pitch = _check_pitch(high_pitch)
        if low_pitch >= high_pitch:
            raise ValueError("stereo field low_pitch must be less than high_pitch")
        if low_pos == high_pos:
            return cls.constant(low_pos)
        return cls(low_pos=low_pos, low_pitch=low_pitch, high_pos=high_pos, high_pitch=high_pitch)

    @property
    def is_constant(self) -> bool:
        return self.low_pos == self.high_pos

    def position(self, pitch: int) -> int:
        pitch = _check_pitch(pitch)
        if self.is_constant or pitch <= self.low_pitch:
            return self.low_pos
        if pitch >= self.high_pitch:
            return self.high_pos
        span = self.high_pitch - self.low_pitch
        offset = pitch - self.low_pitch
        return self.low_pos + ((self.high_pos - self.low_pos) * offset) // span

    def image(self, sample: int, pitch: int, *, flatten: bool = False) -> tuple[int, int]:
        """Return the ``(left, right)`` pair for a mono ``sample``.

        Requires :func:`quant.init` unless ``flatten`` is set.
        """

        if flatten:
            return int(sample), int(sample)
        left, right = quant.pan(self.position(pitch))
        return int(sample * left), int(sample * right)

    def gains(self, pitch: int) -> tuple[float, float]:
        return quant.pan(self.position(pitch))


__all__ = ["StereoPosition"]
