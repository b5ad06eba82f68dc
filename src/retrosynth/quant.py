"""Lookup-table backed quantized pitch, loudness and pan conversions."""

from __future__ import annotations

import math

import numpy as np

from .utils import RAW_DTYPE

QUANT_MIN = -32767
QUANT_MAX = 32767

# Loudness unit is 1/360 dB; the table steps 31 units at a time.
LOUD_STEP = 31
LOUD_LUT_LEN = 1058

# Pan table spans [QUANT_MIN, QUANT_MAX] in steps of 151 units.
PAN_STEP = 151
PAN_LUT_LEN = 435

# Pitch unit is 1/5 cent: 500 per semitone, 6000 per octave.
PITCH_SEMITONE = 500
PITCH_OCTAVE = 6000

# Semitone offsets of C4 to B4 relative to A4.
_TONE_OFFSETS = (-9, -8, -7, -6, -5, -4, -3, -2, -1, 0, 1, 2)


def _check_range(q: int, *, name: str) -> int:
    value = int(q)
    if value < QUANT_MIN or value > QUANT_MAX:
        raise ValueError(f"{name} must be in [{QUANT_MIN}, {QUANT_MAX}], got {value}")
    return value


class QuantTables:
    """Precomputed quantization tables.

    ``center`` is a quantized loudness used to lift the pan curve around the
    centre position so that a centred sound does not dip in level.
    """

    __slots__ = ("center", "_loud", "_pan", "_tones", "_fine")

    def __init__(self, center: int = 0) -> None:
        self.center = _check_range(center, name="center")

        idx = np.arange(LOUD_LUT_LEN, dtype=RAW_DTYPE)
        self._loud = np.power(10.0, idx * LOUD_STEP / 7200.0) - 1.0
        self._loud[0] = 0.0

        # A4 sits exactly on index 9 so pitch(4500) is exactly 440 Hz.
        tones = []
        for offset in _TONE_OFFSETS:
            if offset == 0:
                tones.append(440.0)
            elif offset > 0:
                tones.append(440.0 * math.pow(2.0, offset / 12.0))
            else:
                tones.append(440.0 / math.pow(2.0, -offset / 12.0))
        self._tones = np.asarray(tones, dtype=RAW_DTYPE)

        fine = np.arange(PITCH_SEMITONE, dtype=RAW_DTYPE)
        self._fine = np.expm1(fine * math.log(2.0) / PITCH_OCTAVE)

        boost = self.loud(self.center) - 1.0
        pidx = np.arange(PAN_LUT_LEN, dtype=RAW_DTYPE)
        pan = np.cos(pidx * math.pi / 868.0) * (
            1.0 + boost * np.sin(pidx * math.pi / 434.0)
        )
        pan[0] = 1.0
        pan[-1] = 0.0
        self._pan = pan

    def loud(self, q: int) -> float:
        """Return the amplitude multiplier for quantized loudness ``q``."""

        q = _check_range(q, name="loudness")
        if q < 0:
            return 1.0 / self.loud(-q)
        base, rem = divmod(q, LOUD_STEP)
        value = float(self._loud[base])
        if rem:
            upper = float(self._loud[base + 1])
            value += (upper - value) * rem / LOUD_STEP
        return 1.0 + value

    def pitch(self, q: int) -> float:
        """Return the frequency in Hz for quantized pitch ``q``."""

        q = _check_range(q, name="pitch")
        octave, rem = divmod(q, PITCH_OCTAVE)
        semitone, fine = divmod(rem, PITCH_SEMITONE)
        freq = float(self._tones[semitone]) * (float(self._fine[fine]) + 1.0)
        return freq * math.pow(2.0, octave)

    def _left(self, q: int) -> float:
        base, rem = divmod(q - QUANT_MIN, PAN_STEP)
        value = float(self._pan[base])
        if rem:
            upper = float(self._pan[base + 1])
            value += (upper - value) * rem / PAN_STEP
        return value

    def pan(self, q: int) -> tuple[float, float]:
        """Return the ``(left, right)`` multipliers for quantized pan ``q``."""

        q = _check_range(q, name="pan")
        return self._left(q), self._left(-q)


_TABLES: QuantTables | None = None


def init(center: int = 0) -> None:
    """Build the process-wide tables. May only be called once."""

    global _TABLES
    if _TABLES is not None:
        raise RuntimeError("quantization tables already initialised")
    _TABLES = QuantTables(center)


def is_initialized() -> bool:
    return _TABLES is not None


def _tables() -> QuantTables:
    if _TABLES is None:
        raise RuntimeError("quantization tables used before init()")
    return _TABLES


def center() -> int:
    """Return the pan centre boost the process-wide tables were built with."""

    return _tables().center


def loud(q: int) -> float:
    return _tables().loud(q)


def pitch(q: int) -> float:
    return _tables().pitch(q)


def pan(q: int) -> tuple[float, float]:
    return _tables().pan(q)


__all__ = [
    "LOUD_LUT_LEN",
    "PAN_LUT_LEN",
    "QUANT_MAX",
    "QUANT_MIN",
    "QuantTables",
    "center",
    "init",
    "is_initialized",
    "loud",
    "pan",
    "pitch",
]
