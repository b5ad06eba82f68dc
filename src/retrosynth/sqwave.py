"""Band-limited square waves for the legacy beep renderer."""

from __future__ import annotations

import math

import numpy as np

from .ttone import pitch_freq
from .utils import RAW_DTYPE, S16_MAX, check_rate

SQWAVE_AMP_MIN = 16.0
SQWAVE_AMP_MAX = 32000.0

_CHUNK = 2048


class SquareWave:
    """Additive square wave generator quantized to 16-bit samples.

    Each pitch keeps its own set of odd harmonics below the Nyquist limit.
    The wave is computed from the absolute sample position so any
    ``t >= 0`` can be requested in any order.
    """

    __slots__ = ("amp", "rate", "_partials")

    def __init__(self, amp: float, rate: int) -> None:
        amp = float(amp)
        if not math.isfinite(amp) or amp <= 0.0:
            raise ValueError(f"amplitude must be finite and positive, got {amp!r}")
        self.amp = min(SQWAVE_AMP_MAX, max(SQWAVE_AMP_MIN, amp))
        self.rate = check_rate(rate)
        self._partials: dict[int, tuple[float, np.ndarray, np.ndarray]] = {}

    def _for_pitch(self, pitch: int) -> tuple[float, np.ndarray, np.ndarray]:
        cached = self._partials.get(pitch)
        if cached is None:
            freq = pitch_freq(pitch)
            nyquist = self.rate / 2.0
            count = int(nyquist // freq) + 1
            k = np.arange(1, count + 1, 2, dtype=RAW_DTYPE)
            k = k[k * freq < nyquist]
            coeff = 4.0 / (math.pi * k)
            cached = (freq, k, coeff)
            self._partials[pitch] = cached
        return cached

    def block(self, pitch: int, start: int, count: int) -> np.ndarray:
        """Return ``count`` int16 samples beginning at sample ``start``."""

        if start < 0 or count < 0:
            raise ValueError("start and count must be non-negative")
        freq, k, coeff = self._for_pitch(int(pitch))
        period = self.rate / freq
        out = np.empty(count, dtype=np.int16)
        for offset in range(0, count, _CHUNK):
            n = min(_CHUNK, count - offset)
            t = np.arange(start + offset, start + offset + n, dtype=np.int64)
            # Reduce to a fraction of a cycle first so long notes keep precision.
            phase = np.mod(t, period) / period
            values = np.sin(2.0 * math.pi * np.outer(phase, k)) @ coeff
            out[offset : offset + n] = np.clip(np.floor(values * self.amp), -S16_MAX, S16_MAX)
        return out

    def get(self, pitch: int, t: int) -> int:
        return int(self.block(pitch, t, 1)[0])


__all__ = ["SQWAVE_AMP_MAX", "SQWAVE_AMP_MIN", "SquareWave"]
