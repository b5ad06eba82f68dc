"""Equal-tempered tuning table for the 88-key keyboard."""

from __future__ import annotations

import numpy as np

from .utils import RAW_DTYPE

# Middle C is pitch 0; A0 is -39 and C8 is 48.
PITCH_MIN = -39
PITCH_MAX = 48

_A4_PITCH = 9

_TABLE = 440.0 * np.power(
    2.0, (np.arange(PITCH_MIN, PITCH_MAX + 1, dtype=RAW_DTYPE) - _A4_PITCH) / 12.0
)


def pitch_freq(pitch: int) -> float:
    """Return the frequency in Hz of piano key ``pitch`` (0 is middle C)."""

    p = int(pitch)
    if p < PITCH_MIN or p > PITCH_MAX:
        raise ValueError(f"pitch must be in [{PITCH_MIN}, {PITCH_MAX}], got {pitch}")
    return float(_TABLE[p - PITCH_MIN])


def table() -> np.ndarray:
    """Return a read-only view of the whole tuning table."""

    view = _TABLE.view()
    view.flags.writeable = False
    return view


__all__ = ["PITCH_MAX", "PITCH_MIN", "pitch_freq", "table"]
