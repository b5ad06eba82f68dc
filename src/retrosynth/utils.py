# utils.py
from __future__ import annotations

import math

import numpy as np

RAW_DTYPE = np.float64

RATE_CD = 44100
RATE_DVD = 48000
SUPPORTED_RATES = (RATE_CD, RATE_DVD)

S16_MAX = 32767


def check_rate(rate) -> int:
    """Return ``rate`` as an ``int`` or raise if it is not a supported rate."""

    value = int(rate)
    if value not in SUPPORTED_RATES:
        raise ValueError(f"sample rate must be one of {SUPPORTED_RATES}, got {rate!r}")
    return value


def finite_or_zero(x: float) -> float:
    return x if math.isfinite(x) else 0.0


def require_finite(value, *, name: str) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return number


def clamp_s16(values: np.ndarray, limit: int = S16_MAX) -> np.ndarray:
    return np.clip(values, -limit, limit)


__all__ = [
    "RATE_CD",
    "RATE_DVD",
    "RAW_DTYPE",
    "S16_MAX",
    "SUPPORTED_RATES",
    "check_rate",
    "clamp_s16",
    "finite_or_zero",
    "require_finite",
]
