"""Render configuration loading."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from .quant import QUANT_MAX, QUANT_MIN

_REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = _REPO_ROOT / "configs" / "default.json"

DEFAULT_SILENCE_MS = 1000
MAX_SILENCE_MS = 60_000


@dataclass(slots=True)
class RenderConfig:
    """Parameters shared by every render that are not part of a note."""

    lead_silence_ms: int = DEFAULT_SILENCE_MS
    tail_silence_ms: int = DEFAULT_SILENCE_MS
    ny_limit: int | None = None
    hlimit: int = 0
    pan_center: int = 0
    log_events: bool = False
    log_path: str | None = None

    def silence_frames(self, rate: int) -> tuple[int, int]:
        """Return the lead and tail silence in frames at ``rate``."""

        return (
            (self.lead_silence_ms * rate) // 1000,
            (self.tail_silence_ms * rate) // 1000,
        )


def _as_int(data: Mapping[str, Any], key: str, default: int, lo: int, hi: int) -> int:
    raw = data.get(key, default)
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or int(raw) != raw:
        raise ValueError(f"{key} must be an integer, got {raw!r}")
    value = int(raw)
    if value < lo or value > hi:
        raise ValueError(f"{key} must be in [{lo}, {hi}], got {value}")
    return value


def _normalise_render(data: Mapping[str, Any]) -> RenderConfig:
    ny_limit = data.get("ny_limit")
    if ny_limit is not None:
        ny_limit = _as_int(data, "ny_limit", 0, 0, 48000)
    log_path = data.get("log_path")
    if log_path is not None and not isinstance(log_path, str):
        raise ValueError("log_path must be a string")
    return RenderConfig(
        lead_silence_ms=_as_int(data, "lead_silence_ms", DEFAULT_SILENCE_MS, 0, MAX_SILENCE_MS),
        tail_silence_ms=_as_int(data, "tail_silence_ms", DEFAULT_SILENCE_MS, 0, MAX_SILENCE_MS),
        ny_limit=ny_limit,
        hlimit=_as_int(data, "hlimit", 0, 0, 100_000),
        pan_center=_as_int(data, "pan_center", 0, QUANT_MIN, QUANT_MAX),
        log_events=bool(data.get("log_events", False)),
        log_path=log_path,
    )


def load_configuration(path: str | Path | None = None) -> RenderConfig:
    """Load a :class:`RenderConfig` from ``path``.

    ``None`` returns the built-in defaults without touching the disk.
    """

    if path is None:
        return RenderConfig()
    with open(path, "r", encoding="utf8") as fh:
        raw = json.load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError("configuration root must be a JSON object")
    return _normalise_render(raw.get("render", {}) or {})


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "RenderConfig",
    "load_configuration",
]
