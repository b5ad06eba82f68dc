"""Opt-in render diagnostics appended to a log file."""
from __future__ import annotations

import threading
import time
from pathlib import Path

__all__ = [
    "enable_render_logging",
    "log_render_event",
    "render_log_path",
    "render_logging_enabled",
    "set_render_log_path",
]


_LOG_RENDER_EVENTS = False
_LOG_PATH = Path("logs/render.log")
_LOG_LOCK = threading.Lock()


def enable_render_logging(enabled: bool) -> None:
    """Enable or disable the render event log."""

    global _LOG_RENDER_EVENTS
    _LOG_RENDER_EVENTS = bool(enabled)


def render_logging_enabled() -> bool:
    """Return ``True`` when render events are being logged."""

    return _LOG_RENDER_EVENTS


def set_render_log_path(path: str | Path) -> None:
    global _LOG_PATH
    _LOG_PATH = Path(path)


def render_log_path() -> Path:
    return _LOG_PATH


def log_render_event(message: str) -> None:
    """Append ``message`` to the render log when logging is enabled."""

    if not _LOG_RENDER_EVENTS:
        return
    stamp = time.strftime("%Y-%m-%d %H:%M:%S")
    try:
        _LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
        with _LOG_LOCK:
            with _LOG_PATH.open("a", encoding="utf-8") as handle:
                handle.write(f"{stamp} {message}\n")
    except OSError:
        # Logging must never abort a render.
        return
