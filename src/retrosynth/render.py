"""Drivers that render a single note into a WAV file."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import numpy as np

from . import genmap, quant
from .config import RenderConfig
from .diagnostics import log_render_event
from .generator import Generator, OpInstance, make_instances
from .sbuf import SampleBuffer
from .sqwave import SquareWave
from .stereo import StereoPosition
from .ttone import PITCH_MAX, PITCH_MIN, pitch_freq
from .utils import check_rate
from .wavwrite import WavWriter

SECONDS_MIN = 1
SECONDS_MAX = 60
AMPLITUDE_MIN = 16
AMPLITUDE_MAX = 32000

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_BLOCK = 4096


@dataclass(slots=True)
class RenderSummary:
    path: Path
    frames: int
    channels: int
    rate: int
    instances: int = 0
    elapsed: float = 0.0

    def describe(self) -> str:
        seconds = self.frames / self.rate
        text = f"Rendered {self.frames} frames ({seconds:.2f}s, {self.channels} ch, {self.rate} Hz) to {self.path}"
        if self.instances:
            text += f" using {self.instances} operators"
        return text


def _check_note(pitch: int, seconds: int, rate: int, amplitude: int) -> int:
    if pitch < PITCH_MIN or pitch > PITCH_MAX:
        raise ValueError(f"pitch must be in [{PITCH_MIN}, {PITCH_MAX}], got {pitch}")
    if seconds < SECONDS_MIN or seconds > SECONDS_MAX:
        raise ValueError(f"seconds must be in [{SECONDS_MIN}, {SECONDS_MAX}], got {seconds}")
    if amplitude < AMPLITUDE_MIN or amplitude > AMPLITUDE_MAX:
        raise ValueError(f"amplitude must be in [{AMPLITUDE_MIN}, {AMPLITUDE_MAX}], got {amplitude}")
    return check_rate(rate)


def _ensure_quant(center: int) -> None:
    # The pan tables are built once per process.
    if not quant.is_initialized():
        quant.init(center)
    elif quant.center() != center:
        raise RuntimeError(
            f"pan tables were built with centre {quant.center()}, cannot render with {center}"
        )


def to_sample(value: float) -> int:
    """Floor a generated value into the 32-bit sample range."""

    if not math.isfinite(value):
        return 0
    if value >= _INT32_MAX:
        return _INT32_MAX
    if value <= _INT32_MIN:
        return _INT32_MIN
    return int(math.floor(value))


def render_graph(root: Generator, slots: Sequence[OpInstance]) -> np.ndarray:
    """Evaluate ``root`` over its whole length and return int64 samples."""

    total = root.length(slots)
    out = np.empty(total, dtype=np.int64)
    for t in range(total):
        out[t] = to_sample(root.invoke(slots, t))
    return out


def _image(samples: np.ndarray, gains: tuple[float, float] | None) -> np.ndarray:
    if gains is None:
        return np.column_stack((samples, samples))
    left, right = gains
    return np.column_stack(
        (np.trunc(samples * left).astype(np.int64), np.trunc(samples * right).astype(np.int64))
    )


def render_script(
    path: str | Path,
    script: str,
    *,
    pitch: int,
    seconds: int,
    rate: int,
    amplitude: int,
    config: RenderConfig | None = None,
    stereo: StereoPosition | None = None,
) -> RenderSummary:
    """Interpret ``script`` and render one note of it to ``path``.

    Raises :class:`genmap.GenmapError` for a bad script before the output
    file is created. Any failure after that removes the partial file.
    """

    rate = _check_note(pitch, seconds, rate, amplitude)
    config = config or RenderConfig()
    started = time.perf_counter()

    result = genmap.run(script, rate)
    freq = pitch_freq(pitch)
    slots = make_instances(result.icount, freq, seconds * rate, rate, config.ny_limit, config.hlimit)
    samples = render_graph(result.root, slots)
    log_render_event(
        f"render: pitch={pitch} freq={freq:.3f} rate={rate} instances={result.icount} samples={samples.size}"
    )

    gains = None
    if stereo is not None:
        _ensure_quant(config.pan_center)
        gains = stereo.gains(pitch)
    lead, tail = config.silence_frames(rate)

    writer = WavWriter(path, rate, channels=1 if gains is None else 2)
    try:
        with SampleBuffer() as buffer:
            buffer.extend(np.zeros((lead, 2), dtype=np.int64))
            buffer.extend(_image(samples, gains))
            buffer.extend(np.zeros((tail, 2), dtype=np.int64))
            buffer.stream(amplitude, writer)
    except BaseException:
        writer.close(remove=True)
        raise
    writer.close()
    return RenderSummary(
        path=Path(path),
        frames=writer.frames,
        channels=writer.channels,
        rate=rate,
        instances=result.icount,
        elapsed=time.perf_counter() - started,
    )


def render_script_file(path: str | Path, script_path: str | Path, **kwargs) -> RenderSummary:
    with open(script_path, "r", encoding="utf-8") as fh:
        script = fh.read()
    return render_script(path, script, **kwargs)


def render_beep(
    path: str | Path,
    *,
    pitch: int,
    seconds: int,
    rate: int,
    amplitude: int,
    config: RenderConfig | None = None,
    stereo: StereoPosition | None = None,
) -> RenderSummary:
    """Render a plain square wave at piano key ``pitch`` to ``path``."""

    rate = _check_note(pitch, seconds, rate, amplitude)
    config = config or RenderConfig()
    started = time.perf_counter()
    wave = SquareWave(amplitude, rate)

    gains = None
    if stereo is not None:
        _ensure_quant(config.pan_center)
        gains = stereo.gains(pitch)

    total = seconds * rate
    with WavWriter(path, rate, channels=1 if gains is None else 2) as writer:
        for start in range(0, total, _BLOCK):
            block = wave.block(pitch, start, min(_BLOCK, total - start)).astype(np.int64)
            writer.write_frames(_image(block, gains))
        frames = writer.frames
    log_render_event(f"render: square wave pitch={pitch} rate={rate} frames={frames}")
    return RenderSummary(
        path=Path(path),
        frames=frames,
        channels=1 if gains is None else 2,
        rate=rate,
        elapsed=time.perf_counter() - started,
    )


__all__ = [
    "AMPLITUDE_MAX",
    "AMPLITUDE_MIN",
    "RenderSummary",
    "SECONDS_MAX",
    "SECONDS_MIN",
    "render_beep",
    "render_graph",
    "render_script",
    "render_script_file",
    "to_sample",
]
