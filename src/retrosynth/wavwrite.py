"""Single-pass writer for 16-bit PCM WAV files."""

from __future__ import annotations

import os
import struct
from pathlib import Path

import numpy as np

from .diagnostics import log_render_event
from .utils import check_rate, clamp_s16

WAV_HEADER_SIZE = 44
WAV_MAX_FILE = 1_000_000_000


def _header(rate: int, channels: int) -> bytes:
    block_align = channels * 2
    return b"".join(
        (
            b"RIFF",
            struct.pack("<I", 0),
            b"WAVE",
            b"fmt ",
            struct.pack("<IHHIIHH", 16, 1, channels, rate, rate * block_align, block_align, 16),
            b"data",
            struct.pack("<I", 0),
        )
    )


class WavWriter:
    """Stream interleaved 16-bit samples into a WAV file.

    The header is written with zero sizes when the file is opened and
    patched on a normal :meth:`close`. ``close(remove=True)`` discards the
    partial file instead. In mono mode each frame still arrives as a
    ``(left, right)`` pair and the two values must agree.
    """

    def __init__(self, path: str | Path, rate: int, channels: int = 1) -> None:
        self.rate = check_rate(rate)
        if channels not in (1, 2):
            raise ValueError(f"channels must be 1 or 2, got {channels}")
        self.channels = int(channels)
        self.path = Path(path)
        self._handle = open(self.path, "wb")
        self._handle.write(_header(self.rate, self.channels))
        self._size = WAV_HEADER_SIZE
        self.frames = 0

    @property
    def closed(self) -> bool:
        return self._handle is None

    def __enter__(self) -> "WavWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.closed:
            self.close(remove=exc_type is not None)

    def _require_open(self):
        if self._handle is None:
            raise RuntimeError("WAV writer is closed")
        return self._handle

    def sample(self, left: int, right: int) -> None:
        """Write one frame."""

        self.write_frames(np.array([[left, right]], dtype=np.int64))

    def write_frames(self, frames: np.ndarray) -> None:
        """Write an ``(n, 2)`` array of left/right integer frames."""

        handle = self._require_open()
        data = np.asarray(frames)
        if data.ndim != 2 or data.shape[1] != 2:
            raise ValueError(f"frames must have shape (n, 2), got {data.shape}")
        if data.shape[0] == 0:
            return
        data = clamp_s16(data.astype(np.int64, copy=False))
        if self.channels == 1:
            if not np.array_equal(data[:, 0], data[:, 1]):
                raise ValueError("mono WAV output requires identical left and right samples")
            data = data[:, :1]
        payload = data.astype("<i2").tobytes()
        if self._size + len(payload) > WAV_MAX_FILE:
            raise RuntimeError(f"WAV file would exceed {WAV_MAX_FILE} bytes")
        handle.write(payload)
        self._size += len(payload)
        self.frames += data.shape[0]

    def close(self, remove: bool = False) -> None:
        handle = self._require_open()
        self._handle = None
        if remove:
            handle.close()
            try:
                os.remove(self.path)
            except FileNotFoundError:
                pass
            log_render_event(f"wavwrite: removed {self.path}")
            return
        try:
            handle.seek(4)
            handle.write(struct.pack("<I", self._size - 8))
            handle.seek(40)
            handle.write(struct.pack("<I", self._size - WAV_HEADER_SIZE))
        finally:
            handle.close()
        log_render_event(
            f"wavwrite: closed {self.path} ({self.frames} frames, {self.channels} ch, {self.rate} Hz)"
        )


__all__ = ["WAV_HEADER_SIZE", "WAV_MAX_FILE", "WavWriter"]
