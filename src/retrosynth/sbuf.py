"""Sample buffer with deferred peak normalisation."""

from __future__ import annotations

import numpy as np

from .utils import S16_MAX, clamp_s16

_INITIAL_FRAMES = 4096
# Stored samples keep 32-bit headroom; only stream() reduces them to 16 bits.
_STORE_MAX = 2**31 - 1
_STREAM_CHUNK = 65536


class SampleBuffer:
    """Growable buffer of interleaved left/right 32-bit samples.

    Samples are collected with :meth:`push` and, once the whole event is
    rendered, scaled so the loudest sample hits the requested peak and
    streamed to a writer with :meth:`stream`.
    """

    __slots__ = ("_data", "_count", "_open", "_streamed")

    def __init__(self) -> None:
        self._data = np.zeros((0, 2), dtype=np.int32)
        self._count = 0
        self._open = False
        self._streamed = False

    def open(self) -> "SampleBuffer":
        if self._open:
            raise RuntimeError("sample buffer already open")
        self._data = np.zeros((_INITIAL_FRAMES, 2), dtype=np.int32)
        self._count = 0
        self._open = True
        self._streamed = False
        return self

    def close(self) -> None:
        if not self._open:
            raise RuntimeError("sample buffer is not open")
        self._open = False
        self._data = np.zeros((0, 2), dtype=np.int32)
        self._count = 0

    def __enter__(self) -> "SampleBuffer":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._open:
            self.close()

    def __len__(self) -> int:
        return self._count

    def _require_open(self) -> None:
        if not self._open:
            raise RuntimeError("sample buffer is not open")

    def _reserve(self, extra: int) -> None:
        needed = self._count + extra
        capacity = self._data.shape[0]
        if needed <= capacity:
            return
        while capacity < needed:
            capacity *= 2
        grown = np.zeros((capacity, 2), dtype=np.int32)
        grown[: self._count] = self._data[: self._count]
        self._data = grown

    def push(self, left: int, right: int) -> None:
        self._require_open()
        if self._streamed:
            raise RuntimeError("sample buffer already streamed")
        self._reserve(1)
        row = self._data[self._count]
        row[0] = max(-_STORE_MAX, min(_STORE_MAX, int(left)))
        row[1] = max(-_STORE_MAX, min(_STORE_MAX, int(right)))
        self._count += 1

    def extend(self, frames: np.ndarray) -> None:
        """Append an ``(n, 2)`` block of frames, clamped like :meth:`push`."""

        self._require_open()
        if self._streamed:
            raise RuntimeError("sample buffer already streamed")
        block = np.asarray(frames)
        if block.ndim != 2 or block.shape[1] != 2:
            raise ValueError(f"frames must have shape (n, 2), got {block.shape}")
        self._reserve(block.shape[0])
        end = self._count + block.shape[0]
        self._data[self._count : end] = np.clip(block, -_STORE_MAX, _STORE_MAX)
        self._count = end

    def frames(self) -> np.ndarray:
        """Return a copy of the buffered frames."""

        return self._data[: self._count].copy()

    def peak(self) -> int:
        if self._count == 0:
            return 0
        return int(np.max(np.abs(self._data[: self._count].astype(np.int64))))

    def stream(self, peak: int, writer) -> None:
        """Normalise to ``peak`` and send every frame to ``writer``.

        ``writer`` needs a ``write_frames`` method accepting ``(n, 2)``
        integer arrays. The buffer can only be streamed once.
        """

        self._require_open()
        if self._streamed:
            raise RuntimeError("sample buffer already streamed")
        peak = int(peak)
        if peak < 1 or peak > S16_MAX:
            raise ValueError(f"peak must be in [1, {S16_MAX}], got {peak}")
        self._streamed = True

        maxval = self.peak()
        for start in range(0, self._count, _STREAM_CHUNK):
            block = self._data[start : min(start + _STREAM_CHUNK, self._count)].astype(np.int64)
            if maxval > 0:
                # Integer scaling truncated toward zero.
                block = np.sign(block) * ((np.abs(block) * peak) // maxval)
            writer.write_frames(clamp_s16(block, peak))


__all__ = ["SampleBuffer"]
