"""Piecewise-linear intensity curves built from smooth and rough blocks."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass

from .utils import S16_MAX

GRAPH_MAX_WIDTH = 2**31 - 1


@dataclass(frozen=True, slots=True)
class Block:
    """One segment of a :class:`BlockGraph`.

    ``start`` is ``None`` for smooth blocks, which continue from the
    previous block's endpoint.
    """

    width: int
    end: int
    start: int | None = None

    @property
    def smooth(self) -> bool:
        return self.start is None


def _check_value(value, *, name: str) -> int:
    v = int(value)
    if v < -S16_MAX or v > S16_MAX:
        raise ValueError(f"{name} must be in [{-S16_MAX}, {S16_MAX}], got {value}")
    return v


class BlockGraph:
    """Sequence of blocks followed by a terminator."""

    __slots__ = ("capacity", "_blocks", "_offsets", "_total")

    def __init__(self, capacity: int) -> None:
        capacity = int(capacity)
        if capacity < 1:
            raise ValueError("block graph capacity must be at least 1")
        self.capacity = capacity
        self._blocks: list[Block] = []
        self._offsets: list[int] = []
        self._total = 0

    def __len__(self) -> int:
        return len(self._blocks)

    @property
    def width(self) -> int:
        return self._total

    @property
    def blocks(self) -> tuple[Block, ...]:
        return tuple(self._blocks)

    def _append(self, block: Block) -> None:
        # The last slot of the capacity holds the terminator.
        if len(self._blocks) >= self.capacity - 1:
            raise ValueError("block graph is full")
        if block.width < 1:
            raise ValueError(f"block width must be at least 1, got {block.width}")
        if self._total + block.width > GRAPH_MAX_WIDTH:
            raise ValueError("block graph total width out of range")
        self._offsets.append(self._total)
        self._blocks.append(block)
        self._total += block.width

    def append_smooth(self, width: int, end: int) -> None:
        self._append(Block(int(width), _check_value(end, name="end")))

    def append_rough(self, width: int, start: int, end: int) -> None:
        self._append(
            Block(int(width), _check_value(end, name="end"), _check_value(start, name="start"))
        )

    def _start_of(self, index: int) -> int:
        block = self._blocks[index]
        if block.start is not None:
            return block.start
        if index == 0:
            return 0
        return self._blocks[index - 1].end

    def get(self, t: int) -> int:
        """Return the curve value at time ``t``."""

        t = int(t)
        if t < 0:
            raise ValueError(f"t must be non-negative, got {t}")
        if not self._blocks:
            return 0
        if t >= self._total:
            return self._blocks[-1].end

        index = bisect_right(self._offsets, t) - 1
        block = self._blocks[index]
        start = self._start_of(index)
        offset = t - self._offsets[index]
        value = start + ((block.end - start) * (offset + 1)) // block.width
        return max(-S16_MAX, min(S16_MAX, value))


__all__ = ["Block", "BlockGraph", "GRAPH_MAX_WIDTH"]
