"""D8 neighborhood, direction codes, and index arithmetic on a regular grid."""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Iterator

from spilldem.config import InvalidGridError


# Compass rotation starting east; y grows southward (row order).
DIRECTIONS_8: tuple[tuple[int, int], ...] = (
    (1, 0),
    (1, -1),
    (0, -1),
    (-1, -1),
    (-1, 0),
    (-1, 1),
    (0, 1),
    (1, 1),
)
DIRECTION_NAMES = ("E", "NE", "N", "NW", "W", "SW", "S", "SE")

# ESRI D8 encoding, indexed like DIRECTIONS_8.
D8_CODES: tuple[int, ...] = (1, 128, 64, 32, 16, 8, 4, 2)
FLOW_UNRESOLVED = 0
FLOW_DRAIN = 255

_CODE_TO_DIRECTION = {code: idx for idx, code in enumerate(D8_CODES)}


@dataclass(frozen=True)
class GridTopology:
    """Read-only neighbor service for a `width` x `height` grid."""

    width: int
    height: int
    pixel_size: tuple[float, float] = (1.0, 1.0)
    lengths: tuple[float, ...] = field(init=False)

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InvalidGridError(f"width and height must be positive, got {self.width}x{self.height}")
        sx, sy = (float(v) for v in self.pixel_size)
        if not (math.isfinite(sx) and math.isfinite(sy)) or sx <= 0.0 or sy <= 0.0:
            raise InvalidGridError(f"pixel size must be positive and finite, got {self.pixel_size}")
        diag = math.hypot(sx, sy)
        lengths = tuple(
            diag if dx != 0 and dy != 0 else (sx if dx != 0 else sy) for dx, dy in DIRECTIONS_8
        )
        object.__setattr__(self, "lengths", lengths)

    @property
    def size(self) -> int:
        return self.width * self.height

    def index(self, x: int, y: int) -> int:
        return y * self.width + x

    def coords(self, index: int) -> tuple[int, int]:
        y, x = divmod(index, self.width)
        return x, y

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def neighbors(self, x: int, y: int) -> Iterator[tuple[int, int, int]]:
        """Yield `(direction, nx, ny)` for every in-bounds neighbor of (x, y)."""

        for direction, (dx, dy) in enumerate(DIRECTIONS_8):
            nx = x + dx
            ny = y + dy
            if self.in_bounds(nx, ny):
                yield direction, nx, ny

    def length(self, direction: int) -> float:
        return self.lengths[direction]

    @staticmethod
    def code(direction: int) -> int:
        return D8_CODES[direction]

    @staticmethod
    def direction_of(code: int) -> int:
        """Direction index for a D8 code; raises KeyError for sentinels."""

        return _CODE_TO_DIRECTION[int(code)]

    @staticmethod
    def reverse(direction: int) -> int:
        return (direction + 4) % 8
