"""
Axis-aligned bounding box.

The empty box (min = +inf, max = -inf on every axis) is the identity
element for union: including it into any box leaves that box unchanged.
"""

from enum import IntEnum
from typing import Optional, Sequence, Union

import numpy as np
from numpy.typing import NDArray


class Axis(IntEnum):
    """Coordinate axis."""
    X = 0
    Y = 1
    Z = 2


def _as_point(point: Sequence[float]) -> NDArray[np.float64]:
    return np.asarray(point, dtype=np.float64).reshape(3)


class AABB:
    """Axis-aligned bounding box.

    Attributes:
        min: Minimum corner (x_min, y_min, z_min)
        max: Maximum corner (x_max, y_max, z_max)
    """

    __slots__ = ("min", "max")

    def __init__(
        self,
        min_corner: Optional[Sequence[float]] = None,
        max_corner: Optional[Sequence[float]] = None,
    ):
        self.min = (
            _as_point(min_corner).copy() if min_corner is not None
            else np.full(3, np.inf)
        )
        self.max = (
            _as_point(max_corner).copy() if max_corner is not None
            else np.full(3, -np.inf)
        )

    @classmethod
    def empty(cls) -> 'AABB':
        """Create the empty (invalid) box."""
        return cls()

    @classmethod
    def from_points(cls, points: NDArray[np.float64]) -> 'AABB':
        """Create the tightest box around an (N, 3) point array."""
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(pts) == 0:
            return cls()
        return cls(pts.min(axis=0), pts.max(axis=0))

    def copy(self) -> 'AABB':
        return AABB(self.min, self.max)

    def is_valid(self) -> bool:
        """True if finite and min <= max on every axis."""
        return bool(
            np.all(np.isfinite(self.min))
            and np.all(np.isfinite(self.max))
            and np.all(self.min <= self.max)
        )

    def invalidate(self) -> None:
        """Reset to the empty box."""
        self.min = np.full(3, np.inf)
        self.max = np.full(3, -np.inf)

    # ------------------------------------------------------------------
    # Measures
    # ------------------------------------------------------------------

    def length(self, axis: Union[Axis, int]) -> float:
        """Extent along one axis."""
        return float(self.max[axis] - self.min[axis])

    @property
    def extent(self) -> NDArray[np.float64]:
        return self.max - self.min

    @property
    def center(self) -> NDArray[np.float64]:
        return (self.min + self.max) * 0.5

    def volume(self) -> float:
        """Box volume, 0.0 for the empty box."""
        if not self.is_valid():
            return 0.0
        ext = self.extent
        return float(ext[0] * ext[1] * ext[2])

    def longest_axis(self) -> Axis:
        """Axis with the largest extent (X wins ties, then Y)."""
        dx, dy, dz = self.extent
        if dx >= dy and dx >= dz:
            return Axis.X
        if dy >= dz:
            return Axis.Y
        return Axis.Z

    # ------------------------------------------------------------------
    # Union / containment
    # ------------------------------------------------------------------

    def include(self, other: Union['AABB', Sequence[float]]) -> 'AABB':
        """Grow in place to cover a point or another box. Returns self."""
        if isinstance(other, AABB):
            self.min = np.minimum(self.min, other.min)
            self.max = np.maximum(self.max, other.max)
        else:
            p = _as_point(other)
            self.min = np.minimum(self.min, p)
            self.max = np.maximum(self.max, p)
        return self

    def union(self, other: Union['AABB', Sequence[float]]) -> 'AABB':
        """Non-mutating version of include()."""
        return self.copy().include(other)

    def contains(self, item: Union['AABB', Sequence[float]]) -> bool:
        """Check if a point or a whole box lies inside (boundary inclusive)."""
        if isinstance(item, AABB):
            if not item.is_valid():
                return False
            return self.contains(item.min) and self.contains(item.max)
        p = _as_point(item)
        return bool(np.all(p >= self.min) and np.all(p <= self.max))

    def intersects(self, other: 'AABB') -> bool:
        """Check if two boxes overlap (touching counts)."""
        return bool(
            np.all(other.min <= self.max) and np.all(other.max >= self.min)
        )

    def intersection(self, other: 'AABB') -> Optional['AABB']:
        """Overlap box, or None if the boxes are disjoint."""
        box = AABB(np.maximum(self.min, other.min), np.minimum(self.max, other.max))
        return box if box.is_valid() else None

    def outer_distance_squared(self, point: Sequence[float]) -> float:
        """Squared distance from a point to the box (0 inside)."""
        p = _as_point(point)
        below = np.maximum(self.min - p, 0.0)
        above = np.maximum(p - self.max, 0.0)
        d = below + above
        return float(np.dot(d, d))

    def __repr__(self) -> str:
        return f"AABB(min={self.min.tolist()}, max={self.max.tolist()})"
