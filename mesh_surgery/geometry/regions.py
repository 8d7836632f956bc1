"""Spherical query regions for BVHTree.query()."""

from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from mesh_surgery.geometry.aabb import AABB
from mesh_surgery.geometry.bvh import BoundsProvider
from mesh_surgery.geometry.triangle import Triangle


class SphereRegion:
    """Ball of a given center and radius.

    An item matches when the center of its AABB lies inside the ball.
    Center and radius may be changed after construction; the cached
    bounding box follows.
    """

    def __init__(self, center: Sequence[float], radius: float):
        if radius < 0:
            raise ValueError("Radius must be non-negative")
        self._center = np.array(center, dtype=np.float64).reshape(3)
        self._radius = float(radius)
        self._radius_sq = self._radius * self._radius
        self._update_bounding_box()

    @property
    def center(self) -> NDArray[np.float64]:
        return self._center.copy()

    @center.setter
    def center(self, value: Sequence[float]) -> None:
        self._center = np.array(value, dtype=np.float64).reshape(3)
        self._update_bounding_box()

    @property
    def radius(self) -> float:
        return self._radius

    @radius.setter
    def radius(self, value: float) -> None:
        if value < 0:
            raise ValueError("Radius must be non-negative")
        self._radius = float(value)
        self._radius_sq = self._radius * self._radius
        self._update_bounding_box()

    @property
    def bounding_box(self) -> AABB:
        return self._bounding_box

    def _update_bounding_box(self) -> None:
        r = self._radius
        self._bounding_box = AABB(self._center - r, self._center + r)

    def intersects(self, aabb: AABB) -> bool:
        return aabb.outer_distance_squared(self._center) <= self._radius_sq

    def contains_point(self, point: Sequence[float]) -> bool:
        d = np.asarray(point, dtype=np.float64) - self._center
        return float(np.dot(d, d)) <= self._radius_sq

    def contains(self, item: BoundsProvider) -> bool:
        return self.contains_point(item.get_aabb().center)


class TriangleSphereRegion(SphereRegion):
    """Ball that matches triangles by their true closest distance."""

    def contains(self, item: Triangle) -> bool:
        return item.closest_squared_distance(self._center) <= self._radius_sq
