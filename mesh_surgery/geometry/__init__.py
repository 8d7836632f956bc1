"""Геометрические примитивы: AABB, BVH, треугольники, пространственный индекс."""

from mesh_surgery.geometry.aabb import AABB, Axis
from mesh_surgery.geometry.bvh import BVHTree, BoundsProvider, QueryRegion
from mesh_surgery.geometry.regions import SphereRegion, TriangleSphereRegion
from mesh_surgery.geometry.triangle import Triangle

__all__ = [
    "AABB",
    "Axis",
    "BVHTree",
    "BoundsProvider",
    "QueryRegion",
    "SphereRegion",
    "TriangleSphereRegion",
    "Triangle",
]
