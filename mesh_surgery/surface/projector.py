"""
Project points onto a mesh surface.

A point is dropped onto the plane of its nearest triangle and classified
by its barycentric coordinates: inside the face or on one of its edges.
A point outside the face or on one of its corners is rejected. There is
no retry on the next-nearest triangle.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from mesh_surgery import config
from mesh_surgery.geometry.spatial_index import TriangleSpatialIndex
from mesh_surgery.geometry.triangle import Triangle
from mesh_surgery.mesh.buffers import MeshBuffers
from mesh_surgery.project_config import ProjectionConfig

logger = logging.getLogger(__name__)

# Mesh-local corner pair opposite each barycentric weight (alpha, beta, gamma)
_OPPOSITE_EDGE = ((1, 2), (2, 0), (0, 1))


@dataclass
class ProjectedPoint:
    """A point placed on the surface.

    Attributes:
        point: position on the face plane
        source: the point as given
        face_id: triangle the point landed on
        bary: (alpha, beta, gamma) weights of the face corners
        is_on_edge: exactly one weight is ~0
        edge_vertices: mesh vertex indices of that edge, else None
        vertex_index: mesh vertex created for this point, once materialized
    """
    point: NDArray[np.float64]
    source: NDArray[np.float64]
    face_id: int
    bary: Tuple[float, float, float]
    is_on_edge: bool = False
    edge_vertices: Optional[Tuple[int, int]] = None
    vertex_index: Optional[int] = None


def classify_barycentric(
    bary: Tuple[float, float, float],
    eps: float,
) -> Tuple[bool, Optional[int]]:
    """Classify barycentric weights.

    Interior: every weight above eps. On an edge: exactly one weight
    within eps of zero. Anything else (a negative weight, a bad sum,
    two weights near zero at a corner) is rejected.

    Returns:
        (accepted, zero_weight) where zero_weight is the position of the
        weight within eps of zero for an edge point, else None
    """
    if any(w < -eps for w in bary) or abs(sum(bary) - 1.0) > eps:
        return False, None
    near_zero = [i for i, w in enumerate(bary) if abs(w) <= eps]
    if len(near_zero) > 1:
        return False, None
    return True, near_zero[0] if near_zero else None


def project_onto_triangle(
    mesh: MeshBuffers,
    source: NDArray[np.float64],
    tri: Triangle,
    eps: float,
) -> Optional[ProjectedPoint]:
    """Project a point onto one triangle of `mesh` (tri.index is its face id).

    Returns:
        ProjectedPoint, or None for a degenerate face or a projection
        outside the face or on a corner
    """
    bary = tri.barycentric(source)
    if bary is None:
        logger.debug("Triangle %d is degenerate, projection rejected", tri.index)
        return None

    accepted, zero_weight = classify_barycentric(bary, eps)
    if not accepted:
        logger.debug("Projection rejected on triangle %d: bary=%s", tri.index, bary)
        return None

    edge_vertices = None
    if zero_weight is not None:
        face = mesh.indices[tri.index]
        a, b = _OPPOSITE_EDGE[zero_weight]
        edge_vertices = (int(face[a]), int(face[b]))

    return ProjectedPoint(
        point=tri.project_to_plane(source),
        source=np.array(source, dtype=np.float64),
        face_id=tri.index,
        bary=bary,
        is_on_edge=edge_vertices is not None,
        edge_vertices=edge_vertices,
    )


class PointProjector:
    """Projects points onto one mesh using a prebuilt spatial index.

    The projector must be rebuilt after the mesh buffers change.
    """

    def __init__(
        self,
        mesh: MeshBuffers,
        index: Optional[TriangleSpatialIndex] = None,
        settings: Optional[ProjectionConfig] = None,
    ) -> None:
        mesh.require()
        self.mesh = mesh
        self.index = index if index is not None else TriangleSpatialIndex(mesh)
        self.eps = settings.eps if settings is not None else config.PROJECTION_EPS

    def project(self, point: Sequence[float]) -> Optional[ProjectedPoint]:
        """Project a point onto the nearest face.

        Returns:
            ProjectedPoint, or None if no face was found, the face is
            degenerate or the projection falls outside it or on a corner
        """
        source = np.asarray(point, dtype=np.float64).reshape(3)
        tri = self.index.find_closest_triangle(source)
        if tri is None:
            logger.debug("No triangle near %s", source.tolist())
            return None
        return self.project_onto(source, tri)

    def project_onto(self, source: NDArray[np.float64], tri: Triangle) -> Optional[ProjectedPoint]:
        """Project a point onto a given triangle of this mesh."""
        return project_onto_triangle(self.mesh, source, tri, self.eps)
