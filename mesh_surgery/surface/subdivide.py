"""
Split one triangle into three around a new vertex P.

The original face slot becomes (v1, v2, P); (v2, v3, P) and (v3, v1, P)
are appended. All three keep the winding of the original face.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np

from mesh_surgery.mesh.buffers import MeshBuffers, MeshBufferError

logger = logging.getLogger(__name__)


@dataclass
class SubdivisionDelta:
    """What a subdivision changed in the buffers.

    Attributes:
        new_vertex: index of the inserted vertex P
        triangle_ids: the rewritten face followed by the two appended ones
        edges: edges that did not exist before (P to each corner)
        removed_edges: edges that no longer exist (none for a 1->3 split)
        parent_triangle: id of the face that was split
    """
    new_vertex: int
    triangle_ids: List[int]
    edges: List[Tuple[int, int]]
    removed_edges: List[Tuple[int, int]] = field(default_factory=list)
    parent_triangle: int = -1


def _unit(v: np.ndarray) -> np.ndarray:
    length = float(np.linalg.norm(v))
    return v / length if length > 1e-12 else np.zeros(3)


def subdivide_triangle(mesh: MeshBuffers, triangle_id: int, point: Sequence[float]) -> SubdivisionDelta:
    """Insert `point` into triangle `triangle_id` and fan it out to the corners.

    If the mesh has normals, the new vertex gets the normalized mean of
    the three child face normals (the parent face normal when that mean
    vanishes). Normals of existing vertices are not touched.

    Any spatial index built on `mesh` is stale after this call.

    Raises:
        MeshBufferError: if buffers are missing or triangle_id is out of range
    """
    mesh.require()
    if not 0 <= triangle_id < mesh.n_faces:
        raise MeshBufferError(
            f"triangle id {triangle_id} out of range [0, {mesh.n_faces})"
        )

    p = np.asarray(point, dtype=np.float64).reshape(3)
    v1, v2, v3 = (int(i) for i in mesh.indices[triangle_id])
    new_vertex = mesh.n_vertices
    first_new_face = mesh.n_faces

    positions = np.vstack([mesh.positions, p])
    indices = np.vstack([mesh.indices, [[v2, v3, new_vertex], [v3, v1, new_vertex]]])
    indices[triangle_id] = [v1, v2, new_vertex]

    normals = None
    if mesh.normals is not None:
        child_normals = [
            np.cross(positions[b] - positions[a], positions[c] - positions[a])
            for a, b, c in indices[[triangle_id, first_new_face, first_new_face + 1]]
        ]
        n = _unit(sum(_unit(cn) for cn in child_normals))
        if not np.any(n):
            n = _unit(np.cross(positions[v2] - positions[v1], positions[v3] - positions[v1]))
        normals = np.vstack([mesh.normals, n])

    # Assign only after every new buffer is built
    mesh.positions = positions
    mesh.indices = indices.astype(np.int64)
    if normals is not None:
        mesh.normals = normals

    logger.debug("Subdivided triangle %d at vertex %d", triangle_id, new_vertex)
    return SubdivisionDelta(
        new_vertex=new_vertex,
        triangle_ids=[triangle_id, first_new_face, first_new_face + 1],
        edges=[(v1, new_vertex), (v2, new_vertex), (v3, new_vertex)],
        parent_triangle=triangle_id,
    )
