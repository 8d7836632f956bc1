"""
Merge coincident vertices.

Meshes coming from triangle soups (STL) or from split_mesh() carry one copy
of a vertex per face or per piece. Welding collapses vertices closer than a
tolerance so that shared edges become shared again.
"""

import logging
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray
from scipy.spatial import cKDTree

from mesh_surgery import config
from mesh_surgery.mesh.buffers import MeshBuffers

logger = logging.getLogger(__name__)


def weld_vertices(
    mesh: MeshBuffers,
    tolerance: Optional[float] = None,
) -> Tuple[MeshBuffers, NDArray[np.int64]]:
    """Collapse vertices within `tolerance` of each other.

    Vertices are visited in index order; the first unassigned vertex of a
    cluster represents every unassigned vertex within tolerance of it.
    Triangles that end up with a repeated vertex are dropped. Normals of
    merged vertices are averaged.

    Args:
        mesh: Input mesh (not modified)
        tolerance: Merge distance (default config.WELD_TOLERANCE)

    Returns:
        (welded mesh, remap) where remap[old_vertex] is the new vertex index
    """
    mesh.require()
    tol = config.WELD_TOLERANCE if tolerance is None else tolerance
    n = mesh.n_vertices
    if n == 0:
        return mesh.copy(), np.zeros(0, dtype=np.int64)

    tree = cKDTree(mesh.positions)
    neighbours = tree.query_ball_point(mesh.positions, r=tol)

    representative = np.full(n, -1, dtype=np.int64)
    for v in range(n):
        if representative[v] >= 0:
            continue
        representative[v] = v
        for u in neighbours[v]:
            if representative[u] < 0:
                representative[u] = v

    keep = np.flatnonzero(representative == np.arange(n))
    new_id = np.full(n, -1, dtype=np.int64)
    new_id[keep] = np.arange(len(keep))
    remap = new_id[representative]

    indices = remap[mesh.indices]
    collapsed = (
        (indices[:, 0] == indices[:, 1])
        | (indices[:, 1] == indices[:, 2])
        | (indices[:, 2] == indices[:, 0])
    )
    indices = indices[~collapsed]

    normals = None
    if mesh.normals is not None:
        summed = np.zeros((len(keep), 3))
        np.add.at(summed, remap, mesh.normals)
        lengths = np.linalg.norm(summed, axis=1, keepdims=True)
        normals = np.where(lengths > 1e-12, summed / np.where(lengths > 1e-12, lengths, 1.0), 0.0)

    welded = MeshBuffers(
        positions=mesh.positions[keep].copy(),
        indices=indices.astype(np.int64),
        normals=normals,
    )
    logger.info(
        "Welded %d -> %d vertices, dropped %d collapsed faces",
        n, len(keep), int(collapsed.sum()),
    )
    return welded, remap
