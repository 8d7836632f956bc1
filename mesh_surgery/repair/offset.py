"""Offset a surface along its vertex normals."""

import logging

import numpy as np

from mesh_surgery.mesh.buffers import MeshBuffers

logger = logging.getLogger(__name__)


def offset_mesh(mesh: MeshBuffers, distance: float) -> MeshBuffers:
    """Move every vertex by `distance` along its unit normal.

    The mesh's own normals are used when present, otherwise area-weighted
    vertex normals are computed. Vertices without a usable normal stay put.
    Connectivity is shared with the input; the result is a new mesh.
    """
    mesh.require()
    if mesh.normals is not None:
        normals = np.asarray(mesh.normals, dtype=np.float64)
        lengths = np.linalg.norm(normals, axis=1, keepdims=True)
        normals = np.where(lengths > 1e-12, normals / np.where(lengths > 1e-12, lengths, 1.0), 0.0)
    else:
        normals = mesh.compute_vertex_normals()

    positions = mesh.positions + normals * float(distance)
    logger.debug("Offset %d vertices by %.4g", mesh.n_vertices, distance)
    return MeshBuffers(positions=positions, indices=mesh.indices.copy(), normals=normals.copy())
