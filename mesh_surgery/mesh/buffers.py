"""
Mesh buffer container.

MeshBuffers holds the three buffers every operation in this package works
on: vertex positions, triangle indices and (optionally) vertex normals.
The caller owns it; functions that edit a mesh compute the new arrays
first and assign them last, so a failure never leaves a half-written mesh.

Usage:
    from mesh_surgery.mesh.buffers import MeshBuffers

    mesh = MeshBuffers.from_flat(positions, indices, normals)
    mesh.require()
    flat_positions, flat_indices, flat_normals = mesh.to_flat()
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger(__name__)


class MeshBufferError(ValueError):
    """Required mesh data is missing or malformed."""


def _reshape_triples(data, dtype, name: str) -> np.ndarray:
    arr = np.asarray(data, dtype=dtype)
    if arr.ndim == 2 and arr.shape[1] == 3:
        return arr.copy()
    flat = arr.reshape(-1)
    if flat.size % 3 != 0:
        raise MeshBufferError(f"{name} length {flat.size} is not a multiple of 3")
    return flat.reshape(-1, 3).copy()


def compute_face_normals(
    positions: NDArray[np.float64],
    indices: NDArray[np.int64],
) -> NDArray[np.float64]:
    """Unit normal of each triangle (zero for degenerate ones).

    Args:
        positions: (N, 3) vertex positions
        indices: (M, 3) triangle vertex indices

    Returns:
        (M, 3) array of face normals
    """
    if len(indices) == 0:
        return np.zeros((0, 3))
    v0 = positions[indices[:, 0]]
    e1 = positions[indices[:, 1]] - v0
    e2 = positions[indices[:, 2]] - v0
    cross = np.cross(e1, e2)
    lengths = np.linalg.norm(cross, axis=1, keepdims=True)
    safe = np.where(lengths > 1e-12, lengths, 1.0)
    return np.where(lengths > 1e-12, cross / safe, 0.0)


def compute_vertex_normals(
    positions: NDArray[np.float64],
    indices: NDArray[np.int64],
) -> NDArray[np.float64]:
    """Area-weighted vertex normals.

    The raw cross product of each face is accumulated at its three
    vertices, then normalized. Vertices with no usable faces get a
    zero normal.

    Args:
        positions: (N, 3) vertex positions
        indices: (M, 3) triangle vertex indices

    Returns:
        (N, 3) array of vertex normals
    """
    normals = np.zeros_like(positions, dtype=np.float64)
    if len(indices) == 0:
        return normals

    v0 = positions[indices[:, 0]]
    cross = np.cross(positions[indices[:, 1]] - v0, positions[indices[:, 2]] - v0)
    for corner in range(3):
        np.add.at(normals, indices[:, corner], cross)

    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    safe = np.where(lengths > 1e-12, lengths, 1.0)
    return np.where(lengths > 1e-12, normals / safe, 0.0)


@dataclass
class MeshBuffers:
    """Positions, indices and optional normals of a triangle mesh.

    Attributes:
        positions: (N, 3) float64 vertex positions
        indices: (M, 3) int64 triangle vertex indices (CCW winding)
        normals: (N, 3) float64 vertex normals, or None
    """
    positions: NDArray[np.float64]
    indices: NDArray[np.int64]
    normals: Optional[NDArray[np.float64]] = None

    @classmethod
    def from_flat(
        cls,
        positions: Sequence[float],
        indices: Sequence[int],
        normals: Optional[Sequence[float]] = None,
    ) -> 'MeshBuffers':
        """Build from flat xyz / index buffers (or (N, 3) arrays).

        Raises:
            MeshBufferError: if positions or indices are missing or malformed
        """
        if positions is None or indices is None:
            raise MeshBufferError("Mesh must have position and index data")
        mesh = cls(
            positions=_reshape_triples(positions, np.float64, "positions"),
            indices=_reshape_triples(indices, np.int64, "indices"),
            normals=(
                _reshape_triples(normals, np.float64, "normals")
                if normals is not None else None
            ),
        )
        mesh.require()
        return mesh

    @classmethod
    def empty(cls) -> 'MeshBuffers':
        return cls(positions=np.zeros((0, 3)), indices=np.zeros((0, 3), dtype=np.int64))

    @property
    def n_vertices(self) -> int:
        return len(self.positions)

    @property
    def n_faces(self) -> int:
        return len(self.indices)

    @property
    def has_normals(self) -> bool:
        return self.normals is not None

    def require(self, normals: bool = False) -> 'MeshBuffers':
        """Check that the buffers needed for an operation are usable.

        Args:
            normals: Also require a normal buffer matching positions

        Returns:
            self, for chaining

        Raises:
            MeshBufferError: on missing or inconsistent data
        """
        if self.positions is None or self.indices is None:
            raise MeshBufferError("Mesh must have position and index data")
        if self.positions.ndim != 2 or self.positions.shape[1] != 3:
            raise MeshBufferError(f"positions must be (N, 3), got {self.positions.shape}")
        if self.indices.ndim != 2 or self.indices.shape[1] != 3:
            raise MeshBufferError(f"indices must be (M, 3), got {self.indices.shape}")
        if len(self.indices) and (
            self.indices.min() < 0 or self.indices.max() >= len(self.positions)
        ):
            raise MeshBufferError(
                f"indices reference vertices outside [0, {len(self.positions)})"
            )
        if self.normals is not None and self.normals.shape != self.positions.shape:
            raise MeshBufferError(
                f"normals shape {self.normals.shape} does not match positions "
                f"{self.positions.shape}"
            )
        if normals and self.normals is None:
            raise MeshBufferError("Mesh does not have normal data")
        return self

    def copy(self) -> 'MeshBuffers':
        return MeshBuffers(
            positions=self.positions.copy(),
            indices=self.indices.copy(),
            normals=self.normals.copy() if self.normals is not None else None,
        )

    def to_flat(self) -> Tuple[NDArray[np.float64], NDArray[np.int64], Optional[NDArray[np.float64]]]:
        """Flatten back into xyz / index / normal buffers."""
        return (
            self.positions.reshape(-1).copy(),
            self.indices.reshape(-1).copy(),
            self.normals.reshape(-1).copy() if self.normals is not None else None,
        )

    def triangle(self, triangle_id: int) -> NDArray[np.float64]:
        """Vertex positions of one triangle, shape (3, 3)."""
        if not 0 <= triangle_id < len(self.indices):
            raise MeshBufferError(
                f"triangle id {triangle_id} out of range [0, {len(self.indices)})"
            )
        return self.positions[self.indices[triangle_id]]

    def face_normals(self) -> NDArray[np.float64]:
        return compute_face_normals(self.positions, self.indices)

    def compute_vertex_normals(self) -> NDArray[np.float64]:
        return compute_vertex_normals(self.positions, self.indices)

    def face_areas(self) -> NDArray[np.float64]:
        """Area of each triangle."""
        if len(self.indices) == 0:
            return np.zeros(0)
        v0 = self.positions[self.indices[:, 0]]
        cross = np.cross(
            self.positions[self.indices[:, 1]] - v0,
            self.positions[self.indices[:, 2]] - v0,
        )
        return 0.5 * np.linalg.norm(cross, axis=1)

    def surface_area(self) -> float:
        return float(self.face_areas().sum())

    def append_fragment(self, fragment: 'MeshBuffers') -> None:
        """Merge another mesh's buffers into this one.

        The fragment's indices are offset by the current vertex count.
        Normals are kept only if both meshes have them; otherwise the
        merged mesh drops its normal buffer.
        """
        offset = len(self.positions)
        positions = np.vstack([self.positions, fragment.positions])
        indices = np.vstack([self.indices, fragment.indices + offset])

        normals = None
        if self.normals is not None and fragment.normals is not None:
            normals = np.vstack([self.normals, fragment.normals])
        elif self.normals is not None:
            logger.warning("Fragment has no normals; dropping normals of merged mesh")

        self.positions = positions
        self.indices = indices.astype(np.int64)
        self.normals = normals
        logger.debug(
            "Appended fragment: +%d vertices, +%d faces",
            len(fragment.positions), len(fragment.indices),
        )
