"""
Pytest configuration and fixtures for mesh_surgery.

Provides:
- Closed and open test meshes built in code (tetrahedron, quads, grid, box, tube)
- Factories for grids, tubes and circular boundary loops of any size
- Common assertion helpers
"""

from typing import Callable

import numpy as np
import pytest

from mesh_surgery.mesh.buffers import MeshBuffers


# ============================================================================
# Mesh Builders
# ============================================================================

def _grid(nx: int, ny: int, spacing: float = 1.0) -> MeshBuffers:
    """Flat grid in z=0 of nx * ny quads, each split along (i,j)-(i+1,j+1)."""
    xs, ys = np.meshgrid(np.arange(nx + 1) * spacing, np.arange(ny + 1) * spacing)
    positions = np.column_stack([xs.ravel(), ys.ravel(), np.zeros(xs.size)])
    faces = []
    for j in range(ny):
        for i in range(nx):
            a = j * (nx + 1) + i
            b, c, d = a + 1, a + nx + 2, a + nx + 1
            faces.append([a, b, c])
            faces.append([a, c, d])
    return MeshBuffers(positions=positions, indices=np.array(faces, dtype=np.int64))


def _tube(segments: int, radius: float = 1.0, height: float = 1.0) -> MeshBuffers:
    """Open cylinder (two boundary loops of `segments` vertices)."""
    angles = np.linspace(0, 2 * np.pi, segments, endpoint=False)
    ring = np.column_stack([radius * np.cos(angles), radius * np.sin(angles)])
    bottom = np.column_stack([ring, np.zeros(segments)])
    top = np.column_stack([ring, np.full(segments, height)])
    faces = []
    for i in range(segments):
        j = (i + 1) % segments
        faces.append([i, j, segments + j])
        faces.append([i, segments + j, segments + i])
    return MeshBuffers(positions=np.vstack([bottom, top]), indices=np.array(faces, dtype=np.int64))


def _circle_loop(n: int, radius: float = 1.0, tilt: float = 0.0) -> np.ndarray:
    """n points on a circle, rotated about X by `tilt` radians."""
    angles = np.linspace(0, 2 * np.pi, n, endpoint=False)
    pts = np.column_stack([radius * np.cos(angles), radius * np.sin(angles), np.zeros(n)])
    c, s = np.cos(tilt), np.sin(tilt)
    rot = np.array([[1, 0, 0], [0, c, -s], [0, s, c]])
    return pts @ rot.T


# ============================================================================
# Closed Meshes
# ============================================================================

@pytest.fixture
def tetrahedron() -> MeshBuffers:
    """Closed unit tetrahedron with outward-facing CCW faces."""
    positions = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.0, 0.0, 1.0],
    ])
    indices = np.array([[0, 2, 1], [0, 1, 3], [0, 3, 2], [1, 2, 3]], dtype=np.int64)
    return MeshBuffers(positions=positions, indices=indices)


@pytest.fixture
def open_tetrahedron(tetrahedron: MeshBuffers) -> MeshBuffers:
    """Tetrahedron with its slanted face removed (one triangular hole)."""
    return MeshBuffers(positions=tetrahedron.positions, indices=tetrahedron.indices[:3].copy())


@pytest.fixture
def cube() -> MeshBuffers:
    """Closed unit cube, 8 shared vertices, 12 outward faces."""
    positions = np.array([
        [0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
        [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1],
    ], dtype=np.float64)
    indices = np.array([
        [0, 2, 1], [0, 3, 2],  # bottom
        [4, 5, 6], [4, 6, 7],  # top
        [0, 1, 5], [0, 5, 4],  # front
        [2, 3, 7], [2, 7, 6],  # back
        [0, 4, 7], [0, 7, 3],  # left
        [1, 2, 6], [1, 6, 5],  # right
    ], dtype=np.int64)
    return MeshBuffers(positions=positions, indices=indices)


@pytest.fixture
def open_box(cube: MeshBuffers) -> MeshBuffers:
    """Unit cube without its top (one square hole of 4 vertices)."""
    keep = np.r_[0:2, 4:12]
    return MeshBuffers(positions=cube.positions.copy(), indices=cube.indices[keep].copy())


# ============================================================================
# Flat Meshes
# ============================================================================

@pytest.fixture
def quad_with_diagonal() -> MeshBuffers:
    """Unit square split along the 0-2 diagonal."""
    positions = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], dtype=np.float64)
    return MeshBuffers(positions=positions, indices=np.array([[0, 1, 2], [0, 2, 3]]))


@pytest.fixture
def quad_other_diagonal() -> MeshBuffers:
    """Unit square split along the 1-3 diagonal (no edge between 0 and 2)."""
    positions = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], dtype=np.float64)
    return MeshBuffers(positions=positions, indices=np.array([[0, 1, 3], [1, 2, 3]]))


@pytest.fixture
def single_triangle() -> MeshBuffers:
    """Right triangle in z=0 with unit legs and +Z normals."""
    positions = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=np.float64)
    normals = np.tile([0.0, 0.0, 1.0], (3, 1))
    return MeshBuffers(positions=positions, indices=np.array([[0, 1, 2]]), normals=normals)


@pytest.fixture
def grid() -> MeshBuffers:
    """4 x 4 quad grid with unit spacing (25 vertices, 32 faces)."""
    return _grid(4, 4)


# ============================================================================
# Factories
# ============================================================================

@pytest.fixture
def make_grid() -> Callable[..., MeshBuffers]:
    return _grid


@pytest.fixture
def make_tube() -> Callable[..., MeshBuffers]:
    return _tube


@pytest.fixture
def make_circle_loop() -> Callable[..., np.ndarray]:
    return _circle_loop


# ============================================================================
# Assertion Helpers
# ============================================================================

def assert_valid_mesh(mesh: MeshBuffers) -> None:
    """Assert buffer shapes, dtypes and index range."""
    assert mesh.positions.ndim == 2 and mesh.positions.shape[1] == 3
    assert mesh.indices.ndim == 2 and mesh.indices.shape[1] == 3
    assert not np.any(np.isnan(mesh.positions))
    if len(mesh.indices):
        assert mesh.indices.min() >= 0
        assert mesh.indices.max() < len(mesh.positions)


@pytest.fixture
def check_mesh() -> Callable[[MeshBuffers], None]:
    return assert_valid_mesh
