"""
Unit tests for mesh_surgery.topology.boundary module.

Tests:
- Edge map construction
- Boundary edge detection
- Loop extraction
- Loop deduplication
"""

import logging

import numpy as np
import pytest

from mesh_surgery.mesh.buffers import MeshBuffers
from mesh_surgery.topology.boundary import (
    build_edge_map,
    deduplicate_loop,
    edge_key,
    extract_boundary_loops,
    find_boundary_edges,
    group_into_loops,
)


class TestEdgeMap:
    """Tests for edge_key and build_edge_map."""

    def test_edge_key_is_sorted(self):
        assert edge_key(5, 2) == (2, 5)
        assert edge_key(2, 5) == (2, 5)

    def test_shared_diagonal(self, quad_with_diagonal):
        edge_map = build_edge_map(quad_with_diagonal.indices)
        assert len(edge_map) == 5
        assert edge_map[(0, 2)] == [0, 1]
        assert edge_map[(0, 1)] == [0]


class TestBoundaryEdges:
    """Tests for find_boundary_edges."""

    def test_closed_mesh_has_none(self, tetrahedron, cube):
        assert find_boundary_edges(tetrahedron) == []
        assert find_boundary_edges(cube) == []

    def test_open_tetrahedron(self, open_tetrahedron):
        assert sorted(find_boundary_edges(open_tetrahedron)) == [(1, 2), (1, 3), (2, 3)]

    def test_non_manifold_warning(self, caplog):
        positions = np.array([
            [0, 0, 0], [1, 0, 0], [0, 1, 0], [0, -1, 0], [0, 0, 1],
        ], dtype=float)
        mesh = MeshBuffers(positions, np.array([[0, 1, 2], [1, 0, 3], [0, 1, 4]]))
        with caplog.at_level(logging.WARNING, logger="mesh_surgery"):
            edges = find_boundary_edges(mesh)
        assert (0, 1) not in edges
        assert "non-manifold" in caplog.text


class TestBoundaryLoops:
    """Tests for extract_boundary_loops and group_into_loops."""

    def test_closed_tetrahedron(self, tetrahedron):
        assert extract_boundary_loops(tetrahedron) == []

    def test_one_missing_face(self, open_tetrahedron):
        loops = extract_boundary_loops(open_tetrahedron)
        assert len(loops) == 1
        assert len(loops[0]) == 3
        assert sorted(loops[0].vertex_indices) == [1, 2, 3]
        np.testing.assert_array_equal(
            loops[0].positions, open_tetrahedron.positions[loops[0].vertex_indices])

    def test_open_box(self, open_box):
        loops = extract_boundary_loops(open_box)
        assert len(loops) == 1
        assert sorted(loops[0].vertex_indices) == [4, 5, 6, 7]
        assert loops[0].perimeter() == pytest.approx(4.0)

    def test_loop_is_a_cycle(self, open_box):
        """Consecutive loop vertices (including last to first) are boundary edges."""
        loop = extract_boundary_loops(open_box)[0].vertex_indices
        boundary = set(find_boundary_edges(open_box))
        for a, b in zip(loop, loop[1:] + loop[:1]):
            assert edge_key(a, b) in boundary

    def test_tube_has_two_loops(self, make_tube):
        loops = extract_boundary_loops(make_tube(12))
        assert sorted(len(lp) for lp in loops) == [12, 12]
        heights = sorted(float(lp.positions[:, 2].mean()) for lp in loops)
        assert heights == pytest.approx([0.0, 1.0])

    def test_grid_outline(self, grid):
        loops = extract_boundary_loops(grid)
        assert len(loops) == 1
        assert len(loops[0]) == 16

    def test_short_chain_dropped(self):
        positions = np.zeros((3, 3))
        assert group_into_loops([(0, 1)], positions) == []

    def test_open_chain_kept_when_long_enough(self):
        positions = np.arange(12, dtype=float).reshape(4, 3)
        loops = group_into_loops([(0, 1), (1, 2), (2, 3)], positions)
        assert len(loops) == 1
        assert sorted(loops[0].vertex_indices) == [0, 1, 2, 3]


class TestDeduplicateLoop:
    """Tests for deduplicate_loop."""

    def test_closing_repeat_removed(self):
        pts = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 0, 0]], dtype=float)
        out = deduplicate_loop(pts)
        assert len(out) == 3
        np.testing.assert_array_equal(out[0], [0, 0, 0])

    def test_near_points_within_tolerance(self):
        pts = np.array([[0, 0, 0], [1e-8, 0, 0], [1, 0, 0]], dtype=float)
        assert len(deduplicate_loop(pts)) == 2
        assert len(deduplicate_loop(pts, tolerance=1e-9)) == 3

    def test_order_preserved(self):
        pts = np.array([[2, 0, 0], [0, 0, 0], [2, 0, 0], [1, 0, 0]], dtype=float)
        np.testing.assert_array_equal(deduplicate_loop(pts)[:, 0], [2, 0, 1])

    def test_empty(self):
        assert deduplicate_loop(np.zeros((0, 3))).shape == (0, 3)
