"""
Unit tests for mesh_surgery.topology.graph module.

Tests:
- Graph construction from a mesh
- Dijkstra shortest paths
- Incremental update after subdivision
"""

import numpy as np
import pytest
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import dijkstra

from mesh_surgery.surface.subdivide import subdivide_triangle
from mesh_surgery.topology.graph import NoPathFound, PathResult, SurfaceGraph


def _adjacency_snapshot(graph: SurfaceGraph):
    return {v: graph.neighbors(v) for v in graph.nodes}


class TestFromMesh:
    """Tests for SurfaceGraph.from_mesh."""

    def test_counts(self, quad_with_diagonal):
        graph = SurfaceGraph.from_mesh(quad_with_diagonal)
        assert graph.nodes == {0, 1, 2, 3}
        assert graph.n_edges == 5

    def test_weights_are_lengths(self, quad_with_diagonal):
        graph = SurfaceGraph.from_mesh(quad_with_diagonal)
        assert graph.weight(0, 1) == pytest.approx(1.0)
        assert graph.weight(2, 0) == pytest.approx(np.sqrt(2))
        with pytest.raises(KeyError):
            graph.weight(1, 3)

    def test_shared_edges_counted_once(self, cube):
        assert SurfaceGraph.from_mesh(cube).n_edges == 18

    def test_add_edge_rejects_loops_and_duplicates(self, quad_with_diagonal):
        graph = SurfaceGraph.from_mesh(quad_with_diagonal)
        positions = quad_with_diagonal.positions
        assert not graph.add_edge(1, 1, positions)
        assert not graph.add_edge(1, 0, positions)
        assert graph.add_edge(1, 3, positions)
        assert graph.n_edges == 6

    def test_remove_edge(self, quad_with_diagonal):
        graph = SurfaceGraph.from_mesh(quad_with_diagonal)
        assert graph.remove_edge(0, 2)
        assert not graph.has_edge(2, 0)
        assert not graph.remove_edge(0, 2)
        assert graph.n_edges == 4


class TestShortestPath:
    """Tests for SurfaceGraph.shortest_path."""

    def test_diagonal_shortcut(self, quad_with_diagonal):
        result = SurfaceGraph.from_mesh(quad_with_diagonal).shortest_path(0, 2)
        assert result.vertices == [0, 2]
        assert result.distance == pytest.approx(np.sqrt(2))

    def test_around_the_corner(self, quad_other_diagonal):
        result = SurfaceGraph.from_mesh(quad_other_diagonal).shortest_path(0, 2)
        assert len(result) == 3
        assert result.vertices[0] == 0 and result.vertices[-1] == 2
        assert result.distance == pytest.approx(2.0)

    def test_same_vertex(self, quad_with_diagonal):
        result = SurfaceGraph.from_mesh(quad_with_diagonal).shortest_path(3, 3)
        assert result == PathResult(vertices=[3], distance=0.0)
        assert result.edges() == []

    def test_missing_endpoint(self, quad_with_diagonal):
        graph = SurfaceGraph.from_mesh(quad_with_diagonal)
        with pytest.raises(NoPathFound):
            graph.shortest_path(0, 42)
        with pytest.raises(LookupError):
            graph.shortest_path(42, 0)

    def test_disconnected(self, quad_with_diagonal):
        graph = SurfaceGraph.from_mesh(quad_with_diagonal)
        graph.add_node(10)
        with pytest.raises(NoPathFound):
            graph.shortest_path(0, 10)

    def test_distance_matches_path_length(self, grid):
        graph = SurfaceGraph.from_mesh(grid)
        result = graph.shortest_path(0, 24)
        assert graph.path_length(result.vertices) == pytest.approx(result.distance)
        for a, b in result.edges():
            assert graph.has_edge(a, b)

    def test_matches_scipy_dijkstra(self, make_tube):
        mesh = make_tube(16, radius=1.5, height=2.0)
        graph = SurfaceGraph.from_mesh(mesh)

        rows, cols, weights = [], [], []
        for v in graph.nodes:
            for u, w in graph.neighbors(v).items():
                rows.append(v)
                cols.append(u)
                weights.append(w)
        n = mesh.n_vertices
        matrix = coo_matrix((weights, (rows, cols)), shape=(n, n)).tocsr()
        reference = dijkstra(matrix, directed=False, indices=0)

        for target in range(n):
            assert graph.shortest_path(0, target).distance == pytest.approx(reference[target])


class TestApplyEdit:
    """Tests for SurfaceGraph.apply_edit."""

    def test_matches_rebuild(self, grid):
        mesh = grid.copy()
        graph = SurfaceGraph.from_mesh(mesh)
        for face_id, point in [(0, [0.7, 0.2, 0.0]), (4, [2.6, 0.4, 0.0]), (0, [0.8, 0.1, 0.0])]:
            delta = subdivide_triangle(mesh, face_id, point)
            graph.apply_edit(delta, mesh.positions)

        rebuilt = SurfaceGraph.from_mesh(mesh)
        assert graph.nodes == rebuilt.nodes
        assert graph.n_edges == rebuilt.n_edges
        expected = _adjacency_snapshot(rebuilt)
        for v, neighbors in _adjacency_snapshot(graph).items():
            assert neighbors == pytest.approx(expected[v])

    def test_new_vertex_reachable(self, quad_with_diagonal):
        mesh = quad_with_diagonal.copy()
        graph = SurfaceGraph.from_mesh(mesh)
        delta = subdivide_triangle(mesh, 0, [0.6, 0.3, 0.0])
        graph.apply_edit(delta, mesh.positions)

        result = graph.shortest_path(delta.new_vertex, 3)
        assert result.vertices[0] == 4
        assert result.distance > 0
