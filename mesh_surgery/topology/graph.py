"""
Weighted surface graph and shortest paths.

Vertices of the mesh are nodes, triangle edges are undirected edges
weighted by Euclidean length. Dijkstra runs on integer adjacency dicts,
so the graph holds no references back into the mesh.

Usage:
    graph = SurfaceGraph.from_mesh(mesh)
    result = graph.shortest_path(start_vertex, end_vertex)
    result.vertices, result.distance
"""

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Sequence, Set

import numpy as np
from numpy.typing import NDArray

from mesh_surgery.mesh.buffers import MeshBuffers

if TYPE_CHECKING:
    from mesh_surgery.surface.subdivide import SubdivisionDelta

logger = logging.getLogger(__name__)


class NoPathFound(LookupError):
    """No path connects the requested vertices."""


@dataclass
class PathResult:
    """Shortest path as an ordered vertex list and its total length."""
    vertices: List[int] = field(default_factory=list)
    distance: float = 0.0

    def __len__(self) -> int:
        return len(self.vertices)

    def edges(self) -> List[tuple]:
        return list(zip(self.vertices, self.vertices[1:]))


class SurfaceGraph:
    """Undirected weighted graph over mesh vertices.

    Attributes:
        nodes: vertex indices present in the graph
    """

    def __init__(self) -> None:
        self.nodes: Set[int] = set()
        self._adjacency: Dict[int, Dict[int, float]] = {}
        self._n_edges = 0

    @classmethod
    def from_mesh(cls, mesh: MeshBuffers) -> 'SurfaceGraph':
        """Add every triangle's vertices and its three edges."""
        mesh.require()
        graph = cls()
        positions = mesh.positions
        for face in mesh.indices:
            a, b, c = int(face[0]), int(face[1]), int(face[2])
            graph.add_node(a)
            graph.add_node(b)
            graph.add_node(c)
            graph.add_edge(a, b, positions)
            graph.add_edge(b, c, positions)
            graph.add_edge(c, a, positions)
        logger.debug("Surface graph: %d nodes, %d edges", len(graph.nodes), graph.n_edges)
        return graph

    @property
    def n_edges(self) -> int:
        return self._n_edges

    def add_node(self, v: int) -> None:
        if v not in self.nodes:
            self.nodes.add(v)
            self._adjacency[v] = {}

    def has_edge(self, a: int, b: int) -> bool:
        return b in self._adjacency.get(a, {})

    def neighbors(self, v: int) -> Dict[int, float]:
        """Neighbor -> weight mapping (a copy)."""
        return dict(self._adjacency.get(v, {}))

    def weight(self, a: int, b: int) -> float:
        try:
            return self._adjacency[a][b]
        except KeyError:
            raise KeyError(f"no edge {a}-{b}") from None

    def add_edge(self, a: int, b: int, positions: NDArray[np.float64]) -> bool:
        """Add an edge weighted by the distance between its endpoints.

        Returns:
            False for a self-loop or an edge that already exists
        """
        a, b = int(a), int(b)
        if a == b or self.has_edge(a, b):
            return False
        self.add_node(a)
        self.add_node(b)
        w = float(np.linalg.norm(positions[a] - positions[b]))
        self._adjacency[a][b] = w
        self._adjacency[b][a] = w
        self._n_edges += 1
        return True

    def remove_edge(self, a: int, b: int) -> bool:
        if not self.has_edge(a, b):
            return False
        del self._adjacency[a][b]
        del self._adjacency[b][a]
        self._n_edges -= 1
        return True

    def apply_edit(self, delta: 'SubdivisionDelta', positions: NDArray[np.float64]) -> None:
        """Bring the graph up to date after a triangle subdivision.

        Args:
            delta: What subdivide_triangle changed
            positions: Vertex positions after the edit
        """
        self.add_node(delta.new_vertex)
        for a, b in delta.removed_edges:
            self.remove_edge(a, b)
        added = sum(1 for a, b in delta.edges if self.add_edge(a, b, positions))
        logger.debug("Graph edit: vertex %d, +%d edges", delta.new_vertex, added)

    def path_length(self, path: Sequence[int]) -> float:
        """Sum of edge weights along consecutive path vertices."""
        return float(sum(self.weight(a, b) for a, b in zip(path, path[1:])))

    def shortest_path(self, start: int, end: int) -> PathResult:
        """Dijkstra from start to end.

        Equal-distance entries leave the heap in insertion order.

        Raises:
            NoPathFound: if an endpoint is not in the graph or end is unreachable
        """
        if start not in self.nodes or end not in self.nodes:
            missing = [v for v in (start, end) if v not in self.nodes]
            raise NoPathFound(f"vertices {missing} are not in the graph")
        if start == end:
            return PathResult(vertices=[start], distance=0.0)

        dist: Dict[int, float] = {start: 0.0}
        previous: Dict[int, int] = {}
        done: Set[int] = set()
        counter = itertools.count()
        heap = [(0.0, next(counter), start)]

        while heap:
            d, _, v = heapq.heappop(heap)
            if v in done:
                continue
            done.add(v)
            if v == end:
                break
            for u, w in self._adjacency[v].items():
                nd = d + w
                if u not in done and nd < dist.get(u, float('inf')):
                    dist[u] = nd
                    previous[u] = v
                    heapq.heappush(heap, (nd, next(counter), u))

        if end not in done:
            raise NoPathFound(f"vertex {end} is unreachable from {start}")

        path = [end]
        while path[-1] != start:
            path.append(previous[path[-1]])
        path.reverse()
        return PathResult(vertices=path, distance=dist[end])

