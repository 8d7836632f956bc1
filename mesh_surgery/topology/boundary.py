"""
Boundary edges and boundary loops of an open mesh.

An edge used by exactly one triangle is a boundary edge. Chaining boundary
edges through shared vertices gives the loops that outline each hole.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from mesh_surgery import config
from mesh_surgery.mesh.buffers import MeshBuffers

logger = logging.getLogger(__name__)

# Undirected edge, stored as (min, max)
Edge = Tuple[int, int]


def edge_key(a: int, b: int) -> Edge:
    a, b = int(a), int(b)
    return (a, b) if a < b else (b, a)


def build_edge_map(indices: NDArray[np.int64]) -> Dict[Edge, List[int]]:
    """Map every undirected edge to the faces that use it, in face order."""
    edge_to_faces: Dict[Edge, List[int]] = defaultdict(list)
    for fi, face in enumerate(indices):
        for i in range(3):
            edge_to_faces[edge_key(face[i], face[(i + 1) % 3])].append(fi)
    return edge_to_faces


@dataclass
class BoundaryLoop:
    """Ordered cycle of boundary vertices.

    Attributes:
        positions: (K, 3) positions in walk order
        vertex_indices: mesh vertex index of each position
    """
    positions: NDArray[np.float64]
    vertex_indices: List[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.positions)

    def perimeter(self) -> float:
        closed = np.vstack([self.positions, self.positions[:1]])
        return float(np.linalg.norm(np.diff(closed, axis=0), axis=1).sum())


def find_boundary_edges(mesh: MeshBuffers) -> List[Edge]:
    """Edges referenced by exactly one triangle.

    Edges shared by more than two triangles are counted and reported but
    otherwise ignored.

    Returns:
        Boundary edges as (min, max) pairs, in order of first appearance
    """
    mesh.require()
    counts: Dict[Edge, int] = defaultdict(int)
    for face in mesh.indices:
        for i in range(3):
            counts[edge_key(face[i], face[(i + 1) % 3])] += 1

    boundary = [edge for edge, n in counts.items() if n == 1]
    non_manifold = sum(1 for n in counts.values() if n > 2)
    if non_manifold:
        logger.warning("Mesh has %d non-manifold edges (shared by >2 faces)", non_manifold)
    logger.debug("Found %d boundary edges", len(boundary))
    return boundary


def group_into_loops(
    edges: Sequence[Edge],
    positions: NDArray[np.float64],
) -> List[BoundaryLoop]:
    """Chain boundary edges into loops.

    Each unvisited vertex starts a walk that keeps stepping to the neighbor
    it did not come from. The walk ends when it returns to a visited vertex
    or reaches a dead end. Walks shorter than three vertices are dropped.
    """
    adjacency: Dict[int, List[int]] = defaultdict(list)
    for a, b in edges:
        adjacency[a].append(b)
        adjacency[b].append(a)

    visited = set()
    loops: List[BoundaryLoop] = []
    for start in adjacency:
        if start in visited:
            continue

        walk = [start]
        visited.add(start)
        prev: Optional[int] = None
        curr = start
        while True:
            step = next((v for v in adjacency[curr] if v != prev), None)
            if step is None or step in visited:
                break
            walk.append(step)
            visited.add(step)
            prev, curr = curr, step

        if len(walk) > 2:
            loops.append(BoundaryLoop(
                positions=np.asarray(positions, dtype=np.float64)[walk].copy(),
                vertex_indices=walk,
            ))
        else:
            logger.debug("Dropping open boundary chain of %d vertices", len(walk))
    return loops


def extract_boundary_loops(mesh: MeshBuffers) -> List[BoundaryLoop]:
    """All boundary loops of the mesh (empty for a closed mesh)."""
    loops = group_into_loops(find_boundary_edges(mesh), mesh.positions)
    if loops:
        logger.info("Found %d boundary loops: sizes %s", len(loops), [len(lp) for lp in loops])
    return loops


def deduplicate_loop(
    points: NDArray[np.float64],
    tolerance: Optional[float] = None,
) -> NDArray[np.float64]:
    """Drop points lying within `tolerance` of an earlier kept point.

    Order is preserved, so a loop that repeats its first point at the end
    loses the repeat.
    """
    tol = config.DEDUP_TOLERANCE if tolerance is None else tolerance
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    kept: List[np.ndarray] = []
    for p in pts:
        if all(np.linalg.norm(p - q) >= tol for q in kept):
            kept.append(p)
    if not kept:
        return np.zeros((0, 3))
    return np.array(kept)
