"""
Geodesic cuts along a polyline drawn on the surface.

Pipeline for trace_polyline():
1. project every polyline point onto the mesh
2. subdivide the hit faces so each point becomes a mesh vertex
3. build the surface graph once
4. join consecutive vertices with shortest paths

The resulting vertex path can then be used to partition the faces and
cut the mesh into pieces (partition_faces / split_mesh).
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

import numpy as np
from numpy.typing import NDArray

from mesh_surgery import config
from mesh_surgery.geometry.spatial_index import TriangleSpatialIndex
from mesh_surgery.geometry.triangle import Triangle
from mesh_surgery.mesh.buffers import MeshBuffers
from mesh_surgery.project_config import ProjectionConfig
from mesh_surgery.surface.projector import PointProjector, ProjectedPoint, project_onto_triangle
from mesh_surgery.surface.subdivide import SubdivisionDelta, subdivide_triangle
from mesh_surgery.topology.boundary import Edge, build_edge_map, edge_key
from mesh_surgery.topology.graph import PathResult, SurfaceGraph

logger = logging.getLogger(__name__)


@dataclass
class CutPath:
    """Vertex path of a traced cut.

    Attributes:
        vertices: mesh vertex indices along the cut, joints not repeated
        distance: total length along mesh edges
        points: the materialized polyline points
        segments: one shortest path per pair of consecutive points
    """
    vertices: List[int] = field(default_factory=list)
    distance: float = 0.0
    points: List[ProjectedPoint] = field(default_factory=list)
    segments: List[PathResult] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.vertices)

    @property
    def is_empty(self) -> bool:
        return not self.vertices

    def positions(self, mesh: MeshBuffers) -> NDArray[np.float64]:
        """(K, 3) positions of the cut vertices."""
        return mesh.positions[self.vertices]


def project_polyline(
    mesh: MeshBuffers,
    points: Sequence[Sequence[float]],
    index: Optional[TriangleSpatialIndex] = None,
    settings: Optional[ProjectionConfig] = None,
) -> List[ProjectedPoint]:
    """Project polyline points onto the surface, skipping the ones that miss."""
    projector = PointProjector(mesh, index=index, settings=settings)
    projected = []
    for p in points:
        hit = projector.project(p)
        if hit is not None:
            projected.append(hit)
    skipped = len(points) - len(projected)
    if skipped:
        logger.warning("%d of %d polyline points did not project onto the surface",
                       skipped, len(points))
    return projected


def _reproject_on_children(
    mesh: MeshBuffers,
    eps: float,
    source: NDArray[np.float64],
    face_ids: List[int],
) -> Optional[ProjectedPoint]:
    """Best projection of `source` among faces that replaced a split face."""
    best: Optional[ProjectedPoint] = None
    best_dist = float('inf')
    for fid in face_ids:
        a, b, c = mesh.positions[mesh.indices[fid]]
        tri = Triangle(a, b, c, fid)
        hit = project_onto_triangle(mesh, source, tri, eps)
        if hit is None:
            continue
        d = tri.closest_squared_distance(source)
        if d < best_dist:
            best, best_dist = hit, d
    return best


def materialize_projected_points(
    mesh: MeshBuffers,
    projected: List[ProjectedPoint],
    eps: Optional[float] = None,
) -> List[SubdivisionDelta]:
    """Turn projected points into mesh vertices by subdividing their faces.

    Points are handled in order. A point whose face was already split by
    an earlier point of the same batch is projected again onto the faces
    that replaced it. `vertex_index` is set on every point that made it;
    a point that no longer lands on any replacement face keeps None.

    Returns:
        One delta per subdivision, in order
    """
    eps = config.PROJECTION_EPS if eps is None else eps
    origin_of: Dict[int, int] = {}
    descendants: Dict[int, List[int]] = {}
    deltas: List[SubdivisionDelta] = []

    for p in projected:
        original = origin_of.get(p.face_id, p.face_id)
        target = p
        if original in descendants:
            target = _reproject_on_children(mesh, eps, p.source, descendants[original])
            if target is None:
                logger.warning("Point %s lost its face after earlier splits, skipped",
                               p.source.tolist())
                continue

        delta = subdivide_triangle(mesh, target.face_id, target.point)
        deltas.append(delta)

        family = descendants.setdefault(original, [original])
        for fid in delta.triangle_ids[1:]:
            family.append(fid)
            origin_of[fid] = original

        p.point = target.point
        p.face_id = target.face_id
        p.bary = target.bary
        p.is_on_edge = target.is_on_edge
        p.edge_vertices = target.edge_vertices
        p.vertex_index = delta.new_vertex

    logger.debug("Materialized %d of %d projected points", len(deltas), len(projected))
    return deltas


def geodesic_path(
    mesh: MeshBuffers,
    start: int,
    end: int,
    graph: Optional[SurfaceGraph] = None,
) -> PathResult:
    """Shortest edge path between two mesh vertices.

    Raises:
        NoPathFound: if the vertices are not connected
    """
    if graph is None:
        graph = SurfaceGraph.from_mesh(mesh)
    return graph.shortest_path(start, end)


def trace_polyline(
    mesh: MeshBuffers,
    points: Sequence[Sequence[float]],
    index: Optional[TriangleSpatialIndex] = None,
    settings: Optional[ProjectionConfig] = None,
) -> CutPath:
    """Trace a polyline on the surface as a path of mesh vertices.

    The mesh is modified: every projected point becomes a new vertex.
    The edits are made on a copy and written back only once every segment
    has a path, so an empty cut or an exception leaves the mesh as it was.
    An index passed in must have been built on the mesh as it is now.

    Returns:
        CutPath; empty when fewer than two points land on the surface

    Raises:
        NoPathFound: if two consecutive points are on disconnected pieces
    """
    projected = project_polyline(mesh, points, index=index, settings=settings)
    if len(projected) < 2:
        logger.info("Polyline needs at least 2 points on the surface, got %d", len(projected))
        return CutPath()

    work = mesh.copy()
    materialize_projected_points(work, projected, eps=settings.eps if settings else None)
    placed = [p for p in projected if p.vertex_index is not None]
    if len(placed) < 2:
        logger.info("Only %d polyline points could be placed on the surface", len(placed))
        return CutPath()

    graph = SurfaceGraph.from_mesh(work)
    cut = CutPath(vertices=[placed[0].vertex_index], points=placed)
    for a, b in zip(placed, placed[1:]):
        segment = graph.shortest_path(a.vertex_index, b.vertex_index)
        cut.segments.append(segment)
        cut.vertices.extend(segment.vertices[1:])
        cut.distance += segment.distance

    mesh.positions = work.positions
    mesh.indices = work.indices
    mesh.normals = work.normals
    logger.info("Traced cut: %d vertices, length %.4g", len(cut.vertices), cut.distance)
    return cut


def _cut_edges(cut_vertices: Sequence[int]) -> Set[Edge]:
    return {edge_key(a, b) for a, b in zip(cut_vertices, cut_vertices[1:]) if a != b}


def partition_faces(mesh: MeshBuffers, cut_vertices: Sequence[int]) -> List[List[int]]:
    """Group faces that stay connected when the cut edges are removed.

    Faces are flood-filled across every edge that is not a consecutive
    pair of the cut path. Only a cut that closes on itself or runs from
    boundary to boundary separates the surface.

    Returns:
        Face id groups, largest first
    """
    mesh.require()
    blocked = _cut_edges(cut_vertices)
    edge_to_faces = build_edge_map(mesh.indices)

    group_of = np.full(mesh.n_faces, -1, dtype=np.int64)
    groups: List[List[int]] = []
    for seed in range(mesh.n_faces):
        if group_of[seed] >= 0:
            continue
        group_id = len(groups)
        group_of[seed] = group_id
        members = []
        queue = deque([seed])
        while queue:
            f = queue.popleft()
            members.append(f)
            face = mesh.indices[f]
            for i in range(3):
                edge = edge_key(face[i], face[(i + 1) % 3])
                if edge in blocked:
                    continue
                for g in edge_to_faces[edge]:
                    if group_of[g] < 0:
                        group_of[g] = group_id
                        queue.append(g)
        groups.append(sorted(members))

    groups.sort(key=len, reverse=True)
    if blocked and len(groups) == 1:
        logger.info("Cut of %d edges does not separate the surface", len(blocked))
    return groups


def extract_faces(mesh: MeshBuffers, face_ids: Sequence[int]) -> MeshBuffers:
    """Standalone mesh of the given faces with compacted vertices."""
    faces = mesh.indices[np.asarray(face_ids, dtype=np.int64)]
    used, inverse = np.unique(faces.reshape(-1), return_inverse=True)
    return MeshBuffers(
        positions=mesh.positions[used].copy(),
        indices=inverse.reshape(-1, 3).astype(np.int64),
        normals=mesh.normals[used].copy() if mesh.normals is not None else None,
    )


def split_mesh(mesh: MeshBuffers, cut_vertices: Sequence[int]) -> List[MeshBuffers]:
    """Cut the mesh along a vertex path into separate pieces.

    Vertices on the cut appear in every piece that touches them.

    Returns:
        One MeshBuffers per face group, largest first
    """
    pieces = [extract_faces(mesh, group) for group in partition_faces(mesh, cut_vertices)]
    logger.info("Split mesh into %d pieces: %s faces", len(pieces), [p.n_faces for p in pieces])
    return pieces
