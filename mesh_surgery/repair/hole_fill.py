"""
Close holes bounded by a single boundary loop.

The strategy depends on the loop size n (boundary edge count):

- n <= 6:   centroid fan, n triangles around the loop centroid
- n <= 50:  planar ear clipping after projecting the loop onto its plane
- n > 50:   advancing front, always clipping the sharpest valid ear

Every filler returns a standalone fragment (positions, indices, normals)
that the caller appends to its mesh with MeshBuffers.append_fragment().
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from mesh_surgery.geometry.polygon import (
    ear_clip,
    first_edges_normal,
    is_valid_ear,
    newell_normal,
    project_to_plane_2d,
    signed_area_2d,
)
from mesh_surgery.logging_config import log_timing
from mesh_surgery.mesh.buffers import MeshBuffers, compute_vertex_normals
from mesh_surgery.project_config import HoleFillConfig
from mesh_surgery.topology.boundary import BoundaryLoop, deduplicate_loop, extract_boundary_loops

logger = logging.getLogger(__name__)

CENTROID_FAN = "centroid_fan"
EARCUT = "earcut"
ADVANCING_FRONT = "advancing_front"

LoopLike = Union[BoundaryLoop, NDArray[np.float64], Sequence[Sequence[float]]]


@dataclass
class HoleFillResult:
    """Triangulated patch for one hole.

    Attributes:
        positions: (K, 3) fragment vertex positions
        indices: (T, 3) fragment triangles (local indices)
        normals: (K, 3) fragment vertex normals
        strategy: filler chosen for the loop size
        complete: every loop vertex is covered by the patch
        fallback_used: ear clipping failed and the centroid fan was used
        message: short human-readable note
    """
    positions: NDArray[np.float64]
    indices: NDArray[np.int64]
    normals: NDArray[np.float64]
    strategy: str
    complete: bool = True
    fallback_used: bool = False
    message: str = ""

    @property
    def n_triangles(self) -> int:
        return len(self.indices)

    def to_mesh(self) -> MeshBuffers:
        return MeshBuffers(
            positions=self.positions.copy(),
            indices=self.indices.copy(),
            normals=self.normals.copy(),
        )


def _fragment(
    positions: NDArray[np.float64],
    triangles: Sequence[Tuple[int, int, int]],
    strategy: str,
    complete: bool,
    message: str,
    fallback_used: bool = False,
) -> HoleFillResult:
    indices = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
    return HoleFillResult(
        positions=positions,
        indices=indices,
        normals=compute_vertex_normals(positions, indices),
        strategy=strategy,
        complete=complete,
        fallback_used=fallback_used,
        message=message,
    )


def _loop_points(loop: LoopLike) -> NDArray[np.float64]:
    if isinstance(loop, BoundaryLoop):
        return np.asarray(loop.positions, dtype=np.float64)
    return np.asarray(loop, dtype=np.float64).reshape(-1, 3)


def _too_small(points: NDArray[np.float64], strategy: str) -> HoleFillResult:
    logger.warning("Loop of %d points cannot be filled", len(points))
    return _fragment(points.copy(), [], strategy, complete=False,
                     message=f"loop has {len(points)} points, need at least 3")


# ---------------------------------------------------------------------------
# Centroid fan
# ---------------------------------------------------------------------------

def centroid_fan_fill(loop: LoopLike) -> HoleFillResult:
    """Fan from the loop centroid, which is stored as the last vertex.

    The loop is reversed first so the patch faces the same way as the
    surrounding surface.
    """
    points = _loop_points(loop)
    n = len(points)
    if n < 3:
        return _too_small(points, CENTROID_FAN)

    ring = points[::-1]
    positions = np.vstack([ring, ring.mean(axis=0)])
    triangles = [(i, (i + 1) % n, n) for i in range(n)]
    return _fragment(positions, triangles, CENTROID_FAN, complete=True,
                     message=f"centroid fan, {n} triangles")


# ---------------------------------------------------------------------------
# Planar ear clipping
# ---------------------------------------------------------------------------

def _faces_viewer(
    positions: NDArray[np.float64],
    tri: Tuple[int, int, int],
    view_point: NDArray[np.float64],
) -> bool:
    a, b, c = positions[list(tri)]
    normal = np.cross(b - a, c - a)
    return float(np.dot(normal, view_point - (a + b + c) / 3.0)) >= 0.0


def earcut_fill(
    loop: LoopLike,
    settings: Optional[HoleFillConfig] = None,
    view_point: Optional[Sequence[float]] = None,
) -> HoleFillResult:
    """Project the loop onto its plane and ear-clip it in 2D.

    Args:
        loop: Boundary loop or (K, 3) points
        settings: Tolerances (defaults from config)
        view_point: If given, triangles facing away from it are dropped

    Returns:
        HoleFillResult; falls back to the centroid fan when clipping does
        not cover every loop vertex
    """
    settings = settings or HoleFillConfig()
    points = _loop_points(loop)
    ring = deduplicate_loop(points, settings.dedup_tolerance)
    n = len(ring)
    if n < 3:
        return _too_small(ring, EARCUT)
    ring = ring[::-1].copy()

    normal = first_edges_normal(ring)
    if normal is None:
        normal = newell_normal(ring)
    if normal is None:
        return _earcut_fallback(points, "loop is degenerate, no plane")

    triangles = ear_clip(project_to_plane_2d(ring, normal))
    if view_point is not None:
        viewer = np.asarray(view_point, dtype=np.float64).reshape(3)
        kept = [t for t in triangles if _faces_viewer(ring, t, viewer)]
        if len(kept) < len(triangles):
            logger.debug("Dropped %d back-facing triangles", len(triangles) - len(kept))
        triangles = kept

    unused = sorted(set(range(n)) - {v for t in triangles for v in t})
    if len(unused) == 3:
        patch = tuple(unused)
        a, b, c = ring[list(patch)]
        if np.dot(np.cross(b - a, c - a), normal) < 0:
            patch = (patch[0], patch[2], patch[1])
        triangles.append(patch)
        unused = []

    if unused or len(triangles) != n - 2:
        return _earcut_fallback(
            points, f"ear clipping produced {len(triangles)}/{n - 2} triangles, "
                    f"{len(unused)} vertices unused",
        )
    return _fragment(ring, triangles, EARCUT, complete=True,
                     message=f"ear clipping, {len(triangles)} triangles")


def _earcut_fallback(points: NDArray[np.float64], reason: str) -> HoleFillResult:
    logger.warning("Ear clipping failed (%s), falling back to centroid fan", reason)
    fan = centroid_fan_fill(points)
    fan.strategy = EARCUT
    fan.fallback_used = True
    fan.message = f"{reason}; centroid fan used instead"
    return fan


# ---------------------------------------------------------------------------
# Advancing front
# ---------------------------------------------------------------------------

def _interior_angle(points: NDArray[np.float64], prev: int, curr: int, nxt: int) -> float:
    u = points[prev] - points[curr]
    v = points[nxt] - points[curr]
    denom = float(np.linalg.norm(u) * np.linalg.norm(v))
    if denom < 1e-12:
        return np.pi
    return float(np.arccos(np.clip(np.dot(u, v) / denom, -1.0, 1.0)))


def advancing_front_fill(
    loop: LoopLike,
    settings: Optional[HoleFillConfig] = None,
) -> HoleFillResult:
    """Clip the valid ear with the smallest 3D interior angle until 3 vertices remain.

    The ear test runs in the loop's Newell plane. The loop is bounded by
    2n iterations; if no valid ear is left the partial patch is returned
    with complete=False.
    """
    settings = settings or HoleFillConfig()
    points = _loop_points(loop)
    ring_points = deduplicate_loop(points, settings.dedup_tolerance)[::-1].copy()
    n = len(ring_points)
    if n < 3:
        return _too_small(ring_points, ADVANCING_FRONT)

    normal = newell_normal(ring_points)
    if normal is None:
        logger.warning("Advancing front: loop of %d points has no plane", n)
        return _fragment(ring_points, [], ADVANCING_FRONT, complete=False,
                         message="loop is degenerate, no plane")

    poly = project_to_plane_2d(ring_points, normal)
    ccw = signed_area_2d(poly) > 0
    ring = list(range(n))
    triangles: List[Tuple[int, int, int]] = []

    for _ in range(2 * n):
        if len(ring) <= 3:
            break
        m = len(ring)
        ears = [pos for pos in range(m) if is_valid_ear(poly, ring, pos, ccw)]
        if not ears:
            break
        pos = min(ears, key=lambda k: _interior_angle(
            ring_points, ring[(k - 1) % m], ring[k], ring[(k + 1) % m]))
        triangles.append((ring[(pos - 1) % m], ring[pos], ring[(pos + 1) % m]))
        ring.pop(pos)

    if len(ring) == 3:
        a, b, c = ring_points[ring]
        if 0.5 * np.linalg.norm(np.cross(b - a, c - a)) >= settings.degenerate_eps:
            triangles.append((ring[0], ring[1], ring[2]))
            return _fragment(ring_points, triangles, ADVANCING_FRONT, complete=True,
                             message=f"advancing front, {len(triangles)} triangles")

    logger.warning(
        "Advancing front stopped with %d of %d vertices left (%d triangles)",
        len(ring), n, len(triangles),
    )
    return _fragment(ring_points, triangles, ADVANCING_FRONT, complete=False,
                     message=f"no valid ear, {len(ring)} vertices left unfilled")


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def choose_strategy(n: int, settings: Optional[HoleFillConfig] = None) -> str:
    settings = settings or HoleFillConfig()
    if n <= settings.centroid_fan_max_edges:
        return CENTROID_FAN
    if n <= settings.earcut_max_edges:
        return EARCUT
    return ADVANCING_FRONT


def fill_hole(
    loop: LoopLike,
    settings: Optional[HoleFillConfig] = None,
    view_point: Optional[Sequence[float]] = None,
) -> HoleFillResult:
    """Triangulate one hole with the strategy suited to its size."""
    settings = settings or HoleFillConfig()
    points = _loop_points(loop)
    strategy = choose_strategy(len(points), settings)
    logger.debug("Filling loop of %d points with %s", len(points), strategy)

    if strategy == CENTROID_FAN:
        return centroid_fan_fill(points)
    if strategy == EARCUT:
        return earcut_fill(points, settings, view_point)
    return advancing_front_fill(points, settings)


def fill_holes(
    mesh: MeshBuffers,
    parallel: Optional[bool] = None,
    settings: Optional[HoleFillConfig] = None,
) -> List[HoleFillResult]:
    """Fill every boundary loop of the mesh.

    Loops are filled independently (in a thread pool unless parallel is
    False); results are in the order extract_boundary_loops() returns
    the loops. The mesh itself is not modified.
    """
    settings = settings or HoleFillConfig()
    use_pool = settings.parallel if parallel is None else parallel
    loops = extract_boundary_loops(mesh)
    if not loops:
        return []

    with log_timing(logger, "fill holes", loops=len(loops)) as timing:
        if use_pool and len(loops) > 1:
            with ThreadPoolExecutor() as executor:
                results = list(executor.map(lambda lp: fill_hole(lp, settings), loops))
        else:
            results = [fill_hole(lp, settings) for lp in loops]
        timing['triangles'] = sum(r.n_triangles for r in results)

    incomplete = sum(1 for r in results if not r.complete)
    if incomplete:
        logger.warning("%d of %d holes were only partially filled", incomplete, len(results))
    return results
