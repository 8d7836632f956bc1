"""
mesh_surgery — surface editing for triangle meshes.

Projection of user-drawn polylines onto a mesh, geodesic cuts, splitting,
hole filling, welding and offsetting. All functions work on MeshBuffers
supplied by the caller; nothing is rendered or loaded from disk here.
"""

from mesh_surgery.logging_config import (
    setup_logging,
    get_logger,
    configure_default_logging,
    log_timing,
    timed,
    LogContext,
)
from mesh_surgery.mesh.buffers import MeshBuffers, MeshBufferError
from mesh_surgery.mesh.validator import ValidationReport, validate_mesh
from mesh_surgery.topology.boundary import BoundaryLoop, extract_boundary_loops
from mesh_surgery.topology.graph import NoPathFound, PathResult, SurfaceGraph
from mesh_surgery.surface.projector import PointProjector, ProjectedPoint
from mesh_surgery.surface.split import (
    CutPath,
    geodesic_path,
    materialize_projected_points,
    project_polyline,
    split_mesh,
    trace_polyline,
)
from mesh_surgery.repair.hole_fill import HoleFillResult, fill_hole, fill_holes
from mesh_surgery.repair.offset import offset_mesh
from mesh_surgery.repair.weld import weld_vertices

__version__ = "0.1.0"

__all__ = [
    "setup_logging",
    "get_logger",
    "configure_default_logging",
    "log_timing",
    "timed",
    "LogContext",
    "MeshBuffers",
    "MeshBufferError",
    "ValidationReport",
    "validate_mesh",
    "BoundaryLoop",
    "extract_boundary_loops",
    "NoPathFound",
    "PathResult",
    "SurfaceGraph",
    "PointProjector",
    "ProjectedPoint",
    "CutPath",
    "geodesic_path",
    "materialize_projected_points",
    "project_polyline",
    "split_mesh",
    "trace_polyline",
    "HoleFillResult",
    "fill_hole",
    "fill_holes",
    "offset_mesh",
    "weld_vertices",
]
