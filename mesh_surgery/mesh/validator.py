"""
Mesh integrity report.

Checks run on a MeshBuffers instance:
- manifold: no edge shared by more than two faces
- closed: no boundary edges
- degenerate faces: area below a threshold
- winding: two faces sharing an edge should traverse it in opposite directions

Only non-manifold edges make a mesh INVALID; everything else is a warning,
since open or slightly dirty meshes are normal inputs for hole filling.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List

import numpy as np

from mesh_surgery.mesh.buffers import MeshBuffers
from mesh_surgery.topology.boundary import build_edge_map

logger = logging.getLogger(__name__)


class ValidationSeverity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class ValidationIssue:
    """One finding, with up to ten example face/vertex indices."""
    code: str
    severity: ValidationSeverity
    message: str
    count: int = 1
    details: List[int] = field(default_factory=list)

    def __str__(self) -> str:
        text = f"[{self.severity.value.upper()}] {self.code}: {self.message}"
        return f"{text} ({self.count} occurrences)" if self.count > 1 else text


@dataclass
class ValidationReport:
    is_valid: bool
    is_manifold: bool
    is_closed: bool
    has_degenerate_faces: bool
    has_inconsistent_normals: bool

    n_vertices: int
    n_faces: int
    n_edges: int
    n_boundary_edges: int
    n_non_manifold_edges: int
    n_degenerate_faces: int
    n_inconsistent_edges: int
    n_unreferenced_vertices: int

    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationSeverity.WARNING]

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationSeverity.ERROR]

    def has_issue(self, code: str) -> bool:
        return any(i.code == code for i in self.issues)

    def summary(self) -> str:
        """Multi-line human-readable report."""
        yes_no = {True: "Yes", False: "No"}
        lines = [
            "Mesh Validation Report",
            "=" * 40,
            f"Vertices: {self.n_vertices} ({self.n_unreferenced_vertices} unreferenced)",
            f"Faces: {self.n_faces}",
            f"Edges: {self.n_edges}",
            "",
            f"Manifold: {yes_no[self.is_manifold]}",
            f"Closed: {yes_no[self.is_closed]}",
            f"Boundary edges: {self.n_boundary_edges}",
            f"Non-manifold edges: {self.n_non_manifold_edges}",
            f"Degenerate faces: {self.n_degenerate_faces}",
            f"Inconsistently wound edges: {self.n_inconsistent_edges}",
        ]
        if self.issues:
            lines += ["", "Issues:"] + [f"  - {issue}" for issue in self.issues]
        lines += ["", f"Overall: {'VALID' if self.is_valid else 'INVALID'}"]
        return "\n".join(lines)


def _count_inconsistent_edges(mesh: MeshBuffers) -> int:
    """Manifold edges whose two faces traverse them in the same direction."""
    seen = set()
    inconsistent = 0
    for face in mesh.indices:
        for i in range(3):
            directed = (int(face[i]), int(face[(i + 1) % 3]))
            if directed in seen:
                inconsistent += 1
            seen.add(directed)
    return inconsistent


def validate_mesh(mesh: MeshBuffers, degenerate_area_threshold: float = 1e-10) -> ValidationReport:
    """Check mesh integrity and collect the findings.

    Args:
        mesh: Mesh to check (positions and indices are required)
        degenerate_area_threshold: Faces with smaller area count as degenerate

    Returns:
        ValidationReport
    """
    mesh.require()
    issues: List[ValidationIssue] = []
    logger.debug("Validating mesh: %d vertices, %d faces", mesh.n_vertices, mesh.n_faces)

    edge_to_faces = build_edge_map(mesh.indices)
    n_boundary = sum(1 for faces in edge_to_faces.values() if len(faces) == 1)
    n_non_manifold = sum(1 for faces in edge_to_faces.values() if len(faces) > 2)

    if n_boundary:
        issues.append(ValidationIssue(
            code="BOUNDARY_EDGES",
            severity=ValidationSeverity.WARNING,
            message=f"Mesh has {n_boundary} boundary edges (not closed)",
            count=n_boundary,
        ))
        logger.warning("Mesh has %d boundary edges", n_boundary)

    if n_non_manifold:
        issues.append(ValidationIssue(
            code="NON_MANIFOLD_EDGES",
            severity=ValidationSeverity.ERROR,
            message=f"Mesh has {n_non_manifold} non-manifold edges (>2 faces)",
            count=n_non_manifold,
        ))
        logger.error("Mesh has %d non-manifold edges", n_non_manifold)

    areas = mesh.face_areas()
    degenerate = np.flatnonzero(areas < degenerate_area_threshold)
    if len(degenerate):
        issues.append(ValidationIssue(
            code="DEGENERATE_FACES",
            severity=ValidationSeverity.WARNING,
            message=f"Mesh has {len(degenerate)} degenerate faces (zero area)",
            count=len(degenerate),
            details=degenerate[:10].tolist(),
        ))
        logger.warning("Mesh has %d degenerate faces", len(degenerate))

    n_inconsistent = _count_inconsistent_edges(mesh)
    if n_inconsistent:
        issues.append(ValidationIssue(
            code="INCONSISTENT_WINDING",
            severity=ValidationSeverity.WARNING,
            message=f"{n_inconsistent} edges are traversed in the same direction by both faces",
            count=n_inconsistent,
        ))
        logger.warning("Mesh has %d inconsistently wound edges", n_inconsistent)

    referenced = np.zeros(mesh.n_vertices, dtype=bool)
    referenced[mesh.indices.reshape(-1)] = True
    unreferenced = np.flatnonzero(~referenced)
    if len(unreferenced):
        issues.append(ValidationIssue(
            code="UNREFERENCED_VERTICES",
            severity=ValidationSeverity.INFO,
            message=f"{len(unreferenced)} vertices are not used by any face",
            count=len(unreferenced),
            details=unreferenced[:10].tolist(),
        ))

    is_valid = not any(i.severity == ValidationSeverity.ERROR for i in issues)
    report = ValidationReport(
        is_valid=is_valid,
        is_manifold=n_non_manifold == 0,
        is_closed=n_boundary == 0,
        has_degenerate_faces=len(degenerate) > 0,
        has_inconsistent_normals=n_inconsistent > 0,
        n_vertices=mesh.n_vertices,
        n_faces=mesh.n_faces,
        n_edges=len(edge_to_faces),
        n_boundary_edges=n_boundary,
        n_non_manifold_edges=n_non_manifold,
        n_degenerate_faces=len(degenerate),
        n_inconsistent_edges=n_inconsistent,
        n_unreferenced_vertices=len(unreferenced),
        issues=issues,
    )
    logger.info("Validation complete: %s", "VALID" if is_valid else "INVALID")
    return report
