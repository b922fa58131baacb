"""
ABL Post-processing Plane Geometry

This module resolves the horizontal plane partition for every requested
height: either an existing partition found by name, or a structured quad
surface synthesized at that elevation from a bounding quadrilateral.

Resolution and registration are separate steps so that a configuration
error on any height leaves the mesh database untouched.
"""

from typing import List, Optional, Sequence, Tuple
import logging

import numpy as np

from ..core.core_types import (
    ExistingPartition, GeneratedQuad, PlaneGenerationSpec, PlaneSource,
)
from ..core.exceptions import ConfigurationError, GeometryError
from .database import MeshDatabase, Partition

logger = logging.getLogger(__name__)

# Relative tolerance for degenerate quadrilateral checks
_DEGENERATE_RTOL = 1.0e-12

# ============================================================================
# Quad Validation and Meshing
# ============================================================================

def validate_quad_vertices(vertices) -> np.ndarray:
    """
    Check and normalize the bounding quadrilateral.

    Args:
        vertices: Four (x, y) or (x, y, z) corners in perimeter order;
                  z values are ignored

    Returns:
        np.ndarray: Corners as float array of shape (4, 2)

    Raises:
        GeometryError: Wrong shape, zero area, or non-convex outline
    """
    try:
        verts = np.asarray(vertices, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise GeometryError("vertices are not numeric", str(e))

    if verts.ndim != 2 or verts.shape[0] != 4 or verts.shape[1] not in (2, 3):
        raise GeometryError(
            "expected 4 vertices with 2 or 3 coordinates",
            f"got array of shape {verts.shape}"
        )
    verts = verts[:, :2]

    edges = np.roll(verts, -1, axis=0) - verts
    turns = edges[:, 0] * np.roll(edges, -1, axis=0)[:, 1] - edges[:, 1] * np.roll(edges, -1, axis=0)[:, 0]
    scale = max(float(np.ptp(verts[:, 0])), float(np.ptp(verts[:, 1])), 1.0) ** 2
    area = 0.5 * abs(float(np.sum(verts[:, 0] * np.roll(verts[:, 1], -1) - np.roll(verts[:, 0], -1) * verts[:, 1])))

    if area <= _DEGENERATE_RTOL * scale:
        raise GeometryError("quadrilateral has zero area", f"vertices: {verts.tolist()}")
    if np.any(np.abs(turns) <= _DEGENERATE_RTOL * scale) or not (np.all(turns > 0) or np.all(turns < 0)):
        raise GeometryError(
            "quadrilateral is not strictly convex",
            "list the vertices in order around the perimeter"
        )
    return verts


def validate_resolution(nx, ny) -> Tuple[int, int]:
    """Check the subdivision counts of the quad grid."""
    for name, value in (("nx", nx), ("ny", ny)):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
            raise GeometryError(f"{name} must be a positive integer", f"got {value!r}")
    return int(nx), int(ny)


def build_quad_plane(vertices: np.ndarray, nx: int, ny: int, height: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Mesh a quadrilateral at constant elevation.

    Nodes lie on the bilinear map of the unit square onto the corners, with
    ``s`` running from vertex 0 to vertex 1 and ``t`` from vertex 0 to vertex 3.

    Args:
        vertices: Corner vertices (4, 2)
        nx: Subdivisions along s
        ny: Subdivisions along t
        height: Elevation of the plane

    Returns:
        tuple: (coordinates (n_nodes, 3), quad connectivity (nx*ny, 4))
    """
    s = np.linspace(0.0, 1.0, nx + 1)
    t = np.linspace(0.0, 1.0, ny + 1)
    S, T = np.meshgrid(s, t, indexing="xy")
    S = S.ravel()[:, None]
    T = T.ravel()[:, None]
    v0, v1, v2, v3 = vertices
    xy = (1 - S) * (1 - T) * v0 + S * (1 - T) * v1 + S * T * v2 + (1 - S) * T * v3

    coords = np.column_stack([xy, np.full(len(xy), float(height))])

    i, j = np.meshgrid(np.arange(nx), np.arange(ny), indexing="xy")
    i = i.ravel()
    j = j.ravel()
    n00 = j * (nx + 1) + i
    elements = np.column_stack([n00, n00 + 1, n00 + nx + 2, n00 + nx + 1])
    return coords, elements

# ============================================================================
# Plane Geometry Provider
# ============================================================================

class PlaneGeometryProvider:
    """
    Resolves and registers the plane partitions for a list of heights.

    Args:
        mesh: Mesh database to search and register into
        generation: Quad generation parameters; None disables generation
    """

    def __init__(self, mesh: MeshDatabase, generation: Optional[PlaneGenerationSpec] = None):
        self.mesh = mesh
        self.generation = generation
        # Arena of plane sources, one per resolved plane, in request order
        self.planes: List[PlaneSource] = []

    def plan(self, height: float, part_name: str) -> PlaneSource:
        """
        Decide how the plane at ``height`` is obtained, without side effects.

        Raises:
            ConfigurationError: No existing partition and generation disabled
            GeometryError: Generation parameters are degenerate
        """
        if self.mesh.has_part(part_name):
            return ExistingPartition(part_name)

        if self.generation is None:
            raise ConfigurationError(
                f"No partition '{part_name}' for height {height}",
                "The partition is not in the mesh and 'generate_parts' is disabled"
            )

        verts = validate_quad_vertices(self.generation.vertices)
        nx, ny = validate_resolution(self.generation.nx, self.generation.ny)
        return GeneratedQuad(
            name=part_name,
            height=float(height),
            vertices=tuple(map(tuple, verts.tolist())),
            nx=nx,
            ny=ny,
        )

    def resolve(self, heights: Sequence[float], part_names: Sequence[str]) -> List[PlaneSource]:
        """Plan every plane; the first failure aborts before anything is registered."""
        sources: List[PlaneSource] = []
        planned = set()
        for height, name in zip(heights, part_names):
            if name in planned:
                continue
            sources.append(self.plan(height, name))
            planned.add(name)
        return sources

    def realize(self, sources: Sequence[PlaneSource]) -> List[Partition]:
        """
        Register generated planes and return the partition for every source.

        A failure while registering removes the planes registered so far.
        """
        added: List[str] = []
        parts: List[Partition] = []
        try:
            for source in sources:
                if isinstance(source, ExistingPartition):
                    parts.append(self.mesh.get_part(source.name))
                    continue
                coords, elements = build_quad_plane(
                    np.asarray(source.vertices), source.nx, source.ny, source.height
                )
                part = self.mesh.add_part(
                    Partition(source.name, coords, elements=elements, generated=True)
                )
                added.append(source.name)
                parts.append(part)
                logger.info(
                    "Generated plane '%s' at z=%g (%dx%d quads)",
                    source.name, source.height, source.nx, source.ny
                )
        except Exception:
            for name in added:
                self.mesh.remove_part(name)
            raise

        self.planes.extend(sources)
        return parts

    def build(self, heights: Sequence[float], part_names: Sequence[str]) -> List[Partition]:
        """Resolve then register the planes for ``heights``."""
        return self.realize(self.resolve(heights, part_names))
