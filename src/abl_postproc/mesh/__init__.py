"""
ABL Post-processing Mesh Handling

Partition model, plane discovery/generation and the catalog of partitions
touched by the post-processing.
"""

from .database import (
    Partition,
    MeshDatabase,
    Selector,
    element_areas,
)

from .generation import (
    PlaneGeometryProvider,
    build_quad_plane,
    validate_quad_vertices,
    validate_resolution,
)

from .catalog import PartCatalog

__all__ = [
    # Mesh model
    "Partition",
    "MeshDatabase",
    "Selector",
    "element_areas",
    # Plane geometry
    "PlaneGeometryProvider",
    "build_quad_plane",
    "validate_quad_vertices",
    "validate_resolution",
    # Catalog
    "PartCatalog",
]
