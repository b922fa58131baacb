"""
ABL Post-processing Type Definitions and Data Classes

This module defines the configuration structures and plane descriptions
shared by the geometry, transfer and statistics components.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union, List, Sequence
import numpy as np

from .config import (
    DEFAULT_SEARCH_METHOD,
    DEFAULT_SEARCH_TOLERANCE,
    DEFAULT_SEARCH_EXPANSION_FACTOR,
    DEFAULT_OUTPUT_FREQUENCY,
    DEFAULT_OUTPUT_FILE_FORMAT,
    DEFAULT_UTAU_METHOD,
    DEFAULT_ROUGHNESS_HEIGHT,
    SEARCH_METHODS,
    UTAU_METHODS,
    VELOCITY_FAMILY,
)
from .exceptions import ConfigurationError, InvalidParameterError

# ============================================================================
# Type Aliases
# ============================================================================

HeightList = List[float]
Vertex2D = Tuple[float, float]

# ============================================================================
# Validation Utilities (Module Level)
# ============================================================================

def _validate_positive(name: str, value: float) -> None:
    """Validate a strictly positive real."""
    if not value > 0:
        raise InvalidParameterError(name, value, "must be positive")

def _validate_format(name: str, fmt: Optional[str], sample) -> None:
    """
    Validate a printf-style format string taking exactly one argument.

    Args:
        name: Parameter name for error messages
        fmt: Format string to check
        sample: Representative argument (float for heights, str for quantities)
    """
    if fmt is None:
        return
    if not isinstance(fmt, str):
        raise InvalidParameterError(name, fmt, "must be a string")
    try:
        fmt % (sample,)
    except (TypeError, ValueError) as e:
        raise InvalidParameterError(
            name, fmt, f"expected exactly one specifier accepting {type(sample).__name__}: {e}"
        )

def _as_heights(name: str, values) -> HeightList:
    """Convert a user list of elevations to floats, preserving order."""
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise InvalidParameterError(name, values, "must be a list of numbers")
    try:
        return [float(v) for v in values]
    except (TypeError, ValueError) as e:
        raise InvalidParameterError(name, values, f"must be a list of numbers: {e}")

# ============================================================================
# Plane Generation
# ============================================================================

@dataclass
class PlaneGenerationSpec:
    """
    Parameters for synthesizing horizontal quad planes.

    Geometric consistency (vertex count, convexity, grid resolution) is
    checked when the planes are built, not here.

    Attributes:
        vertices: Corner vertices (x, y) of the bounding quadrilateral,
                  listed in order around the perimeter
        nx: Number of subdivisions along the first edge
        ny: Number of subdivisions along the second edge
    """
    vertices: Sequence[Sequence[float]]
    nx: int
    ny: int

# ============================================================================
# Plane Sources (closed variant)
# ============================================================================

@dataclass(frozen=True)
class ExistingPartition:
    """Plane backed by a partition already present in the mesh database."""
    name: str

@dataclass(frozen=True)
class GeneratedQuad:
    """Plane synthesized as a structured quad mesh at a given height."""
    name: str
    height: float
    vertices: Tuple[Vertex2D, ...]
    nx: int
    ny: int

PlaneSource = Union[ExistingPartition, GeneratedQuad]

# ============================================================================
# Plane Records
# ============================================================================

@dataclass
class PlaneRecord:
    """
    One requested height of one field family.

    Attributes:
        height: Elevation of the plane
        part_name: Mesh partition holding the plane
        generated: Whether the partition was synthesized during setup
        source_parts: Volumetric partitions fields are transferred from
        family: Field family ('velocity' or 'temperature')
    """
    height: float
    part_name: str
    generated: bool = False
    source_parts: Tuple[str, ...] = ()
    family: str = VELOCITY_FAMILY

# ============================================================================
# Post-processing Configuration
# ============================================================================

@dataclass
class ABLPostProcessingConfig:
    """
    Validated contents of the ``abl_postprocessing`` input block.

    Either ``target_part_format`` or ``target_parts`` names the planes.
    ``temperature_heights`` of None reuses ``heights``; an empty list
    disables temperature statistics.
    """
    from_target_part: List[str]
    heights: HeightList
    target_part_format: Optional[str] = None
    target_parts: Optional[List[str]] = None
    temperature_heights: Optional[HeightList] = None
    search_method: str = DEFAULT_SEARCH_METHOD
    search_tolerance: float = DEFAULT_SEARCH_TOLERANCE
    search_expansion_factor: float = DEFAULT_SEARCH_EXPANSION_FACTOR
    generate_parts: bool = False
    generation: Optional[PlaneGenerationSpec] = None
    abl_wall_parts: List[str] = field(default_factory=list)
    utau_method: str = DEFAULT_UTAU_METHOD
    reference_height: Optional[float] = None
    roughness_height: float = DEFAULT_ROUGHNESS_HEIGHT
    output_frequency: int = DEFAULT_OUTPUT_FREQUENCY
    output_file_format: str = DEFAULT_OUTPUT_FILE_FORMAT

    def __post_init__(self):
        """Validate configuration values."""
        self.heights = _as_heights("heights", self.heights)
        if not self.heights:
            raise ConfigurationError("Height list 'heights' is empty")
        if self.temperature_heights is not None:
            self.temperature_heights = _as_heights("temperature_heights", self.temperature_heights)

        if isinstance(self.from_target_part, str):
            self.from_target_part = [self.from_target_part]
        if not self.from_target_part:
            raise ConfigurationError("No source partitions given in 'from_target_part'")

        if self.target_part_format is None and self.target_parts is None:
            raise ConfigurationError(
                "Plane names undefined",
                "Provide 'target_part_format' or an explicit 'target_parts' list"
            )
        _validate_format("target_part_format", self.target_part_format, 1.0)
        if self.target_parts is not None and len(self.target_parts) != len(self.heights):
            raise InvalidParameterError(
                "target_parts", self.target_parts,
                f"expected {len(self.heights)} names, one per height"
            )

        if self.search_method not in SEARCH_METHODS:
            raise InvalidParameterError(
                "search_method", self.search_method, f"supported methods: {', '.join(SEARCH_METHODS)}"
            )
        _validate_positive("search_tolerance", self.search_tolerance)
        if not self.search_expansion_factor >= 1.0:
            raise InvalidParameterError("search_expansion_factor", self.search_expansion_factor, "must be >= 1")

        if self.generate_parts and self.generation is None:
            raise ConfigurationError(
                "Plane generation enabled without geometry",
                "'domain_vertices' and 'num_points' are required when 'generate_parts' is true"
            )

        if self.utau_method not in UTAU_METHODS:
            raise InvalidParameterError("utau_method", self.utau_method, f"supported: {', '.join(UTAU_METHODS)}")
        _validate_positive("roughness_height", self.roughness_height)
        if self.utau_method == "log_law":
            if self.reference_height is None:
                raise ConfigurationError("'reference_height' is required when utau_method is 'log_law'")
            _validate_positive("reference_height", self.reference_height)
            if self.reference_height <= self.roughness_height:
                raise InvalidParameterError(
                    "reference_height", self.reference_height, "must exceed roughness_height"
                )

        if not isinstance(self.output_frequency, (int, np.integer)) or self.output_frequency <= 0:
            raise InvalidParameterError("output_frequency", self.output_frequency, "must be a positive integer")
        _validate_format("output_file_format", self.output_file_format, "Ux")

    @property
    def effective_temperature_heights(self) -> HeightList:
        """Temperature heights, defaulting to the velocity heights."""
        if self.temperature_heights is None:
            return list(self.heights)
        return list(self.temperature_heights)
