"""
ABL Post-processing Height Registry

This module keeps the requested statistics elevations in user order and
maps every elevation to the name of the mesh partition holding its plane.
"""

from typing import Dict, List, Optional, Sequence
import logging

import numpy as np

from ..core.config import VELOCITY_FAMILY, TEMPERATURE_FAMILY
from ..core.core_types import ABLPostProcessingConfig
from ..core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class HeightRegistry:
    """
    Ordered velocity and temperature heights with their plane names.

    Statistics tables are indexed by the position of a height in its list,
    so the user-supplied order is kept. A stable sorted index is stored next
    to each list for interpolation lookups.

    Plane names come from a printf-style format applied to the height
    (``"zplane_%.1f" % 80.0 -> "zplane_80.0"``) or from an explicit list,
    one name per velocity height. With an explicit list and no format,
    every temperature height must also be a velocity height.
    """

    def __init__(
        self,
        heights: Sequence[float],
        temperature_heights: Optional[Sequence[float]] = None,
        part_format: Optional[str] = None,
        part_names: Optional[Sequence[str]] = None,
    ):
        self._heights = {
            VELOCITY_FAMILY: np.asarray(heights, dtype=np.float64),
            TEMPERATURE_FAMILY: np.asarray(
                heights if temperature_heights is None else temperature_heights,
                dtype=np.float64,
            ),
        }
        if part_format is None and part_names is None:
            raise ConfigurationError("Either a plane name format or explicit plane names are required")
        if part_names is not None and len(part_names) != len(self._heights[VELOCITY_FAMILY]):
            raise ConfigurationError(
                f"{len(part_names)} plane names given for {len(self._heights[VELOCITY_FAMILY])} heights"
            )
        self._format = part_format
        self._explicit: Dict[float, str] = {}
        if part_names is not None:
            velocity_heights = self._heights[VELOCITY_FAMILY].tolist()
            repeated = sorted({h for h in velocity_heights if velocity_heights.count(h) > 1})
            if repeated:
                raise ConfigurationError(
                    f"Repeated heights {repeated} with explicit plane names",
                    "Each name in 'target_parts' must belong to a distinct height"
                )
            self._explicit = dict(zip(velocity_heights, part_names))

        self._part_names = {
            family: [self.part_name(h) for h in values.tolist()]
            for family, values in self._heights.items()
        }
        self._sorted = {
            family: np.argsort(values, kind="stable")
            for family, values in self._heights.items()
        }
        logger.debug(
            "Height registry: %d velocity heights, %d temperature heights",
            self.n_heights(VELOCITY_FAMILY), self.n_heights(TEMPERATURE_FAMILY)
        )

    @classmethod
    def from_config(cls, config: ABLPostProcessingConfig) -> "HeightRegistry":
        return cls(
            config.heights,
            config.temperature_heights,
            part_format=config.target_part_format,
            part_names=config.target_parts,
        )

    def part_name(self, height: float) -> str:
        """Partition name for a plane at ``height``."""
        if height in self._explicit:
            return self._explicit[height]
        if self._format is None:
            raise ConfigurationError(
                f"No plane name for height {height}",
                "Explicit 'target_parts' only cover the velocity heights; "
                "add 'target_part_format' to name other planes"
            )
        try:
            return self._format % (height,)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Malformed plane name format '{self._format}'", str(e))

    def heights(self, family: str = VELOCITY_FAMILY) -> np.ndarray:
        """Heights of a field family in user order (read-only view)."""
        view = self._heights[family].view()
        view.flags.writeable = False
        return view

    def part_names(self, family: str = VELOCITY_FAMILY) -> List[str]:
        return list(self._part_names[family])

    def sorted_index(self, family: str = VELOCITY_FAMILY) -> np.ndarray:
        """Row indices ordering the family's heights by value."""
        return self._sorted[family]

    def n_heights(self, family: str = VELOCITY_FAMILY) -> int:
        return len(self._heights[family])

    def all_plane_names(self) -> List[str]:
        """Unique plane names over both families, first-seen order."""
        names = self._part_names[VELOCITY_FAMILY] + self._part_names[TEMPERATURE_FAMILY]
        return list(dict.fromkeys(names))

    def __repr__(self) -> str:
        return (
            f"HeightRegistry(heights={self._heights[VELOCITY_FAMILY].tolist()}, "
            f"temperature_heights={self._heights[TEMPERATURE_FAMILY].tolist()})"
        )
