"""
ABL Post-processing Friction Velocity

Domain-average friction velocity over the lower ABL surface, reduced over
exactly the configured wall partitions.

Two policies are available:

- ``field``: area-weighted mean of the nodal ``wall_friction_velocity``
  field maintained by the host's wall model.
- ``log_law``: per-node inversion of the rough-wall log law from the
  near-wall velocity stored on the wall partition,

      u_tau = kappa |U_h| / ln(z_ref / z0)

  using the horizontal components of the velocity sampled at
  ``reference_height`` above the surface.
"""

from typing import Optional, Sequence
import logging

import numpy as np

from ..core.config import (
    DEFAULT_ROUGHNESS_HEIGHT, VELOCITY_FIELD, VON_KARMAN, WALL_UTAU_FIELD,
)
from ..core.exceptions import ConfigurationError
from .averaging import SpatialAveragingAlgorithm

logger = logging.getLogger(__name__)


def log_law_utau(velocity: np.ndarray, reference_height: float,
                 roughness_height: float = DEFAULT_ROUGHNESS_HEIGHT,
                 kappa: float = VON_KARMAN) -> np.ndarray:
    """
    Friction velocity from the log law at each node.

    Args:
        velocity: Near-wall velocity (n_nodes, 2 or 3); only u and v are used
        reference_height: Height of the velocity sample above the wall [m]
        roughness_height: Aerodynamic roughness length z0 [m]
        kappa: von Karman constant

    Returns:
        np.ndarray: u_tau per node [m/s]
    """
    speed = np.hypot(velocity[:, 0], velocity[:, 1])
    return kappa * speed / np.log(reference_height / roughness_height)


class FrictionVelocityEstimator:
    """Computes ``utauCalc`` over the wall partitions."""

    def __init__(
        self,
        engine: SpatialAveragingAlgorithm,
        wall_parts: Sequence[str],
        method: str = "field",
        reference_height: Optional[float] = None,
        roughness_height: float = DEFAULT_ROUGHNESS_HEIGHT,
    ):
        self.engine = engine
        self.wall_parts = list(wall_parts)
        self.method = method
        self.reference_height = reference_height
        self.roughness_height = roughness_height
        self.utauCalc = 0.0

    @property
    def required_field(self) -> str:
        return WALL_UTAU_FIELD if self.method == "field" else VELOCITY_FIELD

    def check_fields(self) -> None:
        """
        Verify every wall partition carries the field the method reads.

        Raises:
            ConfigurationError: A wall partition lacks the field
        """
        for part_name in self.wall_parts:
            if not self.engine.mesh.get_part(part_name).has_field(self.required_field):
                raise ConfigurationError(
                    f"Wall partition '{part_name}' has no '{self.required_field}' field",
                    "Use utau_method: log_law or provide the wall-model friction velocity"
                    if self.method == "field" else
                    "The log law needs the near-wall velocity on the wall partitions"
                )

    def _nodal_utau(self, part_name: str) -> np.ndarray:
        part = self.engine.mesh.get_part(part_name)
        if self.method == "field":
            return part.get_field(WALL_UTAU_FIELD)[:, 0]
        return log_law_utau(
            part.get_field(VELOCITY_FIELD), self.reference_height, self.roughness_height
        )

    def execute(self) -> float:
        """Refresh and return the area-weighted friction velocity (collective)."""
        if not self.wall_parts:
            self.utauCalc = 0.0
            return self.utauCalc

        self.check_fields()
        values = [self._nodal_utau(name) for name in self.wall_parts]
        utau = float(self.engine.average_over(self.wall_parts, values)[0])
        if utau < 0.0:
            logger.warning("Negative mean friction velocity %.6g clipped to zero", utau)
            utau = 0.0
        self.utauCalc = utau
        logger.debug("utau = %.6g over %s", utau, self.wall_parts)
        return utau
