"""
ABL Post-processing Planar Statistics

First-, second- and third-order statistics on horizontal planes.

Each velocity plane receives velocity, sub-filter-scale stress and
temperature. The first pass computes the area-weighted means; the second
pass averages products of fluctuations about those means (Reynolds
decomposition, u' = u - <u>):

    varCalc columns: <u'u'>, <v'v'>, <w'w'>, <u'v'>, <u'w'>, <v'w'>,
                     <w'^3>, <T'T'>, <w'T'>

Temperature planes may sit at different heights and only feed TmeanCalc.
Every entry is a collective reduction and therefore identical on all ranks.
"""

from typing import List
import logging

import numpy as np

from ..core.config import (
    FAMILY_FIELDS, N_VAR_STATS, SFS_STRESS_FIELD, TEMPERATURE_FAMILY,
    TEMPERATURE_FIELD, VELOCITY_FAMILY, VELOCITY_FIELD,
)
from ..core.exceptions import StatisticsInvariantError
from ..processing.heights import HeightRegistry
from .averaging import AveragingHandle

logger = logging.getLogger(__name__)


def fluctuation_moments(velocity: np.ndarray, temperature: np.ndarray,
                        mean_velocity: np.ndarray, mean_temperature: float) -> np.ndarray:
    """
    Nodal products of fluctuations for the nine variance statistics.

    Args:
        velocity: Nodal velocity (n_nodes, 3)
        temperature: Nodal temperature (n_nodes,) or (n_nodes, 1)
        mean_velocity: Planar mean velocity (3,)
        mean_temperature: Planar mean temperature

    Returns:
        np.ndarray: Products (n_nodes, 9) in varCalc column order
    """
    up = velocity - mean_velocity
    tp = np.ravel(temperature) - mean_temperature
    u, v, w = up[:, 0], up[:, 1], up[:, 2]
    return np.column_stack([
        u * u, v * v, w * w,
        u * v, u * w, v * w,
        w * w * w,
        tp * tp, w * tp,
    ])


class PlanarStatisticsEngine:
    """
    Owns the statistics tables and fills them from plane averages.

    Tables are sized once from the height registry and overwritten in place
    on every ``execute``:

    - ``UmeanCalc`` (n_heights, 3)
    - ``SFSstressMeanCalc`` (n_heights, 6)
    - ``varCalc`` (n_heights, 9)
    - ``TmeanCalc`` (n_temperature_heights,)

    Args:
        averaging: Owned or borrowed averaging engine
        heights: Height registry giving plane names per family
    """

    def __init__(self, averaging: AveragingHandle, heights: HeightRegistry):
        self.averaging = averaging
        self.heights = heights

        n_u = heights.n_heights(VELOCITY_FAMILY)
        n_t = heights.n_heights(TEMPERATURE_FAMILY)
        self.UmeanCalc = np.zeros((n_u, 3))
        self.SFSstressMeanCalc = np.zeros((n_u, 6))
        self.varCalc = np.zeros((n_u, N_VAR_STATS))
        self.TmeanCalc = np.zeros(n_t)

    @property
    def engine(self):
        return self.averaging.engine

    @property
    def plane_names(self) -> List[str]:
        return self.heights.all_plane_names()

    def register(self) -> None:
        """Add this engine's plane averaging requests."""
        self.engine.register_fields(
            self.heights.part_names(VELOCITY_FAMILY), FAMILY_FIELDS[VELOCITY_FAMILY]
        )
        self.engine.register_fields(
            self.heights.part_names(TEMPERATURE_FAMILY), FAMILY_FIELDS[TEMPERATURE_FAMILY]
        )

    def check_invariants(self) -> None:
        """Table rows must match the height lists fixed at setup."""
        n_u = self.heights.n_heights(VELOCITY_FAMILY)
        n_t = self.heights.n_heights(TEMPERATURE_FAMILY)
        for name, table, expected in (
            ("UmeanCalc", self.UmeanCalc, n_u),
            ("SFSstressMeanCalc", self.SFSstressMeanCalc, n_u),
            ("varCalc", self.varCalc, n_u),
            ("TmeanCalc", self.TmeanCalc, n_t),
        ):
            if table.shape[0] != expected:
                raise StatisticsInvariantError(name, table.shape[0], expected)

    def execute(self) -> None:
        """Recompute every table from the current plane fields (collective)."""
        self.check_invariants()
        self.averaging.refresh(self.plane_names)
        engine = self.engine

        # First pass: planar means
        for i, name in enumerate(self.heights.part_names(VELOCITY_FAMILY)):
            self.UmeanCalc[i, :] = engine.mean(name, VELOCITY_FIELD)
            self.SFSstressMeanCalc[i, :] = engine.mean(name, SFS_STRESS_FIELD)

        for j, name in enumerate(self.heights.part_names(TEMPERATURE_FAMILY)):
            self.TmeanCalc[j] = engine.mean(name, TEMPERATURE_FIELD)[0]

        # Second pass: moments about the means
        for i, name in enumerate(self.heights.part_names(VELOCITY_FAMILY)):
            part = engine.mesh.get_part(name)
            products = fluctuation_moments(
                part.get_field(VELOCITY_FIELD),
                part.get_field(TEMPERATURE_FIELD),
                self.UmeanCalc[i],
                float(engine.mean(name, TEMPERATURE_FIELD)[0]),
            )
            self.varCalc[i, :] = engine.average(name, products)

        if logger.isEnabledFor(logging.DEBUG):
            for i, z in enumerate(self.heights.heights(VELOCITY_FAMILY)):
                logger.debug(
                    "z=%g: Umean=%s <w'w'>=%.6g", z, np.array2string(self.UmeanCalc[i], precision=5),
                    self.varCalc[i, 2]
                )
