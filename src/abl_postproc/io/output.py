"""
ABL Post-processing Statistics Output

Writes one ASCII time series per statistic. Each file holds a header with
the plane heights and one row per output step: time followed by the value
at every height, in the user's height order.
"""

from pathlib import Path
from typing import Dict, List, Sequence, Tuple
import logging

import numpy as np

from ..core.config import (
    STRESS_COMPONENTS, TEMPERATURE_FAMILY, VARIANCE_COMPONENTS,
    VELOCITY_COMPONENTS, VELOCITY_FAMILY,
)
from ..core.parallel import is_root
from ..processing.heights import HeightRegistry

logger = logging.getLogger(__name__)


class StatisticsWriter:
    """
    Appends statistics rows every ``output_frequency`` steps.

    Args:
        file_format: printf-style path template with one ``%s`` for the quantity
        heights: Height registry for the column headers
        output_frequency: Steps between writes
        comm: Communicator; only rank 0 writes
    """

    def __init__(self, file_format: str, heights: HeightRegistry, output_frequency: int, comm):
        self.file_format = file_format
        self.heights = heights
        self.output_frequency = output_frequency
        self.comm = comm
        self._started: Dict[str, bool] = {}

    def path_for(self, quantity: str) -> Path:
        return Path(self.file_format % (quantity,))

    def should_write(self, step: int) -> bool:
        return step % self.output_frequency == 0

    def _columns(self, stats) -> List[Tuple[str, np.ndarray, Sequence[float]]]:
        """(quantity, values per height, heights) for every output file."""
        zu = self.heights.heights(VELOCITY_FAMILY)
        zt = self.heights.heights(TEMPERATURE_FAMILY)
        columns = []
        for c, name in enumerate(VELOCITY_COMPONENTS):
            columns.append((name, stats.UmeanCalc[:, c], zu))
        if len(zt):
            columns.append(("T", stats.TmeanCalc, zt))
        for c, name in enumerate(VARIANCE_COMPONENTS):
            columns.append((name, stats.varCalc[:, c], zu))
        for c, name in enumerate(STRESS_COMPONENTS):
            columns.append((f"sfs_{name}", stats.SFSstressMeanCalc[:, c], zu))
        return columns

    def write(self, step: int, time: float, stats, utau: float) -> None:
        """Write the current tables if ``step`` is an output step (rank 0 only)."""
        if not self.should_write(step) or not is_root(self.comm):
            return

        columns = self._columns(stats)
        columns.append(("utau", np.array([utau]), [0.0]))
        for quantity, values, heights in columns:
            self._append(quantity, time, values, heights)
        logger.debug("Wrote ABL statistics at step %d (t=%g)", step, time)

    def _append(self, quantity: str, time: float, values, heights) -> None:
        path = self.path_for(quantity)
        first = not self._started.get(quantity, False)
        if first:
            path.parent.mkdir(parents=True, exist_ok=True)
        row = np.concatenate([[time], np.asarray(values, dtype=np.float64)])[None, :]
        header = "Time " + " ".join(f"{z:g}" for z in heights) if first else ""
        with open(path, "w" if first else "a") as f:
            np.savetxt(f, row, fmt="%.10e", header=header)
        self._started[quantity] = True
