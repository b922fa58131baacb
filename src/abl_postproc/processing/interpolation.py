"""
ABL Post-processing Height Interpolation

This module answers "what is the planar mean at height z" queries from the
statistics tables, which are stored in user height order.
"""

from typing import Optional, Union
import numpy as np

from ..core.exceptions import OutOfRangeError


class QueryInterpolator:
    """
    Clamped linear interpolation over a height-indexed table.

    The table is held by reference: rows refreshed in place by the
    statistics engine are visible to later queries without rebuilding.

    Args:
        heights: Heights in table-row order (need not be sorted)
        table: Statistics table, shape (n_heights,) or (n_heights, n_columns)
        sorted_index: Row order sorting ``heights`` by value; computed when omitted
    """

    def __init__(self, heights, table: np.ndarray, sorted_index: Optional[np.ndarray] = None):
        self._heights = np.asarray(heights, dtype=np.float64)
        self._table = table
        if sorted_index is None:
            sorted_index = np.argsort(self._heights, kind="stable")
        self._order = np.asarray(sorted_index)
        self._xp = self._heights[self._order]

    @property
    def empty(self) -> bool:
        return self._heights.size == 0

    def interpolate(self, height: float) -> Union[np.ndarray, float]:
        """
        Interpolate the table at ``height``.

        Heights outside the configured range take the nearest boundary row.

        Returns:
            np.ndarray for multi-column tables, float for 1-D tables

        Raises:
            OutOfRangeError: If no heights are configured
        """
        if self.empty:
            raise OutOfRangeError("Cannot interpolate: no heights configured")

        z = float(height)
        if self._table.ndim == 1:
            return float(np.interp(z, self._xp, self._table[self._order]))

        rows = self._table[self._order]
        return np.array([np.interp(z, self._xp, rows[:, c]) for c in range(rows.shape[1])])

    def bracket(self, height: float):
        """
        Rows bracketing ``height`` and the weight of the upper row.

        Returns:
            tuple: (lower_row, upper_row, weight) with weight in [0, 1]
        """
        if self.empty:
            raise OutOfRangeError("Cannot interpolate: no heights configured")
        z = float(height)
        xp = self._xp
        if z <= xp[0]:
            return int(self._order[0]), int(self._order[0]), 0.0
        if z >= xp[-1]:
            return int(self._order[-1]), int(self._order[-1]), 0.0
        k = int(np.searchsorted(xp, z, side="right"))
        lo, hi = k - 1, k
        weight = (z - xp[lo]) / (xp[hi] - xp[lo])
        return int(self._order[lo]), int(self._order[hi]), float(weight)
