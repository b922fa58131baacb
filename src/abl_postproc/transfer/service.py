"""
ABL Post-processing Field Transfer Service

Point-location transfer of nodal fields from volumetric source partitions
onto target partitions. Cell search blends donors with barycentric weights
inside a Delaunay tessellation of the pooled source nodes; points outside
it fall back to the nearest donor within an expanded search radius.

Donor geometry is fixed after setup, so the search runs once in
``initialize`` and each ``execute`` only re-applies the stored weights.
"""

from typing import Dict, Iterator, List, Optional, Sequence
import logging

import numpy as np
from scipy.spatial import Delaunay, QhullError, cKDTree

from ..core.config import CELL_SEARCH_METHODS, FIELD_COMPONENTS
from ..core.exceptions import TransferError
from ..mesh.database import Partition

logger = logging.getLogger(__name__)


class FieldTransfer:
    """
    One-directional transfer onto a single target partition.

    Args:
        name: Transfer name used in log and error messages
        from_parts: Source partitions whose nodes are pooled as donors
        to_part: Target partition receiving the fields
        fields: Names of the nodal fields to transfer
        search_method: 'stk_kdtree', 'stk_octree' or 'nearest'
        search_tolerance: Geometric tolerance of the cell search
        search_expansion_factor: Inflation of the nearest-donor radius
    """

    def __init__(
        self,
        name: str,
        from_parts: Sequence[Partition],
        to_part: Partition,
        fields: Sequence[str],
        search_method: str,
        search_tolerance: float,
        search_expansion_factor: float,
    ):
        self.name = name
        self.from_parts = list(from_parts)
        self.to_part = to_part
        self.fields = list(fields)
        self.search_method = search_method
        self.search_tolerance = search_tolerance
        self.search_expansion_factor = search_expansion_factor

        self._cell_rows: Optional[np.ndarray] = None
        self._cell_donors: Optional[np.ndarray] = None
        self._cell_weights: Optional[np.ndarray] = None
        self._nearest_rows: Optional[np.ndarray] = None
        self._nearest_donors: Optional[np.ndarray] = None

    @property
    def initialized(self) -> bool:
        return self._nearest_rows is not None

    def _donor_coordinates(self) -> np.ndarray:
        return np.concatenate([part.coordinates for part in self.from_parts], axis=0)

    def _locate_in_cells(self, donors: np.ndarray, targets: np.ndarray):
        """Find containing simplices; returns (located mask, donor ids, weights)."""
        n_targets = len(targets)
        located = np.zeros(n_targets, dtype=bool)
        try:
            tri = Delaunay(donors)
        except (QhullError, ValueError) as e:
            logger.warning(
                "Transfer '%s': cell search unavailable (%s); using nearest donors", self.name, e
            )
            return located, np.empty((0, 4), dtype=np.int64), np.empty((0, 4))

        simplex = tri.find_simplex(targets, tol=self.search_tolerance)
        inside = simplex >= 0
        T = tri.transform[simplex[inside]]
        r = np.einsum("...ij,...j->...i", T[:, :3, :], targets[inside] - T[:, 3, :])
        weights = np.column_stack([r, 1.0 - r.sum(axis=1)])
        ok = np.all(np.isfinite(weights), axis=1)

        rows = np.flatnonzero(inside)[ok]
        located[rows] = True
        return located, tri.simplices[simplex[inside]][ok], weights[ok]

    def initialize(self) -> None:
        """
        Run the donor search for every target node.

        Raises:
            TransferError: If some target nodes have no donor in range
        """
        donors = self._donor_coordinates()
        targets = self.to_part.coordinates
        if len(donors) == 0:
            raise TransferError(self.name, "source partitions contain no nodes")

        located = np.zeros(len(targets), dtype=bool)
        if self.search_method in CELL_SEARCH_METHODS and len(donors) > 3:
            located, cell_donors, cell_weights = self._locate_in_cells(donors, targets)
            self._cell_rows = np.flatnonzero(located)
            self._cell_donors = cell_donors
            self._cell_weights = cell_weights

        tree = cKDTree(donors)
        if len(donors) > 1:
            spacing, _ = tree.query(donors, k=2)
            h = float(np.median(spacing[:, 1]))
        else:
            h = 0.0
        radius = self.search_expansion_factor * max(h, self.search_tolerance)

        rest = np.flatnonzero(~located)
        dist, idx = tree.query(targets[rest], k=1) if len(rest) else (np.empty(0), np.empty(0, dtype=np.int64))
        missing = rest[dist > radius]
        if len(missing):
            raise TransferError(
                self.name,
                f"{len(missing)} of {len(targets)} target nodes on '{self.to_part.name}' "
                f"have no donor within {radius:.6g} (first at {targets[missing[0]].tolist()})"
            )
        self._nearest_rows = rest
        self._nearest_donors = np.asarray(idx, dtype=np.int64)

        logger.debug(
            "Transfer '%s': %d nodes located in cells, %d by nearest donor",
            self.name, int(located.sum()), len(rest)
        )

    def execute(self) -> None:
        """Interpolate the current source values onto the target partition."""
        if not self.initialized:
            self.initialize()

        for field_name in self.fields:
            try:
                donor_values = np.concatenate(
                    [part.get_field(field_name) for part in self.from_parts], axis=0
                )
            except KeyError as e:
                raise TransferError(self.name, str(e.args[0]))

            n_comp = donor_values.shape[1]
            target = self.to_part.declare_field(field_name, n_comp)

            if self._cell_rows is not None and len(self._cell_rows):
                # blend as offsets from the first vertex so constant fields stay exact
                corners = donor_values[self._cell_donors]
                base = corners[:, 0, :]
                target[self._cell_rows] = base + np.einsum(
                    "nk,nkc->nc", self._cell_weights[:, 1:], corners[:, 1:, :] - base[:, None, :]
                )
            if len(self._nearest_rows):
                target[self._nearest_rows] = donor_values[self._nearest_donors]

    def __repr__(self) -> str:
        sources = ", ".join(p.name for p in self.from_parts)
        return f"FieldTransfer({self.name}: [{sources}] -> {self.to_part.name}, fields={self.fields})"


class Transfers:
    """Ordered collection of field transfers executed together."""

    def __init__(self):
        self._transfers: Dict[str, FieldTransfer] = {}

    def add(self, transfer: FieldTransfer) -> FieldTransfer:
        if transfer.name in self._transfers:
            raise ValueError(f"Transfer '{transfer.name}' already registered")
        self._transfers[transfer.name] = transfer
        return transfer

    def get(self, name: str) -> FieldTransfer:
        return self._transfers[name]

    def initialize(self) -> None:
        for transfer in self._transfers.values():
            transfer.initialize()

    def execute(self) -> None:
        for transfer in self._transfers.values():
            transfer.execute()

    def __iter__(self) -> Iterator[FieldTransfer]:
        return iter(self._transfers.values())

    def __len__(self) -> int:
        return len(self._transfers)


def declare_transfer_fields(part: Partition, fields: List[str]) -> None:
    """Declare the target-side storage for ``fields`` on ``part``."""
    for field_name in fields:
        part.declare_field(field_name, FIELD_COMPONENTS.get(field_name, 1))
