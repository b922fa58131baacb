"""
ABL Post-processing Spatial Averaging

Area-weighted planar averaging over mesh partitions. Each rank sums its own
nodes about a reference value shared by all ranks, and the partial sums are
combined with ``allreduce``, so every rank obtains the same mean and a
uniform field averages to exactly its value.

The averaging engine can be owned by the post-processing or borrowed from
the host driver; both cases are wrapped in a small closed variant exposing
one interface.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union
import logging

import numpy as np

from ..core.parallel import SerialCommunicator, allreduce_sum
from ..mesh.database import MeshDatabase

logger = logging.getLogger(__name__)


class SpatialAveragingAlgorithm:
    """
    Area-weighted averaging of nodal fields over partitions.

    Args:
        mesh: Mesh database holding the partitions
        comm: Communicator used for the collective reductions
    """

    def __init__(self, mesh: MeshDatabase, comm=None):
        self.mesh = mesh
        self.comm = comm if comm is not None else SerialCommunicator()
        self._requests: Dict[str, List[str]] = {}
        self.means: Dict[Tuple[str, str], np.ndarray] = {}

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def register_fields(self, part_names: Iterable[str], field_names: Iterable[str]) -> None:
        """Add averaging requests; existing requests from other users are kept."""
        field_names = list(field_names)
        for part_name in part_names:
            fields = self._requests.setdefault(part_name, [])
            for field_name in field_names:
                if field_name not in fields:
                    fields.append(field_name)

    @property
    def requested_parts(self) -> Set[str]:
        return set(self._requests)

    def requested_fields(self, part_name: str) -> List[str]:
        return list(self._requests.get(part_name, ()))

    # ------------------------------------------------------------------
    # Reductions
    # ------------------------------------------------------------------

    def average_over(self, part_names: Sequence[str], values: Sequence[np.ndarray]) -> np.ndarray:
        """
        Area-weighted mean of nodal values over a union of partitions.

        Args:
            part_names: Partitions to reduce over
            values: Nodal values per partition, each (n_nodes,) or (n_nodes, k)

        Returns:
            np.ndarray: Mean per column, shape (k,); zeros when the global area is zero
        """
        if not part_names:
            raise ValueError("No partitions given for averaging")

        blocks = []
        for part_name, vals in zip(part_names, values):
            weights = self.mesh.get_part(part_name).node_areas()
            vals = np.asarray(vals, dtype=np.float64)
            if vals.ndim == 1:
                vals = vals[:, None]
            blocks.append((weights, vals))
        n_cols = blocks[0][1].shape[1]

        # sums about a reference value common to all ranks
        reference = self._shared_reference(blocks, n_cols)
        local = np.zeros(n_cols + 1)
        for weights, vals in blocks:
            local[:n_cols] += weights @ (vals - reference)
            local[n_cols] += weights.sum()

        totals = allreduce_sum(self.comm, local)
        area = totals[n_cols]
        if area <= 0.0:
            logger.warning("Zero total area over %s; mean set to zero", list(part_names))
            return np.zeros(n_cols)
        return reference + totals[:n_cols] / area

    def _shared_reference(self, blocks, n_cols: int) -> np.ndarray:
        """
        First nodal value held by the lowest rank that has any nodes.

        Every rank fills only its own slot of a zero buffer, so the summed
        buffer carries each rank's candidate unchanged.
        """
        size = getattr(self.comm, "size", 1)
        rank = getattr(self.comm, "rank", 0)
        slots = np.zeros((size, n_cols + 1))
        for _, vals in blocks:
            if len(vals):
                slots[rank, 0] = 1.0
                slots[rank, 1:] = vals[0]
                break
        if size > 1:
            slots = allreduce_sum(self.comm, slots)
        holders = np.flatnonzero(slots[:, 0] > 0.0)
        if not len(holders):
            return np.zeros(n_cols)
        return slots[holders[0], 1:]

    def average(self, part_name: str, values) -> np.ndarray:
        """Area-weighted mean of nodal values over one partition."""
        return self.average_over([part_name], [values])

    def average_field(self, part_name: str, field_name: str) -> np.ndarray:
        """Area-weighted mean of a declared nodal field."""
        part = self.mesh.get_part(part_name)
        return self.average(part_name, part.get_field(field_name))

    def execute(self, parts: Optional[Iterable[str]] = None) -> None:
        """
        Recompute the registered means.

        Args:
            parts: Restrict the update to these partitions; all requests when None
        """
        selected = self._requests if parts is None else {
            name: self._requests[name] for name in parts if name in self._requests
        }
        for part_name, fields in selected.items():
            for field_name in fields:
                self.means[(part_name, field_name)] = self.average_field(part_name, field_name)

    def mean(self, part_name: str, field_name: str) -> np.ndarray:
        """Mean stored by the last ``execute`` for a registered request."""
        try:
            return self.means[(part_name, field_name)]
        except KeyError:
            raise KeyError(f"No mean computed for field '{field_name}' on '{part_name}'") from None


# ============================================================================
# Ownership Variant
# ============================================================================

@dataclass(frozen=True)
class OwnedAveraging:
    """Averaging engine created for and driven entirely by the post-processing."""
    engine: SpatialAveragingAlgorithm
    owned = True

    def refresh(self, parts: Iterable[str]) -> None:  # noqa: ARG002
        self.engine.execute()


@dataclass(frozen=True)
class BorrowedAveraging:
    """Averaging engine shared with the host; only our own requests are refreshed."""
    engine: SpatialAveragingAlgorithm
    owned = False

    def refresh(self, parts: Iterable[str]) -> None:
        self.engine.execute(parts=list(parts))


AveragingHandle = Union[OwnedAveraging, BorrowedAveraging]
