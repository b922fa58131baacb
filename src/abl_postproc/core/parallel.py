"""
ABL Post-processing Collective Communication

Planar statistics are collective reductions: every rank contributes partial
sums over the nodes it owns and every rank receives the same totals. Any
object following the mpi4py lower-case communicator protocol (``rank``,
``size``, ``allreduce``) can be passed to the components; the serial
communicator below covers single-process runs.
"""

import numpy as np


class SerialCommunicator:
    """Single-process communicator with the mpi4py ``allreduce`` signature."""

    rank = 0
    size = 1

    def allreduce(self, sendobj, op=None):  # noqa: ARG002
        """Return the local contribution; it is already the global sum."""
        if isinstance(sendobj, np.ndarray):
            return sendobj.copy()
        return sendobj

    def Get_rank(self) -> int:
        return self.rank

    def Get_size(self) -> int:
        return self.size

    def __repr__(self) -> str:
        return "SerialCommunicator(size=1)"


def allreduce_sum(comm, values) -> np.ndarray:
    """
    Sum an array of partial sums across all ranks.

    Args:
        comm: Communicator (mpi4py-compatible or SerialCommunicator)
        values: Local partial sums

    Returns:
        np.ndarray: Global sums, identical on every rank
    """
    local = np.asarray(values, dtype=np.float64)
    return np.asarray(comm.allreduce(local), dtype=np.float64)


def is_root(comm) -> bool:
    """Check whether this rank performs rank-0-only work such as file output."""
    return getattr(comm, "rank", 0) == 0
