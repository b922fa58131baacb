"""
ABL Post-processing Mesh Database

Minimal host mesh model: named partitions made of nodes, optional element
connectivity and nodal fields. On a distributed run each rank holds only
the nodes it owns; reductions over partitions go through the communicator.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional
import logging

import numpy as np

from ..core.config import FIELD_COMPONENTS
from ..core.exceptions import PartNotFoundError

logger = logging.getLogger(__name__)

# ============================================================================
# Partitions
# ============================================================================

@dataclass
class Partition:
    """
    Named subset of the mesh.

    Attributes:
        name: Partition name
        coordinates: Node coordinates, shape (n_nodes, 3)
        elements: Element connectivity (n_elems, nodes_per_elem) for surface
                  partitions; None for volumetric or point partitions
        fields: Nodal fields, each shaped (n_nodes, n_components)
        generated: Whether the partition was synthesized at runtime
    """
    name: str
    coordinates: np.ndarray
    elements: Optional[np.ndarray] = None
    fields: Dict[str, np.ndarray] = field(default_factory=dict)
    generated: bool = False

    def __post_init__(self):
        self.coordinates = np.asarray(self.coordinates, dtype=np.float64)
        if self.coordinates.ndim != 2 or self.coordinates.shape[1] != 3:
            raise ValueError(f"Partition '{self.name}': coordinates must have shape (n, 3)")
        if self.elements is not None:
            self.elements = np.asarray(self.elements, dtype=np.int64)
        for name, values in list(self.fields.items()):
            self.fields[name] = self._as_field(name, values)
        self._node_areas: Optional[np.ndarray] = None

    @property
    def n_nodes(self) -> int:
        return self.coordinates.shape[0]

    @property
    def is_surface(self) -> bool:
        return self.elements is not None

    def _as_field(self, name: str, values) -> np.ndarray:
        arr = np.asarray(values, dtype=np.float64)
        if arr.ndim == 1:
            arr = arr[:, None]
        if arr.shape[0] != self.n_nodes:
            raise ValueError(
                f"Field '{name}' on '{self.name}' has {arr.shape[0]} values for {self.n_nodes} nodes"
            )
        return arr

    def declare_field(self, name: str, n_components: int) -> np.ndarray:
        """Create a zero-initialised nodal field unless it already exists."""
        if name not in self.fields:
            self.fields[name] = np.zeros((self.n_nodes, n_components))
        elif self.fields[name].shape[1] != n_components:
            raise ValueError(
                f"Field '{name}' on '{self.name}' already declared with "
                f"{self.fields[name].shape[1]} components, requested {n_components}"
            )
        return self.fields[name]

    def _n_components(self, name: str) -> Optional[int]:
        if name in self.fields:
            return self.fields[name].shape[1]
        return FIELD_COMPONENTS.get(name)

    def set_field(self, name: str, values) -> None:
        """
        Assign nodal values.

        A scalar, or a 1-D array holding one value per component of a
        multi-component field, is broadcast to every node. Any other 1-D
        array of length ``n_nodes`` is taken as one scalar per node.
        """
        arr = np.asarray(values, dtype=np.float64)
        n_comp = self._n_components(name)
        is_vector = arr.ndim == 1 and n_comp is not None and n_comp > 1 and arr.size == n_comp
        if arr.ndim == 0 or is_vector or (arr.ndim == 1 and arr.size != self.n_nodes):
            arr = np.broadcast_to(np.atleast_1d(arr), (self.n_nodes, arr.size)).copy()
        self.fields[name] = self._as_field(name, arr)

    def has_field(self, name: str) -> bool:
        return name in self.fields

    def get_field(self, name: str) -> np.ndarray:
        try:
            return self.fields[name]
        except KeyError:
            raise KeyError(f"Field '{name}' not declared on partition '{self.name}'") from None

    def node_areas(self) -> np.ndarray:
        """
        Lumped nodal area weights.

        Each element's area is shared equally among its nodes. Partitions
        without connectivity weight every node equally.
        """
        if self._node_areas is None:
            if self.elements is None or len(self.elements) == 0:
                self._node_areas = np.ones(self.n_nodes)
            else:
                areas = element_areas(self.coordinates, self.elements)
                weights = np.zeros(self.n_nodes)
                per_node = areas / self.elements.shape[1]
                np.add.at(weights, self.elements, per_node[:, None])
                self._node_areas = weights
        return self._node_areas


def element_areas(coordinates: np.ndarray, elements: np.ndarray) -> np.ndarray:
    """
    Areas of planar polygonal elements in 3-D.

    Uses a triangle fan from the first node of each element.

    Args:
        coordinates: Node coordinates (n_nodes, 3)
        elements: Connectivity (n_elems, k) with k >= 3

    Returns:
        np.ndarray: Element areas (n_elems,)
    """
    pts = coordinates[elements]
    origin = pts[:, 0, :]
    total = np.zeros((len(elements), 3))
    for k in range(1, elements.shape[1] - 1):
        total += np.cross(pts[:, k, :] - origin, pts[:, k + 1, :] - origin)
    return 0.5 * np.linalg.norm(total, axis=1)

# ============================================================================
# Mesh Database
# ============================================================================

class MeshDatabase:
    """Registry of named partitions."""

    def __init__(self, parts: Optional[Iterable[Partition]] = None):
        self._parts: Dict[str, Partition] = {}
        for part in parts or ():
            self.add_part(part)

    def add_part(self, part: Partition) -> Partition:
        if part.name in self._parts:
            raise ValueError(f"Partition '{part.name}' already exists")
        self._parts[part.name] = part
        logger.debug("Registered partition '%s' (%d nodes)", part.name, part.n_nodes)
        return part

    def remove_part(self, name: str) -> None:
        self._parts.pop(name, None)

    def has_part(self, name: str) -> bool:
        return name in self._parts

    def get_part(self, name: str) -> Partition:
        if name not in self._parts:
            raise PartNotFoundError([name], "lookup")
        return self._parts[name]

    def part_names(self) -> List[str]:
        return list(self._parts)

    def declare_field(self, name: str, part_names: Iterable[str], n_components: int) -> None:
        """Declare a nodal field on several partitions."""
        for part_name in part_names:
            self.get_part(part_name).declare_field(name, n_components)

    def __contains__(self, name: str) -> bool:
        return name in self._parts

    def __iter__(self) -> Iterator[Partition]:
        return iter(self._parts.values())

    def __len__(self) -> int:
        return len(self._parts)

    def __repr__(self) -> str:
        return f"MeshDatabase({len(self._parts)} partitions)"

# ============================================================================
# Selectors
# ============================================================================

class Selector:
    """Union of partitions, used to include or skip regions in bulk operations."""

    def __init__(self, part_names: Iterable[str] = ()):
        self._names = frozenset(part_names)

    @property
    def part_names(self) -> frozenset:
        return self._names

    def __contains__(self, part_name: str) -> bool:
        return part_name in self._names

    def __or__(self, other: "Selector") -> "Selector":
        return Selector(self._names | other._names)

    def __eq__(self, other) -> bool:
        return isinstance(other, Selector) and self._names == other._names

    def __hash__(self) -> int:
        return hash(self._names)

    def __bool__(self) -> bool:
        return bool(self._names)

    def select(self, mesh: MeshDatabase) -> List[Partition]:
        """Partitions of ``mesh`` matched by this selector."""
        return [part for part in mesh if part.name in self._names]

    def exclude(self, part_names: Iterable[str]) -> List[str]:
        """Names from ``part_names`` not matched by this selector."""
        return [name for name in part_names if name not in self._names]

    def __repr__(self) -> str:
        return f"Selector({sorted(self._names)})"
