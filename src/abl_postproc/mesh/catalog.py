"""
ABL Post-processing Part Catalog

Tracks every partition the post-processing touches so that the host can
leave the planes and their source regions out of bulk volumetric work.
"""

from typing import Iterable, List, Set
import logging

from ..core.exceptions import check_parts_availability
from .database import MeshDatabase, Selector

logger = logging.getLogger(__name__)


class PartCatalog:
    """Deduplicated set of plane and source partition names."""

    def __init__(self, mesh: MeshDatabase):
        self.mesh = mesh
        self._names: Set[str] = set()
        self._source_names: List[str] = []
        self._wall_names: List[str] = []

    def add_sources(self, names: Iterable[str]) -> None:
        """
        Record volumetric source partitions.

        Raises:
            PartNotFoundError: If any name is absent from the mesh database
        """
        names = list(names)
        check_parts_availability(names, self.mesh, role="source")
        for name in names:
            if name not in self._source_names:
                self._source_names.append(name)
        self._names.update(names)

    def add_planes(self, names: Iterable[str]) -> None:
        """Record plane partitions; they must already be registered in the mesh."""
        names = list(names)
        check_parts_availability(names, self.mesh, role="plane")
        self._names.update(names)

    def add_walls(self, names: Iterable[str]) -> None:
        """Record wall partitions used for friction velocity; not part of the inactive set."""
        names = list(names)
        check_parts_availability(names, self.mesh, role="wall")
        for name in names:
            if name not in self._wall_names:
                self._wall_names.append(name)

    @property
    def source_names(self) -> List[str]:
        return list(self._source_names)

    @property
    def wall_names(self) -> List[str]:
        return list(self._wall_names)

    @property
    def part_names(self) -> Set[str]:
        return set(self._names)

    def inactive_selector(self) -> Selector:
        """Union of every plane and source partition."""
        return Selector(self._names)

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)
