"""
ABL Post-processing Transfer Coordination

Wires velocity, temperature and sub-filter-scale stress transfers from the
volumetric source partitions onto the statistics planes.
"""

from typing import Dict, List, Sequence, Tuple
import logging

from ..core.config import FAMILY_FIELDS
from ..core.core_types import PlaneRecord
from ..mesh.database import MeshDatabase
from .service import FieldTransfer, Transfers, declare_transfer_fields

logger = logging.getLogger(__name__)


class TransferCoordinator:
    """
    Registers and drives the plane transfers.

    Every (source partition, target plane) pair is recorded. Donors of all
    sources feeding one plane are pooled into a single transfer so that a
    plane crossing several source blocks is filled consistently.

    Args:
        mesh: Mesh database holding sources and planes
        search_method: Point-location strategy
        search_tolerance: Geometric tolerance of the donor search
        search_expansion_factor: Search radius inflation
    """

    def __init__(
        self,
        mesh: MeshDatabase,
        search_method: str,
        search_tolerance: float,
        search_expansion_factor: float,
    ):
        self.mesh = mesh
        self.search_method = search_method
        self.search_tolerance = search_tolerance
        self.search_expansion_factor = search_expansion_factor
        self.transfers = Transfers()
        self.pairs: List[Tuple[str, str]] = []

    def register(self, records: Sequence[PlaneRecord]) -> None:
        """
        Register transfers for every plane record.

        Records of both families pointing at the same partition are merged,
        so a shared plane receives velocity, stress and temperature at once.
        """
        plane_fields: Dict[str, List[str]] = {}
        plane_sources: Dict[str, List[str]] = {}
        for record in records:
            fields = plane_fields.setdefault(record.part_name, [])
            for field_name in FAMILY_FIELDS[record.family]:
                if field_name not in fields:
                    fields.append(field_name)
            sources = plane_sources.setdefault(record.part_name, [])
            for source in record.source_parts:
                if source not in sources:
                    sources.append(source)

        for plane_name, fields in plane_fields.items():
            to_part = self.mesh.get_part(plane_name)
            from_parts = [self.mesh.get_part(name) for name in plane_sources[plane_name]]
            declare_transfer_fields(to_part, fields)

            self.transfers.add(FieldTransfer(
                name=f"abl_{plane_name}",
                from_parts=from_parts,
                to_part=to_part,
                fields=fields,
                search_method=self.search_method,
                search_tolerance=self.search_tolerance,
                search_expansion_factor=self.search_expansion_factor,
            ))
            for source in plane_sources[plane_name]:
                self.pairs.append((source, plane_name))

        logger.info(
            "Registered %d plane transfers (%d source/plane pairs) using %s",
            len(self.transfers), len(self.pairs), self.search_method
        )

    def initialize(self) -> None:
        """Run the donor search once; mesh geometry does not change afterwards."""
        self.transfers.initialize()

    def execute(self) -> None:
        """Refresh the plane fields from the current volumetric values."""
        self.transfers.execute()
