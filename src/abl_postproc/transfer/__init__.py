"""
ABL Post-processing Field Transfer

Search-based transfer of volumetric fields onto the statistics planes.
"""

from .service import FieldTransfer, Transfers, declare_transfer_fields
from .coordinator import TransferCoordinator

__all__ = [
    "FieldTransfer",
    "Transfers",
    "declare_transfer_fields",
    "TransferCoordinator",
]
