"""
ABL Post-processing Height Processing

Height bookkeeping and height-interpolated queries of the statistics tables.
"""

from .heights import HeightRegistry
from .interpolation import QueryInterpolator

__all__ = [
    "HeightRegistry",
    "QueryInterpolator",
]
