"""
ABL Post-processing Statistics

Area-weighted planar averaging, planar moment tables and friction velocity.
"""

from .averaging import (
    SpatialAveragingAlgorithm,
    OwnedAveraging,
    BorrowedAveraging,
    AveragingHandle,
)
from .planar import PlanarStatisticsEngine, fluctuation_moments
from .friction import FrictionVelocityEstimator, log_law_utau

__all__ = [
    # Averaging engine
    "SpatialAveragingAlgorithm",
    "OwnedAveraging",
    "BorrowedAveraging",
    "AveragingHandle",
    # Tables
    "PlanarStatisticsEngine",
    "fluctuation_moments",
    # Friction velocity
    "FrictionVelocityEstimator",
    "log_law_utau",
]
