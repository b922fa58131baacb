"""
ABL Post-processing - planar statistics for atmospheric boundary layer simulations.

This package computes horizontally averaged flow statistics on planes at
user-specified heights of an ABL simulation and serves height-interpolated
means back to the solver.

Key Features:
- Existing plane partitions or quad planes generated at any elevation
- Search-based transfer of velocity, temperature and SFS stress onto planes
- Area-weighted means, variances, <w'^3> and <w'T'> as collective reductions
- Friction velocity over the lower-wall partitions
- Clamped linear interpolation of the means at arbitrary heights

Quick Start:
    >>> import abl_postproc as abl
    >>> algo = abl.ABLPostProcessingAlgorithm(mesh, "input.yaml")
    >>> algo.setup()
    >>> algo.initialize()
    >>> algo.execute()
    >>> algo.eval_vel_mean(50.0)
"""

__version__ = "1.0.0"
__author__ = "ABL Post-processing Development Team"

# Main interface
from .main import ABLPostProcessingAlgorithm

# Mesh model
from .mesh import MeshDatabase, Partition, Selector, PartCatalog, PlaneGeometryProvider

# Components
from .processing import HeightRegistry, QueryInterpolator
from .transfer import FieldTransfer, Transfers, TransferCoordinator
from .statistics import (
    SpatialAveragingAlgorithm,
    OwnedAveraging,
    BorrowedAveraging,
    PlanarStatisticsEngine,
    FrictionVelocityEstimator,
)

# Configuration
from .core.core_types import (
    ABLPostProcessingConfig,
    PlaneGenerationSpec,
    ExistingPartition,
    GeneratedQuad,
    PlaneRecord,
)
from .io.config_loader import load_config, parse_config
from .core.parallel import SerialCommunicator

# Exceptions
from .core.exceptions import (
    ABLPostProcessingError,
    ConfigurationError,
    PartNotFoundError,
    GeometryError,
    TransferError,
    OutOfRangeError,
    StatisticsInvariantError,
)

# Logging configuration
from .core.logging_config import setup_logging, set_log_level

__all__ = [
    '__version__',

    # Main interface
    'ABLPostProcessingAlgorithm',

    # Mesh model
    'MeshDatabase',
    'Partition',
    'Selector',
    'PartCatalog',
    'PlaneGeometryProvider',

    # Components
    'HeightRegistry',
    'QueryInterpolator',
    'FieldTransfer',
    'Transfers',
    'TransferCoordinator',
    'SpatialAveragingAlgorithm',
    'OwnedAveraging',
    'BorrowedAveraging',
    'PlanarStatisticsEngine',
    'FrictionVelocityEstimator',

    # Configuration
    'ABLPostProcessingConfig',
    'PlaneGenerationSpec',
    'ExistingPartition',
    'GeneratedQuad',
    'PlaneRecord',
    'load_config',
    'parse_config',
    'SerialCommunicator',

    # Exceptions
    'ABLPostProcessingError',
    'ConfigurationError',
    'PartNotFoundError',
    'GeometryError',
    'TransferError',
    'OutOfRangeError',
    'StatisticsInvariantError',

    # Logging configuration
    'setup_logging',
    'set_log_level',
]
