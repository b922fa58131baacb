"""
ABL Post-processing Main Interface

This module provides ABLPostProcessingAlgorithm, the object the host
simulation drives to produce planar ABL statistics:

    load(config) -> setup() -> initialize() -> execute() every step
    -> eval_vel_mean(z) / eval_temp_mean(z) from the consumer
"""

import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

import numpy as np
import xarray as xr

from .core.config import (
    STRESS_COMPONENTS, TEMPERATURE_FAMILY, VARIANCE_COMPONENTS,
    VELOCITY_COMPONENTS, VELOCITY_FAMILY,
)
from .core.core_types import ABLPostProcessingConfig, PlaneRecord
from .core.exceptions import ConfigurationError, OutOfRangeError
from .core.parallel import SerialCommunicator
from .io.config_loader import load_config, parse_config
from .io.output import StatisticsWriter
from .mesh.catalog import PartCatalog
from .mesh.database import MeshDatabase, Selector
from .mesh.generation import PlaneGeometryProvider
from .processing.heights import HeightRegistry
from .processing.interpolation import QueryInterpolator
from .statistics.averaging import (
    AveragingHandle, BorrowedAveraging, OwnedAveraging, SpatialAveragingAlgorithm,
)
from .statistics.friction import FrictionVelocityEstimator
from .statistics.planar import PlanarStatisticsEngine
from .transfer.coordinator import TransferCoordinator

logger = logging.getLogger('abl_postproc.main')

ConfigInput = Union[ABLPostProcessingConfig, Mapping[str, Any], str, Path]


class ABLPostProcessingAlgorithm:
    """
    Planar statistics at user-specified heights of an ABL simulation.

    Args:
        mesh: Host mesh database holding the volumetric source partitions
        config: Optional configuration passed to ``load``
        spatial_avg: Averaging engine shared with the host. When omitted,
            the algorithm creates and owns its own engine.
        comm: Communicator for collective reductions; defaults to the
            shared engine's communicator or a serial one

    Examples:
        >>> algo = ABLPostProcessingAlgorithm(mesh, {
        ...     "from_target_part": ["fluid"],
        ...     "target_part_format": "zplane_%.1f",
        ...     "heights": [20.0, 80.0],
        ...     "generate_parts": True,
        ...     "domain_vertices": [[0, 0], [100, 0], [100, 100], [0, 100]],
        ...     "num_points": [10, 10],
        ... })
        >>> algo.setup(); algo.initialize()
        >>> algo.execute()
        >>> algo.eval_vel_mean(50.0)
    """

    def __init__(
        self,
        mesh: MeshDatabase,
        config: Optional[ConfigInput] = None,
        spatial_avg: Optional[SpatialAveragingAlgorithm] = None,
        comm=None,
    ):
        self.mesh = mesh
        if spatial_avg is not None:
            self.comm = comm if comm is not None else spatial_avg.comm
            self.averaging: AveragingHandle = BorrowedAveraging(spatial_avg)
        else:
            self.comm = comm if comm is not None else SerialCommunicator()
            self.averaging = OwnedAveraging(SpatialAveragingAlgorithm(mesh, self.comm))

        self.config: Optional[ABLPostProcessingConfig] = None
        self.heights: Optional[HeightRegistry] = None
        self.records: List[PlaneRecord] = []
        self.catalog: Optional[PartCatalog] = None
        self.geometry: Optional[PlaneGeometryProvider] = None
        self.transfers: Optional[TransferCoordinator] = None
        self.stats: Optional[PlanarStatisticsEngine] = None
        self.friction: Optional[FrictionVelocityEstimator] = None
        self.writer: Optional[StatisticsWriter] = None
        self._vel_query: Optional[QueryInterpolator] = None
        self._temp_query: Optional[QueryInterpolator] = None
        self._initialized = False
        self._step = 0

        if config is not None:
            self.load(config)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self, config: ConfigInput) -> None:
        """
        Parse and validate user options.

        Args:
            config: Validated config, parsed mapping, or path to a YAML input file

        Raises:
            ConfigurationError: Missing or invalid options
        """
        if isinstance(config, ABLPostProcessingConfig):
            cfg = config
        elif isinstance(config, (str, Path)):
            cfg = load_config(config)
        else:
            cfg = parse_config(config)

        heights = HeightRegistry.from_config(cfg)
        self.config = cfg
        self.heights = heights
        logger.info(
            "ABL post-processing: %d velocity heights, %d temperature heights, sources %s",
            heights.n_heights(VELOCITY_FAMILY), heights.n_heights(TEMPERATURE_FAMILY),
            cfg.from_target_part
        )

    def setup(self) -> None:
        """
        Discover or generate the plane partitions and size the tables.

        Every plane is resolved before any is registered, so a failure
        leaves the mesh database and this object unchanged.

        Raises:
            ConfigurationError: Unknown partitions or no way to build a plane
            GeometryError: Degenerate plane generation parameters
        """
        if self.config is None:
            raise ConfigurationError("setup() called before load()")
        cfg = self.config
        heights = self.heights

        catalog = PartCatalog(self.mesh)
        catalog.add_sources(cfg.from_target_part)
        catalog.add_walls(cfg.abl_wall_parts)

        geometry = PlaneGeometryProvider(self.mesh, cfg.generation if cfg.generate_parts else None)
        all_heights = list(heights.heights(VELOCITY_FAMILY)) + list(heights.heights(TEMPERATURE_FAMILY))
        all_names = heights.part_names(VELOCITY_FAMILY) + heights.part_names(TEMPERATURE_FAMILY)
        geometry.build(all_heights, all_names)
        catalog.add_planes(heights.all_plane_names())

        records = []
        for family in (VELOCITY_FAMILY, TEMPERATURE_FAMILY):
            for z, name in zip(heights.heights(family), heights.part_names(family)):
                records.append(PlaneRecord(
                    height=float(z),
                    part_name=name,
                    generated=self.mesh.get_part(name).generated,
                    source_parts=tuple(catalog.source_names),
                    family=family,
                ))

        stats = PlanarStatisticsEngine(self.averaging, heights)
        stats.check_invariants()

        self.catalog = catalog
        self.geometry = geometry
        self.records = records
        self.stats = stats
        self.friction = FrictionVelocityEstimator(
            self.averaging.engine,
            catalog.wall_names,
            method=cfg.utau_method,
            reference_height=cfg.reference_height,
            roughness_height=cfg.roughness_height,
        )
        self.writer = StatisticsWriter(cfg.output_file_format, heights, cfg.output_frequency, self.comm)
        self._vel_query = QueryInterpolator(
            heights.heights(VELOCITY_FAMILY), stats.UmeanCalc, heights.sorted_index(VELOCITY_FAMILY)
        )
        self._temp_query = QueryInterpolator(
            heights.heights(TEMPERATURE_FAMILY), stats.TmeanCalc, heights.sorted_index(TEMPERATURE_FAMILY)
        )
        logger.info("ABL post-processing setup: %d planes, inactive parts %s",
                    len(heights.all_plane_names()), sorted(catalog.part_names))

    def initialize(self) -> None:
        """
        Register fields, transfers and averaging requests on the planes.

        Raises:
            ConfigurationError: A wall partition lacks the friction-velocity input
            TransferError: Plane nodes with no donor in the source partitions
        """
        if self.stats is None:
            raise ConfigurationError("initialize() called before setup()")
        cfg = self.config
        self.friction.check_fields()

        coordinator = TransferCoordinator(
            self.mesh, cfg.search_method, cfg.search_tolerance, cfg.search_expansion_factor
        )
        coordinator.register(self.records)
        coordinator.initialize()
        self.stats.register()

        self.transfers = coordinator
        self._initialized = True

    def execute(self, time: Optional[float] = None) -> None:
        """
        Transfer fields, recompute planar statistics and friction velocity.

        This is a collective operation: every rank must call it.

        Args:
            time: Simulation time for the output files; defaults to the step count
        """
        if not self._initialized:
            raise ConfigurationError("execute() called before initialize()")

        self.transfers.execute()
        self.stats.execute()
        self.friction.execute()

        self._step += 1
        self.writer.write(self._step, float(self._step if time is None else time), self.stats, self.utau)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def eval_vel_mean(self, height: float, out: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Planar mean velocity interpolated to ``height``.

        Heights outside the configured range are clamped to the nearest
        plane. With no velocity heights, or before ``setup``, the call is
        a no-op.

        Args:
            height: Height above the terrain
            out: Optional array of length 3 filled in place

        Returns:
            np.ndarray: Mean velocity (``out`` when provided)
        """
        if out is None:
            out = np.zeros(3)
        if self._vel_query is None:
            logger.debug("eval_vel_mean(%g) skipped: setup() has not run", height)
            return out
        try:
            out[:] = self._vel_query.interpolate(height)
        except OutOfRangeError as e:
            logger.debug("eval_vel_mean(%g) skipped: %s", height, e)
        return out

    def eval_temp_mean(self, height: float) -> float:
        """
        Planar mean temperature interpolated to ``height``.

        Returns 0.0 when temperature statistics are disabled or before setup.
        """
        if self._temp_query is None:
            logger.debug("eval_temp_mean(%g) skipped: setup() has not run", height)
            return 0.0
        try:
            return self._temp_query.interpolate(height)
        except OutOfRangeError as e:
            logger.debug("eval_temp_mean(%g) skipped: %s", height, e)
            return 0.0

    def inactive_selector(self) -> Selector:
        """Union of every plane and source partition used by the post-processing."""
        if self.catalog is None:
            return Selector()
        return self.catalog.inactive_selector()

    # ------------------------------------------------------------------
    # Statistics access
    # ------------------------------------------------------------------

    @property
    def UmeanCalc(self) -> np.ndarray:
        return self.stats.UmeanCalc

    @property
    def SFSstressMeanCalc(self) -> np.ndarray:
        return self.stats.SFSstressMeanCalc

    @property
    def varCalc(self) -> np.ndarray:
        return self.stats.varCalc

    @property
    def TmeanCalc(self) -> np.ndarray:
        return self.stats.TmeanCalc

    @property
    def utau(self) -> float:
        if self.friction is None:
            return 0.0
        return self.friction.utauCalc

    utauCalc = utau

    @property
    def step(self) -> int:
        return self._step

    def to_dataset(self) -> xr.Dataset:
        """
        Current statistics as an xarray Dataset.

        Returns:
            xr.Dataset: Tables on ``height`` / ``temperature_height`` with
            component coordinates, plus scalar ``utau``
        """
        if self.stats is None:
            raise ConfigurationError("to_dataset() called before setup()")
        zu = np.asarray(self.heights.heights(VELOCITY_FAMILY))
        zt = np.asarray(self.heights.heights(TEMPERATURE_FAMILY))

        ds = xr.Dataset(
            data_vars={
                "Umean": (("height", "component"), self.stats.UmeanCalc.copy(),
                          {"long_name": "planar mean velocity", "units": "m s-1"}),
                "SFSstress_mean": (("height", "stress_component"), self.stats.SFSstressMeanCalc.copy(),
                                   {"long_name": "planar mean sub-filter-scale stress", "units": "m2 s-2"}),
                "variance": (("height", "moment"), self.stats.varCalc.copy(),
                             {"long_name": "planar second and third order moments"}),
                "Tmean": (("temperature_height",), self.stats.TmeanCalc.copy(),
                          {"long_name": "planar mean temperature", "units": "K"}),
                "utau": ((), self.utau,
                         {"long_name": "mean friction velocity", "units": "m s-1"}),
            },
            coords={
                "height": ("height", zu, {"units": "m"}),
                "temperature_height": ("temperature_height", zt, {"units": "m"}),
                "component": list(VELOCITY_COMPONENTS),
                "stress_component": list(STRESS_COMPONENTS),
                "moment": list(VARIANCE_COMPONENTS),
            },
            attrs={"step": self._step, "planes": ", ".join(self.heights.all_plane_names())},
        )
        return ds
