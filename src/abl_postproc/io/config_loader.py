"""
ABL Post-processing Input Parsing

Reads the ``abl_postprocessing`` block from a YAML input file or an already
parsed mapping and turns it into a validated ABLPostProcessingConfig.

Example block:

    abl_postprocessing:
      search_method: stk_kdtree
      search_tolerance: 0.0001
      search_expansion_factor: 1.5
      from_target_part: [Unspecified-2-HEX]
      target_part_format: "zplane_%.1f"
      heights: [80.0]
"""

from pathlib import Path
from typing import Any, Mapping, Optional, Union
import logging

import yaml

from ..core.config import CONFIG_SECTION
from ..core.core_types import ABLPostProcessingConfig, PlaneGenerationSpec
from ..core.exceptions import ConfigurationError, InvalidParameterError, MissingKeyError

logger = logging.getLogger(__name__)

# Keys passed straight through to ABLPostProcessingConfig
_OPTIONAL_KEYS = (
    "target_part_format",
    "target_parts",
    "temperature_heights",
    "search_method",
    "search_tolerance",
    "search_expansion_factor",
    "abl_wall_parts",
    "utau_method",
    "reference_height",
    "roughness_height",
    "output_frequency",
    "output_file_format",
)


def get_required(node: Mapping[str, Any], key: str) -> Any:
    """Return ``node[key]`` or raise MissingKeyError."""
    if key not in node or node[key] is None:
        raise MissingKeyError(key, CONFIG_SECTION)
    return node[key]


def _parse_generation(node: Mapping[str, Any]) -> Optional[PlaneGenerationSpec]:
    """Plane generation parameters, or None when generation is disabled."""
    if not node.get("generate_parts", False):
        return None

    vertices = get_required(node, "domain_vertices")
    num_points = get_required(node, "num_points")
    if isinstance(num_points, (str, bytes)) or not hasattr(num_points, "__len__") or len(num_points) != 2:
        raise InvalidParameterError("num_points", num_points, "expected [nx, ny]")
    return PlaneGenerationSpec(vertices=vertices, nx=num_points[0], ny=num_points[1])


def parse_config(node: Mapping[str, Any]) -> ABLPostProcessingConfig:
    """
    Build a validated configuration from a parsed input block.

    Args:
        node: Mapping with the ``abl_postprocessing`` keys, or a mapping
              containing an ``abl_postprocessing`` entry

    Returns:
        ABLPostProcessingConfig: Validated configuration

    Raises:
        ConfigurationError: Missing or invalid keys
    """
    if not isinstance(node, Mapping):
        raise ConfigurationError(f"Expected a mapping for '{CONFIG_SECTION}', got {type(node).__name__}")
    if CONFIG_SECTION in node:
        node = node[CONFIG_SECTION]
        if not isinstance(node, Mapping):
            raise ConfigurationError(f"'{CONFIG_SECTION}' must be a mapping")

    kwargs = {
        "from_target_part": get_required(node, "from_target_part"),
        "heights": get_required(node, "heights"),
        "generate_parts": bool(node.get("generate_parts", False)),
        "generation": _parse_generation(node),
    }
    for key in _OPTIONAL_KEYS:
        if node.get(key) is not None:
            kwargs[key] = node[key]

    unknown = set(node) - set(kwargs) - {"domain_vertices", "num_points"}
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", CONFIG_SECTION, sorted(unknown))

    return ABLPostProcessingConfig(**kwargs)


def load_config(path: Union[str, Path]) -> ABLPostProcessingConfig:
    """
    Read and validate the ``abl_postprocessing`` block of a YAML input file.

    Args:
        path: YAML input file

    Returns:
        ABLPostProcessingConfig: Validated configuration
    """
    path = Path(path)
    try:
        with open(path, "r") as f:
            document = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read input file {path}", str(e))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}", str(e))

    if not isinstance(document, Mapping) or CONFIG_SECTION not in document:
        raise MissingKeyError(CONFIG_SECTION, str(path))

    logger.info("Loaded %s block from %s", CONFIG_SECTION, path)
    return parse_config(document[CONFIG_SECTION])
