"""
YAML configuration loading for the submap mapper.

Accepted layouts (all validated into MapperParams):

    mapper:                      # explicit section
      map_builder: {...}

    /**:                         # ROS 2 parameter file wrapper
      ros__parameters:
        mapper: {...}            # or the MapperParams keys directly

    map_builder: {...}           # bare MapperParams keys
"""

from __future__ import annotations

from importlib import resources
import logging
import os
from typing import Any, Dict, Optional

import yaml

from lidar_submap.common.param_models import MapperParams

_logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_NAME = "submap_default.yaml"


def _load_yaml_file(path: str) -> Dict[str, Any]:
    """Load a YAML file, unwrapping the ros__parameters wrapper when present."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Top-level YAML node must be a mapping (from {path})")

    if "/**" in data and "ros__parameters" in (data.get("/**") or {}):
        data = data["/**"]["ros__parameters"] or {}
    return data


def mapper_params_from_dict(data: Dict[str, Any]) -> MapperParams:
    """Validate a (possibly sectioned) dict into MapperParams."""
    section = data.get("mapper", data)
    if section is None:
        section = {}
    return MapperParams.model_validate(section)


def load_mapper_params(path: Optional[str] = None) -> MapperParams:
    """
    Load MapperParams from a YAML file.

    Args:
        path: YAML file; None loads the packaged default config.

    Raises:
        FileNotFoundError: path does not exist
        pydantic.ValidationError: values fail validation
    """
    if path is None:
        path = default_config_path()
    if not os.path.exists(path):
        raise FileNotFoundError(f"Mapper config not found: {path}")
    params = mapper_params_from_dict(_load_yaml_file(path))
    _logger.debug("Loaded mapper params from %s", path)
    return params


def default_config_path() -> str:
    """Path of the default config shipped inside the lidar_submap package."""
    return str(resources.files("lidar_submap") / "config" / _DEFAULT_CONFIG_NAME)
