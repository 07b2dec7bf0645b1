"""
lidar_submap: local submap core for incremental 3D lidar mapping.

Subpackages:
- common/: parameters, config loading, rate limiting, SE(3) helpers
- geometry/: PointCloud, cropping volumes, Open3D glue
- backend/: Submap, its layers, data structures and carving
- tools/: command line helpers
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

__version__ = "0.1.0"

__all__ = [
    "Submap",
    "FeatureNotInitializedError",
    "MapperParams",
    "PointCloud",
    "load_mapper_params",
]

_LAZY_ATTRS: dict[str, tuple[str, str]] = {
    "Submap": ("lidar_submap.backend.submap", "Submap"),
    "FeatureNotInitializedError": ("lidar_submap.backend.submap", "FeatureNotInitializedError"),
    "MapperParams": ("lidar_submap.common.param_models", "MapperParams"),
    "PointCloud": ("lidar_submap.geometry.point_cloud", "PointCloud"),
    "load_mapper_params": ("lidar_submap.common.config", "load_mapper_params"),
}


def __getattr__(name: str) -> Any:
    target = _LAZY_ATTRS.get(name)
    if target is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = target
    return getattr(import_module(module_name), attr_name)


def __dir__() -> list[str]:
    return sorted(set(globals().keys()) | set(_LAZY_ATTRS.keys()))
