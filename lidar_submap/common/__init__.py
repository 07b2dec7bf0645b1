"""
Common package for the submap mapper.

Shared configuration, constants, rate limiting and transforms.

Subpackages:
- transforms/: SE(3) operations on 4x4 matrices
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = [
    "MapperParams",
    "RateLimiter",
    "load_mapper_params",
    "constants",
]

_LAZY_ATTRS: dict[str, tuple[str, str | None]] = {
    "MapperParams": ("lidar_submap.common.param_models", "MapperParams"),
    "RateLimiter": ("lidar_submap.common.rate_limit", "RateLimiter"),
    "load_mapper_params": ("lidar_submap.common.config", "load_mapper_params"),
    # Expose as a submodule without importing it at package import time.
    "constants": ("lidar_submap.common.constants", None),
}


def __getattr__(name: str) -> Any:
    target = _LAZY_ATTRS.get(name)
    if target is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = target
    module = import_module(module_name)
    return module if attr_name is None else getattr(module, attr_name)


def __dir__() -> list[str]:
    return sorted(set(globals().keys()) | set(_LAZY_ATTRS.keys()))
