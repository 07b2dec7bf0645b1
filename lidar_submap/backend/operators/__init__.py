"""
Operators on submap layers.

Operators compute what should change (indices, keys); the layer that owns the
data applies the change under its lock.
"""

from lidar_submap.backend.operators.space_carving import (
    RaySamples,
    sample_rays,
    carved_point_indices,
    carved_voxel_keys,
)

__all__ = [
    "RaySamples",
    "sample_rays",
    "carved_point_indices",
    "carved_voxel_keys",
]
