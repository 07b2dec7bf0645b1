"""
Geometry package for the submap mapper.

Modules:
- point_cloud: PointCloud value type, colour filter and voxel grid helpers (NumPy)
- cropping_volume: region-of-interest predicates
- cloud_ops: Open3D-backed normals, downsampling and FPFH descriptors
"""

from __future__ import annotations

from lidar_submap.geometry.point_cloud import (
    PointCloud,
    VoxelKey,
    concatenate,
    filter_valid_colors,
    valid_color_mask,
    voxel_keys,
    voxelize,
    voxelize_within_cropping_volume,
)
from lidar_submap.geometry.cropping_volume import (
    CroppingVolume,
    CylinderCroppingVolume,
    MaxRadiusCroppingVolume,
    MinMaxRadiusCroppingVolume,
    cropping_volume_factory,
)

__all__ = [
    "PointCloud",
    "VoxelKey",
    "concatenate",
    "filter_valid_colors",
    "valid_color_mask",
    "voxel_keys",
    "voxelize",
    "voxelize_within_cropping_volume",
    "CroppingVolume",
    "CylinderCroppingVolume",
    "MaxRadiusCroppingVolume",
    "MinMaxRadiusCroppingVolume",
    "cropping_volume_factory",
]
