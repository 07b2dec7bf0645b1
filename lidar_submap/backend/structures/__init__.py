"""
Data structures for the submap layers.

VoxelizedPointCloud backs the dense layer, VoxelMap is the disposable spatial
index over the main cloud, FeatureSummary pairs the feature cloud with its
FPFH descriptors.
"""

from lidar_submap.backend.structures.voxelized_point_cloud import (
    AggregatedVoxel,
    VoxelizedPointCloud,
)
from lidar_submap.backend.structures.voxel_map import (
    VoxelLayer,
    VoxelMap,
)
from lidar_submap.backend.structures.feature_summary import (
    FeatureSummary,
    compute_feature_summary,
)

__all__ = [
    "AggregatedVoxel",
    "VoxelizedPointCloud",
    "VoxelLayer",
    "VoxelMap",
    "FeatureSummary",
    "compute_feature_summary",
]
