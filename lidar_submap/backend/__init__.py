"""
Submap backend.

Structure:
- structures/: VoxelizedPointCloud (dense layer), VoxelMap (spatial index), FeatureSummary
- operators/: space carving (returns what to remove; layers apply it)
- layers.py: lock-guarded sparse and dense layers
- submap.py: Submap orchestration (ingestion, transform, features)
- rerun_visualizer.py: optional Rerun logging of a Submap
"""

# Lazy imports to avoid pulling open3d/scipy at package import time
__all__ = [
    "Submap",
    "FeatureNotInitializedError",
    "SubmapVisualizer",
]


def __getattr__(name):
    if name == "Submap":
        from lidar_submap.backend.submap import Submap
        return Submap
    elif name == "FeatureNotInitializedError":
        from lidar_submap.backend.submap import FeatureNotInitializedError
        return FeatureNotInitializedError
    elif name == "SubmapVisualizer":
        from lidar_submap.backend.rerun_visualizer import SubmapVisualizer
        return SubmapVisualizer
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
