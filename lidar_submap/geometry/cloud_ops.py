"""
Open3D-backed point cloud primitives.

Provides:
- Conversion PointCloud <-> open3d.geometry.PointCloud
- Normal estimation (kNN and hybrid radius/kNN), normalization, orientation
- Voxel grid downsampling (feature resolution)
- FPFH descriptors for place recognition

Open3D is imported lazily so that modules that only need numpy geometry
(cropping, carving, voxel grids) stay importable without it. Failures
inside Open3D propagate to the caller unchanged.

Requirements:
    - open3d >= 0.17
"""

from __future__ import annotations

import logging

import numpy as np

from lidar_submap.common import constants
from lidar_submap.geometry.point_cloud import PointCloud

_logger = logging.getLogger(__name__)

_O3D = None


def _open3d():
    global _O3D
    if _O3D is None:
        import open3d as o3d

        _O3D = o3d
    return _O3D


def to_open3d(cloud: PointCloud):
    o3d = _open3d()
    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(np.ascontiguousarray(cloud.points, dtype=np.float64))
    if cloud.normals is not None:
        pcd.normals = o3d.utility.Vector3dVector(np.ascontiguousarray(cloud.normals, dtype=np.float64))
    if cloud.colors is not None:
        pcd.colors = o3d.utility.Vector3dVector(np.ascontiguousarray(cloud.colors, dtype=np.float64))
    return pcd


def from_open3d(pcd) -> PointCloud:
    points = np.asarray(pcd.points, dtype=np.float64).reshape(-1, 3)
    normals = np.asarray(pcd.normals, dtype=np.float64).reshape(-1, 3) if pcd.has_normals() else None
    colors = np.asarray(pcd.colors, dtype=np.float64).reshape(-1, 3) if pcd.has_colors() else None
    return PointCloud(points=points.copy(), normals=None if normals is None else normals.copy(),
                      colors=None if colors is None else colors.copy())


def _default_normals(n: int) -> np.ndarray:
    normals = np.zeros((n, 3), dtype=np.float64)
    normals[:, 2] = 1.0  # Default up
    return normals


def estimate_normals_knn(cloud: PointCloud, knn: int) -> PointCloud:
    """
    Estimate unit normals from the k nearest neighbours.

    Clouds with fewer than 3 points get +z normals (no plane is defined).
    """
    if len(cloud) < 3:
        return cloud.with_normals(_default_normals(len(cloud)))
    o3d = _open3d()
    pcd = to_open3d(cloud)
    pcd.estimate_normals(search_param=o3d.geometry.KDTreeSearchParamKNN(knn=int(knn)))
    pcd.normalize_normals()
    return cloud.with_normals(np.asarray(pcd.normals, dtype=np.float64).copy())


def estimate_normals_hybrid(cloud: PointCloud, radius: float, max_nn: int) -> PointCloud:
    """Estimate unit normals from neighbours within `radius` (at most `max_nn`)."""
    if len(cloud) < 3:
        return cloud.with_normals(_default_normals(len(cloud)))
    o3d = _open3d()
    pcd = to_open3d(cloud)
    pcd.estimate_normals(
        search_param=o3d.geometry.KDTreeSearchParamHybrid(radius=float(radius), max_nn=int(max_nn))
    )
    pcd.normalize_normals()
    return cloud.with_normals(np.asarray(pcd.normals, dtype=np.float64).copy())


def orient_normals_towards(cloud: PointCloud, location=constants.FEATURE_NORMAL_ORIENTATION_POINT) -> PointCloud:
    """Flip normals so that they point towards `location`."""
    if cloud.normals is None or cloud.is_empty():
        return cloud
    pcd = to_open3d(cloud)
    pcd.orient_normals_towards_camera_location(camera_location=np.asarray(location, dtype=np.float64))
    return cloud.with_normals(np.asarray(pcd.normals, dtype=np.float64).copy())


def voxel_down_sample(cloud: PointCloud, voxel_size: float) -> PointCloud:
    """Open3D voxel grid downsampling (averages normals/colours)."""
    if cloud.is_empty():
        return cloud
    return from_open3d(to_open3d(cloud).voxel_down_sample(float(voxel_size)))


def compute_fpfh(cloud: PointCloud, radius: float, max_nn: int) -> np.ndarray:
    """
    Fast Point Feature Histograms, one 33-bin descriptor per point.

    Returns:
        (N, 33) float64 array; (0, 33) for an empty cloud.
    """
    if cloud.is_empty():
        return np.zeros((0, constants.FPFH_DIMENSION), dtype=np.float64)
    if cloud.normals is None:
        raise ValueError("FPFH requires normals; estimate them first")
    o3d = _open3d()
    feature = o3d.pipelines.registration.compute_fpfh_feature(
        to_open3d(cloud),
        o3d.geometry.KDTreeSearchParamHybrid(radius=float(radius), max_nn=int(max_nn)),
    )
    descriptors = np.asarray(feature.data, dtype=np.float64).T.copy()
    _logger.debug("Computed FPFH for %d points", descriptors.shape[0])
    return descriptors
