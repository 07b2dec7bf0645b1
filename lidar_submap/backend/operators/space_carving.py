"""
Space carving: find map content that a fresh scan proves to be free space.

For every scan ray (sensor -> endpoint) we march samples from min_range up to
length - truncation_distance, spaced voxel_size apart. Every map point within
voxel_size of any sample is a candidate; it is carved when, for at least one
such sample,

    ||p - sensor|| < length - truncation_distance    (in front of the return)
    |n . ray_dir| >= min_dot_product_with_normal     (only if normals exist
                                                      and the threshold > 0)

Rays longer than max_raytracing_length are ignored (unreliable far returns).

The functions here only report what to remove; the owning layer performs the
removal under its own lock.

Vectorized: every map point is queried against one KDTree over all samples,
so clusters of map points around the same sample are all removed.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import List, Optional

import numpy as np
from scipy.spatial import KDTree

from lidar_submap.common.param_models import SpaceCarvingParams
from lidar_submap.backend.structures.voxelized_point_cloud import VoxelizedPointCloud
from lidar_submap.geometry.point_cloud import PointCloud, VoxelKey

_logger = logging.getLogger(__name__)

_EMPTY_IDXS = np.zeros(0, dtype=np.int64)


# =============================================================================
# Ray sampling
# =============================================================================


@dataclass
class RaySamples:
    """Samples along all admissible rays of one scan."""
    points: np.ndarray  # (S, 3) sample positions
    ray_ids: np.ndarray  # (S,) index into the ray arrays below
    directions: np.ndarray  # (R, 3) unit ray directions
    limits: np.ndarray  # (R,) length - truncation_distance

    @property
    def n_rays(self) -> int:
        return int(self.limits.shape[0])

    def __len__(self) -> int:
        return int(self.points.shape[0])


def sample_rays(scan_points: np.ndarray, sensor_position: np.ndarray, params: SpaceCarvingParams) -> RaySamples:
    """
    Sample every admissible ray of a scan (points in the map frame).

    A ray is admissible when 0 < length <= max_raytracing_length and the
    carved segment [min_range, length - truncation_distance) is non-empty.
    """
    sensor = np.asarray(sensor_position, dtype=np.float64).reshape(3)
    pts = np.asarray(scan_points, dtype=np.float64).reshape(-1, 3)
    offsets = pts - sensor
    lengths = np.linalg.norm(offsets, axis=1)
    limits = lengths - params.truncation_distance
    admissible = (
        (lengths > 0.0)
        & (lengths <= params.max_raytracing_length)
        & (limits > params.min_range)
    )
    if not np.any(admissible):
        return RaySamples(
            points=np.zeros((0, 3), dtype=np.float64),
            ray_ids=_EMPTY_IDXS,
            directions=np.zeros((0, 3), dtype=np.float64),
            limits=np.zeros(0, dtype=np.float64),
        )

    directions = offsets[admissible] / lengths[admissible, None]
    limits = limits[admissible]
    step = params.voxel_size
    counts = np.ceil((limits - params.min_range) / step).astype(np.int64)
    counts = np.maximum(counts, 1)
    ray_ids = np.repeat(np.arange(limits.shape[0], dtype=np.int64), counts)
    starts = np.repeat(np.cumsum(counts) - counts, counts)
    t = params.min_range + (np.arange(ray_ids.shape[0], dtype=np.int64) - starts) * step
    # Last sample of a ray may overshoot when the segment is not a multiple of step.
    t = np.minimum(t, limits[ray_ids])
    samples = sensor + directions[ray_ids] * t[:, None]
    return RaySamples(points=samples, ray_ids=ray_ids, directions=directions, limits=limits)


# =============================================================================
# Core
# =============================================================================


def _carve_indices(
    samples: RaySamples,
    map_points: np.ndarray,
    map_normals: Optional[np.ndarray],
    sensor: np.ndarray,
    params: SpaceCarvingParams,
) -> np.ndarray:
    """Indices into map_points that lie in free space swept by the samples."""
    if len(samples) == 0 or map_points.shape[0] == 0:
        return _EMPTY_IDXS
    tree = KDTree(samples.points)
    neighbors = tree.query_ball_point(map_points, r=params.voxel_size)
    counts = np.fromiter((len(n) for n in neighbors), dtype=np.int64, count=len(neighbors))
    if counts.sum() == 0:
        return _EMPTY_IDXS
    # One (map point, sample) pair per sample within voxel_size of a map point.
    pair_map = np.repeat(np.arange(map_points.shape[0], dtype=np.int64), counts)
    pair_sample = np.concatenate([np.asarray(n, dtype=np.int64) for n in neighbors if len(n) > 0])
    pair_ray = samples.ray_ids[pair_sample]

    ranges = np.linalg.norm(map_points[pair_map] - sensor, axis=1)
    keep = (ranges < samples.limits[pair_ray]) & (ranges >= params.min_range)
    if map_normals is not None and params.min_dot_product_with_normal > 0.0:
        dots = np.abs(np.einsum("ij,ij->i", map_normals[pair_map], samples.directions[pair_ray]))
        keep &= dots >= params.min_dot_product_with_normal
    return np.unique(pair_map[keep])


def carved_point_indices(
    scan_in_map: PointCloud,
    map_cloud: PointCloud,
    sensor_position: np.ndarray,
    candidate_idxs: Optional[np.ndarray],
    params: SpaceCarvingParams,
) -> np.ndarray:
    """
    Indices of `map_cloud` points to remove.

    Args:
        scan_in_map: fresh scan, already in the submap frame
        map_cloud: sparse main cloud
        sensor_position: (3,) ray origin in the submap frame
        candidate_idxs: restrict carving to these map indices (None = all)
        params: SpaceCarvingParams

    Returns:
        Sorted unique indices into map_cloud.
    """
    if scan_in_map.is_empty() or map_cloud.is_empty():
        return _EMPTY_IDXS
    if candidate_idxs is None:
        candidate_idxs = np.arange(len(map_cloud), dtype=np.int64)
    candidate_idxs = np.asarray(candidate_idxs, dtype=np.int64).reshape(-1)
    if candidate_idxs.size == 0:
        return _EMPTY_IDXS

    sensor = np.asarray(sensor_position, dtype=np.float64).reshape(3)
    samples = sample_rays(scan_in_map.points, sensor, params)
    normals = None if map_cloud.normals is None else map_cloud.normals[candidate_idxs]
    local = _carve_indices(samples, map_cloud.points[candidate_idxs], normals, sensor, params)
    carved = np.sort(candidate_idxs[local])
    _logger.debug(
        "Carving: %d rays, %d samples, %d/%d candidates removed",
        samples.n_rays, len(samples), carved.size, candidate_idxs.size,
    )
    return carved


def carved_voxel_keys(
    scan_in_map: PointCloud,
    voxel_cloud: VoxelizedPointCloud,
    sensor_position: np.ndarray,
    params: SpaceCarvingParams,
) -> List[VoxelKey]:
    """Keys of `voxel_cloud` buckets whose mean point lies in carved free space."""
    if scan_in_map.is_empty() or voxel_cloud.empty():
        return []
    points, keys = voxel_cloud.points_and_keys()
    normals = voxel_cloud.normals_array(keys)
    sensor = np.asarray(sensor_position, dtype=np.float64).reshape(3)
    samples = sample_rays(scan_in_map.points, sensor, params)
    local = _carve_indices(samples, points, normals, sensor, params)
    _logger.debug("Dense carving: %d rays, %d/%d voxels removed", samples.n_rays, local.size, len(keys))
    return [keys[i] for i in local]
