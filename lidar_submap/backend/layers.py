"""
Guarded submap layers.

Each layer owns its geometry, its carving RateLimiter and one threading.Lock.
Every method that touches the geometry takes that lock and only that lock, so
no code path ever holds two layer locks and the sparse and dense ingestion
paths cannot block each other.

SparseMapLayer: unordered main cloud (PointCloud), replaced copy-on-write.
DenseMapLayer:  VoxelizedPointCloud with running colour/point means.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import numpy as np

from lidar_submap.backend.operators.space_carving import carved_point_indices, carved_voxel_keys
from lidar_submap.backend.structures.voxelized_point_cloud import VoxelizedPointCloud
from lidar_submap.common.param_models import SpaceCarvingParams
from lidar_submap.common.rate_limit import ExecutionStats, RateLimiter
from lidar_submap.geometry.cropping_volume import CroppingVolume
from lidar_submap.geometry.point_cloud import PointCloud, concatenate, voxelize_within_cropping_volume

_logger = logging.getLogger(__name__)


class SparseMapLayer:
    """Main cloud plus its carving timer and statistics."""

    def __init__(self, carve_interval: float, stats_window_start: float = 0.0) -> None:
        self._lock = threading.Lock()
        self._cloud = PointCloud.empty()
        self.carve_limiter = RateLimiter(min_interval=float(carve_interval))
        self.carving_stats = ExecutionStats(window_start=stats_window_start)
        self._last_carved = PointCloud.empty()
        self._last_carve_scan = PointCloud.empty()

    @property
    def cloud(self) -> PointCloud:
        """Live reference (unguarded). Clouds are never mutated in place, so this is a stale-safe read."""
        return self._cloud

    def __len__(self) -> int:
        return len(self._cloud)

    def is_empty(self) -> bool:
        return self._cloud.is_empty()

    def snapshot(self) -> PointCloud:
        with self._lock:
            return self._cloud.copy()

    def center(self) -> np.ndarray:
        with self._lock:
            return self._cloud.center()

    def set_carve_interval(self, seconds: float) -> None:
        with self._lock:
            self.carve_limiter.min_interval = float(seconds)

    def carve(
        self,
        scan_in_map: PointCloud,
        sensor_position: np.ndarray,
        wide_cropper: CroppingVolume,
        params: SpaceCarvingParams,
        now: float,
    ) -> Optional[int]:
        """
        Remove points contradicted by `scan_in_map`.

        Returns the number of removed points, or None when carving was skipped
        (empty layer or rate limited). The limiter is only reset when carving runs.
        """
        with self._lock:
            if self._cloud.is_empty() or not self.carve_limiter.due_now(now):
                return None
            t0 = time.perf_counter()
            wide_idxs = wide_cropper.get_indices_within_volume(self._cloud)
            idxs = carved_point_indices(scan_in_map, self._cloud, sensor_position, wide_idxs, params)
            self._last_carved = self._cloud.select_by_index(idxs)
            self._last_carve_scan = scan_in_map
            self._cloud = self._cloud.remove_by_index(idxs)
            self.carve_limiter.mark_run(now)
            self.carving_stats.add_measurement_msec((time.perf_counter() - t0) * 1e3)
            return int(idxs.size)

    def merge(self, cloud: PointCloud) -> int:
        """Append `cloud`; returns the new point count."""
        with self._lock:
            self._cloud = concatenate([self._cloud, cloud])
            return len(self._cloud)

    def voxelize_within(self, voxel_size: float, cropper: CroppingVolume) -> int:
        """Voxelize the part inside `cropper` in place; returns the new point count."""
        with self._lock:
            before = len(self._cloud)
            self._cloud = voxelize_within_cropping_volume(voxel_size, cropper, self._cloud)
            after = len(self._cloud)
        _logger.debug("Sparse voxelization: %d -> %d points", before, after)
        return after

    def transform(self, T: np.ndarray) -> None:
        with self._lock:
            self._cloud = self._cloud.transformed(T)

    def last_carved(self) -> PointCloud:
        with self._lock:
            return self._last_carved

    def last_carve_scan(self) -> PointCloud:
        with self._lock:
            return self._last_carve_scan


class DenseMapLayer:
    """Voxelized, colour-aware dense map plus its carving timer."""

    def __init__(self, voxel_size: float, carve_interval: float) -> None:
        self._lock = threading.Lock()
        self._voxels = VoxelizedPointCloud(voxel_size)
        self.carve_limiter = RateLimiter(min_interval=float(carve_interval))

    @property
    def voxel_size(self) -> float:
        return self._voxels.voxel_size

    @property
    def voxels(self) -> VoxelizedPointCloud:
        """Live reference (unguarded); use snapshot() for a consistent copy."""
        return self._voxels

    def __len__(self) -> int:
        with self._lock:
            return len(self._voxels)

    def is_empty(self) -> bool:
        with self._lock:
            return self._voxels.empty()

    def snapshot(self) -> VoxelizedPointCloud:
        with self._lock:
            return self._voxels.copy()

    def reset(self, voxel_size: float) -> None:
        """Switch to a new resolution; accumulated buckets are re-binned, not dropped."""
        with self._lock:
            if float(voxel_size) != self._voxels.voxel_size:
                self._voxels = self._voxels.resampled(voxel_size)

    def set_carve_interval(self, seconds: float) -> None:
        with self._lock:
            self.carve_limiter.min_interval = float(seconds)

    def insert_and_carve(
        self,
        cloud: PointCloud,
        scan_in_map: PointCloud,
        sensor_position: np.ndarray,
        params: SpaceCarvingParams,
        now: float,
        is_perform_carving: bool,
    ) -> Optional[int]:
        """
        Insert `cloud`, then (optionally, rate limited) carve with `scan_in_map`.

        Returns the number of removed voxels, or None if carving did not run.
        """
        with self._lock:
            self._voxels.insert(cloud)
            if not is_perform_carving:
                return None
            if self._voxels.empty() or not self.carve_limiter.due_now(now):
                return None
            keys = carved_voxel_keys(scan_in_map, self._voxels, sensor_position, params)
            for key in keys:
                self._voxels.remove_key(key)
            self.carve_limiter.mark_run(now)
            return len(keys)

    def transform(self, T: np.ndarray) -> None:
        with self._lock:
            self._voxels.transform(T)
