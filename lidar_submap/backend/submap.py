"""
Submap: a locally consistent map fragment built from consecutive lidar scans.

Layers (all in submap-local coordinates):
- sparse main cloud (SparseMapLayer): every preprocessed scan, carved and
  voxelized inside a moving crop volume around the sensor
- dense map (DenseMapLayer): colour-valid raw points, voxel averaged
- feature summary: downsampled snapshot of the main cloud + FPFH descriptors
- spatial index (VoxelMap): rebuilt together with the feature summary

Pipeline for insert_scan:
    transform -> normals (point-to-plane only) -> carve (rate limited)
    -> merge -> voxelize inside the crop volume

Concurrency:
    The sparse and dense layers each own one lock. A small state lock guards
    poses, the centre, the feature summary and the parameter set; it is never
    held while a layer lock is taken. A frame lock, always taken first,
    serializes transform(), set_parameters() and compute_features() so the
    summary and the index are never built in a frame that has since moved.
    Scan ingestion does not take it. compute_features() runs the index
    rebuild on a single worker joined through a ThreadPoolExecutor context
    manager, so the join happens even if the feature branch raises.

Rate limiting uses an injectable monotonic clock (seconds); scan timestamps
are only recorded, never used for scheduling.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
import threading
import time
from typing import Callable, Optional

import numpy as np

from lidar_submap.backend.layers import DenseMapLayer, SparseMapLayer
from lidar_submap.backend.structures.feature_summary import FeatureSummary, compute_feature_summary
from lidar_submap.backend.structures.voxel_map import VoxelMap
from lidar_submap.backend.structures.voxelized_point_cloud import VoxelizedPointCloud
from lidar_submap.common import constants
from lidar_submap.common.param_models import CroppingParams, MapperParams
from lidar_submap.common.rate_limit import RateLimiter
from lidar_submap.common.transforms import as_transform, translation
from lidar_submap.geometry import cloud_ops
from lidar_submap.geometry.cropping_volume import CroppingVolume, cropping_volume_factory
from lidar_submap.geometry.point_cloud import PointCloud, filter_valid_colors

_logger = logging.getLogger(__name__)

_IDENTITY = np.eye(4, dtype=np.float64)


class FeatureNotInitializedError(RuntimeError):
    """The feature summary was read before compute_features() ever ran."""


def _cropper_from_params(par: CroppingParams, radius_scale: float = 1.0) -> CroppingVolume:
    return cropping_volume_factory(
        par.cropper_name,
        radius=par.cropping_radius * radius_scale,
        min_z=par.min_z,
        max_z=par.max_z,
        min_radius=par.min_radius,
    )


class Submap:
    """
    Local submap owned by a map manager.

    Args:
        submap_id: identifier of this submap
        parent_id: identifier of the submap this one was spawned from
        params: MapperParams (defaults if None)
        clock: monotonic time source in seconds used for rate limiting
    """

    def __init__(
        self,
        submap_id: int,
        parent_id: int,
        params: Optional[MapperParams] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._id = int(submap_id)
        self._parent_id = int(parent_id)
        self._clock = clock
        self._state_lock = threading.Lock()
        self._frame_lock = threading.Lock()

        self._creation_time: Optional[float] = None
        self._map_to_submap_origin = _IDENTITY.copy()
        self._map_to_range_sensor = _IDENTITY.copy()
        self._submap_center = np.zeros(3, dtype=np.float64)
        self._is_center_computed = False
        self._feature_summary: Optional[FeatureSummary] = None

        params = MapperParams() if params is None else params.model_copy(deep=True)
        self._sparse = SparseMapLayer(
            carve_interval=params.map_builder.carving.carve_space_every_n_sec,
            stats_window_start=self._clock(),
        )
        self._dense = DenseMapLayer(
            voxel_size=params.dense_map_builder.map_voxel_size,
            carve_interval=params.dense_map_builder.carving.carve_space_every_n_sec,
        )
        self._feature_limiter = RateLimiter(
            min_interval=params.submaps.min_seconds_between_feature_computation
        )
        self._spatial_index = VoxelMap(params.submaps.voxel_map_voxel_size)
        self._apply_parameters(params)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def _apply_parameters(self, params: MapperParams) -> None:
        map_builder = params.map_builder
        dense = params.dense_map_builder
        with self._state_lock:
            self._params = params
            self._map_builder_cropper = _cropper_from_params(map_builder.cropper)
            self._carving_cropper = _cropper_from_params(
                map_builder.cropper, map_builder.carving_cropping_radius_multiplier
            )
            self._dense_map_cropper = _cropper_from_params(dense.cropper, dense.cropping_radius_multiplier)
            self._feature_limiter.min_interval = params.submaps.min_seconds_between_feature_computation

    def set_parameters(self, params: MapperParams) -> None:
        """
        Replace the configuration wholesale.

        Rebuilds the crop volumes, moves the dense map and the spatial index to
        their new resolutions and updates the rate-limiter intervals. Geometry
        accumulated so far is kept.
        """
        params = params.model_copy(deep=True)
        with self._frame_lock:
            self._apply_parameters(params)
            self._sparse.set_carve_interval(params.map_builder.carving.carve_space_every_n_sec)
            self._dense.set_carve_interval(params.dense_map_builder.carving.carve_space_every_n_sec)
            self._dense.reset(params.dense_map_builder.map_voxel_size)

            index = VoxelMap(params.submaps.voxel_map_voxel_size)
            if not self._sparse.is_empty():
                index.insert_cloud(params.submaps.voxel_map_layer_name, self._sparse.cloud)
            with self._state_lock:
                self._spatial_index = index
        _logger.debug("Submap %d: parameters updated", self._id)

    @property
    def params(self) -> MapperParams:
        with self._state_lock:
            return self._params

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def insert_scan(
        self,
        raw_scan: PointCloud,
        preprocessed_scan: PointCloud,
        map_to_range_sensor: np.ndarray,
        timestamp: float,
        is_perform_carving: bool = True,
    ) -> bool:
        """
        Merge one scan into the sparse layer.

        Args:
            raw_scan: unfiltered scan in the sensor frame (carving reference)
            preprocessed_scan: cleaned scan in the sensor frame (merged)
            map_to_range_sensor: 4x4 (or 6D) sensor pose in the submap frame
            timestamp: scan time in seconds (recorded as creation time)
            is_perform_carving: request carving (still subject to rate limiting)

        Returns:
            True (an empty preprocessed scan is a successful no-op).
        """
        if preprocessed_scan.is_empty():
            return True

        T = as_transform(map_to_range_sensor)
        now = self._clock()
        with self._state_lock:
            if self._creation_time is None:
                self._creation_time = float(timestamp)
            self._map_to_range_sensor = T.copy()
            params = self._params
            cropper = self._map_builder_cropper.at_pose(T)
            carving_cropper = self._carving_cropper.at_pose(T)

        transformed = preprocessed_scan.transformed(T)
        if (
            params.scan_matcher.icp_objective == constants.ICP_OBJECTIVE_POINT_TO_PLANE
            and not transformed.has_normals()
        ):
            transformed = cloud_ops.estimate_normals_knn(
                transformed, params.scan_matcher.knn_normal_estimation
            ).normalize_normals()

        if is_perform_carving:
            removed = self._sparse.carve(
                raw_scan.transformed(T),
                translation(T),
                carving_cropper,
                params.map_builder.carving,
                now,
            )
            if removed is not None:
                _logger.debug("Submap %d: carved %d points", self._id, removed)
            self._report_carving_stats(now)

        self._sparse.merge(transformed)
        if params.map_builder.map_voxel_size > 0.0:
            self._sparse.voxelize_within(params.map_builder.map_voxel_size, cropper)
        return True

    def insert_scan_dense_map(
        self,
        raw_scan: PointCloud,
        map_to_range_sensor: np.ndarray,
        timestamp: float,
        is_perform_carving: bool = True,
    ) -> bool:
        """
        Insert the colour-valid part of a raw scan into the dense map.

        The scan is cropped in the sensor frame (identity pose) with the wide
        dense crop volume, filtered for valid colours, moved into the submap
        frame and accumulated; carving then uses the whole raw scan.
        """
        T = as_transform(map_to_range_sensor)
        now = self._clock()
        with self._state_lock:
            params = self._params
            cropper = self._dense_map_cropper.at_pose(_IDENTITY)

        cropped = cropper.crop(raw_scan)
        colored = filter_valid_colors(cropped)
        if colored.is_empty() and not cropped.is_empty():
            _logger.warning(
                "Submap %d: dense scan at t=%.3f has no points with a valid colour", self._id, timestamp
            )

        removed = self._dense.insert_and_carve(
            colored.transformed(T),
            raw_scan.transformed(T),
            translation(T),
            params.dense_map_builder.carving,
            now,
            is_perform_carving,
        )
        if removed is not None:
            _logger.debug("Submap %d: carved %d dense voxels", self._id, removed)
        return True

    def _report_carving_stats(self, now: float) -> None:
        stats = self._sparse.carving_stats
        if stats.window_elapsed(now) < constants.CARVING_STATS_REPORT_PERIOD_SEC:
            return
        snapshot = stats.consume(now)
        if snapshot.count == 0:
            return
        _logger.info(
            "Space carving timing stats: avg execution time %.2f msec, frequency %.1f Hz (%d runs)",
            snapshot.avg_msec,
            snapshot.frequency_hz,
            snapshot.count,
        )

    # ------------------------------------------------------------------
    # Whole-submap operations
    # ------------------------------------------------------------------

    def transform(self, T: np.ndarray) -> None:
        """
        Move every owned representation by the rigid transform T.

        Layers are moved one after the other (never holding two layer locks);
        poses, centre and feature cloud are moved under the state lock.
        """
        T = as_transform(T)
        with self._frame_lock:
            self._sparse.transform(T)
            self._dense.transform(T)
            with self._state_lock:
                index = self._spatial_index
            index.transform(T)
            with self._state_lock:
                self._map_to_range_sensor = T @ self._map_to_range_sensor
                self._submap_center = T[:3, :3] @ self._submap_center + T[:3, 3]
                if self._feature_summary is not None:
                    self._feature_summary = self._feature_summary.transformed(T)

    def compute_features(self) -> bool:
        """
        Recompute the feature summary and rebuild the spatial index.

        Skipped (returns False) when a summary exists and the minimum interval
        has not elapsed. The index rebuild reads the live main cloud on a worker
        thread while this thread works on a snapshot; both finish before return.
        A concurrent transform() waits until the new summary and index are in
        place and then moves them along with everything else.
        """
        now = self._clock()
        with self._frame_lock:
            with self._state_lock:
                if self._feature_summary is not None and not self._feature_limiter.due_now(now):
                    return False
                params = self._params
                index = self._spatial_index

            snapshot = self._sparse.snapshot()
            t0 = time.perf_counter()
            with ThreadPoolExecutor(max_workers=1) as executor:
                index_future = executor.submit(
                    index.rebuild_from_cloud, params.submaps.voxel_map_layer_name, self._sparse.cloud
                )
                summary = compute_feature_summary(snapshot, params.place_recognition)
                index_future.result()

            with self._state_lock:
                self._feature_summary = summary
                self._feature_limiter.mark_run(now)
        _logger.info(
            "Submap %d: features for %d map points -> %d feature points (%.1f msec)",
            self._id,
            len(snapshot),
            len(summary),
            (time.perf_counter() - t0) * 1e3,
        )
        return True

    def compute_submap_center(self) -> np.ndarray:
        center = self._sparse.center()
        with self._state_lock:
            self._submap_center = center
            self._is_center_computed = True
        return center.copy()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def id(self) -> int:
        return self._id

    @property
    def parent_id(self) -> int:
        return self._parent_id

    @property
    def creation_time(self) -> Optional[float]:
        with self._state_lock:
            return self._creation_time

    def get_map_to_submap_origin(self) -> np.ndarray:
        with self._state_lock:
            return self._map_to_submap_origin.copy()

    def set_map_to_submap_origin(self, T: np.ndarray) -> None:
        T = as_transform(T)
        with self._state_lock:
            self._map_to_submap_origin = T

    def get_map_to_range_sensor(self) -> np.ndarray:
        with self._state_lock:
            return self._map_to_range_sensor.copy()

    def get_submap_center(self) -> np.ndarray:
        """Centroid from the last compute_submap_center(); meaningless before it."""
        with self._state_lock:
            return self._submap_center.copy()

    @property
    def is_center_computed(self) -> bool:
        with self._state_lock:
            return self._is_center_computed

    def get_map_to_submap_center(self) -> np.ndarray:
        """Computed centre if available, else the translation of the submap origin."""
        with self._state_lock:
            if self._is_center_computed:
                return self._submap_center.copy()
            return translation(self._map_to_submap_origin)

    def get_map_point_cloud(self) -> PointCloud:
        """Live main cloud reference (may be replaced by concurrent ingestion)."""
        return self._sparse.cloud

    def get_map_point_cloud_copy(self) -> PointCloud:
        return self._sparse.snapshot()

    def get_dense_map(self) -> VoxelizedPointCloud:
        """Live dense map reference; prefer get_dense_map_copy() across threads."""
        return self._dense.voxels

    def get_dense_map_copy(self) -> VoxelizedPointCloud:
        return self._dense.snapshot()

    def get_sparse_map_point_cloud(self) -> PointCloud:
        """Feature cloud of the last summary (empty before the first computation)."""
        with self._state_lock:
            summary = self._feature_summary
        return PointCloud.empty() if summary is None else summary.cloud

    def get_feature_summary(self) -> FeatureSummary:
        with self._state_lock:
            summary = self._feature_summary
        if summary is None:
            raise FeatureNotInitializedError(
                f"Submap {self._id}: feature summary requested before compute_features()"
            )
        return summary

    def get_features(self) -> np.ndarray:
        """(N, 33) FPFH descriptors of the sparse feature cloud."""
        return self.get_feature_summary().descriptors

    def get_voxel_map(self) -> VoxelMap:
        with self._state_lock:
            return self._spatial_index

    def is_empty(self) -> bool:
        return self._sparse.is_empty()

    # Debug
    def get_carved_points(self) -> PointCloud:
        """Points removed by the last sparse carve (submap frame)."""
        return self._sparse.last_carved()

    def get_carving_reference_scan(self) -> PointCloud:
        """Raw scan (submap frame) used by the last sparse carve."""
        return self._sparse.last_carve_scan()
