"""
Rerun visualization of a Submap (sparse cloud, dense map, features, carving).

Logs each layer as Points3D under submap/<id>/... Optional: spawn viewer or
save to .rrd file and open with `rerun recording.rrd`.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from lidar_submap.geometry.point_cloud import PointCloud

_logger = logging.getLogger(__name__)

_FEATURE_COLOR = np.array([1.0, 0.55, 0.0], dtype=np.float32)
_CARVED_COLOR = np.array([0.9, 0.1, 0.1], dtype=np.float32)


def _ensure_rerun():
    """Lazy import so rerun is optional when visualization is disabled."""
    try:
        import rerun as rr
        return rr
    except ImportError:
        return None


def _set_rerun_time(rr, time_sec: float) -> None:
    """Set current time on the 'time' timeline across rerun API versions."""
    if hasattr(rr, "set_time_seconds"):
        rr.set_time_seconds("time", time_sec)
    else:
        rr.set_time("time", timestamp=time_sec)


class SubmapVisualizer:
    """
    Log submap layers to Rerun.

    Call init() once; then log_submap() whenever the owner wants a snapshot.
    All geometry is read through guarded copies, so logging never blocks
    ingestion for longer than a copy.
    """

    def __init__(
        self,
        application_id: str = "lidar_submap",
        spawn: bool = False,
        recording_path: Optional[str] = None,
        point_radius: float = 0.03,
    ):
        self._application_id = application_id
        self._spawn = spawn
        self._recording_path = recording_path
        self._point_radius = float(point_radius)
        self._initialized = False
        self._rr = None

    @property
    def active(self) -> bool:
        return self._rr is not None

    def init(self) -> bool:
        """Initialize Rerun (spawn viewer and/or record to file). Returns True if active."""
        if self._initialized:
            return self._rr is not None
        self._initialized = True
        rr = _ensure_rerun()
        if rr is None:
            _logger.warning("rerun-sdk not importable; submap visualization disabled")
            return False
        self._rr = rr
        rr.init(
            application_id=self._application_id,
            default_enabled=True,
            spawn=self._spawn,
        )
        # If recording to file: must call save() before any log (Rerun API).
        if self._recording_path and not self._spawn:
            rr.save(self._recording_path)
        return True

    def _log_cloud(self, path: str, cloud: PointCloud, color: Optional[np.ndarray] = None) -> None:
        rr = self._rr
        if cloud.is_empty():
            rr.log(path, rr.Points3D(positions=np.zeros((0, 3), dtype=np.float32)))
            return
        pos_f = cloud.points.astype(np.float32)
        if cloud.colors is not None:
            colors = np.clip(cloud.colors, 0.0, 1.0).astype(np.float32)
        elif color is not None:
            colors = np.broadcast_to(color, pos_f.shape)
        else:
            colors = None
        if colors is not None:
            rr.log(path, rr.Points3D(positions=pos_f, colors=colors, radii=self._point_radius))
        else:
            rr.log(path, rr.Points3D(positions=pos_f, radii=self._point_radius))

    def log_submap(self, submap, time_sec: float) -> None:
        """Log sparse cloud, dense map, feature cloud and last carved points."""
        if self._rr is None:
            return
        rr = self._rr
        _set_rerun_time(rr, time_sec)
        root = f"submap/{submap.id}"
        self._log_cloud(f"{root}/sparse", submap.get_map_point_cloud_copy())
        self._log_cloud(f"{root}/dense", submap.get_dense_map_copy().to_point_cloud())
        self._log_cloud(f"{root}/features", submap.get_sparse_map_point_cloud(), _FEATURE_COLOR)
        self._log_cloud(f"{root}/carved", submap.get_carved_points(), _CARVED_COLOR)
        self.log_sensor_pose(submap.get_map_to_range_sensor(), root)

    def log_sensor_pose(self, T: np.ndarray, root: str = "submap") -> None:
        """Log the sensor pose as a Transform3D."""
        if self._rr is None:
            return
        rr = self._rr
        T = np.asarray(T, dtype=float)
        rr.log(
            f"{root}/sensor",
            rr.Transform3D(translation=T[:3, 3].astype(np.float32), mat3x3=T[:3, :3].astype(np.float32)),
        )
