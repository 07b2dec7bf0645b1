"""
Cropping volumes: region-of-interest predicates relative to a reference pose.

All shapes are expressed in the frame of the reference pose (set_pose); a
point p (map/submap frame) is tested as q = T_pose^{-1} p.

Shapes:
    MaxRadius     ||q|| <= radius and min_z <= q_z <= max_z
    MinMaxRadius  min_radius <= ||q|| <= radius and min_z <= q_z <= max_z
    Cylinder      ||q_xy|| <= radius and min_z <= q_z <= max_z
"""

from __future__ import annotations

import copy

import numpy as np

from lidar_submap.common import constants
from lidar_submap.common.transforms import as_transform, se3_inverse_matrix, transform_points
from lidar_submap.geometry.point_cloud import PointCloud


class CroppingVolume:
    """Base volume: height band around the reference pose, unbounded radially."""

    def __init__(
        self,
        min_z: float = constants.CROPPING_MIN_Z_DEFAULT,
        max_z: float = constants.CROPPING_MAX_Z_DEFAULT,
    ) -> None:
        if min_z > max_z:
            raise ValueError(f"min_z ({min_z}) must not exceed max_z ({max_z})")
        self.min_z = float(min_z)
        self.max_z = float(max_z)
        self._pose = np.eye(4, dtype=float)
        self._pose_inv = np.eye(4, dtype=float)

    @property
    def pose(self) -> np.ndarray:
        return self._pose.copy()

    def set_pose(self, T: np.ndarray) -> None:
        """Re-centre the volume on T (reference frame -> map)."""
        self._pose = as_transform(T)
        self._pose_inv = se3_inverse_matrix(self._pose)

    def at_pose(self, T: np.ndarray) -> "CroppingVolume":
        """Copy of this volume re-centred on T; the original keeps its pose."""
        posed = copy.copy(self)
        posed.set_pose(T)
        return posed

    def _local(self, points: np.ndarray) -> np.ndarray:
        return transform_points(self._pose_inv, points)

    def _radial_mask(self, local: np.ndarray) -> np.ndarray:
        return np.ones(local.shape[0], dtype=bool)

    def is_within_volume(self, points: np.ndarray) -> np.ndarray:
        """Boolean mask over an (N, 3) array."""
        pts = np.asarray(points, dtype=float).reshape(-1, 3)
        if pts.shape[0] == 0:
            return np.zeros(0, dtype=bool)
        local = self._local(pts)
        z_ok = (local[:, 2] >= self.min_z) & (local[:, 2] <= self.max_z)
        return z_ok & self._radial_mask(local)

    def get_indices_within_volume(self, cloud: PointCloud) -> np.ndarray:
        return np.flatnonzero(self.is_within_volume(cloud.points))

    def crop(self, cloud: PointCloud) -> PointCloud:
        return cloud.select_by_mask(self.is_within_volume(cloud.points))


class MaxRadiusCroppingVolume(CroppingVolume):
    def __init__(
        self,
        radius: float = constants.CROPPING_RADIUS_DEFAULT,
        min_z: float = constants.CROPPING_MIN_Z_DEFAULT,
        max_z: float = constants.CROPPING_MAX_Z_DEFAULT,
    ) -> None:
        super().__init__(min_z=min_z, max_z=max_z)
        if radius <= 0.0:
            raise ValueError(f"radius must be positive, got {radius}")
        self.radius = float(radius)

    def _radial_mask(self, local: np.ndarray) -> np.ndarray:
        return np.einsum("ij,ij->i", local, local) <= self.radius * self.radius


class MinMaxRadiusCroppingVolume(MaxRadiusCroppingVolume):
    def __init__(
        self,
        min_radius: float = constants.CROPPING_MIN_RADIUS_DEFAULT,
        radius: float = constants.CROPPING_RADIUS_DEFAULT,
        min_z: float = constants.CROPPING_MIN_Z_DEFAULT,
        max_z: float = constants.CROPPING_MAX_Z_DEFAULT,
    ) -> None:
        super().__init__(radius=radius, min_z=min_z, max_z=max_z)
        if min_radius < 0.0 or min_radius >= radius:
            raise ValueError(f"min_radius must be in [0, radius), got {min_radius}")
        self.min_radius = float(min_radius)

    def _radial_mask(self, local: np.ndarray) -> np.ndarray:
        sq = np.einsum("ij,ij->i", local, local)
        return (sq >= self.min_radius * self.min_radius) & (sq <= self.radius * self.radius)


class CylinderCroppingVolume(MaxRadiusCroppingVolume):
    def _radial_mask(self, local: np.ndarray) -> np.ndarray:
        xy = local[:, :2]
        return np.einsum("ij,ij->i", xy, xy) <= self.radius * self.radius


def cropping_volume_factory(
    name: str,
    radius: float,
    min_z: float,
    max_z: float,
    min_radius: float = 0.0,
) -> CroppingVolume:
    """Build a cropping volume by name (see constants.CROPPER_NAMES)."""
    if name == constants.CROPPER_MAX_RADIUS:
        return MaxRadiusCroppingVolume(radius=radius, min_z=min_z, max_z=max_z)
    if name == constants.CROPPER_MIN_MAX_RADIUS:
        return MinMaxRadiusCroppingVolume(min_radius=min_radius, radius=radius, min_z=min_z, max_z=max_z)
    if name == constants.CROPPER_CYLINDER:
        return CylinderCroppingVolume(radius=radius, min_z=min_z, max_z=max_z)
    raise ValueError(f"Unknown cropping volume '{name}', expected one of {constants.CROPPER_NAMES}")
