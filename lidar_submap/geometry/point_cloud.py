"""
PointCloud value type and grid helpers.

A PointCloud is a bundle of aligned arrays:
    points:  (N, 3) float64 positions
    normals: (N, 3) float64 or None
    colors:  (N, 3) float64 RGB in [0, 1] or None

Operations return new clouds; arrays are never mutated in place, so a
reference handed to another thread stays a consistent (if stale) snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable, Optional, Tuple

import numpy as np

from lidar_submap.common import constants
from lidar_submap.common.transforms import as_transform

_logger = logging.getLogger(__name__)

VoxelKey = Tuple[int, int, int]


def _as_array(values: Optional[np.ndarray], n: int, name: str) -> Optional[np.ndarray]:
    if values is None:
        return None
    arr = np.asarray(values, dtype=np.float64).reshape(-1, 3)
    if arr.shape[0] != n:
        raise ValueError(f"{name} has {arr.shape[0]} rows, expected {n}")
    return arr


@dataclass(frozen=True, eq=False)
class PointCloud:
    points: np.ndarray
    normals: Optional[np.ndarray] = None
    colors: Optional[np.ndarray] = None

    def __post_init__(self):
        pts = np.asarray(self.points, dtype=np.float64).reshape(-1, 3)
        object.__setattr__(self, "points", pts)
        object.__setattr__(self, "normals", _as_array(self.normals, pts.shape[0], "normals"))
        object.__setattr__(self, "colors", _as_array(self.colors, pts.shape[0], "colors"))

    @classmethod
    def empty(cls) -> "PointCloud":
        return cls(points=np.zeros((0, 3), dtype=np.float64))

    def __len__(self) -> int:
        return int(self.points.shape[0])

    def __add__(self, other: "PointCloud") -> "PointCloud":
        return concatenate([self, other])

    def is_empty(self) -> bool:
        return self.points.shape[0] == 0

    def has_normals(self) -> bool:
        return self.normals is not None

    def has_colors(self) -> bool:
        return self.colors is not None

    def copy(self) -> "PointCloud":
        return PointCloud(
            points=self.points.copy(),
            normals=None if self.normals is None else self.normals.copy(),
            colors=None if self.colors is None else self.colors.copy(),
        )

    def transformed(self, T: np.ndarray) -> "PointCloud":
        """Rigidly transform points and rotate normals."""
        T = as_transform(T)
        R = T[:3, :3]
        return PointCloud(
            points=self.points @ R.T + T[:3, 3],
            normals=None if self.normals is None else self.normals @ R.T,
            colors=self.colors,
        )

    def select_by_index(self, idxs: np.ndarray) -> "PointCloud":
        idxs = np.asarray(idxs, dtype=np.int64).reshape(-1)
        return self.select_by_mask(_mask_from_indices(idxs, len(self)))

    def select_by_mask(self, mask: np.ndarray) -> "PointCloud":
        mask = np.asarray(mask, dtype=bool).reshape(-1)
        return PointCloud(
            points=self.points[mask],
            normals=None if self.normals is None else self.normals[mask],
            colors=None if self.colors is None else self.colors[mask],
        )

    def remove_by_index(self, idxs: np.ndarray) -> "PointCloud":
        idxs = np.asarray(idxs, dtype=np.int64).reshape(-1)
        if idxs.size == 0:
            return self
        return self.select_by_mask(~_mask_from_indices(idxs, len(self)))

    def with_normals(self, normals: Optional[np.ndarray]) -> "PointCloud":
        return PointCloud(points=self.points, normals=normals, colors=self.colors)

    def normalize_normals(self) -> "PointCloud":
        if self.normals is None:
            return self
        norms = np.linalg.norm(self.normals, axis=1, keepdims=True)
        safe = np.where(norms > 0.0, norms, 1.0)
        return self.with_normals(self.normals / safe)

    def center(self) -> np.ndarray:
        """Centroid of the points; zero vector for an empty cloud."""
        if self.is_empty():
            return np.zeros(3, dtype=np.float64)
        return self.points.mean(axis=0)


def _mask_from_indices(idxs: np.ndarray, n: int) -> np.ndarray:
    mask = np.zeros(n, dtype=bool)
    if idxs.size:
        if idxs.min() < 0 or idxs.max() >= n:
            raise IndexError(f"Point index out of range for cloud of size {n}")
        mask[idxs] = True
    return mask


def concatenate(clouds: Iterable[PointCloud]) -> PointCloud:
    """
    Stack clouds. An optional attribute survives only if every non-empty
    input carries it (mirrors PointCloud += semantics of geometry libraries).
    """
    clouds = [c for c in clouds if c is not None and not c.is_empty()]
    if not clouds:
        return PointCloud.empty()
    if len(clouds) == 1:
        return clouds[0]
    points = np.vstack([c.points for c in clouds])
    normals = np.vstack([c.normals for c in clouds]) if all(c.has_normals() for c in clouds) else None
    colors = np.vstack([c.colors for c in clouds]) if all(c.has_colors() for c in clouds) else None
    return PointCloud(points=points, normals=normals, colors=colors)


def valid_color_mask(cloud: PointCloud) -> np.ndarray:
    """Points with a projected colour: present, finite, inside [0, 1] and not pure black."""
    if cloud.colors is None:
        return np.zeros(len(cloud), dtype=bool)
    c = cloud.colors
    finite = np.all(np.isfinite(c), axis=1)
    in_range = np.all((c >= 0.0) & (c <= 1.0), axis=1)
    not_black = np.max(np.abs(np.nan_to_num(c)), axis=1) > constants.COLOR_INVALID_EPS
    return finite & in_range & not_black


def filter_valid_colors(cloud: PointCloud) -> PointCloud:
    """Drop points without a valid colour (all points if the cloud carries no colours)."""
    return cloud.select_by_mask(valid_color_mask(cloud))


# =============================================================================
# Voxel grid helpers
# =============================================================================


def voxel_keys(points: np.ndarray, voxel_size: float) -> np.ndarray:
    """Integer voxel coordinates (N, 3) for a fixed-origin grid."""
    if voxel_size <= 0.0:
        raise ValueError(f"voxel_size must be positive, got {voxel_size}")
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    return np.floor(pts / voxel_size).astype(np.int64)


def key_of(point: np.ndarray, voxel_size: float) -> VoxelKey:
    k = voxel_keys(np.asarray(point).reshape(1, 3), voxel_size)[0]
    return (int(k[0]), int(k[1]), int(k[2]))


def group_by_voxel(points: np.ndarray, voxel_size: float) -> Tuple[np.ndarray, np.ndarray]:
    """Unique voxel keys (M, 3) and the inverse map point -> row in keys."""
    keys = voxel_keys(points, voxel_size)
    unique_keys, inverse = np.unique(keys, axis=0, return_inverse=True)
    return unique_keys, inverse.reshape(-1)


def _mean_by_group(values: np.ndarray, inverse: np.ndarray, counts: np.ndarray) -> np.ndarray:
    sums = np.zeros((counts.shape[0], values.shape[1]), dtype=np.float64)
    np.add.at(sums, inverse, values)
    return sums / counts[:, None]


def voxelize(cloud: PointCloud, voxel_size: float) -> PointCloud:
    """
    Replace every occupied voxel by the mean of its points (normals, colours averaged).

    The centroid of a voxel's points lies inside that voxel, so voxelizing an
    already voxelized cloud with the same voxel size is a no-op on the point count.
    """
    if cloud.is_empty():
        return cloud
    unique_keys, inverse = group_by_voxel(cloud.points, voxel_size)
    counts = np.bincount(inverse, minlength=unique_keys.shape[0]).astype(np.float64)
    points = _mean_by_group(cloud.points, inverse, counts)
    normals = None
    if cloud.normals is not None:
        normals = _mean_by_group(cloud.normals, inverse, counts)
    colors = None
    if cloud.colors is not None:
        colors = _mean_by_group(cloud.colors, inverse, counts)
    out = PointCloud(points=points, normals=normals, colors=colors)
    return out.normalize_normals()


def voxelize_within_cropping_volume(voxel_size: float, cropper, cloud: PointCloud) -> PointCloud:
    """
    Voxelize only the part of `cloud` inside `cropper`; points outside are kept verbatim.

    Args:
        voxel_size: grid edge; <= 0 returns the cloud unchanged
        cropper: CroppingVolume providing is_within_volume()
        cloud: submap cloud
    """
    if voxel_size <= 0.0 or cloud.is_empty():
        return cloud
    inside = cropper.is_within_volume(cloud.points)
    n_inside = int(np.count_nonzero(inside))
    if n_inside == 0:
        return cloud
    voxelized = voxelize(cloud.select_by_mask(inside), voxel_size)
    out = concatenate([cloud.select_by_mask(~inside), voxelized])
    _logger.debug("Voxelized %d points inside crop volume into %d", n_inside, len(voxelized))
    return out
