"""
VoxelizedPointCloud: uniform grid accumulator for the dense submap layer.

Each occupied voxel (integer key = floor(p_grid / voxel_size)) aggregates
running sums of position, colour and normal plus counts, so the stored point
of a voxel is the running mean of everything inserted into it.

Structural invariant: one bucket per key. Iteration order carries no meaning.

Buckets live in a fixed grid frame. transform() only composes the rigid
grid_to_cloud transform, so moving the container never merges buckets and a
transform followed by its inverse restores every stored point. Points going
in are mapped into the grid frame; points coming out are mapped back.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

import numpy as np

from lidar_submap.common.transforms import as_transform, rotate_vectors, se3_inverse_matrix, transform_points
from lidar_submap.geometry.point_cloud import PointCloud, VoxelKey, group_by_voxel, key_of


@dataclass
class AggregatedVoxel:
    """Running sums for one voxel."""
    point_sum: np.ndarray  # (3,)
    count: int
    color_sum: Optional[np.ndarray] = None  # (3,)
    color_count: int = 0
    normal_sum: Optional[np.ndarray] = None  # (3,)
    normal_count: int = 0

    @property
    def point(self) -> np.ndarray:
        return self.point_sum / self.count

    @property
    def color(self) -> Optional[np.ndarray]:
        if self.color_sum is None or self.color_count == 0:
            return None
        return self.color_sum / self.color_count

    @property
    def normal(self) -> Optional[np.ndarray]:
        if self.normal_sum is None or self.normal_count == 0:
            return None
        n = self.normal_sum / self.normal_count
        norm = np.linalg.norm(n)
        return n / norm if norm > 0.0 else n

    def merge(self, other: "AggregatedVoxel") -> None:
        self.point_sum = self.point_sum + other.point_sum
        self.count += other.count
        if other.color_sum is not None:
            self.color_sum = other.color_sum.copy() if self.color_sum is None else self.color_sum + other.color_sum
            self.color_count += other.color_count
        if other.normal_sum is not None:
            self.normal_sum = other.normal_sum.copy() if self.normal_sum is None else self.normal_sum + other.normal_sum
            self.normal_count += other.normal_count

    def copy(self) -> "AggregatedVoxel":
        return AggregatedVoxel(
            point_sum=self.point_sum.copy(),
            count=self.count,
            color_sum=None if self.color_sum is None else self.color_sum.copy(),
            color_count=self.color_count,
            normal_sum=None if self.normal_sum is None else self.normal_sum.copy(),
            normal_count=self.normal_count,
        )


def _group_sums(values: np.ndarray, inverse: np.ndarray, n_groups: int) -> np.ndarray:
    sums = np.zeros((n_groups, 3), dtype=np.float64)
    np.add.at(sums, inverse, values)
    return sums


class VoxelizedPointCloud:
    """Dict-of-buckets voxel grid; not internally synchronized (DenseMapLayer guards it)."""

    def __init__(self, voxel_size: float) -> None:
        if voxel_size <= 0.0:
            raise ValueError(f"voxel_size must be positive, got {voxel_size}")
        self.voxel_size = float(voxel_size)
        self._voxels: Dict[VoxelKey, AggregatedVoxel] = {}
        self._grid_to_cloud = np.eye(4, dtype=np.float64)

    def __len__(self) -> int:
        return len(self._voxels)

    def __contains__(self, key) -> bool:
        return tuple(int(k) for k in key) in self._voxels

    def __iter__(self) -> Iterator[VoxelKey]:
        return iter(list(self._voxels.keys()))

    @property
    def grid_to_cloud(self) -> np.ndarray:
        """Pose of the fixed bucket grid in the cloud (submap) frame."""
        return self._grid_to_cloud.copy()

    def empty(self) -> bool:
        return not self._voxels

    def keys(self) -> List[VoxelKey]:
        return list(self._voxels.keys())

    def get(self, key: VoxelKey) -> Optional[AggregatedVoxel]:
        """Raw bucket; its sums are expressed in the grid frame."""
        return self._voxels.get(tuple(int(k) for k in key))

    def key_of(self, point: np.ndarray) -> VoxelKey:
        """Key of the bucket a cloud-frame point falls into."""
        grid_point = transform_points(se3_inverse_matrix(self._grid_to_cloud), point)[0]
        return key_of(grid_point, self.voxel_size)

    def clear(self) -> None:
        self._voxels.clear()

    def insert(self, cloud: PointCloud) -> None:
        """Accumulate every (cloud-frame) point into the bucket of its voxel."""
        if cloud.is_empty():
            return
        cloud = cloud.transformed(se3_inverse_matrix(self._grid_to_cloud))
        unique_keys, inverse = group_by_voxel(cloud.points, self.voxel_size)
        n_groups = unique_keys.shape[0]
        counts = np.bincount(inverse, minlength=n_groups)
        point_sums = _group_sums(cloud.points, inverse, n_groups)
        color_sums = _group_sums(cloud.colors, inverse, n_groups) if cloud.colors is not None else None
        normal_sums = _group_sums(cloud.normals, inverse, n_groups) if cloud.normals is not None else None

        for i in range(n_groups):
            k = unique_keys[i]
            key = (int(k[0]), int(k[1]), int(k[2]))
            n = int(counts[i])
            incoming = AggregatedVoxel(
                point_sum=point_sums[i],
                count=n,
                color_sum=None if color_sums is None else color_sums[i],
                color_count=0 if color_sums is None else n,
                normal_sum=None if normal_sums is None else normal_sums[i],
                normal_count=0 if normal_sums is None else n,
            )
            existing = self._voxels.get(key)
            if existing is None:
                self._voxels[key] = incoming
            else:
                existing.merge(incoming)

    def remove_key(self, key: VoxelKey) -> bool:
        """Erase one bucket; returns False if the key was not present."""
        return self._voxels.pop(tuple(int(k) for k in key), None) is not None

    def transform(self, T: np.ndarray) -> None:
        """Move every bucket by T (keys and sums are untouched)."""
        self._grid_to_cloud = as_transform(T) @ self._grid_to_cloud

    def resampled(self, voxel_size: float) -> "VoxelizedPointCloud":
        """Re-bin the buckets on a grid of `voxel_size` in the same grid frame (counts are preserved)."""
        out = VoxelizedPointCloud(voxel_size)
        out._grid_to_cloud = self._grid_to_cloud.copy()
        for voxel in self._voxels.values():
            key = key_of(voxel.point, out.voxel_size)
            existing = out._voxels.get(key)
            if existing is None:
                out._voxels[key] = voxel.copy()
            else:
                existing.merge(voxel)
        return out

    def to_point_cloud(self) -> PointCloud:
        """One point per voxel (mean, cloud frame); colours/normals only if every voxel has them."""
        if not self._voxels:
            return PointCloud.empty()
        voxels = list(self._voxels.values())
        points = np.array([v.point for v in voxels], dtype=np.float64)
        colors = None
        if all(v.color_count > 0 for v in voxels):
            colors = np.array([v.color for v in voxels], dtype=np.float64)
        normals = None
        if all(v.normal_count > 0 for v in voxels):
            normals = np.array([v.normal for v in voxels], dtype=np.float64)
        return PointCloud(points=points, normals=normals, colors=colors).transformed(self._grid_to_cloud)

    def points_and_keys(self):
        """Mean points (M, 3) in the cloud frame and the matching key list, in the same order."""
        keys = list(self._voxels.keys())
        if not keys:
            return np.zeros((0, 3), dtype=np.float64), keys
        points = np.array([self._voxels[k].point for k in keys], dtype=np.float64)
        return transform_points(self._grid_to_cloud, points), keys

    def normals_array(self, keys: List[VoxelKey]) -> Optional[np.ndarray]:
        """Mean normals (cloud frame) for `keys`, None unless every voxel carries one."""
        voxels = [self._voxels[k] for k in keys]
        if not voxels or not all(v.normal_count > 0 for v in voxels):
            return None
        return rotate_vectors(self._grid_to_cloud, np.array([v.normal for v in voxels], dtype=np.float64))

    def copy(self) -> "VoxelizedPointCloud":
        out = VoxelizedPointCloud(self.voxel_size)
        out._voxels = {k: v.copy() for k, v in self._voxels.items()}
        out._grid_to_cloud = self._grid_to_cloud.copy()
        return out
