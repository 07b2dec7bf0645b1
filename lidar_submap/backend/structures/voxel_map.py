"""
VoxelMap: named-layer voxel hash index over a submap cloud.

The index is a derived, disposable structure: every layer is built wholesale
from a full cloud and never updated incrementally. Each layer stores its own
copy of the points plus key -> point-index buckets; queries visit the voxels
overlapping the query ball.

Layer swaps happen under an internal lock, so readers see either the old or
the new layer, never a partially built one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import math
import threading
from typing import Dict, List, Optional, Tuple

import numpy as np

from lidar_submap.common import constants
from lidar_submap.common.transforms import as_transform
from lidar_submap.geometry.point_cloud import PointCloud, VoxelKey, group_by_voxel, key_of

_EMPTY_IDXS = np.zeros(0, dtype=np.int64)


@dataclass
class VoxelLayer:
    points: np.ndarray  # (N, 3)
    buckets: Dict[VoxelKey, np.ndarray] = field(default_factory=dict)  # key -> point indices

    def __len__(self) -> int:
        return int(self.points.shape[0])


def _build_layer(points: np.ndarray, voxel_size: float) -> VoxelLayer:
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3).copy()
    if points.shape[0] == 0:
        return VoxelLayer(points=points)
    unique_keys, inverse = group_by_voxel(points, voxel_size)
    order = np.argsort(inverse, kind="stable")
    splits = np.cumsum(np.bincount(inverse, minlength=unique_keys.shape[0]))[:-1]
    groups = np.split(order, splits)
    buckets = {tuple(k): g for k, g in zip(map(tuple, unique_keys.tolist()), groups)}
    return VoxelLayer(points=points, buckets=buckets)


class VoxelMap:
    """Spatial index for neighbour queries; rebuild it, do not edit it."""

    def __init__(self, voxel_size: float = constants.VOXEL_MAP_VOXEL_SIZE_DEFAULT) -> None:
        if voxel_size <= 0.0:
            raise ValueError(f"voxel_size must be positive, got {voxel_size}")
        self.voxel_size = float(voxel_size)
        self._lock = threading.Lock()
        self._layers: Dict[str, VoxelLayer] = {}

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def insert_cloud(self, layer_name: str, cloud: PointCloud) -> None:
        """(Re)build `layer_name` from the full cloud."""
        layer = _build_layer(cloud.points, self.voxel_size)
        with self._lock:
            self._layers[layer_name] = layer

    def rebuild_from_cloud(self, layer_name: str, cloud: PointCloud) -> None:
        """Drop every layer and build `layer_name` (clear + insert in one swap)."""
        layer = _build_layer(cloud.points, self.voxel_size)
        with self._lock:
            self._layers = {layer_name: layer}

    def clear(self) -> None:
        with self._lock:
            self._layers = {}

    def transform(self, T: np.ndarray) -> None:
        """Move every layer by T (keys are recomputed)."""
        T = as_transform(T)
        with self._lock:
            layers = dict(self._layers)
        moved = {
            name: _build_layer(layer.points @ T[:3, :3].T + T[:3, 3], self.voxel_size)
            for name, layer in layers.items()
        }
        with self._lock:
            self._layers = moved

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def layer_names(self) -> List[str]:
        with self._lock:
            return list(self._layers.keys())

    def _layer(self, layer_name: str) -> Optional[VoxelLayer]:
        with self._lock:
            return self._layers.get(layer_name)

    def is_empty(self) -> bool:
        with self._lock:
            return all(len(layer) == 0 for layer in self._layers.values())

    def num_points(self, layer_name: str) -> int:
        layer = self._layer(layer_name)
        return 0 if layer is None else len(layer)

    def num_voxels(self, layer_name: str) -> int:
        layer = self._layer(layer_name)
        return 0 if layer is None else len(layer.buckets)

    def get_layer_points(self, layer_name: str) -> np.ndarray:
        layer = self._layer(layer_name)
        return np.zeros((0, 3), dtype=np.float64) if layer is None else layer.points.copy()

    def get_indices_in_voxel(self, layer_name: str, point: np.ndarray) -> np.ndarray:
        layer = self._layer(layer_name)
        if layer is None:
            return _EMPTY_IDXS
        return layer.buckets.get(key_of(point, self.voxel_size), _EMPTY_IDXS).copy()

    def get_points_in_voxel(self, layer_name: str, point: np.ndarray) -> np.ndarray:
        layer = self._layer(layer_name)
        if layer is None:
            return np.zeros((0, 3), dtype=np.float64)
        idxs = layer.buckets.get(key_of(point, self.voxel_size), _EMPTY_IDXS)
        return layer.points[idxs].copy()

    def _candidates(self, layer: VoxelLayer, point: np.ndarray, radius: float) -> np.ndarray:
        center = key_of(point, self.voxel_size)
        reach = int(math.ceil(radius / self.voxel_size))
        found = []
        for dx in range(-reach, reach + 1):
            for dy in range(-reach, reach + 1):
                for dz in range(-reach, reach + 1):
                    idxs = layer.buckets.get((center[0] + dx, center[1] + dy, center[2] + dz))
                    if idxs is not None:
                        found.append(idxs)
        return np.concatenate(found) if found else _EMPTY_IDXS

    def radius_search(self, layer_name: str, point: np.ndarray, radius: float) -> np.ndarray:
        """Indices of layer points within `radius` of `point`, sorted by distance."""
        layer = self._layer(layer_name)
        if layer is None or radius <= 0.0:
            return _EMPTY_IDXS
        q = np.asarray(point, dtype=np.float64).reshape(3)
        cand = self._candidates(layer, q, radius)
        if cand.size == 0:
            return _EMPTY_IDXS
        d2 = np.sum((layer.points[cand] - q) ** 2, axis=1)
        keep = d2 <= radius * radius
        cand, d2 = cand[keep], d2[keep]
        return cand[np.argsort(d2, kind="stable")]

    def nearest_neighbor(
        self, layer_name: str, point: np.ndarray, max_distance: float
    ) -> Optional[Tuple[int, float]]:
        """(index, distance) of the closest layer point within max_distance, else None."""
        idxs = self.radius_search(layer_name, point, max_distance)
        if idxs.size == 0:
            return None
        layer = self._layer(layer_name)
        d = float(np.linalg.norm(layer.points[idxs[0]] - np.asarray(point, dtype=np.float64).reshape(3)))
        return int(idxs[0]), d
