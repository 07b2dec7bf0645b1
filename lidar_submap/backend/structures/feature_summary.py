"""
Feature summary of a submap: downsampled cloud + one FPFH descriptor per point.

The two halves are produced together and replaced together; descriptor row i
belongs to point i of `cloud`. Consistency with the current main cloud is not
guaranteed (the summary is a snapshot from the last computation).
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

import numpy as np

from lidar_submap.common import constants
from lidar_submap.common.param_models import PlaceRecognitionParams
from lidar_submap.geometry import cloud_ops
from lidar_submap.geometry.point_cloud import PointCloud

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class FeatureSummary:
    cloud: PointCloud
    descriptors: np.ndarray  # (N, 33)

    def __post_init__(self):
        desc = np.asarray(self.descriptors, dtype=np.float64).reshape(-1, constants.FPFH_DIMENSION)
        if desc.shape[0] != len(self.cloud):
            raise ValueError(
                f"descriptor count {desc.shape[0]} does not match feature cloud size {len(self.cloud)}"
            )
        object.__setattr__(self, "descriptors", desc)

    def __len__(self) -> int:
        return len(self.cloud)

    def transformed(self, T: np.ndarray) -> "FeatureSummary":
        """Move the feature cloud; FPFH is rotation invariant so descriptors are kept."""
        return FeatureSummary(cloud=self.cloud.transformed(T), descriptors=self.descriptors)


def compute_feature_summary(cloud: PointCloud, params: PlaceRecognitionParams) -> FeatureSummary:
    """
    Downsample, estimate and orient normals, then compute FPFH.

    Steps:
        1. voxel_down_sample(feature_voxel_size)
        2. normals from neighbours within normal_estimation_radius (<= normal_knn)
        3. normalise and orient towards the submap origin
        4. FPFH with feature_radius / feature_knn
    """
    down = cloud_ops.voxel_down_sample(cloud, params.feature_voxel_size)
    down = cloud_ops.estimate_normals_hybrid(down, params.normal_estimation_radius, params.normal_knn)
    down = down.normalize_normals()
    down = cloud_ops.orient_normals_towards(down, constants.FEATURE_NORMAL_ORIENTATION_POINT)
    descriptors = cloud_ops.compute_fpfh(down, params.feature_radius, params.feature_knn)
    _logger.debug("Feature summary: %d -> %d points", len(cloud), len(down))
    return FeatureSummary(cloud=down, descriptors=descriptors)
