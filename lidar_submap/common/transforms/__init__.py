"""Rigid transform helpers (4x4 homogeneous matrices)."""

from lidar_submap.common.transforms.se3 import (
    as_transform,
    pose_matrix,
    rotate_vectors,
    rotmat_to_rotvec,
    rotvec_to_rotmat,
    se3_inverse_matrix,
    se3_matrix_to_vector,
    se3_vector_to_matrix,
    skew,
    transform_points,
    translation,
)

__all__ = [
    "as_transform",
    "pose_matrix",
    "rotate_vectors",
    "rotmat_to_rotvec",
    "rotvec_to_rotmat",
    "se3_inverse_matrix",
    "se3_matrix_to_vector",
    "se3_vector_to_matrix",
    "skew",
    "transform_points",
    "translation",
]
