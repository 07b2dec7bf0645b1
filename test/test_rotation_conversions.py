"""
SE(3) helper tests: exp/log maps, inverse, point transforms.
"""

import numpy as np
import pytest

from lidar_submap.common.transforms import (
    as_transform,
    pose_matrix,
    rotate_vectors,
    rotmat_to_rotvec,
    rotvec_to_rotmat,
    se3_inverse_matrix,
    se3_matrix_to_vector,
    se3_vector_to_matrix,
    transform_points,
    translation,
)


class TestRotationConversions:
    @pytest.mark.parametrize(
        "rotvec",
        [
            [0.0, 0.0, 0.0],
            [1e-12, 0.0, 0.0],
            [0.3, -0.2, 0.1],
            [0.0, 0.0, np.pi / 2],
            [np.pi - 1e-8, 0.0, 0.0],
        ],
    )
    def test_rotvec_roundtrip(self, rotvec):
        R = rotvec_to_rotmat(rotvec)
        R_back = rotvec_to_rotmat(rotmat_to_rotvec(R))
        np.testing.assert_allclose(R_back, R, atol=1e-6)

    def test_rotation_is_orthonormal(self):
        R = rotvec_to_rotmat([0.4, 0.5, -0.6])
        np.testing.assert_allclose(R @ R.T, np.eye(3), atol=1e-12)
        assert np.linalg.det(R) == pytest.approx(1.0)

    def test_quarter_turn_about_z(self):
        R = rotvec_to_rotmat([0.0, 0.0, np.pi / 2])
        np.testing.assert_allclose(R @ np.array([1.0, 0.0, 0.0]), [0.0, 1.0, 0.0], atol=1e-12)


class TestSE3Matrices:
    def test_vector_matrix_roundtrip(self):
        xi = np.array([1.0, 2.0, 3.0, 0.1, -0.2, 0.3])
        np.testing.assert_allclose(se3_matrix_to_vector(se3_vector_to_matrix(xi)), xi, atol=1e-12)

    def test_inverse(self, random_pose):
        np.testing.assert_allclose(random_pose @ se3_inverse_matrix(random_pose), np.eye(4), atol=1e-12)

    def test_transform_points_and_vectors(self):
        T = pose_matrix(rotvec_to_rotmat([0.0, 0.0, np.pi / 2]), [1.0, 0.0, 0.0])
        pts = transform_points(T, np.array([[1.0, 0.0, 0.0]]))
        np.testing.assert_allclose(pts, [[1.0, 1.0, 0.0]], atol=1e-12)
        vec = rotate_vectors(T, np.array([[1.0, 0.0, 0.0]]))
        np.testing.assert_allclose(vec, [[0.0, 1.0, 0.0]], atol=1e-12)

    def test_as_transform_accepts_6d(self):
        T = as_transform(np.array([1.0, 2.0, 3.0, 0.0, 0.0, 0.0]))
        np.testing.assert_allclose(translation(T), [1.0, 2.0, 3.0])

    def test_as_transform_returns_copy(self):
        T = np.eye(4)
        out = as_transform(T)
        out[0, 3] = 5.0
        assert T[0, 3] == 0.0

    def test_as_transform_rejects_bad_shape(self):
        with pytest.raises(ValueError):
            as_transform(np.eye(3))
