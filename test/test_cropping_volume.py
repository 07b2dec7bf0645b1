"""
Cropping volume tests: shapes, re-centring, factory.
"""

import numpy as np
import pytest

from lidar_submap.common.transforms import pose_matrix, rotvec_to_rotmat
from lidar_submap.geometry.cropping_volume import (
    CylinderCroppingVolume,
    MaxRadiusCroppingVolume,
    MinMaxRadiusCroppingVolume,
    cropping_volume_factory,
)
from lidar_submap.geometry.point_cloud import PointCloud


class TestShapes:
    def test_max_radius_ball(self):
        vol = MaxRadiusCroppingVolume(radius=2.0)
        mask = vol.is_within_volume(np.array([[1.0, 1.0, 1.0], [2.0, 1.0, 0.0]]))
        np.testing.assert_array_equal(mask, [True, False])

    def test_min_max_radius_shell(self):
        vol = MinMaxRadiusCroppingVolume(min_radius=1.0, radius=3.0)
        mask = vol.is_within_volume(np.array([[0.5, 0.0, 0.0], [2.0, 0.0, 0.0], [4.0, 0.0, 0.0]]))
        np.testing.assert_array_equal(mask, [False, True, False])

    def test_cylinder_ignores_height_for_radius(self):
        vol = CylinderCroppingVolume(radius=1.0, min_z=-10.0, max_z=10.0)
        mask = vol.is_within_volume(np.array([[0.5, 0.0, 8.0], [1.5, 0.0, 0.0], [0.0, 0.0, 11.0]]))
        np.testing.assert_array_equal(mask, [True, False, False])

    def test_z_band(self):
        vol = MaxRadiusCroppingVolume(radius=100.0, min_z=-1.0, max_z=2.0)
        mask = vol.is_within_volume(np.array([[0.0, 0.0, -2.0], [0.0, 0.0, 1.0], [0.0, 0.0, 3.0]]))
        np.testing.assert_array_equal(mask, [False, True, False])

    def test_invalid_bounds(self):
        with pytest.raises(ValueError):
            MaxRadiusCroppingVolume(radius=1.0, min_z=2.0, max_z=1.0)
        with pytest.raises(ValueError):
            MinMaxRadiusCroppingVolume(min_radius=3.0, radius=2.0)


class TestPose:
    def test_set_pose_recentres(self):
        vol = MaxRadiusCroppingVolume(radius=1.0)
        vol.set_pose(pose_matrix(t=[10.0, 0.0, 0.0]))
        mask = vol.is_within_volume(np.array([[0.0, 0.0, 0.0], [10.5, 0.0, 0.0]]))
        np.testing.assert_array_equal(mask, [False, True])

    def test_z_band_follows_rotation(self):
        vol = CylinderCroppingVolume(radius=100.0, min_z=-1.0, max_z=1.0)
        # Roll by 90 degrees: local z is world -y.
        vol.set_pose(pose_matrix(rotvec_to_rotmat([np.pi / 2, 0.0, 0.0])))
        mask = vol.is_within_volume(np.array([[0.0, 5.0, 0.0], [0.0, 0.0, 5.0]]))
        np.testing.assert_array_equal(mask, [False, True])

    def test_at_pose_leaves_original(self):
        vol = MaxRadiusCroppingVolume(radius=1.0)
        posed = vol.at_pose(pose_matrix(t=[5.0, 0.0, 0.0]))
        np.testing.assert_allclose(vol.pose, np.eye(4))
        np.testing.assert_allclose(posed.pose[:3, 3], [5.0, 0.0, 0.0])

    def test_crop_and_indices(self):
        cloud = PointCloud(points=np.array([[0.0, 0.0, 0.0], [5.0, 0.0, 0.0], [0.5, 0.0, 0.0]]))
        vol = MaxRadiusCroppingVolume(radius=1.0)
        np.testing.assert_array_equal(vol.get_indices_within_volume(cloud), [0, 2])
        assert len(vol.crop(cloud)) == 2

    def test_empty_input(self):
        vol = MaxRadiusCroppingVolume(radius=1.0)
        assert vol.is_within_volume(np.zeros((0, 3))).shape == (0,)


class TestFactory:
    @pytest.mark.parametrize(
        "name, cls",
        [
            ("MaxRadius", MaxRadiusCroppingVolume),
            ("MinMaxRadius", MinMaxRadiusCroppingVolume),
            ("Cylinder", CylinderCroppingVolume),
        ],
    )
    def test_known_names(self, name, cls):
        vol = cropping_volume_factory(name, radius=5.0, min_z=-1.0, max_z=1.0, min_radius=1.0)
        assert type(vol) is cls
        assert vol.radius == 5.0

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            cropping_volume_factory("Sphere", radius=5.0, min_z=-1.0, max_z=1.0)
