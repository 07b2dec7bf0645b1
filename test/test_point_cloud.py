"""
PointCloud value type, colour validity filter and voxel grid helpers.
"""

import numpy as np
import pytest

from lidar_submap.common.transforms import se3_inverse_matrix
from lidar_submap.geometry.cropping_volume import MaxRadiusCroppingVolume
from lidar_submap.geometry.point_cloud import (
    PointCloud,
    concatenate,
    filter_valid_colors,
    valid_color_mask,
    voxel_keys,
    voxelize,
    voxelize_within_cropping_volume,
)


class TestPointCloudBasics:
    def test_empty(self):
        cloud = PointCloud.empty()
        assert cloud.is_empty()
        assert len(cloud) == 0
        np.testing.assert_allclose(cloud.center(), np.zeros(3))

    def test_attribute_row_mismatch_rejected(self):
        with pytest.raises(ValueError):
            PointCloud(points=np.zeros((3, 3)), normals=np.zeros((2, 3)))

    def test_transformed_moves_points_and_rotates_normals(self, random_pose):
        cloud = PointCloud(points=np.array([[1.0, 0.0, 0.0]]), normals=np.array([[0.0, 0.0, 1.0]]))
        moved = cloud.transformed(random_pose)
        np.testing.assert_allclose(moved.points[0], random_pose[:3, :3] @ [1.0, 0.0, 0.0] + random_pose[:3, 3])
        np.testing.assert_allclose(moved.normals[0], random_pose[:3, :3] @ [0.0, 0.0, 1.0])
        back = moved.transformed(se3_inverse_matrix(random_pose))
        np.testing.assert_allclose(back.points, cloud.points, atol=1e-12)

    def test_transformed_does_not_mutate(self, small_cloud, random_pose):
        before = small_cloud.points.copy()
        small_cloud.transformed(random_pose)
        np.testing.assert_array_equal(small_cloud.points, before)

    def test_select_and_remove_by_index(self, small_cloud):
        idxs = np.array([0, 5, 7])
        selected = small_cloud.select_by_index(idxs)
        remaining = small_cloud.remove_by_index(idxs)
        assert len(selected) == 3
        assert len(remaining) == len(small_cloud) - 3
        np.testing.assert_array_equal(selected.points[1], small_cloud.points[5])

    def test_remove_out_of_range_raises(self, small_cloud):
        with pytest.raises(IndexError):
            small_cloud.remove_by_index(np.array([len(small_cloud)]))

    def test_concatenate_keeps_shared_attributes_only(self):
        a = PointCloud(points=np.zeros((2, 3)), colors=np.full((2, 3), 0.5))
        b = PointCloud(points=np.ones((3, 3)))
        merged = a + b
        assert len(merged) == 5
        assert not merged.has_colors()
        both = concatenate([a, a])
        assert both.has_colors()

    def test_normalize_normals(self):
        cloud = PointCloud(points=np.zeros((2, 3)), normals=np.array([[0.0, 0.0, 2.0], [0.0, 0.0, 0.0]]))
        normalized = cloud.normalize_normals()
        np.testing.assert_allclose(normalized.normals[0], [0.0, 0.0, 1.0])
        np.testing.assert_allclose(normalized.normals[1], [0.0, 0.0, 0.0])


class TestColorValidity:
    def test_mask(self):
        colors = np.array([
            [0.2, 0.4, 0.6],  # valid
            [0.0, 0.0, 0.0],  # black: not projected
            [np.nan, 0.1, 0.1],  # non-finite
            [1.5, 0.1, 0.1],  # out of range
        ])
        cloud = PointCloud(points=np.zeros((4, 3)), colors=colors)
        np.testing.assert_array_equal(valid_color_mask(cloud), [True, False, False, False])
        assert len(filter_valid_colors(cloud)) == 1

    def test_no_colors_drops_everything(self, small_cloud):
        assert filter_valid_colors(small_cloud).is_empty()


class TestVoxelize:
    def test_keys_use_floor(self):
        keys = voxel_keys(np.array([[0.05, -0.05, 0.15]]), 0.1)
        np.testing.assert_array_equal(keys[0], [0, -1, 1])

    def test_nonpositive_voxel_size_rejected(self):
        with pytest.raises(ValueError):
            voxel_keys(np.zeros((1, 3)), 0.0)

    def test_voxelize_averages_points(self):
        cloud = PointCloud(points=np.array([[0.1, 0.1, 0.1], [0.3, 0.3, 0.3], [1.2, 0.1, 0.1]]))
        out = voxelize(cloud, 1.0)
        assert len(out) == 2
        assert any(np.allclose(p, [0.2, 0.2, 0.2]) for p in out.points)

    def test_voxelize_is_idempotent(self, small_cloud):
        once = voxelize(small_cloud, 0.5)
        twice = voxelize(once, 0.5)
        assert len(once) <= len(small_cloud)
        assert len(twice) == len(once)

    def test_voxelize_within_crop_keeps_outside_points(self):
        rng = np.random.default_rng(0)
        inside = rng.uniform(-1.0, 1.0, size=(300, 3))
        outside = np.array([[30.0, 0.0, 0.0], [30.01, 0.0, 0.0]])
        cloud = PointCloud(points=np.vstack([inside, outside]))
        cropper = MaxRadiusCroppingVolume(radius=5.0)
        out = voxelize_within_cropping_volume(0.5, cropper, cloud)
        assert len(out) < len(cloud)
        # Both far points survive unmerged although they share a voxel.
        far = out.points[np.linalg.norm(out.points, axis=1) > 20.0]
        assert far.shape[0] == 2
        again = voxelize_within_cropping_volume(0.5, cropper, out)
        assert len(again) == len(out)

    def test_voxelize_within_crop_disabled(self, small_cloud):
        cropper = MaxRadiusCroppingVolume(radius=5.0)
        assert voxelize_within_cropping_volume(0.0, cropper, small_cloud) is small_cloud
