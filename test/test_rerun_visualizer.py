"""
Rerun visualizer: inactive visualizers are no-ops; active ones log every layer.
"""

import numpy as np
import pytest

from lidar_submap.backend.rerun_visualizer import SubmapVisualizer
from lidar_submap.backend.submap import Submap
from lidar_submap.geometry.point_cloud import PointCloud


class _FakeRerun:
    """Records rr.log calls."""

    def __init__(self):
        self.logged = {}
        self.times = []

    def set_time_seconds(self, timeline, t):
        self.times.append(t)

    def log(self, path, payload):
        self.logged[path] = payload

    def Points3D(self, positions, colors=None, radii=None):
        return {"positions": np.asarray(positions), "colors": colors}

    def Transform3D(self, translation, mat3x3):
        return {"translation": np.asarray(translation)}


def _submap(point_to_point_params, fake_clock):
    submap = Submap(7, 0, params=point_to_point_params, clock=fake_clock)
    submap.insert_scan(PointCloud.empty(), PointCloud(points=np.array([[1.0, 2.0, 3.0]])), np.eye(4), 0.0, False)
    return submap


class TestSubmapVisualizer:
    def test_uninitialized_is_noop(self, point_to_point_params, fake_clock):
        viz = SubmapVisualizer()
        assert not viz.active
        viz.log_submap(_submap(point_to_point_params, fake_clock), 0.0)

    def test_logs_all_layers(self, point_to_point_params, fake_clock):
        viz = SubmapVisualizer()
        fake = _FakeRerun()
        viz._rr = fake
        viz.log_submap(_submap(point_to_point_params, fake_clock), 1.5)
        assert fake.times == [1.5]
        assert set(fake.logged) == {
            "submap/7/sparse",
            "submap/7/dense",
            "submap/7/features",
            "submap/7/carved",
            "submap/7/sensor",
        }
        np.testing.assert_allclose(fake.logged["submap/7/sparse"]["positions"], [[1.0, 2.0, 3.0]])
        assert fake.logged["submap/7/dense"]["positions"].shape == (0, 3)

    def test_init_with_rerun(self, tmp_path):
        pytest.importorskip("rerun")
        viz = SubmapVisualizer(recording_path=str(tmp_path / "rec.rrd"))
        assert viz.init()
        assert viz.init()
