import os
import sys
import pytest

# Ensure local package import works for pytest collection.
_TEST_DIR = os.path.dirname(__file__)
_PKG_ROOT = os.path.abspath(os.path.join(_TEST_DIR, ".."))
if _PKG_ROOT not in sys.path:
    sys.path.insert(0, _PKG_ROOT)


# =============================================================================
# Config Fixtures
# =============================================================================


@pytest.fixture
def default_config_path() -> str:
    """Path of the packaged default mapper config."""
    return os.path.join(_PKG_ROOT, "lidar_submap", "config", "submap_default.yaml")


@pytest.fixture
def point_to_point_params():
    """
    MapperParams that keep Open3D out of the ingestion path.

    Point-to-point matching needs no normals, and sparse voxelization is off so
    point counts are exact.
    """
    from lidar_submap.common.param_models import MapperParams

    params = MapperParams()
    params.scan_matcher.icp_objective = "PointToPoint"
    params.map_builder.map_voxel_size = 0.0
    return params


# =============================================================================
# Test Utility Fixtures
# =============================================================================


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 100.0):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += float(seconds)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def numpy_seed():
    """Set numpy random seed for reproducible tests."""
    import numpy as np
    np.random.seed(42)
    yield


@pytest.fixture
def small_cloud():
    """200 random points in a 4 m cube around the origin."""
    import numpy as np
    from lidar_submap.geometry.point_cloud import PointCloud

    rng = np.random.default_rng(42)
    return PointCloud(points=rng.uniform(-2.0, 2.0, size=(200, 3)))


@pytest.fixture
def random_pose():
    """A moderate SE(3) pose as a 4x4 matrix."""
    from lidar_submap.common.transforms import se3_vector_to_matrix
    return se3_vector_to_matrix([1.0, -2.0, 0.5, 0.1, -0.2, 0.3])
