"""
Submap mapping constants and parameter defaults.

=============================================================================
CONVENTION QUICK REFERENCE
=============================================================================

FRAMES:
  map            - global map frame owned by the pose-graph manager
  submap         - local frame of a single submap; ALL stored geometry lives here
  range_sensor   - lidar frame of the scan being inserted

TRANSFORMS:
  4x4 homogeneous matrices, T_a_b maps points from frame b into frame a:
    p_a = R_a_b @ p_b + t_a_b
  map_to_range_sensor is T_map_sensor (sensor pose expressed in the map frame).
  6D vectors use [x, y, z, rx, ry, rz] with a rotation vector (radians).

VOXEL KEYS:
  key = floor(p / voxel_size) per axis, as a tuple of three Python ints.
  The grid origin is fixed at (0, 0, 0) so re-voxelizing is idempotent.
=============================================================================
"""

# =============================================================================
# Cropping volumes
# =============================================================================

CROPPER_MAX_RADIUS = "MaxRadius"
CROPPER_MIN_MAX_RADIUS = "MinMaxRadius"
CROPPER_CYLINDER = "Cylinder"
CROPPER_NAMES = (CROPPER_MAX_RADIUS, CROPPER_MIN_MAX_RADIUS, CROPPER_CYLINDER)

CROPPING_RADIUS_DEFAULT = 20.0  # meters
CROPPING_MIN_RADIUS_DEFAULT = 0.0  # meters (MinMaxRadius only)
CROPPING_MIN_Z_DEFAULT = -50.0  # meters, relative to the reference pose
CROPPING_MAX_Z_DEFAULT = 50.0  # meters, relative to the reference pose

# The dense map keeps a wider fixed region than the sparse insertion crop.
DENSE_CROPPING_RADIUS_MULTIPLIER = 1.2

# Sparse carving looks at a wider region than the sparse insertion crop.
CARVING_CROPPING_RADIUS_MULTIPLIER = 1.2

# =============================================================================
# Space carving
# =============================================================================

CARVING_VOXEL_SIZE_DEFAULT = 0.1  # ray-marching step and hit tolerance (m)
CARVING_MAX_RAYTRACING_LENGTH_DEFAULT = 20.0  # rays longer than this are ignored (m)
CARVING_TRUNCATION_DISTANCE_DEFAULT = 0.3  # band kept in front of each scan hit (m)
CARVING_EVERY_N_SEC_DEFAULT = 1.0  # minimum interval between carves per layer (s)
CARVING_MIN_DOT_PRODUCT_WITH_NORMAL_DEFAULT = 0.5  # |n . ray| gate when normals exist
CARVING_MIN_RANGE_DEFAULT = 0.0  # first ray-marching sample distance (m)

# How often averaged carving execution times are reported (s).
CARVING_STATS_REPORT_PERIOD_SEC = 20.0

# =============================================================================
# Map builders
# =============================================================================

MAP_VOXEL_SIZE_DEFAULT = 0.1  # sparse layer, <= 0 disables voxelization (m)
DENSE_MAP_VOXEL_SIZE_DEFAULT = 0.05  # dense layer voxel edge (m)

# =============================================================================
# Scan matching (normals)
# =============================================================================

ICP_OBJECTIVE_POINT_TO_POINT = "PointToPoint"
ICP_OBJECTIVE_POINT_TO_PLANE = "PointToPlane"
KNN_NORMAL_ESTIMATION_DEFAULT = 5

# =============================================================================
# Place recognition features
# =============================================================================

FEATURE_VOXEL_SIZE_DEFAULT = 0.5  # m
FEATURE_RADIUS_DEFAULT = 2.5  # FPFH support radius (m)
FEATURE_KNN_DEFAULT = 100
FEATURE_NORMAL_ESTIMATION_RADIUS_DEFAULT = 1.0  # m
FEATURE_NORMAL_KNN_DEFAULT = 10
FPFH_DIMENSION = 33

# Normals of the sparse feature cloud are oriented towards this point (submap frame).
FEATURE_NORMAL_ORIENTATION_POINT = (0.0, 0.0, 0.0)

# =============================================================================
# Submaps
# =============================================================================

MIN_SECONDS_BETWEEN_FEATURE_COMPUTATION_DEFAULT = 5.0
VOXEL_MAP_VOXEL_SIZE_DEFAULT = 0.25  # spatial index resolution (m)
VOXEL_MAP_LAYER_DEFAULT = "map"

# Colour validity: colours are RGB in [0, 1]; pure black marks "no colour projected".
COLOR_INVALID_EPS = 1e-9
