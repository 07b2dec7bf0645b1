"""
SE(3) helpers on 4x4 homogeneous matrices.

Submap geometry is moved with rigid transforms T = [[R, t], [0, 1]]:
    p' = R @ p + t      (points)
    n' = R @ n          (normals)

The 6D vector form [x, y, z, rx, ry, rz] (rotation vector, radians) is
accepted at the API boundary and converted with the exponential map.

Numerical Policy:
    ROTATION_EPSILON = 1e-10 selects the small-angle Taylor branch.
    SINGULARITY_EPSILON = 1e-6 selects the theta ~ pi branch of the log map.
"""

import math
from typing import Optional

import numpy as np

ROTATION_EPSILON: float = 1e-10
SINGULARITY_EPSILON: float = 1e-6


def skew(v: np.ndarray) -> np.ndarray:
    """Skew-symmetric matrix from 3-vector (hat operator)."""
    v = np.asarray(v, dtype=float).reshape(-1)
    return np.array([
        [0.0, -v[2], v[1]],
        [v[2], 0.0, -v[0]],
        [-v[1], v[0], 0.0]
    ], dtype=float)


def rotvec_to_rotmat(rotvec: np.ndarray) -> np.ndarray:
    """Rodrigues' formula, exp: so(3) -> SO(3)."""
    rotvec = np.asarray(rotvec, dtype=float).reshape(-1)
    theta = np.linalg.norm(rotvec)
    if theta < ROTATION_EPSILON:
        return np.eye(3, dtype=float) + skew(rotvec)
    K = skew(rotvec / theta)
    return np.eye(3, dtype=float) + math.sin(theta) * K + (1.0 - math.cos(theta)) * (K @ K)


def rotmat_to_rotvec(R: np.ndarray) -> np.ndarray:
    """Log map SO(3) -> so(3), with explicit handling of theta ~ 0 and theta ~ pi."""
    R = np.asarray(R, dtype=float)
    cos_theta = np.clip((np.trace(R) - 1.0) / 2.0, -1.0, 1.0)
    theta = math.acos(cos_theta)
    vee = np.array([R[2, 1] - R[1, 2], R[0, 2] - R[2, 0], R[1, 0] - R[0, 1]], dtype=float)

    if theta < ROTATION_EPSILON:
        return vee / 2.0

    if abs(theta - math.pi) < SINGULARITY_EPSILON:
        # Axis from the symmetric part: R + I = 2 a a^T at theta = pi
        B = (R + np.eye(3)) / 2.0
        col = int(np.argmax(np.diag(B)))
        axis = B[:, col] / math.sqrt(max(B[col, col], 1e-12))
        axis_norm = np.linalg.norm(axis)
        if axis_norm < 1e-12:
            return np.zeros(3, dtype=float)
        return axis / axis_norm * theta

    return vee / (2.0 * math.sin(theta)) * theta


def pose_matrix(R: Optional[np.ndarray] = None, t: Optional[np.ndarray] = None) -> np.ndarray:
    """Assemble a 4x4 transform from rotation and translation (identity parts when omitted)."""
    T = np.eye(4, dtype=float)
    if R is not None:
        T[:3, :3] = np.asarray(R, dtype=float).reshape(3, 3)
    if t is not None:
        T[:3, 3] = np.asarray(t, dtype=float).reshape(3)
    return T


def se3_vector_to_matrix(xi: np.ndarray) -> np.ndarray:
    """[x, y, z, rx, ry, rz] -> 4x4."""
    xi = np.asarray(xi, dtype=float).reshape(-1)
    if xi.shape[0] != 6:
        raise ValueError(f"Expected 6D pose vector, got shape {xi.shape}")
    return pose_matrix(rotvec_to_rotmat(xi[3:6]), xi[:3])


def se3_matrix_to_vector(T: np.ndarray) -> np.ndarray:
    """4x4 -> [x, y, z, rx, ry, rz]."""
    T = as_transform(T)
    rv = rotmat_to_rotvec(T[:3, :3])
    return np.concatenate([T[:3, 3], rv])


def as_transform(T: np.ndarray) -> np.ndarray:
    """Coerce 4x4 matrices or 6D vectors to a float 4x4 copy."""
    arr = np.asarray(T, dtype=float)
    if arr.shape == (6,):
        return se3_vector_to_matrix(arr)
    if arr.shape != (4, 4):
        raise ValueError(f"Expected a 4x4 transform or 6D vector, got shape {arr.shape}")
    return arr.copy()


def se3_inverse_matrix(T: np.ndarray) -> np.ndarray:
    """Closed-form rigid inverse [R^T, -R^T t]."""
    T = as_transform(T)
    R = T[:3, :3]
    t = T[:3, 3]
    return pose_matrix(R.T, -R.T @ t)


def transform_points(T: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Apply T to an (N, 3) array; returns a new array."""
    T = as_transform(T)
    pts = np.asarray(points, dtype=float).reshape(-1, 3)
    return pts @ T[:3, :3].T + T[:3, 3]


def rotate_vectors(T: np.ndarray, vectors: np.ndarray) -> np.ndarray:
    """Apply only the rotation of T to an (N, 3) array (normals, directions)."""
    T = as_transform(T)
    vec = np.asarray(vectors, dtype=float).reshape(-1, 3)
    return vec @ T[:3, :3].T


def translation(T: np.ndarray) -> np.ndarray:
    return as_transform(T)[:3, 3].copy()
