"""Conversions between rigid transforms, rotation matrices, vectors and quaternions."""

from __future__ import annotations

import math

import numpy as np


def descriptor_rows(descriptors) -> list[np.ndarray]:
    """Split a descriptor matrix into one array per row."""
    matrix = np.asarray(descriptors)
    if matrix.ndim != 2:
        raise ValueError("descriptors must be a two-dimensional matrix")
    return [row.copy() for row in matrix]


def _rotation(rotation) -> np.ndarray:
    matrix = np.asarray(rotation, dtype=float)
    if matrix.shape != (3, 3):
        raise ValueError("rotation must be a 3x3 matrix")
    return matrix


def _translation(translation) -> np.ndarray:
    vector = np.asarray(translation, dtype=float).ravel()
    if vector.shape != (3,):
        raise ValueError("translation must have three components")
    return vector


def se3_matrix(rotation, translation) -> np.ndarray:
    """Homogeneous 4x4 transform from a rotation and a translation."""
    transform = np.eye(4)
    transform[:3, :3] = _rotation(rotation)
    transform[:3, 3] = _translation(translation)
    return transform


def sim3_matrix(rotation, translation, scale) -> np.ndarray:
    """Homogeneous 4x4 similarity transform with the rotation scaled by ``scale``."""
    return se3_matrix(float(scale) * _rotation(rotation), translation)


def split_se3(transform) -> tuple[np.ndarray, np.ndarray]:
    """Rotation and translation parts of a 3x4 or 4x4 transform."""
    matrix = np.asarray(transform, dtype=float)
    if matrix.ndim != 2 or matrix.shape[0] < 3 or matrix.shape[1] < 4:
        raise ValueError("transform must be at least 3x4")
    return matrix[:3, :3].copy(), matrix[:3, 3].copy()


def to_vector3(value) -> np.ndarray:
    """Three-component vector from a point with x, y, z or an array of three."""
    if all(hasattr(value, name) for name in ("x", "y", "z")):
        return np.array([value.x, value.y, value.z], dtype=float)
    vector = np.asarray(value, dtype=float).ravel()
    if vector.size < 3:
        raise ValueError("a vector needs three components")
    return vector[:3].copy()


def to_matrix3(value) -> np.ndarray:
    """Upper-left 3x3 block of a matrix."""
    matrix = np.asarray(value, dtype=float)
    if matrix.ndim != 2 or matrix.shape[0] < 3 or matrix.shape[1] < 3:
        raise ValueError("matrix must be at least 3x3")
    return matrix[:3, :3].copy()


def rotation_to_quaternion(rotation) -> np.ndarray:
    """Quaternion ``[x, y, z, w]`` of a rotation matrix."""
    m = to_matrix3(rotation)
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    q = [0.0, 0.0, 0.0]
    if trace > 0:
        t = math.sqrt(trace + 1.0)
        w = 0.5 * t
        t = 0.5 / t
        q = [(m[2, 1] - m[1, 2]) * t, (m[0, 2] - m[2, 0]) * t, (m[1, 0] - m[0, 1]) * t]
    else:
        i = 0
        if m[1, 1] > m[0, 0]:
            i = 1
        if m[2, 2] > m[i, i]:
            i = 2
        j = (i + 1) % 3
        k = (j + 1) % 3
        t = math.sqrt(m[i, i] - m[j, j] - m[k, k] + 1.0)
        q[i] = 0.5 * t
        t = 0.5 / t
        w = (m[k, j] - m[j, k]) * t
        q[j] = (m[j, i] + m[i, j]) * t
        q[k] = (m[k, i] + m[i, k]) * t
    return np.array([q[0], q[1], q[2], w])


def quaternion_to_rotation(quaternion) -> np.ndarray:
    """Rotation matrix of a quaternion given as ``[x, y, z, w]``."""
    q = np.asarray(quaternion, dtype=float).ravel()
    if q.shape != (4,):
        raise ValueError("quaternion must have four components")
    norm = float(np.linalg.norm(q))
    if norm == 0.0:
        raise ValueError("quaternion must not be zero")
    x, y, z, w = q / norm
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
            [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
            [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
        ]
    )