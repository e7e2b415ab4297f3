"""Two-view geometry: homography, fundamental matrix, triangulation."""

from __future__ import annotations

import numpy as np


def _xy(point) -> tuple[float, float]:
    if hasattr(point, "x") and hasattr(point, "y"):
        return float(point.x), float(point.y)
    x, y = point
    return float(x), float(y)


def _as_points(points) -> np.ndarray:
    return np.array([_xy(p) for p in points], dtype=float).reshape(-1, 2)


def compute_h21(points1, points2) -> np.ndarray:
    """Homography mapping ``points1`` to ``points2`` by the direct linear method."""
    p1, p2 = _as_points(points1), _as_points(points2)
    if len(p1) != len(p2) or len(p1) < 4:
        raise ValueError("need at least four matching point pairs")
    rows = []
    for (u1, v1), (u2, v2) in zip(p1, p2):
        rows.append([0.0, 0.0, 0.0, -u1, -v1, -1.0, v2 * u1, v2 * v1, v2])
        rows.append([u1, v1, 1.0, 0.0, 0.0, 0.0, -u2 * u1, -u2 * v1, -u2])
    _, _, vt = np.linalg.svd(np.array(rows), full_matrices=True)
    return vt[8].reshape(3, 3)


def compute_f21(points1, points2) -> np.ndarray:
    """Rank-two fundamental matrix with ``x2^T F x1 = 0`` from the eight-point method."""
    p1, p2 = _as_points(points1), _as_points(points2)
    if len(p1) != len(p2) or len(p1) < 8:
        raise ValueError("need at least eight matching point pairs")
    rows = [
        [u2 * u1, u2 * v1, u2, v2 * u1, v2 * v1, v2, u1, v1, 1.0]
        for (u1, v1), (u2, v2) in zip(p1, p2)
    ]
    _, _, vt = np.linalg.svd(np.array(rows), full_matrices=True)
    f_pre = vt[8].reshape(3, 3)
    u, w, vt = np.linalg.svd(f_pre)
    w[2] = 0.0
    return u @ np.diag(w) @ vt


def normalize(points) -> tuple[np.ndarray, np.ndarray]:
    """Centre the points and scale each axis to unit mean absolute deviation.

    Returns the normalised points and the 3x3 transform that produces them.
    """
    pts = _as_points(points)
    if len(pts) == 0:
        raise ValueError("no points to normalise")
    mean = pts.mean(axis=0)
    centred = pts - mean
    deviation = np.abs(centred).mean(axis=0)
    if np.any(deviation == 0.0):
        raise ValueError("points have no spread along an axis")
    scale = 1.0 / deviation
    transform = np.eye(3)
    transform[0, 0], transform[1, 1] = scale
    transform[0, 2] = -mean[0] * scale[0]
    transform[1, 2] = -mean[1] * scale[1]
    return centred * scale, transform


def triangulate(point1, point2, projection1, projection2) -> np.ndarray:
    """3D point seen at ``point1`` and ``point2`` by the two 3x4 projections."""
    p1 = np.asarray(projection1, dtype=float)
    p2 = np.asarray(projection2, dtype=float)
    x1, y1 = _xy(point1)
    x2, y2 = _xy(point2)
    a = np.vstack(
        (
            x1 * p1[2] - p1[0],
            y1 * p1[2] - p1[1],
            x2 * p2[2] - p2[0],
            y2 * p2[2] - p2[1],
        )
    )
    _, _, vt = np.linalg.svd(a, full_matrices=True)
    x = vt[3]
    with np.errstate(divide="ignore", invalid="ignore"):
        return x[:3] / x[3]


def decompose_essential(essential) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """The two rotations and the unit translation encoded by an essential matrix."""
    e = np.asarray(essential, dtype=float)
    if e.shape != (3, 3):
        raise ValueError("essential matrix must be 3x3")
    u, _, vt = np.linalg.svd(e)
    t = u[:, 2] / np.linalg.norm(u[:, 2])
    w = np.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
    r1 = u @ w @ vt
    if np.linalg.det(r1) < 0:
        r1 = -r1
    r2 = u @ w.T @ vt
    if np.linalg.det(r2) < 0:
        r2 = -r2
    return r1, r2, t