"""A camera frame: keypoints, their grid index, pose and stereo depth."""

from __future__ import annotations

import itertools
import math
from dataclasses import dataclass, replace
from typing import Sequence

import numpy as np

FRAME_GRID_ROWS = 48
FRAME_GRID_COLS = 64

TH_HIGH = 100
TH_LOW = 50

DEFAULT_SCALE_FACTORS = tuple(1.2**level for level in range(8))


@dataclass(frozen=True)
class KeyPoint:
    """An image feature location with the pyramid level it was found on."""

    x: float
    y: float
    octave: int = 0
    angle: float = -1.0
    response: float = 0.0


@dataclass(frozen=True)
class ImageBounds:
    """Extent of the undistorted image."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float


def descriptor_distance(a, b) -> int:
    """Hamming distance between two binary descriptors."""
    left = np.asarray(a, dtype=np.uint8)
    right = np.asarray(b, dtype=np.uint8)
    if left.shape != right.shape:
        raise ValueError("descriptors differ in length")
    return int(np.unpackbits(np.bitwise_xor(left, right)).sum())


def _coefficients(dist_coef) -> tuple[float, float, float, float, float]:
    coef = [float(c) for c in np.asarray(dist_coef, dtype=float).ravel()]
    if len(coef) < 4:
        raise ValueError("distortion needs at least k1, k2, p1, p2")
    coef = (coef + [0.0])[:5]
    return coef[0], coef[1], coef[2], coef[3], coef[4]


def undistort_points(points, camera_matrix, dist_coef) -> np.ndarray:
    """Remove radial and tangential distortion from pixel coordinates.

    The result is projected again with the same camera matrix.
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    k = np.asarray(camera_matrix, dtype=float)
    fx, fy, cx, cy = k[0, 0], k[1, 1], k[0, 2], k[1, 2]
    k1, k2, p1, p2, k3 = _coefficients(dist_coef)

    x0 = (pts[:, 0] - cx) / fx
    y0 = (pts[:, 1] - cy) / fy
    x, y = x0.copy(), y0.copy()
    for _ in range(5):
        r2 = x * x + y * y
        icdist = 1.0 / (1.0 + ((k3 * r2 + k2) * r2 + k1) * r2)
        delta_x = 2.0 * p1 * x * y + p2 * (r2 + 2.0 * x * x)
        delta_y = p1 * (r2 + 2.0 * y * y) + 2.0 * p2 * x * y
        x = (x0 - delta_x) * icdist
        y = (y0 - delta_y) * icdist
    return np.column_stack((x * fx + cx, y * fy + cy))


def compute_image_bounds(width, height, camera_matrix, dist_coef) -> ImageBounds:
    """Bounds of the image once its corners are undistorted."""
    if float(np.asarray(dist_coef, dtype=float).ravel()[0]) != 0.0:
        corners = undistort_points(
            [(0.0, 0.0), (width, 0.0), (0.0, height), (width, height)],
            camera_matrix,
            dist_coef,
        )
        return ImageBounds(
            min_x=float(min(corners[0, 0], corners[2, 0])),
            max_x=float(max(corners[1, 0], corners[3, 0])),
            min_y=float(min(corners[0, 1], corners[1, 1])),
            max_y=float(max(corners[2, 1], corners[3, 1])),
        )
    return ImageBounds(0.0, float(width), 0.0, float(height))


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _patch(image: np.ndarray, row: int, col: int, w: int) -> np.ndarray | None:
    r0, c0, r1, c1 = row - w, col - w, row + w + 1, col + w + 1
    if r0 < 0 or c0 < 0 or r1 > image.shape[0] or c1 > image.shape[1]:
        return None
    patch = image[r0:r1, c0:c1].astype(np.float32)
    return patch - patch[w, w]


class Frame:
    """Keypoints of one image, indexed on a grid, with optional stereo data."""

    _ids = itertools.count()

    def __init__(
        self,
        keypoints: Sequence[KeyPoint],
        descriptors=None,
        timestamp: float = 0.0,
        camera_matrix=None,
        dist_coef=None,
        bf: float = 0.0,
        th_depth: float = 0.0,
        image_size: tuple[int, int] = (640, 480),
        scale_factors: Sequence[float] | None = None,
    ) -> None:
        self.id = next(Frame._ids)
        self.timestamp = float(timestamp)
        self.camera_matrix = (
            np.eye(3) if camera_matrix is None else np.array(camera_matrix, dtype=float)
        )
        self.dist_coef = (
            np.zeros(4) if dist_coef is None else np.array(dist_coef, dtype=float).ravel()
        )
        self.bf = float(bf)
        self.th_depth = float(th_depth)

        factors = list(DEFAULT_SCALE_FACTORS if scale_factors is None else scale_factors)
        self.scale_levels = len(factors)
        self.scale_factor = factors[1] if len(factors) > 1 else 1.0
        self.log_scale_factor = math.log(self.scale_factor)
        self.scale_factors = factors
        self.inv_scale_factors = [1.0 / s for s in factors]
        self.level_sigma2 = [s * s for s in factors]
        self.inv_level_sigma2 = [1.0 / (s * s) for s in factors]

        self.keys = list(keypoints)
        self.n = len(self.keys)
        self.descriptors = (
            np.zeros((self.n, 32), dtype=np.uint8)
            if descriptors is None
            else np.asarray(descriptors, dtype=np.uint8)
        )
        self.keys_right: list[KeyPoint] = []
        self.descriptors_right = np.zeros((0, 32), dtype=np.uint8)

        self.keys_un = self._undistort_keypoints()
        self.right = [-1.0] * self.n
        self.depth = [-1.0] * self.n
        self.map_points: list[object | None] = [None] * self.n
        self.outliers = [False] * self.n

        width, height = image_size
        self.bounds = compute_image_bounds(
            width, height, self.camera_matrix, self.dist_coef
        )
        self.grid_element_width_inv = FRAME_GRID_COLS / (
            self.bounds.max_x - self.bounds.min_x
        )
        self.grid_element_height_inv = FRAME_GRID_ROWS / (
            self.bounds.max_y - self.bounds.min_y
        )
        k = self.camera_matrix
        self.fx, self.fy = float(k[0, 0]), float(k[1, 1])
        self.cx, self.cy = float(k[0, 2]), float(k[1, 2])
        self.invfx, self.invfy = 1.0 / self.fx, 1.0 / self.fy
        self.baseline = self.bf / self.fx

        self.tcw: np.ndarray | None = None
        self.rcw: np.ndarray | None = None
        self.rwc: np.ndarray | None = None
        self.t_cw: np.ndarray | None = None
        self.camera_center: np.ndarray | None = None

        self.grid: list[list[list[int]]] = [
            [[] for _ in range(FRAME_GRID_ROWS)] for _ in range(FRAME_GRID_COLS)
        ]
        for index, kp in enumerate(self.keys_un):
            cell = self.pos_in_grid(kp)
            if cell is not None:
                self.grid[cell[0]][cell[1]].append(index)

    def _undistort_keypoints(self) -> list[KeyPoint]:
        if not self.keys or self.dist_coef[0] == 0.0:
            return list(self.keys)
        points = undistort_points(
            [(kp.x, kp.y) for kp in self.keys], self.camera_matrix, self.dist_coef
        )
        return [
            replace(kp, x=float(px), y=float(py))
            for kp, (px, py) in zip(self.keys, points)
        ]

    def set_pose(self, tcw) -> None:
        """Set the world-to-camera transform and derive rotation and centre."""
        self.tcw = np.array(tcw, dtype=float).reshape(4, 4)
        self.rcw = self.tcw[:3, :3].copy()
        self.rwc = self.rcw.T
        self.t_cw = self.tcw[:3, 3].copy()
        self.camera_center = -self.rcw.T @ self.t_cw

    def pos_in_grid(self, keypoint: KeyPoint) -> tuple[int, int] | None:
        """Grid cell of a keypoint, or None when it falls outside the grid."""
        pos_x = _round_half_away(
            (keypoint.x - self.bounds.min_x) * self.grid_element_width_inv
        )
        pos_y = _round_half_away(
            (keypoint.y - self.bounds.min_y) * self.grid_element_height_inv
        )
        if not (0 <= pos_x < FRAME_GRID_COLS and 0 <= pos_y < FRAME_GRID_ROWS):
            return None
        return pos_x, pos_y

    def features_in_area(
        self, x: float, y: float, r: float, min_level: int = -1, max_level: int = -1
    ) -> list[int]:
        """Indices of undistorted keypoints within ``r`` of ``(x, y)`` on each axis."""
        min_cell_x = max(
            0, math.floor((x - self.bounds.min_x - r) * self.grid_element_width_inv)
        )
        if min_cell_x >= FRAME_GRID_COLS:
            return []
        max_cell_x = min(
            FRAME_GRID_COLS - 1,
            math.ceil((x - self.bounds.min_x + r) * self.grid_element_width_inv),
        )
        if max_cell_x < 0:
            return []
        min_cell_y = max(
            0, math.floor((y - self.bounds.min_y - r) * self.grid_element_height_inv)
        )
        if min_cell_y >= FRAME_GRID_ROWS:
            return []
        max_cell_y = min(
            FRAME_GRID_ROWS - 1,
            math.ceil((y - self.bounds.min_y + r) * self.grid_element_height_inv),
        )
        if max_cell_y < 0:
            return []

        check_levels = min_level > 0 or max_level >= 0
        found: list[int] = []
        for ix in range(min_cell_x, max_cell_x + 1):
            for iy in range(min_cell_y, max_cell_y + 1):
                for index in self.grid[ix][iy]:
                    kp = self.keys_un[index]
                    if check_levels:
                        if kp.octave < min_level:
                            continue
                        if max_level >= 0 and kp.octave > max_level:
                            continue
                    if abs(kp.x - x) < r and abs(kp.y - y) < r:
                        found.append(index)
        return found

    def compute_stereo_from_depth(self, depth) -> None:
        """Fill depth and virtual right coordinate from a registered depth map."""
        image = np.asarray(depth, dtype=float)
        self.right = [-1.0] * self.n
        self.depth = [-1.0] * self.n
        for index, (kp, kp_un) in enumerate(zip(self.keys, self.keys_un)):
            d = float(image[int(kp.y), int(kp.x)])
            if d > 0:
                self.depth[index] = d
                self.right[index] = kp_un.x - self.bf / d

    def compute_stereo_matches(
        self, right_keypoints, right_descriptors, left_pyramid, right_pyramid
    ) -> None:
        """Match left keypoints along epipolar rows of the right image and
        refine each match to sub-pixel accuracy by patch correlation."""
        self.keys_right = list(right_keypoints)
        self.descriptors_right = np.asarray(right_descriptors, dtype=np.uint8)
        self.right = [-1.0] * self.n
        self.depth = [-1.0] * self.n

        th_orb_dist = (TH_HIGH + TH_LOW) // 2
        n_rows = np.asarray(left_pyramid[0]).shape[0]

        row_indices: list[list[int]] = [[] for _ in range(n_rows)]
        for index_r, kp in enumerate(self.keys_right):
            radius = 2.0 * self.scale_factors[kp.octave]
            top = max(0, math.floor(kp.y - radius))
            bottom = min(n_rows - 1, math.ceil(kp.y + radius))
            for row in range(top, bottom + 1):
                row_indices[row].append(index_r)

        min_d = 0.0
        max_d = self.bf / self.baseline
        dist_idx: list[tuple[int, int]] = []
        w = 5
        span = 5

        for index_l, kp_l in enumerate(self.keys):
            row = int(kp_l.y)
            if not 0 <= row < n_rows:
                continue
            candidates = row_indices[row]
            if not candidates:
                continue
            min_u = kp_l.x - max_d
            max_u = kp_l.x - min_d
            if max_u < 0:
                continue

            best_dist = TH_HIGH
            best_idx_r = 0
            for index_r in candidates:
                kp_r = self.keys_right[index_r]
                if kp_r.octave < kp_l.octave - 1 or kp_r.octave > kp_l.octave + 1:
                    continue
                if min_u <= kp_r.x <= max_u:
                    dist = descriptor_distance(
                        self.descriptors[index_l], self.descriptors_right[index_r]
                    )
                    if dist < best_dist:
                        best_dist = dist
                        best_idx_r = index_r

            if best_dist >= th_orb_dist:
                continue

            octave = kp_l.octave
            scale = self.inv_scale_factors[octave]
            scaled_ul = _round_half_away(kp_l.x * scale)
            scaled_vl = _round_half_away(kp_l.y * scale)
            scaled_ur0 = _round_half_away(self.keys_right[best_idx_r].x * scale)

            left_image = np.asarray(left_pyramid[octave])
            right_image = np.asarray(right_pyramid[octave])
            patch_l = _patch(left_image, scaled_vl, scaled_ul, w)
            if patch_l is None:
                continue

            ini_u = scaled_ur0 + span - w
            end_u = scaled_ur0 + span + w + 1
            if ini_u < 0 or end_u >= right_image.shape[1]:
                continue

            best_sad = None
            best_inc = 0
            dists: list[float] = []
            for inc in range(-span, span + 1):
                patch_r = _patch(right_image, scaled_vl, scaled_ur0 + inc, w)
                if patch_r is None:
                    break
                dist = float(np.abs(patch_l - patch_r).sum())
                if best_sad is None or dist < best_sad:
                    best_sad = int(dist)
                    best_inc = inc
                dists.append(dist)
            else:
                if best_inc in (-span, span):
                    continue
                dist1 = dists[span + best_inc - 1]
                dist2 = dists[span + best_inc]
                dist3 = dists[span + best_inc + 1]
                denom = 2.0 * (dist1 + dist3 - 2.0 * dist2)
                if denom == 0.0:
                    continue
                delta_r = (dist1 - dist3) / denom
                if delta_r < -1 or delta_r > 1:
                    continue

                best_ur = self.scale_factors[octave] * (scaled_ur0 + best_inc + delta_r)
                disparity = kp_l.x - best_ur
                if min_d <= disparity < max_d:
                    if disparity <= 0:
                        disparity = 0.01
                        best_ur = kp_l.x - 0.01
                    self.depth[index_l] = self.bf / disparity
                    self.right[index_l] = best_ur
                    dist_idx.append((best_sad, index_l))

        if not dist_idx:
            return
        dist_idx.sort()
        median = dist_idx[len(dist_idx) // 2][0]
        th_dist = 1.5 * 1.4 * median
        for dist, index_l in reversed(dist_idx):
            if dist < th_dist:
                break
            self.right[index_l] = -1.0
            self.depth[index_l] = -1.0

    def unproject_stereo(self, index: int) -> np.ndarray | None:
        """World position of keypoint ``index`` from its depth, or None."""
        z = self.depth[index]
        if z <= 0:
            return None
        if self.rwc is None or self.camera_center is None:
            raise RuntimeError("frame pose has not been set")
        kp = self.keys_un[index]
        x = (kp.x - self.cx) * z * self.invfx
        y = (kp.y - self.cy) * z * self.invfy
        return self.rwc @ np.array([x, y, z]) + self.camera_center