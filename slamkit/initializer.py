"""Two-view map initialisation from a homography or a fundamental matrix."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .geometry import (
    _as_points,
    compute_f21,
    compute_h21,
    decompose_essential,
    normalize,
    triangulate,
)

_HOMOGRAPHY_CHI2 = 5.991
_FUNDAMENTAL_CHI2 = 3.841
_PARALLAX_COS_LIMIT = 0.99998


@dataclass
class Reconstruction:
    """Relative motion of the second view and the triangulated points.

    ``points`` and ``triangulated`` are indexed by reference keypoint; a point
    is None where nothing was triangulated.
    """

    rotation: np.ndarray
    translation: np.ndarray
    points: list[np.ndarray | None]
    triangulated: list[bool]


class Initializer:
    """Recovers the motion between a reference view and a current view."""

    def __init__(
        self,
        reference_keys: Sequence,
        camera_matrix,
        sigma: float = 1.0,
        iterations: int = 200,
        seed: int = 0,
    ) -> None:
        self.keys1 = _as_points(reference_keys)
        self.camera_matrix = np.array(camera_matrix, dtype=float)
        self.sigma = float(sigma)
        self.sigma2 = self.sigma * self.sigma
        self.iterations = int(iterations)
        self._rng = random.Random(seed)
        self.keys2 = np.zeros((0, 2))
        self.matches: list[tuple[int, int]] = []
        self.matched1: list[bool] = [False] * len(self.keys1)
        self.sets: list[list[int]] = []

    def initialize(
        self, current_keys: Sequence, matches: Sequence[int]
    ) -> Reconstruction | None:
        """Estimate motion and structure; ``matches[i]`` is the current
        keypoint matched to reference keypoint ``i``, or negative for none."""
        self.keys2 = _as_points(current_keys)
        self.matches = []
        self.matched1 = [False] * len(self.keys1)
        for index1, index2 in enumerate(matches):
            if index2 >= 0:
                self.matches.append((index1, int(index2)))
                self.matched1[index1] = True

        count = len(self.matches)
        if count < 8:
            raise ValueError("need at least eight matches to initialise")

        all_indices = list(range(count))
        self.sets = []
        for _ in range(self.iterations):
            available = list(all_indices)
            chosen = []
            for _ in range(8):
                pick = self._rng.randint(0, len(available) - 1)
                chosen.append(available[pick])
                available[pick] = available[-1]
                available.pop()
            self.sets.append(chosen)

        inliers_h, score_h, h21 = self.find_homography()
        inliers_f, score_f, f21 = self.find_fundamental()

        total = score_h + score_f
        if total <= 0.0:
            return None
        if score_h / total > 0.40:
            if h21 is None:
                return None
            return self.reconstruct_h(inliers_h, h21, 1.0, 50)
        if f21 is None:
            return None
        return self.reconstruct_f(inliers_f, f21, 1.0, 50)

    def _minimal_sets(self):
        pn1, t1 = normalize(self.keys1)
        pn2, t2 = normalize(self.keys2)
        for chosen in self.sets:
            first = [pn1[self.matches[idx][0]] for idx in chosen]
            second = [pn2[self.matches[idx][1]] for idx in chosen]
            yield first, second, t1, t2

    def find_homography(self) -> tuple[list[bool], float, np.ndarray | None]:
        """RANSAC over the minimal sets; returns ``(inliers, score, H21)``."""
        best_score = 0.0
        best_inliers = [False] * len(self.matches)
        best_h: np.ndarray | None = None
        for first, second, t1, t2 in self._minimal_sets():
            h21 = np.linalg.inv(t2) @ compute_h21(first, second) @ t1
            try:
                h12 = np.linalg.inv(h21)
            except np.linalg.LinAlgError:
                continue
            score, inliers = self.check_homography(h21, h12, self.sigma)
            if score > best_score:
                best_score, best_inliers, best_h = score, inliers, h21.copy()
        return best_inliers, best_score, best_h

    def find_fundamental(self) -> tuple[list[bool], float, np.ndarray | None]:
        """RANSAC over the minimal sets; returns ``(inliers, score, F21)``."""
        best_score = 0.0
        best_inliers = [False] * len(self.matches)
        best_f: np.ndarray | None = None
        for first, second, t1, t2 in self._minimal_sets():
            f21 = t2.T @ compute_f21(first, second) @ t1
            score, inliers = self.check_fundamental(f21, self.sigma)
            if score > best_score:
                best_score, best_inliers, best_f = score, inliers, f21.copy()
        return best_inliers, best_score, best_f

    def _matched_points(self) -> tuple[np.ndarray, np.ndarray]:
        if not self.matches:
            return np.zeros((0, 3)), np.zeros((0, 3))
        idx1 = [m[0] for m in self.matches]
        idx2 = [m[1] for m in self.matches]
        p1 = np.column_stack((self.keys1[idx1], np.ones(len(idx1))))
        p2 = np.column_stack((self.keys2[idx2], np.ones(len(idx2))))
        return p1, p2

    def check_homography(self, h21, h12, sigma) -> tuple[float, list[bool]]:
        """Symmetric transfer-error score of a homography and its inlier flags."""
        p1, p2 = self._matched_points()
        inv_sigma2 = 1.0 / (sigma * sigma)
        h21 = np.asarray(h21, dtype=float)
        h12 = np.asarray(h12, dtype=float)
        with np.errstate(divide="ignore", invalid="ignore"):
            in1 = (h12 @ p2.T).T
            err1 = (p1[:, 0] - in1[:, 0] / in1[:, 2]) ** 2 + (
                p1[:, 1] - in1[:, 1] / in1[:, 2]
            ) ** 2
            in2 = (h21 @ p1.T).T
            err2 = (p2[:, 0] - in2[:, 0] / in2[:, 2]) ** 2 + (
                p2[:, 1] - in2[:, 1] / in2[:, 2]
            ) ** 2
        chi1 = err1 * inv_sigma2
        chi2 = err2 * inv_sigma2
        ok1 = chi1 <= _HOMOGRAPHY_CHI2
        ok2 = chi2 <= _HOMOGRAPHY_CHI2
        score = float(np.sum(_HOMOGRAPHY_CHI2 - chi1[ok1]))
        score += float(np.sum(_HOMOGRAPHY_CHI2 - chi2[ok2]))
        return score, [bool(v) for v in ok1 & ok2]

    def check_fundamental(self, f21, sigma) -> tuple[float, list[bool]]:
        """Epipolar-distance score of a fundamental matrix and its inlier flags."""
        p1, p2 = self._matched_points()
        inv_sigma2 = 1.0 / (sigma * sigma)
        f21 = np.asarray(f21, dtype=float)
        with np.errstate(divide="ignore", invalid="ignore"):
            line2 = (f21 @ p1.T).T
            num2 = np.sum(line2 * p2, axis=1)
            err1 = num2 * num2 / (line2[:, 0] ** 2 + line2[:, 1] ** 2)
            line1 = (f21.T @ p2.T).T
            num1 = np.sum(line1 * p1, axis=1)
            err2 = num1 * num1 / (line1[:, 0] ** 2 + line1[:, 1] ** 2)
        chi1 = err1 * inv_sigma2
        chi2 = err2 * inv_sigma2
        ok1 = chi1 <= _FUNDAMENTAL_CHI2
        ok2 = chi2 <= _FUNDAMENTAL_CHI2
        score = float(np.sum(_HOMOGRAPHY_CHI2 - chi1[ok1]))
        score += float(np.sum(_HOMOGRAPHY_CHI2 - chi2[ok2]))
        return score, [bool(v) for v in ok1 & ok2]

    def reconstruct_f(
        self, inliers, f21, min_parallax=1.0, min_triangulated=50
    ) -> Reconstruction | None:
        """Pick the one of four motions from F21 that triangulates the most points."""
        inlier_count = sum(1 for flag in inliers if flag)
        k = self.camera_matrix
        essential = k.T @ np.asarray(f21, dtype=float) @ k
        r1, r2, t = decompose_essential(essential)
        hypotheses = [(r1, t), (r2, t), (r1, -t), (r2, -t)]
        results = [
            self.check_rt(rot, trans, inliers, 4.0 * self.sigma2)
            for rot, trans in hypotheses
        ]
        goods = [result[0] for result in results]
        max_good = max(goods)
        min_good = max(int(0.9 * inlier_count), min_triangulated)
        similar = sum(1 for good in goods if good > 0.7 * max_good)
        if max_good < min_good or similar > 1:
            return None

        best = goods.index(max_good)
        _, points, good, parallax = results[best]
        if parallax <= min_parallax:
            return None
        rotation, translation = hypotheses[best]
        return Reconstruction(rotation.copy(), translation.copy(), points, good)

    def reconstruct_h(
        self, inliers, h21, min_parallax=1.0, min_triangulated=50
    ) -> Reconstruction | None:
        """Decompose H21 into eight motions and keep a clear winner."""
        inlier_count = sum(1 for flag in inliers if flag)
        k = self.camera_matrix
        a = np.linalg.inv(k) @ np.asarray(h21, dtype=float) @ k
        u, w, vt = np.linalg.svd(a)
        s = np.linalg.det(u) * np.linalg.det(vt)
        d1, d2, d3 = (float(x) for x in w)

        with np.errstate(divide="ignore", invalid="ignore"):
            if d1 / d2 < 1.00001 or d2 / d3 < 1.00001:
                return None

        aux1 = math.sqrt((d1 * d1 - d2 * d2) / (d1 * d1 - d3 * d3))
        aux3 = math.sqrt((d2 * d2 - d3 * d3) / (d1 * d1 - d3 * d3))
        x1 = [aux1, aux1, -aux1, -aux1]
        x3 = [aux3, -aux3, aux3, -aux3]
        root = math.sqrt((d1 * d1 - d2 * d2) * (d2 * d2 - d3 * d3))

        hypotheses: list[tuple[np.ndarray, np.ndarray]] = []

        aux_stheta = root / ((d1 + d3) * d2)
        ctheta = (d2 * d2 + d1 * d3) / ((d1 + d3) * d2)
        stheta = [aux_stheta, -aux_stheta, -aux_stheta, aux_stheta]
        for i in range(4):
            rp = np.eye(3)
            rp[0, 0] = ctheta
            rp[0, 2] = -stheta[i]
            rp[2, 0] = stheta[i]
            rp[2, 2] = ctheta
            tp = np.array([x1[i], 0.0, -x3[i]]) * (d1 - d3)
            t = u @ tp
            hypotheses.append((s * u @ rp @ vt, t / np.linalg.norm(t)))

        aux_sphi = root / ((d1 - d3) * d2)
        cphi = (d1 * d3 - d2 * d2) / ((d1 - d3) * d2)
        sphi = [aux_sphi, -aux_sphi, -aux_sphi, aux_sphi]
        for i in range(4):
            rp = np.eye(3)
            rp[0, 0] = cphi
            rp[0, 2] = sphi[i]
            rp[1, 1] = -1.0
            rp[2, 0] = sphi[i]
            rp[2, 2] = -cphi
            tp = np.array([x1[i], 0.0, x3[i]]) * (d1 + d3)
            t = u @ tp
            hypotheses.append((s * u @ rp @ vt, t / np.linalg.norm(t)))

        best_good = 0
        second_good = 0
        best_index = -1
        best_parallax = -1.0
        best_points: list[np.ndarray | None] = []
        best_triangulated: list[bool] = []
        for index, (rotation, translation) in enumerate(hypotheses):
            good, points, flags, parallax = self.check_rt(
                rotation, translation, inliers, 4.0 * self.sigma2
            )
            if good > best_good:
                second_good = best_good
                best_good = good
                best_index = index
                best_parallax = parallax
                best_points = points
                best_triangulated = flags
            elif good > second_good:
                second_good = good

        if (
            second_good < 0.75 * best_good
            and best_parallax >= min_parallax
            and best_good > min_triangulated
            and best_good > 0.9 * inlier_count
        ):
            rotation, translation = hypotheses[best_index]
            return Reconstruction(
                rotation.copy(), translation.copy(), best_points, best_triangulated
            )
        return None

    def check_rt(
        self, rotation, translation, inliers, th2
    ) -> tuple[int, list[np.ndarray | None], list[bool], float]:
        """Triangulate inlier matches under a motion hypothesis.

        Returns ``(good_count, points, triangulated, parallax_degrees)``.
        """
        rot = np.asarray(rotation, dtype=float)
        trans = np.asarray(translation, dtype=float).ravel()
        k = self.camera_matrix
        fx, fy, cx, cy = k[0, 0], k[1, 1], k[0, 2], k[1, 2]

        size = len(self.keys1)
        good = [False] * size
        points: list[np.ndarray | None] = [None] * size
        cos_parallaxes: list[float] = []

        p1 = np.zeros((3, 4))
        p1[:, :3] = k
        p2 = k @ np.column_stack((rot, trans))
        o2 = -rot.T @ trans

        count = 0
        for (index1, index2), inlier in zip(self.matches, inliers):
            if not inlier:
                continue
            kp1 = self.keys1[index1]
            kp2 = self.keys2[index2]
            p3d1 = triangulate(kp1, kp2, p1, p2)
            if not np.all(np.isfinite(p3d1)):
                good[index1] = False
                continue

            normal1 = p3d1
            normal2 = p3d1 - o2
            dist1 = float(np.linalg.norm(normal1))
            dist2 = float(np.linalg.norm(normal2))
            cos_parallax = float(normal1 @ normal2) / (dist1 * dist2)

            if p3d1[2] <= 0 and cos_parallax < _PARALLAX_COS_LIMIT:
                continue
            p3d2 = rot @ p3d1 + trans
            if p3d2[2] <= 0 and cos_parallax < _PARALLAX_COS_LIMIT:
                continue

            with np.errstate(divide="ignore", invalid="ignore"):
                im1 = np.array(
                    [fx * p3d1[0] / p3d1[2] + cx, fy * p3d1[1] / p3d1[2] + cy]
                )
                if not float(np.sum((im1 - kp1) ** 2)) <= th2:
                    continue
                im2 = np.array(
                    [fx * p3d2[0] / p3d2[2] + cx, fy * p3d2[1] / p3d2[2] + cy]
                )
                if not float(np.sum((im2 - kp2) ** 2)) <= th2:
                    continue

            cos_parallaxes.append(cos_parallax)
            points[index1] = p3d1.copy()
            count += 1
            if cos_parallax < _PARALLAX_COS_LIMIT:
                good[index1] = True

        if count > 0:
            cos_parallaxes.sort()
            index = min(50, len(cos_parallaxes) - 1)
            value = max(-1.0, min(1.0, cos_parallaxes[index]))
            parallax = math.degrees(math.acos(value))
        else:
            parallax = 0.0
        return count, points, good, parallax