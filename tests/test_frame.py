import numpy as np
import pytest

from slamkit.frame import (
    FRAME_GRID_COLS,
    FRAME_GRID_ROWS,
    Frame,
    ImageBounds,
    KeyPoint,
    compute_image_bounds,
    descriptor_distance,
    undistort_points,
)

K = np.array([[500.0, 0.0, 320.0], [0.0, 500.0, 240.0], [0.0, 0.0, 1.0]])


def _distort(points, k1, k2, p1, p2):
    out = []
    for u, v in points:
        x = (u - K[0, 2]) / K[0, 0]
        y = (v - K[1, 2]) / K[1, 1]
        r2 = x * x + y * y
        radial = 1 + k1 * r2 + k2 * r2 * r2
        xd = x * radial + 2 * p1 * x * y + p2 * (r2 + 2 * x * x)
        yd = y * radial + p1 * (r2 + 2 * y * y) + 2 * p2 * x * y
        out.append((xd * K[0, 0] + K[0, 2], yd * K[1, 1] + K[1, 2]))
    return out


def test_descriptor_distance_identical_is_zero():
    d = np.arange(32, dtype=np.uint8)
    assert descriptor_distance(d, d) == 0


def test_descriptor_distance_all_bits():
    assert descriptor_distance(np.zeros(32, np.uint8), np.full(32, 255, np.uint8)) == 256


def test_descriptor_distance_single_bit():
    a = np.zeros(32, np.uint8)
    b = a.copy()
    b[7] = 0b00010000
    assert descriptor_distance(a, b) == 1


def test_descriptor_distance_length_mismatch():
    with pytest.raises(ValueError):
        descriptor_distance(np.zeros(32, np.uint8), np.zeros(16, np.uint8))


def test_undistort_identity_without_distortion():
    pts = np.array([[10.0, 20.0], [320.0, 240.0], [600.0, 400.0]])
    assert np.allclose(undistort_points(pts, K, [0, 0, 0, 0]), pts)


def test_undistort_reverses_distortion():
    original = [(100.0, 80.0), (400.0, 300.0), (550.0, 420.0)]
    distorted = _distort(original, -0.1, 0.01, 0.001, -0.001)
    restored = undistort_points(distorted, K, [-0.1, 0.01, 0.001, -0.001])
    assert np.allclose(restored, original, atol=0.05)


def test_undistort_rejects_short_coefficients():
    with pytest.raises(ValueError):
        undistort_points([[1.0, 2.0]], K, [0.1, 0.0])


def test_image_bounds_without_distortion():
    assert compute_image_bounds(640, 480, K, [0, 0, 0, 0]) == ImageBounds(0.0, 640.0, 0.0, 480.0)


def test_image_bounds_with_distortion_match_corners():
    coef = [-0.2, 0.0, 0.0, 0.0]
    bounds = compute_image_bounds(640, 480, K, coef)
    corners = undistort_points([(0, 0), (640, 0), (0, 480), (640, 480)], K, coef)
    assert bounds.min_x == pytest.approx(min(corners[0, 0], corners[2, 0]))
    assert bounds.max_y == pytest.approx(max(corners[2, 1], corners[3, 1]))
    assert bounds.min_x < 0 < 640 < bounds.max_x


def _frame(keys, **kwargs):
    return Frame(keys, camera_matrix=K, bf=50.0, image_size=(640, 480), **kwargs)


def test_monocular_frame_defaults():
    keys = [KeyPoint(100.0, 100.0), KeyPoint(200.0, 150.0, octave=1)]
    frame = _frame(keys)
    assert frame.n == 2
    assert frame.keys_un == keys
    assert frame.right == [-1.0, -1.0]
    assert frame.depth == [-1.0, -1.0]
    assert frame.map_points == [None, None]
    assert frame.outliers == [False, False]
    assert frame.baseline == pytest.approx(50.0 / 500.0)


def test_frame_ids_increase():
    a = _frame([])
    b = _frame([])
    assert b.id > a.id


def test_grid_holds_each_keypoint_once():
    rng = np.random.default_rng(1)
    keys = [KeyPoint(float(x), float(y)) for x, y in rng.uniform(0, 470, (40, 2))]
    frame = _frame(keys)
    cells = [idx for col in frame.grid for cell in col for idx in cell]
    assert sorted(cells) == list(range(40))
    assert len(frame.grid) == FRAME_GRID_COLS
    assert len(frame.grid[0]) == FRAME_GRID_ROWS


def test_pos_in_grid_outside():
    frame = _frame([])
    assert frame.pos_in_grid(KeyPoint(640.0, 10.0)) is None
    assert frame.pos_in_grid(KeyPoint(-20.0, 10.0)) is None
    assert frame.pos_in_grid(KeyPoint(0.0, 0.0)) == (0, 0)


def test_features_in_area_finds_nearby():
    keys = [KeyPoint(100.0, 100.0), KeyPoint(103.0, 101.0, octave=2), KeyPoint(300.0, 300.0)]
    frame = _frame(keys)
    assert sorted(frame.features_in_area(101.0, 100.0, 5.0)) == [0, 1]
    assert frame.features_in_area(101.0, 100.0, 5.0, 0, 1) == [0]
    assert frame.features_in_area(101.0, 100.0, 5.0, 1) == [1]
    assert frame.features_in_area(300.0, 300.0, 1.0) == [2]


def test_features_in_area_empty_frame():
    assert _frame([]).features_in_area(100.0, 100.0, 50.0) == []


def test_stereo_from_depth():
    keys = [KeyPoint(10.0, 20.0), KeyPoint(30.0, 40.0)]
    depth = np.zeros((480, 640))
    depth[20, 10] = 2.0
    frame = _frame(keys)
    frame.compute_stereo_from_depth(depth)
    assert frame.depth == [2.0, -1.0]
    assert frame.right[0] == pytest.approx(10.0 - 50.0 / 2.0)
    assert frame.right[1] == -1.0


def test_set_pose_camera_center():
    frame = _frame([])
    tcw = np.eye(4)
    tcw[:3, 3] = [1.0, 2.0, 3.0]
    frame.set_pose(tcw)
    assert np.allclose(frame.camera_center, [-1.0, -2.0, -3.0])
    assert np.allclose(frame.rwc @ frame.rcw, np.eye(3))


def test_unproject_projects_back():
    keys = [KeyPoint(400.0, 300.0)]
    depth = np.zeros((480, 640))
    depth[300, 400] = 4.0
    frame = _frame(keys)
    frame.compute_stereo_from_depth(depth)
    frame.set_pose(np.eye(4))
    point = frame.unproject_stereo(0)
    assert point[2] == pytest.approx(4.0)
    assert 500.0 * point[0] / point[2] + 320.0 == pytest.approx(400.0)
    assert 500.0 * point[1] / point[2] + 240.0 == pytest.approx(300.0)


def test_unproject_without_depth_is_none():
    frame = _frame([KeyPoint(1.0, 1.0)])
    frame.set_pose(np.eye(4))
    assert frame.unproject_stereo(0) is None


def test_unproject_without_pose_raises():
    frame = _frame([KeyPoint(10.0, 20.0)])
    depth = np.ones((480, 640))
    frame.compute_stereo_from_depth(depth)
    with pytest.raises(RuntimeError):
        frame.unproject_stereo(0)


def test_stereo_matches_recover_disparity():
    rng = np.random.default_rng(0)
    left = rng.integers(0, 256, (100, 200)).astype(np.int64)
    noise = rng.integers(-2, 3, (100, 200))
    right = np.clip(np.roll(left, -10, axis=1) + noise, 0, 255)
    rows = [20, 35, 50, 65, 80]
    cols = [100, 110, 120, 130, 140]
    keys = [KeyPoint(float(c), float(r)) for c, r in zip(cols, rows)]
    keys.append(KeyPoint(160.0, 50.0))
    desc = rng.integers(0, 256, (6, 32), dtype=np.uint8)
    right_keys = [KeyPoint(float(c - 10), float(r)) for c, r in zip(cols, rows)]
    right_desc = desc[:5]
    frame = Frame(
        keys, desc, camera_matrix=K, bf=50.0, image_size=(200, 100), scale_factors=[1.0]
    )
    frame.compute_stereo_matches(right_keys, right_desc, [left], [right])
    for i, c in enumerate(cols):
        assert abs(frame.right[i] - (c - 10)) < 0.5
        assert frame.depth[i] == pytest.approx(50.0 / (c - frame.right[i]))
    assert frame.right[5] == -1.0
    assert frame.depth[5] == -1.0
    assert frame.keys_right == right_keys


def test_stereo_matches_without_candidates():
    rng = np.random.default_rng(3)
    image = rng.integers(0, 256, (100, 200))
    frame = Frame(
        [KeyPoint(50.0, 50.0)],
        rng.integers(0, 256, (1, 32), dtype=np.uint8),
        camera_matrix=K,
        bf=50.0,
        image_size=(200, 100),
        scale_factors=[1.0],
    )
    frame.compute_stereo_matches([], np.zeros((0, 32), np.uint8), [image], [image])
    assert frame.right == [-1.0]
    assert frame.depth == [-1.0]