# slamkit

Building blocks for feature-based visual SLAM, written on top of NumPy.

The package provides the parts around a tracking pipeline that can be used
and tested on their own:

- `slamkit.datasets`: loaders for monocular EuRoC, KITTI and TUM sequences,
  plus `find_file`, `frame_interval` and `tracking_statistics`.
- `slamkit.multiview`: loaders for EuRoC and KITTI stereo sequences and TUM
  RGB-D association files.
- `slamkit.frame`: `Frame`, which holds keypoints and binary descriptors,
  sorts them into a search grid, and derives stereo depth from a depth map
  or from a rectified left/right image pyramid.
- `slamkit.geometry`: the direct linear homography, the eight-point
  fundamental matrix, point normalization, linear triangulation and the
  decomposition of an essential matrix.
- `slamkit.initializer`: two-view map initialization with RANSAC over both
  a homography and a fundamental matrix.
- `slamkit.converter`: conversions between rotation/translation pairs, 4x4
  transforms, similarity transforms and quaternions.
- `slamkit.status`: tracking states and the status text shown on a viewer
  overlay.

## Installation

slamkit needs Python 3.10 or later and NumPy. Install it from a checkout
with your usual installer; the `test` extra adds pytest.

## Loading a sequence

```python
from slamkit.datasets import find_file, load_tum_mono, tracking_statistics

sequence = load_tum_mono("rgbd_dataset_freiburg1_xyz/rgb.txt")
for image_path, timestamp in sequence:
    ...
settings = find_file("TUM1.yaml", "/usr/share/slam/Monocular/")
```

`find_file` returns the name as given if it exists, otherwise the hint
directory joined in front of it if that exists, otherwise the name as given.

`load_euroc_mono(image_dir, times_file)` reads nanosecond timestamps and
names each image after its timestamp. `load_kitti_mono(sequence_dir)` reads
`times.txt` and names the images `image_0/000000.png` and onwards.
`load_tum_mono(rgb_file)` skips three header lines and resolves image names
against the directory holding the file. A missing or malformed index file
raises `DatasetError`.

`frame_interval(timestamps, index)` gives how long a player should wait after
a frame: the gap to the next timestamp, the gap to the previous one for the
last frame, and 0 for a single frame. `tracking_statistics(times)` returns
the median (the element at `n // 2` of the sorted times) and the mean; it
raises `ValueError` for an empty list.

Stereo and RGB-D sequences come from `slamkit.multiview`:

```python
from slamkit.multiview import load_euroc_stereo, load_kitti_stereo, load_tum_rgbd

stereo = load_kitti_stereo("sequences/00")     # StereoSequence
rgbd = load_tum_rgbd("associations/fr1_desk.txt")  # RGBDSequence
for rgb_name, depth_name, timestamp in rgbd:
    ...
```

An association line must hold `t_rgb rgb_name t_depth depth_name`; shorter
lines raise `DatasetError`.

## Frames

```python
import numpy as np
from slamkit.frame import Frame, KeyPoint

frame = Frame(
    keypoints, descriptors, timestamp,
    camera_matrix, dist_coef, bf, th_depth,
    image_size, scale_factors,
)
frame.compute_stereo_from_depth(depth)       # RGB-D
frame.set_pose(np.eye(4))
point = frame.unproject_stereo(0)            # world point, or None without depth
nearby = frame.features_in_area(320.0, 240.0, 15.0, 0, -1)
```

Keypoints are undistorted with `undistort_points` when the first distortion
coefficient is non-zero, and the grid covers the bounds returned by
`compute_image_bounds`. `unproject_stereo` raises `RuntimeError` if the pose
has not been set. Descriptors are compared with `descriptor_distance`, the
Hamming distance between two descriptor rows.

## Initializing a map from two views

```python
from slamkit.initializer import Initializer

init = Initializer(reference_keys, camera_matrix, 1.0, 200, 0)
result = init.initialize(current_keys, matches)
if result is not None:
    rotation, translation = result.rotation, result.translation
    points = result.points          # per reference keypoint, or None
```

`matches[i]` is the index of the current keypoint matched to reference
keypoint `i`, or a negative number for none. At least eight matches are
needed, otherwise `ValueError` is raised. The same seed always draws the same
RANSAC samples. When the homography scores above 40% of the combined score
the motion comes from `reconstruct_h`, otherwise from `reconstruct_f`; either
returns `None` when no hypothesis is a clear winner.

## Pose conversions and status text

```python
from slamkit.converter import se3_matrix, rotation_to_quaternion, quaternion_to_rotation
from slamkit.status import TrackingState, status_text

transform = se3_matrix(rotation, translation)
x, y, z, w = rotation_to_quaternion(rotation)
text = status_text(TrackingState.OK, False, 12, 830, 154, 0)
```

`ar_status(state, localization_mode)` gives the overlay text and colour for
an augmented-reality view, and `classify_matches` splits tracked keypoints
into visual-odometry and map matches.

## What slamkit does not do

slamkit does not read or decode images, extract ORB features, or run a
tracking, mapping or loop-closing pipeline, and it has no viewer and no
command-line program. It does not fit planes to map points for
augmented-reality overlays. Callers supply keypoints, descriptors, image
pyramids and depth maps themselves.

## Running the tests

The tests use pytest and live in `tests/`.