import pytest

from slamkit.datasets import DatasetError
from slamkit.multiview import (
    RGBDSequence,
    StereoSequence,
    load_euroc_stereo,
    load_kitti_stereo,
    load_tum_rgbd,
)


def test_euroc_stereo_paths_and_times(tmp_path):
    times = tmp_path / "times.txt"
    times.write_text("100\n200\n")
    seq = load_euroc_stereo("L", "R", str(times))
    assert seq.left == ["L/100.png", "L/200.png"]
    assert seq.right == ["R/100.png", "R/200.png"]
    assert seq.timestamps == pytest.approx([100 / 1e9, 200 / 1e9])
    assert len(seq) == 2


def test_euroc_stereo_skips_blank_lines(tmp_path):
    times = tmp_path / "times.txt"
    times.write_text("5\n\n7\n\n")
    seq = load_euroc_stereo("a", "b", str(times))
    assert seq.left == ["a/5.png", "a/7.png"]
    assert len(seq.right) == len(seq.left) == len(seq.timestamps)


def test_euroc_stereo_missing_file(tmp_path):
    with pytest.raises(DatasetError):
        load_euroc_stereo("a", "b", str(tmp_path / "absent.txt"))


def test_euroc_stereo_bad_timestamp(tmp_path):
    times = tmp_path / "times.txt"
    times.write_text("abc\n")
    with pytest.raises(DatasetError):
        load_euroc_stereo("a", "b", str(times))


def test_kitti_stereo_names(tmp_path):
    (tmp_path / "times.txt").write_text("0.0\n0.1\n0.2\n")
    seq = load_kitti_stereo(str(tmp_path))
    assert seq.timestamps == pytest.approx([0.0, 0.1, 0.2])
    assert seq.left[0] == f"{tmp_path}/image_0/000000.png"
    assert seq.right[2] == f"{tmp_path}/image_1/000002.png"
    assert len(seq) == 3


def test_kitti_stereo_missing_times(tmp_path):
    with pytest.raises(DatasetError):
        load_kitti_stereo(str(tmp_path))


def test_kitti_stereo_iteration(tmp_path):
    (tmp_path / "times.txt").write_text("1.5\n")
    seq = load_kitti_stereo(str(tmp_path))
    assert list(seq) == [(seq.left[0], seq.right[0], 1.5)]


def test_tum_rgbd_association(tmp_path):
    assoc = tmp_path / "assoc.txt"
    assoc.write_text("1.0 rgb/1.png 1.01 depth/1.png\n2.0 rgb/2.png 2.02 depth/2.png\n")
    seq = load_tum_rgbd(str(assoc))
    assert seq.rgb == ["rgb/1.png", "rgb/2.png"]
    assert seq.depth == ["depth/1.png", "depth/2.png"]
    assert seq.timestamps == pytest.approx([1.0, 2.0])
    assert list(seq)[1] == ("rgb/2.png", "depth/2.png", 2.0)


def test_tum_rgbd_missing_file(tmp_path):
    with pytest.raises(DatasetError):
        load_tum_rgbd(str(tmp_path / "nope.txt"))


def test_tum_rgbd_incomplete_line(tmp_path):
    assoc = tmp_path / "assoc.txt"
    assoc.write_text("1.0 rgb/1.png\n")
    with pytest.raises(DatasetError):
        load_tum_rgbd(str(assoc))


def test_empty_sequences_have_zero_length():
    assert len(StereoSequence()) == 0
    assert len(RGBDSequence()) == 0
    assert list(RGBDSequence()) == []