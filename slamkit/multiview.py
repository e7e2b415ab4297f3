"""Loaders for stereo and RGB-D image sequences."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from .datasets import DatasetError, _parse_time, _read_lines, _require


@dataclass
class StereoSequence:
    """Left and right image paths with a shared timestamp per pair."""

    left: list[str] = field(default_factory=list)
    right: list[str] = field(default_factory=list)
    timestamps: list[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.left)

    def __iter__(self) -> Iterator[tuple[str, str, float]]:
        return iter(zip(self.left, self.right, self.timestamps))


@dataclass
class RGBDSequence:
    """Colour and depth image names, relative to the sequence directory."""

    rgb: list[str] = field(default_factory=list)
    depth: list[str] = field(default_factory=list)
    timestamps: list[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rgb)

    def __iter__(self) -> Iterator[tuple[str, str, float]]:
        return iter(zip(self.rgb, self.depth, self.timestamps))


def load_euroc_stereo(left_dir: str, right_dir: str, times_file: str) -> StereoSequence:
    """Load a EuRoC stereo sequence; each line of ``times_file`` names both
    images by their timestamp in nanoseconds."""
    _require(times_file, "EuRoC timestamp file")
    sequence = StereoSequence()
    for line in _read_lines(times_file):
        if not line:
            continue
        sequence.left.append(f"{left_dir}/{line}.png")
        sequence.right.append(f"{right_dir}/{line}.png")
        sequence.timestamps.append(_parse_time(line, times_file) / 1e9)
    return sequence


def load_kitti_stereo(sequence_dir: str) -> StereoSequence:
    """Load both cameras of a KITTI odometry sequence."""
    times_path = f"{sequence_dir}/times.txt"
    _require(times_path, "timestamp file")
    timestamps = [
        _parse_time(line, times_path) for line in _read_lines(times_path) if line
    ]
    names = [f"{index:06d}.png" for index in range(len(timestamps))]
    return StereoSequence(
        left=[f"{sequence_dir}/image_0/{name}" for name in names],
        right=[f"{sequence_dir}/image_1/{name}" for name in names],
        timestamps=timestamps,
    )


def load_tum_rgbd(association_file: str) -> RGBDSequence:
    """Load a TUM RGB-D association file.

    Each line holds ``t_rgb rgb_name t_depth depth_name``; the colour
    timestamp is used for the pair.
    """
    _require(association_file, "association file")
    sequence = RGBDSequence()
    for line in _read_lines(association_file):
        if not line:
            continue
        tokens = line.split()
        timestamp = _parse_time(line, association_file)
        if len(tokens) < 4:
            raise DatasetError(
                f"Incomplete association in {association_file}: {line!r}"
            )
        sequence.timestamps.append(timestamp)
        sequence.rgb.append(tokens[1])
        sequence.depth.append(tokens[3])
    return sequence