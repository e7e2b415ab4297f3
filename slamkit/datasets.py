"""Loaders for monocular image sequences and helpers shared by the runners."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Sequence


class DatasetError(Exception):
    """Raised when a dataset index file is missing or malformed."""


@dataclass
class MonoSequence:
    """Image paths with the timestamp of each image, in playback order."""

    images: list[str] = field(default_factory=list)
    timestamps: list[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.images)

    def __iter__(self) -> Iterator[tuple[str, float]]:
        return iter(zip(self.images, self.timestamps))


def find_file(base_name: str, path_hint: str) -> str:
    """Return ``base_name`` if it exists, else ``path_hint + base_name`` if that
    exists, else ``base_name`` unchanged."""
    if os.path.exists(base_name):
        return base_name
    candidate = path_hint + base_name
    if os.path.exists(candidate):
        return candidate
    return base_name


def _read_lines(path: str | os.PathLike) -> list[str]:
    with open(path, encoding="utf-8") as handle:
        return handle.read().split("\n")


def _parse_time(line: str, path: str | os.PathLike) -> float:
    tokens = line.split()
    if not tokens:
        raise DatasetError(f"Missing timestamp in {path}: {line!r}")
    try:
        return float(tokens[0])
    except ValueError as exc:
        raise DatasetError(f"Bad timestamp in {path}: {tokens[0]!r}") from exc


def _require(path: str | os.PathLike, what: str) -> None:
    if not os.path.exists(path):
        raise DatasetError(f"Could not find the {what} {path}")


def load_euroc_mono(image_dir: str, times_file: str) -> MonoSequence:
    """Load a EuRoC sequence: each line of ``times_file`` names an image by its
    timestamp in nanoseconds."""
    _require(times_file, "EuRoC timestamp file")
    sequence = MonoSequence()
    for line in _read_lines(times_file):
        if not line:
            continue
        sequence.images.append(f"{image_dir}/{line}.png")
        sequence.timestamps.append(_parse_time(line, times_file) / 1e9)
    return sequence


def load_kitti_mono(sequence_dir: str) -> MonoSequence:
    """Load the left camera of a KITTI odometry sequence."""
    _require(sequence_dir, "timestamp file")
    times_path = f"{sequence_dir}/times.txt"
    _require(times_path, "timestamp file")
    timestamps = [
        _parse_time(line, times_path) for line in _read_lines(times_path) if line
    ]
    prefix = f"{sequence_dir}/image_0/"
    images = [f"{prefix}{index:06d}.png" for index in range(len(timestamps))]
    return MonoSequence(images, timestamps)


def load_tum_mono(rgb_file: str) -> MonoSequence:
    """Load a TUM sequence from its ``rgb.txt``; image paths are resolved
    against the directory holding that file."""
    _require(rgb_file, "timestamp file")
    lines = _read_lines(rgb_file)
    # Three header lines must be present, each terminated by a newline.
    if len(lines) <= 3:
        raise DatasetError(f"Error reading the header from {rgb_file}")
    base = str(Path(rgb_file).parent)
    sequence = MonoSequence()
    for line in lines[3:]:
        if not line:
            continue
        tokens = line.split()
        sequence.timestamps.append(_parse_time(line, rgb_file))
        name = tokens[1] if len(tokens) > 1 else ""
        sequence.images.append(f"{base}/{name}")
    return sequence


def frame_interval(timestamps: Sequence[float], index: int) -> float:
    """Time to wait after frame ``index`` before the next frame is due."""
    count = len(timestamps)
    if index < count - 1:
        return timestamps[index + 1] - timestamps[index]
    if index > 0:
        return timestamps[index] - timestamps[index - 1]
    return 0.0


def tracking_statistics(times: Sequence[float]) -> tuple[float, float]:
    """Return ``(median, mean)`` of per-frame tracking times.

    The median is the element at position ``n // 2`` of the sorted times.
    """
    if not times:
        raise ValueError("no tracking times recorded")
    ordered = sorted(times)
    return ordered[len(ordered) // 2], sum(ordered) / len(ordered)