"""Tracking states and the status text shown alongside each frame."""

from __future__ import annotations

from enum import IntEnum
from typing import Sequence


class TrackingState(IntEnum):
    """State of the tracker."""

    SYSTEM_NOT_READY = -1
    NO_IMAGES_YET = 0
    NOT_INITIALIZED = 1
    OK = 2
    LOST = 3


RED = (255, 0, 0)
GREEN = (0, 255, 0)


def status_text(
    state,
    only_tracking: bool = False,
    keyframes: int = 0,
    map_points: int = 0,
    tracked: int = 0,
    tracked_vo: int = 0,
) -> str:
    """Status line drawn under a frame."""
    state = TrackingState(state)
    if state is TrackingState.NO_IMAGES_YET:
        return " WAITING FOR IMAGES"
    if state is TrackingState.NOT_INITIALIZED:
        return " TRYING TO INITIALIZE "
    if state is TrackingState.OK:
        text = "LOCALIZATION | " if only_tracking else "SLAM MODE |  "
        text += f"KFs: {keyframes}, MPs: {map_points}, Matches: {tracked}"
        if tracked_vo > 0:
            text += f", + VO matches: {tracked_vo}"
        return text
    if state is TrackingState.LOST:
        return " TRACK LOST. TRYING TO RELOCALIZE "
    return " LOADING ORB VOCABULARY. PLEASE WAIT..."


def ar_status(state, localization_mode: bool) -> tuple[str, tuple[int, int, int]] | None:
    """Text and colour shown by the augmented-reality view, or None for no text."""
    try:
        state = TrackingState(state)
    except ValueError:
        return None
    if state is TrackingState.NOT_INITIALIZED:
        return "SLAM NOT INITIALIZED", RED
    prefix = "LOCALIZATION" if localization_mode else "SLAM"
    if state is TrackingState.OK:
        return f"{prefix} ON", GREEN
    if state is TrackingState.LOST:
        return f"{prefix} LOST", RED
    return None


def classify_matches(
    observations: Sequence[int | None], outliers: Sequence[bool]
) -> tuple[list[bool], list[bool]]:
    """Split tracked keypoints into visual-odometry and map matches.

    ``observations`` holds, per keypoint, the observation count of its map
    point or None when it has none. Returns ``(vo, in_map)`` flags.
    """
    if len(observations) != len(outliers):
        raise ValueError("observations and outliers differ in length")
    vo = [False] * len(observations)
    in_map = [False] * len(observations)
    for index, (count, outlier) in enumerate(zip(observations, outliers)):
        if count is None or outlier:
            continue
        if count > 0:
            in_map[index] = True
        else:
            vo[index] = True
    return vo, in_map