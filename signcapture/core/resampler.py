"""
Temporal Resampler — aligns attempts of differing frame counts to one length.

The reference length T is the lower median of the attempt lengths. Because the
lower median of a list is always one of its elements, T is guaranteed to be an
actual attempt length.

Each attempt of length L ≠ T is linearly interpolated onto T positions:

    s = i * (L - 1) / (T - 1)       i ∈ [0, T-1]
    out[i] = lerp(frame[floor(s)], frame[ceil(s)], s - floor(s))
"""

import logging
import math
from typing import Optional, Sequence

import numpy as np

from signcapture.core.landmarks import Frame, Point, array_to_points, points_to_array

log = logging.getLogger("resampler")


def reference_length(lengths: Sequence[int]) -> int:
    """Lower median of the attempt lengths."""
    if not lengths:
        raise ValueError("reference_length() needs at least one attempt")
    ordered = sorted(lengths)
    return ordered[(len(ordered) - 1) // 2]


def _lerp(a: np.ndarray, b: np.ndarray, w: float) -> np.ndarray:
    return a + (b - a) * w


def _lerp_points(a: Sequence[Point], b: Sequence[Point], w: float) -> tuple[Point, ...]:
    return array_to_points(_lerp(points_to_array(a), points_to_array(b), w))


def _lerp_hand(a: Optional[tuple[Point, ...]], b: Optional[tuple[Point, ...]], w: float):
    if a is not None and b is not None:
        return _lerp_points(a, b, w)
    return a if a is not None else b


def interpolate_frame(lo: Frame, hi: Frame, weight: float, frame_number: int) -> Frame:
    """Blend two bracketing frames. weight=0 → lo, weight=1 → hi."""
    if weight == 0.0 or lo is hi:
        return Frame(
            frame_number=frame_number,
            timestamp=lo.timestamp,
            pose=lo.pose,
            left_hand=lo.left_hand,
            right_hand=lo.right_hand,
        )
    return Frame(
        frame_number=frame_number,
        timestamp=lo.timestamp + (hi.timestamp - lo.timestamp) * weight,
        pose=_lerp_points(lo.pose, hi.pose, weight),
        left_hand=_lerp_hand(lo.left_hand, hi.left_hand, weight),
        right_hand=_lerp_hand(lo.right_hand, hi.right_hand, weight),
    )


def resample(frames: Sequence[Frame], target: int) -> list[Frame]:
    """Resample a frame sequence to exactly `target` frames."""
    if target < 1:
        raise ValueError(f"target length must be >= 1, got {target}")
    frames = list(frames)
    if not frames:
        raise ValueError("cannot resample an empty sequence")

    length = len(frames)
    if length == target:
        return frames
    if target == 1:
        return [frames[0]]

    out = []
    step = (length - 1) / (target - 1)
    for i in range(target):
        s = i * step
        lo = math.floor(s)
        hi = min(math.ceil(s), length - 1)
        out.append(interpolate_frame(frames[lo], frames[hi], s - lo, frame_number=i))
    return out


def resample_all(sequences: Sequence[Sequence[Frame]],
                 target: Optional[int] = None) -> tuple[int, list[list[Frame]]]:
    """
    Bring every sequence to a common length (the lower-median length unless
    `target` is given). Returns (T, resampled sequences).
    """
    if not sequences:
        raise ValueError("resample_all() needs at least one sequence")
    lengths = [len(s) for s in sequences]
    t = target if target is not None else reference_length(lengths)
    log.info("Resampling %d attempts %s → %d frames", len(sequences), lengths, t)
    return t, [resample(seq, t) for seq in sequences]
