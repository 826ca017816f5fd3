"""
Cross-Attempt Averager — one consensus skeleton sequence from aligned attempts.

For every position and point index, x / y / z / visibility are averaged over
the attempts that actually carry that part:
  • pose positions with no contributing attempt become zero points (visibility 0)
  • a hand with no contributing attempt stays absent
Timestamps come from the first attempt. Only relative timing matters downstream.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from signcapture.core.landmarks import (
    POSE_POINT_COUNT,
    Attempt,
    Frame,
    Point,
    array_to_points,
    points_to_array,
)
from signcapture.core.resampler import resample_all

log = logging.getLogger("averager")


def _mean_part(parts: list[Optional[Sequence[Point]]]) -> Optional[tuple[Point, ...]]:
    present = [points_to_array(p) for p in parts if p is not None]
    if not present:
        return None
    return array_to_points(np.mean(np.stack(present), axis=0))


def average_frames(frames: Sequence[Frame], frame_number: int, timestamp: float) -> Frame:
    """Average one aligned position across attempts."""
    pose = _mean_part([f.pose if f.has_pose else None for f in frames])
    return Frame(
        frame_number=frame_number,
        timestamp=timestamp,
        pose=pose or (Point.zero(),) * POSE_POINT_COUNT,
        left_hand=_mean_part([f.left_hand for f in frames]),
        right_hand=_mean_part([f.right_hand for f in frames]),
    )


def average_sequences(sequences: Sequence[Sequence[Frame]]) -> list[Frame]:
    """Average equal-length sequences position by position."""
    if not sequences:
        raise ValueError("average_sequences() needs at least one sequence")
    lengths = {len(s) for s in sequences}
    if len(lengths) != 1:
        raise ValueError(f"sequences must share one length, got {sorted(lengths)}")

    first = sequences[0]
    return [
        average_frames([seq[i] for seq in sequences], frame_number=i, timestamp=first[i].timestamp)
        for i in range(len(first))
    ]


@dataclass(frozen=True)
class Consensus:
    reference_length: int
    frames: tuple[Frame, ...]
    attempt_lengths: tuple[int, ...]


def build_consensus(attempts: Sequence[Attempt]) -> Consensus:
    """Resample every attempt to the reference length and average them."""
    if not attempts:
        raise ValueError("build_consensus() needs at least one attempt")
    t, aligned = resample_all([a.frames for a in attempts])
    frames = average_sequences(aligned)
    log.info("Consensus built from %d attempts → %d frames", len(attempts), t)
    return Consensus(
        reference_length=t,
        frames=tuple(frames),
        attempt_lengths=tuple(a.frame_count for a in attempts),
    )
