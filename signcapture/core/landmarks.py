"""
Landmark Frame Model — the shared point / frame / attempt shapes.

Every other component operates on these types. A Frame always carries a
33-point pose (missing points are zero-filled placeholders with visibility 0)
and each hand is either a complete 21-point set or absent (None).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

import numpy as np

POSE_POINT_COUNT = 33
HAND_POINT_COUNT = 21

# Column order used whenever points are packed into numpy arrays
COORDS = ("x", "y", "z", "visibility")


@dataclass(frozen=True)
class Point:
    x: float
    y: float
    z: float
    visibility: float = 1.0

    @classmethod
    def zero(cls) -> "Point":
        return cls(0.0, 0.0, 0.0, 0.0)

    @classmethod
    def from_raw(cls, raw: Any) -> "Point":
        """Build a Point from a dict or any object exposing x/y/z(/visibility)."""
        if isinstance(raw, dict):
            x, y, z = raw.get("x", 0.0), raw.get("y", 0.0), raw.get("z", 0.0)
            visibility = raw.get("visibility")
        else:
            x, y, z = getattr(raw, "x", 0.0), getattr(raw, "y", 0.0), getattr(raw, "z", 0.0)
            visibility = getattr(raw, "visibility", None)
        if visibility is None:
            visibility = 1.0
        return cls(float(x), float(y), float(z), float(visibility))

    @property
    def is_placeholder(self) -> bool:
        return self.x == 0.0 and self.y == 0.0 and self.z == 0.0 and self.visibility == 0.0

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "z": self.z, "visibility": self.visibility}


def _points(raw: Optional[Iterable[Any]]) -> Optional[tuple[Point, ...]]:
    if raw is None:
        return None
    pts = tuple(p if isinstance(p, Point) else Point.from_raw(p) for p in raw)
    return pts or None


def _pose(raw: Optional[Iterable[Any]]) -> tuple[Point, ...]:
    pts = _points(raw) or ()
    pts = pts[:POSE_POINT_COUNT]
    if len(pts) < POSE_POINT_COUNT:
        pts = pts + (Point.zero(),) * (POSE_POINT_COUNT - len(pts))
    return pts


def _hand(raw: Optional[Iterable[Any]]) -> Optional[tuple[Point, ...]]:
    pts = _points(raw)
    if pts is None or len(pts) != HAND_POINT_COUNT:
        return None
    return pts


def points_to_array(points: Sequence[Point]) -> np.ndarray:
    """Pack points into an (n, 4) float array ordered x, y, z, visibility."""
    return np.array([[p.x, p.y, p.z, p.visibility] for p in points], dtype=np.float64).reshape(-1, 4)


def array_to_points(arr: np.ndarray) -> tuple[Point, ...]:
    return tuple(Point(float(r[0]), float(r[1]), float(r[2]), float(r[3])) for r in arr)


# ═════════════════════════════════════════════════════════════════════════════
#  Inbound stream contract
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LandmarkResult:
    """One detector callback: pose (0|33), hands (0|21 each), face (ignored)."""
    pose: Optional[tuple[Point, ...]] = None
    left_hand: Optional[tuple[Point, ...]] = None
    right_hand: Optional[tuple[Point, ...]] = None
    face: Optional[tuple[Point, ...]] = None

    @classmethod
    def from_parts(cls, pose=None, left_hand=None, right_hand=None, face=None) -> "LandmarkResult":
        return cls(
            pose=_points(pose),
            left_hand=_points(left_hand),
            right_hand=_points(right_hand),
            face=_points(face),
        )

    @classmethod
    def from_event(cls, event: dict) -> "LandmarkResult":
        """
        Parse a stream event. Accepts the relay envelope
        ({"landmarks": {...}}) or a bare landmark dict, with either the short
        keys (pose, left_hand, ...) or the *_landmarks wire keys.
        """
        body = event.get("landmarks", event)

        def pick(short: str):
            value = body.get(short)
            if value is None:
                value = body.get(f"{short}_landmarks")
            return value

        return cls.from_parts(
            pose=pick("pose"),
            left_hand=pick("left_hand"),
            right_hand=pick("right_hand"),
            face=pick("face"),
        )

    def to_dict(self) -> dict:
        def dump(pts):
            return [p.to_dict() for p in pts] if pts else None
        return {
            "pose": dump(self.pose),
            "left_hand": dump(self.left_hand),
            "right_hand": dump(self.right_hand),
            "face": dump(self.face),
        }


# ═════════════════════════════════════════════════════════════════════════════
#  Frame / Attempt
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Frame:
    frame_number: int
    timestamp: float
    pose: tuple[Point, ...] = ()
    left_hand: Optional[tuple[Point, ...]] = None
    right_hand: Optional[tuple[Point, ...]] = None

    def __post_init__(self):
        if self.frame_number < 0:
            raise ValueError(f"frame_number must be >= 0, got {self.frame_number}")
        object.__setattr__(self, "pose", _pose(self.pose))
        object.__setattr__(self, "left_hand", _hand(self.left_hand))
        object.__setattr__(self, "right_hand", _hand(self.right_hand))

    @classmethod
    def from_result(cls, result: LandmarkResult, frame_number: int, timestamp: float) -> "Frame":
        return cls(
            frame_number=frame_number,
            timestamp=timestamp,
            pose=result.pose or (),
            left_hand=result.left_hand,
            right_hand=result.right_hand,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "Frame":
        return cls(
            frame_number=int(data.get("frame_number", 0)),
            timestamp=float(data.get("timestamp", 0.0)),
            pose=data.get("pose_landmarks") or (),
            left_hand=data.get("left_hand_landmarks"),
            right_hand=data.get("right_hand_landmarks"),
        )

    # ── Presence ─────────────────────────────────────────────────────────

    @property
    def has_pose(self) -> bool:
        return not all(p.is_placeholder for p in self.pose)

    @property
    def hands(self) -> list[tuple[Point, ...]]:
        return [h for h in (self.left_hand, self.right_hand) if h is not None]

    def available_points(self) -> list[Point]:
        """Pose points (when a pose was detected) plus every present hand point."""
        pts: list[Point] = list(self.pose) if self.has_pose else []
        for hand in self.hands:
            pts.extend(hand)
        return pts

    def to_dict(self) -> dict:
        return {
            "frame_number": self.frame_number,
            "timestamp": self.timestamp,
            "pose_landmarks": [p.to_dict() for p in self.pose],
            "left_hand_landmarks": [p.to_dict() for p in self.left_hand] if self.left_hand else None,
            "right_hand_landmarks": [p.to_dict() for p in self.right_hand] if self.right_hand else None,
            "face_landmarks": None,
        }


@dataclass(frozen=True)
class Attempt:
    """A completed recording. Immutable once stored."""
    frames: tuple[Frame, ...]
    quality: float
    duration: float

    @property
    def frame_count(self) -> int:
        return len(self.frames)
