"""
Skeleton preview — playback timing plus an OpenCV renderer for frames.

The same drawing routines are used for the live camera overlay and for
replaying a consensus sequence on a black canvas before submission.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import cv2
import numpy as np

from signcapture.config import PREVIEW_FPS
from signcapture.core.landmarks import Frame, Point

# Major body parts only (face mesh is never drawn)
POSE_CONNS = [
    (0, 1), (1, 2), (2, 3), (3, 7), (0, 4), (4, 5), (5, 6), (6, 8),
    (11, 12), (11, 23), (12, 24), (23, 24),
    (11, 13), (13, 15), (15, 17), (15, 19), (15, 21), (17, 19),
    (12, 14), (14, 16), (16, 18), (16, 20), (16, 22), (18, 20),
    (23, 25), (25, 27), (27, 29), (27, 31), (29, 31),
    (24, 26), (26, 28), (28, 30), (28, 32), (30, 32),
]

HAND_CONNS = [
    (0, 1), (1, 2), (2, 3), (3, 4),
    (0, 5), (5, 6), (6, 7), (7, 8),
    (0, 9), (9, 10), (10, 11), (11, 12),
    (0, 13), (13, 14), (14, 15), (15, 16),
    (0, 17), (17, 18), (18, 19), (19, 20),
    (5, 9), (9, 13), (13, 17),
]

# BGR
POSE_COLOR = (255, 200, 0)
LEFT_HAND_COLOR = (0, 255, 120)
RIGHT_HAND_COLOR = (0, 165, 255)
JOINT_COLOR = (255, 255, 255)

MIN_DRAW_VISIBILITY = 0.3


# ── Playback ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PlaybackPosition:
    index: int
    finished: bool


def playback_position(elapsed: float, frame_count: int, fps: int = PREVIEW_FPS) -> PlaybackPosition:
    """Frame index for `elapsed` seconds of playback, clamped to the last frame."""
    if frame_count <= 0:
        return PlaybackPosition(index=0, finished=True)
    index = math.floor(max(0.0, elapsed) * fps)
    if index >= frame_count - 1:
        return PlaybackPosition(index=frame_count - 1, finished=index >= frame_count)
    return PlaybackPosition(index=index, finished=False)


# ── Drawing ─────────────────────────────────────────────────────────────────

def _pixels(points: Sequence[Point], w: int, h: int) -> list[tuple[int, int]]:
    return [(int(p.x * w), int(p.y * h)) for p in points]


def draw_points(canvas, points: Sequence[Point], conns, color, thickness: int = 2):
    h, w = canvas.shape[:2]
    pts = _pixels(points, w, h)
    for s, e in conns:
        if s >= len(points) or e >= len(points):
            continue
        if points[s].visibility < MIN_DRAW_VISIBILITY or points[e].visibility < MIN_DRAW_VISIBILITY:
            continue
        cv2.line(canvas, pts[s], pts[e], color, thickness, cv2.LINE_AA)
    for p, px in zip(points, pts):
        if p.visibility < MIN_DRAW_VISIBILITY:
            continue
        cv2.circle(canvas, px, 3, JOINT_COLOR, -1, cv2.LINE_AA)


def draw_frame(canvas, frame: Frame):
    """Draw pose and hands of one Frame onto a BGR image in place."""
    if frame.has_pose:
        draw_points(canvas, frame.pose, POSE_CONNS, POSE_COLOR)
    if frame.left_hand is not None:
        draw_points(canvas, frame.left_hand, HAND_CONNS, LEFT_HAND_COLOR)
    if frame.right_hand is not None:
        draw_points(canvas, frame.right_hand, HAND_CONNS, RIGHT_HAND_COLOR)
    return canvas


def render_frame(frame: Frame, width: int = 640, height: int = 480,
                 caption: Optional[str] = None) -> np.ndarray:
    canvas = np.zeros((height, width, 3), dtype=np.uint8)
    draw_frame(canvas, frame)
    if caption:
        cv2.putText(canvas, caption, (10, height - 12),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, (160, 160, 160), 1, cv2.LINE_AA)
    return canvas


def play(frames: Sequence[Frame], title: str = "Skeleton Preview", fps: int = PREVIEW_FPS,
         loops: int = 1) -> None:
    """Blocking preview window. ESC closes it early."""
    if not frames:
        return
    delay_ms = max(1, int(1000 / fps))
    try:
        for _ in range(loops):
            for i, frame in enumerate(frames):
                image = render_frame(frame, caption=f"{i + 1}/{len(frames)}  t={frame.timestamp:.2f}s")
                cv2.imshow(title, image)
                if cv2.waitKey(delay_ms) & 0xFF == 27:
                    return
    finally:
        cv2.destroyWindow(title)
