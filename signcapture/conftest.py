import pytest

from signcapture.core.landmarks import HAND_POINT_COUNT, POSE_POINT_COUNT, Attempt, Frame, LandmarkResult, Point
from signcapture.core.quality import quick_estimate

FPS = 30.0


def build_pose(visibility=1.0, wrist=(0.5, 0.5, 0.0)):
    pts = [Point(0.4 + i * 0.005, 0.3 + i * 0.01, -0.1, visibility) for i in range(POSE_POINT_COUNT)]
    pts[15] = Point(wrist[0], wrist[1], wrist[2], visibility)
    return tuple(pts)


def build_hand(visibility=1.0, offset=0.0):
    return tuple(Point(0.3 + offset + i * 0.01, 0.6 - i * 0.01, 0.0, visibility)
                 for i in range(HAND_POINT_COUNT))


def build_frame(i=0, t=None, visibility=1.0, left=True, right=True, pose=True,
                wrist=(0.5, 0.5, 0.0), hand_visibility=None):
    hv = visibility if hand_visibility is None else hand_visibility
    return Frame(
        frame_number=i,
        timestamp=i / FPS if t is None else t,
        pose=build_pose(visibility, wrist) if pose else (),
        left_hand=build_hand(hv) if left else None,
        right_hand=build_hand(hv, offset=0.2) if right else None,
    )


def build_sequence(n, **kwargs):
    return [build_frame(i, **kwargs) for i in range(n)]


def build_attempt(n, **kwargs):
    frames = tuple(build_sequence(n, **kwargs))
    return Attempt(frames=frames, quality=quick_estimate(frames), duration=frames[-1].timestamp)


def build_result(visibility=1.0, left=True, right=True, pose=True):
    return LandmarkResult(
        pose=build_pose(visibility) if pose else None,
        left_hand=build_hand(visibility) if left else None,
        right_hand=build_hand(visibility, offset=0.2) if right else None,
    )


@pytest.fixture
def frame_factory():
    return build_frame


@pytest.fixture
def sequence_factory():
    return build_sequence


@pytest.fixture
def attempt_factory():
    return build_attempt


@pytest.fixture
def result_factory():
    return build_result
