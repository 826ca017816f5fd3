import pytest

from signcapture.core.landmarks import HAND_POINT_COUNT, POSE_POINT_COUNT, Frame, LandmarkResult, Point


def test_pose_is_zero_filled_to_33_points():
    frame = Frame(frame_number=0, timestamp=0.0, pose=[Point(0.5, 0.5, 0.0)] * 10)
    assert len(frame.pose) == POSE_POINT_COUNT
    assert frame.pose[9] == Point(0.5, 0.5, 0.0, 1.0)
    assert frame.pose[10] == Point.zero()
    assert frame.pose[32].visibility == 0.0


def test_missing_pose_counts_as_not_detected():
    frame = Frame(frame_number=0, timestamp=0.0)
    assert len(frame.pose) == POSE_POINT_COUNT
    assert not frame.has_pose
    assert frame.available_points() == []


def test_partial_hand_is_treated_as_absent():
    frame = Frame(
        frame_number=0,
        timestamp=0.0,
        left_hand=[Point(0.1, 0.1, 0.0)] * (HAND_POINT_COUNT - 1),
        right_hand=[Point(0.1, 0.1, 0.0)] * HAND_POINT_COUNT,
    )
    assert frame.left_hand is None
    assert frame.right_hand is not None
    assert len(frame.hands) == 1


def test_negative_frame_number_rejected():
    with pytest.raises(ValueError):
        Frame(frame_number=-1, timestamp=0.0)


def test_visibility_defaults_to_one():
    assert Point.from_raw({"x": 0.2, "y": 0.3, "z": -0.5}).visibility == 1.0
    assert Point.from_raw({"x": 0.2, "y": 0.3, "z": -0.5, "visibility": None}).visibility == 1.0
    assert Point.from_raw({"x": 0.2, "y": 0.3, "z": -0.5, "visibility": 0.4}).visibility == 0.4


def test_result_from_relay_envelope_with_wire_keys():
    pose = [{"x": 0.5, "y": 0.5, "z": 0.0, "visibility": 0.9}] * POSE_POINT_COUNT
    hand = [{"x": 0.4, "y": 0.6, "z": 0.0}] * HAND_POINT_COUNT
    event = {"event_id": "evt_1", "landmarks": {"pose_landmarks": pose, "right_hand_landmarks": hand}}

    result = LandmarkResult.from_event(event)

    assert len(result.pose) == POSE_POINT_COUNT
    assert result.left_hand is None
    assert len(result.right_hand) == HAND_POINT_COUNT
    assert result.right_hand[0].visibility == 1.0


def test_empty_parts_are_absent():
    result = LandmarkResult.from_parts(pose=[], left_hand=[], right_hand=None)
    assert result.pose is None
    assert result.left_hand is None


def test_frame_dict_shape(frame_factory):
    data = frame_factory(3, left=False).to_dict()
    assert data["frame_number"] == 3
    assert len(data["pose_landmarks"]) == POSE_POINT_COUNT
    assert data["left_hand_landmarks"] is None
    assert len(data["right_hand_landmarks"]) == HAND_POINT_COUNT
    assert Frame.from_dict(data).right_hand is not None
