import pytest

from signcapture.core.averager import average_frames, average_sequences, build_consensus
from signcapture.core.landmarks import Frame, Point


def _coords(points):
    return [(p.x, p.y, p.z, p.visibility) for p in points]


def test_identical_attempts_average_to_themselves(attempt_factory):
    attempts = [attempt_factory(31) for _ in range(3)]

    consensus = build_consensus(attempts)

    assert consensus.reference_length == 31
    for got, want in zip(consensus.frames, attempts[0].frames):
        assert got.timestamp == pytest.approx(want.timestamp)
        for a, b in zip(_coords(got.pose), _coords(want.pose)):
            assert a == pytest.approx(b)
        for a, b in zip(_coords(got.left_hand), _coords(want.left_hand)):
            assert a == pytest.approx(b)


def test_points_are_averaged_across_attempts():
    a = Frame(0, 0.0, pose=[Point(0.2, 0.2, -0.2, 1.0)] * 33)
    b = Frame(0, 0.1, pose=[Point(0.4, 0.6, 0.2, 0.5)] * 33)

    out = average_frames([a, b], frame_number=0, timestamp=a.timestamp)

    assert _coords(out.pose)[5] == pytest.approx((0.3, 0.4, 0.0, 0.75))


def test_hand_averaged_only_over_contributing_attempts(frame_factory):
    with_hand = frame_factory(0, right=False)
    without = frame_factory(0, left=False, right=False)

    out = average_frames([with_hand, without, without], frame_number=0, timestamp=0.0)

    assert out.right_hand is None
    for a, b in zip(_coords(out.left_hand), _coords(with_hand.left_hand)):
        assert a == pytest.approx(b)


def test_missing_pose_everywhere_gives_zero_points(frame_factory):
    frames = [frame_factory(0, pose=False), frame_factory(0, pose=False)]
    out = average_frames(frames, frame_number=0, timestamp=0.0)
    assert not out.has_pose
    assert all(p == Point.zero() for p in out.pose)


def test_missing_pose_in_one_attempt_ignored(frame_factory):
    present = frame_factory(0)
    out = average_frames([present, frame_factory(0, pose=False)], frame_number=0, timestamp=0.0)
    assert _coords(out.pose)[0] == pytest.approx(_coords(present.pose)[0])


def test_timestamps_come_from_first_sequence(sequence_factory):
    first = sequence_factory(10, t=None)
    second = [Frame(f.frame_number, f.timestamp * 2, pose=f.pose) for f in sequence_factory(10)]

    out = average_sequences([first, second])

    assert [f.timestamp for f in out] == [f.timestamp for f in first]


def test_sequences_must_share_a_length(sequence_factory):
    with pytest.raises(ValueError):
        average_sequences([sequence_factory(5), sequence_factory(6)])
    with pytest.raises(ValueError):
        average_sequences([])


def test_consensus_is_recomputable(attempt_factory):
    attempts = [attempt_factory(28), attempt_factory(34), attempt_factory(31)]
    assert build_consensus(attempts) == build_consensus(attempts)
