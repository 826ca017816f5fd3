import pytest

from signcapture.core.landmarks import Frame, Point
from signcapture.core.resampler import reference_length, resample, resample_all


def test_reference_length_is_median():
    assert reference_length([28, 34, 31]) == 31
    assert reference_length([40]) == 40


def test_reference_length_even_count_takes_lower_median():
    assert reference_length([40, 10, 30, 20]) == 20
    assert reference_length([30, 33]) == 30


@pytest.mark.parametrize("length", [2, 5, 17, 40])
@pytest.mark.parametrize("target", [1, 2, 10, 31])
def test_resample_yields_exactly_target_frames(sequence_factory, length, target):
    out = resample(sequence_factory(length), target)
    assert len(out) == target
    assert [f.frame_number for f in out] == list(range(target))


def test_same_length_is_unchanged(sequence_factory):
    frames = sequence_factory(12)
    assert resample(frames, 12) == frames


def test_single_target_returns_first_frame(sequence_factory):
    frames = sequence_factory(8)
    assert resample(frames, 1) == [frames[0]]


@pytest.mark.parametrize("length,target", [(28, 31), (34, 31), (7, 3), (3, 29)])
def test_timestamps_non_decreasing(sequence_factory, length, target):
    out = resample(sequence_factory(length), target)
    stamps = [f.timestamp for f in out]
    assert stamps == sorted(stamps)
    assert stamps[0] == pytest.approx(0.0)
    assert stamps[-1] == pytest.approx((length - 1) / 30.0)


def test_linear_interpolation_between_brackets():
    lo = Frame(0, 0.0, pose=[Point(0.0, 0.2, -1.0, 0.5)] * 33)
    hi = Frame(1, 1.0, pose=[Point(1.0, 0.4, 1.0, 1.0)] * 33)

    mid = resample([lo, hi], 3)[1]

    assert mid.timestamp == pytest.approx(0.5)
    p = mid.pose[0]
    assert (p.x, p.y, p.z, p.visibility) == pytest.approx((0.5, 0.3, 0.0, 0.75))


def test_hand_present_on_one_side_passes_through(frame_factory):
    with_hand = frame_factory(0, left=True, right=False)
    without = frame_factory(1, left=False, right=False)

    out = resample([with_hand, without], 3)

    assert out[1].left_hand == with_hand.left_hand
    assert out[1].right_hand is None
    assert out[2].left_hand is None


def test_resample_all_aligns_to_median(sequence_factory):
    t, aligned = resample_all([sequence_factory(28), sequence_factory(34), sequence_factory(31)])
    assert t == 31
    assert [len(a) for a in aligned] == [31, 31, 31]


def test_invalid_inputs(sequence_factory):
    with pytest.raises(ValueError):
        resample(sequence_factory(5), 0)
    with pytest.raises(ValueError):
        resample([], 5)
    with pytest.raises(ValueError):
        reference_length([])
