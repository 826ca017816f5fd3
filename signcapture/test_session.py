import re

import pytest

from signcapture.core.errors import SessionStateError
from signcapture.core.landmarks import Attempt
from signcapture.core.session import (
    ContributionSession,
    HandUse,
    SessionProgress,
    SignClassification,
    SignMovement,
    new_anonymous_user_id,
)


def _session(**kwargs):
    return ContributionSession(word=kwargs.pop("word", " hello "), anonymous_user_id="user_test", **kwargs)


def test_word_is_normalised():
    assert _session().word == "HELLO"
    with pytest.raises(ValueError):
        _session(word="   ")


def test_attempts_accumulate_until_complete(attempt_factory):
    session = _session(target_attempts=3)
    for n in range(3):
        assert not session.is_complete
        assert session.remaining_attempts == 3 - n
        session.add_attempt(attempt_factory(30 + n))
    assert session.is_complete
    assert session.attempt_count == 3
    with pytest.raises(SessionStateError):
        session.add_attempt(attempt_factory(30))
    assert session.attempt_count == 3


def test_retake_discards_attempts_and_derived_data(attempt_factory):
    session = _session()
    session.add_attempt(attempt_factory(30, left=False, right=False))
    low = session.score()

    session.retake()
    assert session.attempt_count == 0
    with pytest.raises(SessionStateError):
        session.consensus()

    session.add_attempt(attempt_factory(30))
    assert session.score().overall > low.overall


def test_score_uses_movement_specific_threshold(frame_factory):
    frames = tuple(frame_factory(i, wrist=(0.2 + 0.01 * i, 0.5, 0.0)) for i in range(30))
    attempt = Attempt(frames=frames, quality=1.0, duration=frames[-1].timestamp)
    static = _session(classification=SignClassification(SignMovement.STATIC, HandUse.ONE_HANDED))
    static.add_attempt(attempt)
    assert 0.0 < static.score().motion_smoothness < 1.0


def test_submitted_session_is_closed(attempt_factory):
    session = _session()
    session.add_attempt(attempt_factory(30))
    session.mark_submitted(SessionProgress(total_contributions=4, progress_percentage=40.0))

    assert session.submitted
    assert session.attempt_count == 0
    assert session.progress.total_contributions == 4
    with pytest.raises(SessionStateError):
        session.add_attempt(attempt_factory(30))


def test_anonymous_user_id_format():
    uid = new_anonymous_user_id()
    assert re.fullmatch(r"user_[a-z0-9]{9}_\d{13,}", uid)
