"""End-to-end: attempts of unequal length → consensus → score → payload."""

import pytest

from signcapture.core.averager import build_consensus
from signcapture.core.errors import InsufficientFramesError
from signcapture.core.recorder import build_attempt
from signcapture.core.session import ContributionSession
from signcapture.core.submission import assemble


def test_three_unequal_attempts(attempt_factory):
    attempts = [attempt_factory(28), attempt_factory(34), attempt_factory(31)]
    session = ContributionSession(word="water", anonymous_user_id="user_e2e")
    for a in attempts:
        session.add_attempt(a)

    consensus = build_consensus(session.attempts)
    assert consensus.reference_length == 31
    assert len(consensus.frames) == 31
    assert consensus.attempt_lengths == (28, 34, 31)

    payload = assemble(session).payload
    assert len(payload["frames"]) == 31
    assert payload["num_attempts"] == 3
    assert len(payload["individual_qualities"]) == 3
    assert len(payload["individual_durations"]) == 3
    assert payload["individual_durations"] == [round(a.duration, 3) for a in attempts]


def test_recording_floor(sequence_factory):
    with pytest.raises(InsufficientFramesError):
        build_attempt(tuple(sequence_factory(29)))
    assert build_attempt(tuple(sequence_factory(30))).frame_count == 30


def test_consensus_from_degraded_attempt_still_scores(attempt_factory):
    session = ContributionSession(word="go", anonymous_user_id="user_e2e")
    session.add_attempt(attempt_factory(30))
    session.add_attempt(attempt_factory(32, right=False))
    session.add_attempt(attempt_factory(31))

    breakdown = session.score()
    assert breakdown.frame_completeness == pytest.approx(1.0)
    assert 0.0 <= breakdown.overall <= 1.0
