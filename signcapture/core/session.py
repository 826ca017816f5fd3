"""
Contribution Session — the single piece of shared mutable state.

Created when a user begins recording a word, appended with completed
Attempts, and discarded once a submission succeeds or the word changes.
Everything derived from it (consensus, breakdown) is recomputed from scratch
on demand, so a retake never leaves stale derived data behind.
"""

import logging
import random
import string
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from signcapture.config import ATTEMPTS_PER_SESSION
from signcapture.core.averager import Consensus, build_consensus
from signcapture.core.errors import SessionStateError
from signcapture.core.landmarks import Attempt
from signcapture.core.quality import QualityBreakdown, score_frames, smoothness_threshold_for

log = logging.getLogger("session")


class SignMovement(str, Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"


class HandUse(str, Enum):
    ONE_HANDED = "one-handed"
    TWO_HANDED = "two-handed"


@dataclass(frozen=True)
class SignClassification:
    movement: SignMovement = SignMovement.DYNAMIC
    hand_use: HandUse = HandUse.TWO_HANDED


@dataclass
class SessionProgress:
    total_contributions: int = 0
    progress_percentage: float = 0.0


def new_anonymous_user_id() -> str:
    """user_<9 base36 chars>_<epoch ms>, generated client-side, never tied to identity."""
    alphabet = string.ascii_lowercase + string.digits
    token = "".join(random.choice(alphabet) for _ in range(9))
    return f"user_{token}_{int(time.time() * 1000)}"


def normalize_word(word: str) -> str:
    return word.strip().upper()


@dataclass
class ContributionSession:
    word: str
    anonymous_user_id: str
    classification: SignClassification = field(default_factory=SignClassification)
    target_attempts: int = ATTEMPTS_PER_SESSION
    attempts: list[Attempt] = field(default_factory=list)
    progress: SessionProgress = field(default_factory=SessionProgress)
    submitted: bool = False

    def __post_init__(self):
        self.word = normalize_word(self.word)
        if not self.word:
            raise ValueError("word must not be empty")
        if self.target_attempts < 1:
            raise ValueError("target_attempts must be >= 1")

    # ── Attempts ─────────────────────────────────────────────────────────

    def add_attempt(self, attempt: Attempt) -> None:
        if self.submitted:
            raise SessionStateError("Session already submitted", detail=self.word)
        if self.is_complete:
            raise SessionStateError(f"Session already has {len(self.attempts)} attempts", detail=self.word)
        self.attempts.append(attempt)
        log.info("[%s] Attempt %d/%d stored (%d frames, quick score %.2f)",
                 self.word, len(self.attempts), self.target_attempts,
                 attempt.frame_count, attempt.quality)

    def retake(self) -> None:
        """Discard every attempt and start collecting again."""
        log.info("[%s] Retake — discarding %d attempts", self.word, len(self.attempts))
        self.attempts.clear()
        self.submitted = False

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def is_complete(self) -> bool:
        return len(self.attempts) >= self.target_attempts

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.target_attempts - len(self.attempts))

    # ── Derived data ─────────────────────────────────────────────────────

    def consensus(self) -> Consensus:
        if not self.attempts:
            raise SessionStateError("No attempts recorded yet", detail=self.word)
        return build_consensus(self.attempts)

    def score(self, consensus: Optional[Consensus] = None) -> QualityBreakdown:
        consensus = consensus or self.consensus()
        threshold = smoothness_threshold_for(self.classification.movement.value)
        return score_frames(consensus.frames, smoothness_threshold=threshold)

    # ── Submission outcome ───────────────────────────────────────────────

    def mark_submitted(self, progress: SessionProgress) -> None:
        self.progress = progress
        self.submitted = True
        self.attempts.clear()
        log.info("[%s] Submitted — %d total contributions (%.0f%%)",
                 self.word, progress.total_contributions, progress.progress_percentage)
