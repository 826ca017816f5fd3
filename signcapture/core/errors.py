"""
Exceptions raised by the capture → align → average → score pipeline.
"""

from typing import Optional


class ContributionError(Exception):
    """Base class for recoverable contribution failures."""


class InsufficientFramesError(ContributionError):
    """Fewer frames than the floor were captured; the user should retake."""

    def __init__(self, frame_count: int, minimum: int):
        self.frame_count = frame_count
        self.minimum = minimum
        super().__init__(
            f"Recording too short ({frame_count} frames, minimum {minimum}). Please try again."
        )


class QualityTooLowError(ContributionError):
    """Composite score under the acceptance threshold. Carries the full breakdown."""

    def __init__(self, breakdown, threshold: float):
        self.breakdown = breakdown
        self.threshold = threshold
        super().__init__(
            f"quality too low: {breakdown.overall:.2f} (minimum {threshold:.2f} required)"
        )


class AttemptAbortedError(ContributionError):
    """The in-progress attempt was cancelled before it completed."""


class SessionStateError(ContributionError):
    """An operation was requested that the session cannot perform right now."""

    def __init__(self, message: str, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(message)
