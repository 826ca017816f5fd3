"""
Submission Assembler — packages a session for the contribution backend.

  • normalize_frames()   clamps x / y / visibility into [0,1], pads pose to 33,
                         nulls hands that are not exactly 21 points
  • assemble()           gate check + outbound payload (validated by pydantic)
  • interpret_response() success / failure contract → SubmissionResult
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Sequence

from signcapture.config import ACCEPTANCE_THRESHOLD, MIN_FRAMES
from signcapture.core.landmarks import HAND_POINT_COUNT, POSE_POINT_COUNT, Frame, Point
from signcapture.core.quality import QualityBreakdown, check_acceptance
from signcapture.core.recorder import validate_frame_count
from signcapture.core.session import ContributionSession, SessionProgress
from signcapture.schemas import ContributionPayload, ContributionResponse, ErrorDetail, ErrorResponse

log = logging.getLogger("submission")

CLIENT_INFO = "signcapture-cli"

IMPROVING_DELTA = 0.1
STABLE_SPREAD = 0.05

_QUALITY_TOO_LOW = re.compile(r"quality too low: ([0-9.]+)", re.IGNORECASE)


class SubmissionStatus(str, Enum):
    SUCCESS = "success"
    REJECTED = "rejected"
    TRANSPORT_ERROR = "transport_error"


@dataclass
class SubmissionResult:
    """Outcome of one submit call. The session is only touched on SUCCESS."""
    status: SubmissionStatus
    reason: str = ""
    progress: Optional[SessionProgress] = None
    quality_score: Optional[float] = None
    breakdown: Optional[QualityBreakdown] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == SubmissionStatus.SUCCESS

    def to_dict(self) -> dict:
        result = {"status": self.status.value}
        if self.reason:
            result["reason"] = self.reason
        if self.progress is not None:
            result["total_contributions"] = self.progress.total_contributions
            result["progress_percentage"] = self.progress.progress_percentage
        if self.quality_score is not None:
            result["quality_score"] = self.quality_score
        if self.breakdown is not None:
            result["quality_breakdown"] = self.breakdown.to_dict()
        return result

    def __str__(self) -> str:
        if self.ok:
            return "[OK] contribution accepted"
        return f"[{self.status.value.upper()}] {self.reason}"


# ── Normalisation ───────────────────────────────────────────────────────────

def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def normalize_point(point: Point) -> dict:
    return {
        "x": clamp01(point.x),
        "y": clamp01(point.y),
        "z": point.z,
        "visibility": clamp01(point.visibility),
    }


def _normalize_hand(hand: Optional[Sequence[Point]]) -> Optional[list[dict]]:
    if hand is None or len(hand) != HAND_POINT_COUNT:
        return None
    return [normalize_point(p) for p in hand]


def normalize_frame(frame: Frame, frame_number: int) -> dict:
    pose = [normalize_point(p) for p in frame.pose[:POSE_POINT_COUNT]]
    while len(pose) < POSE_POINT_COUNT:
        pose.append(normalize_point(Point.zero()))
    return {
        "frame_number": frame_number,
        "timestamp": max(0.0, frame.timestamp),
        "pose_landmarks": pose,
        "left_hand_landmarks": _normalize_hand(frame.left_hand),
        "right_hand_landmarks": _normalize_hand(frame.right_hand),
        "face_landmarks": None,
    }


def normalize_frames(frames: Sequence[Frame]) -> list[dict]:
    return [normalize_frame(f, i) for i, f in enumerate(frames)]


# ── Multi-attempt statistics ────────────────────────────────────────────────

def quality_variance(qualities: Sequence[float]) -> float:
    """Population variance of the per-attempt quick scores."""
    if not qualities:
        return 0.0
    mean = sum(qualities) / len(qualities)
    return sum((q - mean) ** 2 for q in qualities) / len(qualities)


def improvement_trend(qualities: Sequence[float]) -> str:
    if len(qualities) < 2:
        return "stable"
    delta = qualities[-1] - qualities[0]
    if delta > IMPROVING_DELTA:
        return "improving"
    if delta < -IMPROVING_DELTA:
        return "declining"
    if max(qualities) - min(qualities) < STABLE_SPREAD:
        return "stable"
    return "variable"


def attempt_statistics(session: ContributionSession) -> dict:
    qualities = [round(a.quality, 4) for a in session.attempts]
    return {
        "num_attempts": len(session.attempts),
        "individual_qualities": qualities,
        "individual_durations": [round(a.duration, 3) for a in session.attempts],
        "quality_variance": round(quality_variance(qualities), 6),
        "improvement_trend": improvement_trend(qualities),
    }


# ═════════════════════════════════════════════════════════════════════════════
#  Outbound payload
# ═════════════════════════════════════════════════════════════════════════════

@dataclass
class PreparedSubmission:
    payload: dict
    breakdown: QualityBreakdown
    frame_count: int
    extras: dict = field(default_factory=dict)


def build_payload(
    session: ContributionSession,
    frames: Sequence[Frame],
    client_info: str = CLIENT_INFO,
    now: Optional[datetime] = None,
) -> dict:
    """Outbound record for an already-accepted frame sequence."""
    normalized = normalize_frames(frames)
    now = now or datetime.now(timezone.utc)
    payload = {
        "word": session.word,
        "user_id": session.anonymous_user_id,
        "frames": normalized,
        "duration": normalized[-1]["timestamp"] if normalized else 0.0,
        "metadata": {"client_info": client_info, "timestamp": now.isoformat()},
        "sign_type_movement": session.classification.movement.value,
        "sign_type_hands": session.classification.hand_use.value,
        **attempt_statistics(session),
    }
    # Same bounds the backend enforces
    ContributionPayload.model_validate(payload)
    return payload


def assemble(
    session: ContributionSession,
    *,
    min_frames: int = MIN_FRAMES,
    threshold: float = ACCEPTANCE_THRESHOLD,
    client_info: str = CLIENT_INFO,
) -> PreparedSubmission:
    """
    Consensus → authoritative score → gate → payload.

    Raises InsufficientFramesError or QualityTooLowError before anything is
    sent; the session is left untouched either way.
    """
    consensus = session.consensus()
    validate_frame_count(len(consensus.frames), min_frames)
    breakdown = session.score(consensus)
    check_acceptance(breakdown, threshold)

    payload = build_payload(session, consensus.frames, client_info)
    log.info("[%s] Payload ready: %d frames, %.2fs, %d attempts, score %.2f",
             session.word, len(payload["frames"]), payload["duration"],
             payload["num_attempts"], breakdown.overall)
    return PreparedSubmission(
        payload=payload,
        breakdown=breakdown,
        frame_count=len(consensus.frames),
        extras={"attempt_lengths": list(consensus.attempt_lengths)},
    )


# ═════════════════════════════════════════════════════════════════════════════
#  Inbound contract
# ═════════════════════════════════════════════════════════════════════════════

def parse_quality_score(message: str) -> Optional[float]:
    """Extract the score from a 'quality too low: 0.42' style reason."""
    match = _QUALITY_TOO_LOW.search(message or "")
    if not match:
        return None
    try:
        return float(match.group(1).rstrip("."))
    except ValueError:
        return None


def interpret_success(body: Any) -> SubmissionResult:
    response = ContributionResponse.model_validate(body)
    breakdown = None
    if response.quality_breakdown is not None:
        breakdown = QualityBreakdown.from_dict(response.quality_breakdown.model_dump())
    return SubmissionResult(
        status=SubmissionStatus.SUCCESS,
        progress=SessionProgress(
            total_contributions=response.total_contributions,
            progress_percentage=response.progress_percentage,
        ),
        breakdown=breakdown,
        quality_score=breakdown.overall if breakdown else None,
    )


def interpret_failure(body: Any, status_code: Optional[int] = None) -> SubmissionResult:
    """
    Failure bodies come as {"detail": "reason"} or
    {"detail": {"reason": ..., "quality_breakdown": {...}}}; anything else is
    surfaced as its raw text.
    """
    reason = ""
    breakdown = None
    score = None

    if isinstance(body, dict) and "detail" in body:
        detail = ErrorResponse.model_validate(body).detail
        if isinstance(detail, str):
            reason = detail
        elif isinstance(detail, ErrorDetail):
            reason = detail.reason
            score = detail.quality_score
            if detail.quality_breakdown is not None:
                breakdown = QualityBreakdown.from_dict(detail.quality_breakdown.model_dump())
        else:
            reason = str(detail)
    elif isinstance(body, str):
        reason = body
    else:
        reason = str(body)

    if score is None:
        score = breakdown.overall if breakdown is not None else parse_quality_score(reason)

    return SubmissionResult(
        status=SubmissionStatus.REJECTED,
        reason=reason or f"HTTP {status_code}",
        quality_score=score,
        breakdown=breakdown,
        status_code=status_code,
    )


def apply_result(session: ContributionSession, result: SubmissionResult) -> None:
    """Update session progress on success; failures leave it ready for a retry."""
    if result.ok and result.progress is not None:
        session.mark_submitted(result.progress)
    else:
        log.warning("[%s] Submission not accepted (%s): %s",
                    session.word, result.status.value, result.reason)


def interpret_response(status_code: int, body: Any) -> SubmissionResult:
    if 200 <= status_code < 300:
        return interpret_success(body)
    return interpret_failure(body, status_code)
