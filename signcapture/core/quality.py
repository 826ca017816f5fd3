"""
Quality Scorer — sub-scores, weighted composite and the acceptance gate.

The same pure functions serve both call sites:
  • quick per-attempt estimate right after a stop  → quick_estimate(frames)
  • authoritative breakdown over the consensus      → score_frames(frames)

Composite weights (lighting is tracked but not weighted):
    hand_visibility     0.50
    motion_smoothness   0.30
    frame_completeness  0.20
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

from signcapture.config import (
    ACCEPTANCE_THRESHOLD,
    DEFAULT_SMOOTHNESS_THRESHOLD,
    HAND_VISIBLE_THRESHOLD,
    SMOOTHNESS_REFERENCE_POINT,
    SMOOTHNESS_THRESHOLDS,
)
from signcapture.core.errors import QualityTooLowError
from signcapture.core.landmarks import Frame, Point

log = logging.getLogger("quality")

WEIGHTS = {
    "hand_visibility": 0.50,
    "motion_smoothness": 0.30,
    "frame_completeness": 0.20,
}

# Sub-score below which a recommendation is emitted
RECOMMEND_BELOW = {
    "hand_visibility": 0.5,
    "motion_smoothness": 0.7,
    "frame_completeness": 0.7,
}
LIGHTING_RECOMMEND_BELOW = 0.55

RECOMMENDATIONS = {
    "hand_visibility": "Keep both hands in frame and clearly visible",
    "motion_smoothness": "Make smooth, steady movements - avoid jerky motions",
    "frame_completeness": "Ensure your whole upper body and both hands are visible in the frame",
    "lighting": "Use good lighting so your hands and body are detected reliably",
    "distance": "Position yourself 1-2 meters from the camera",
    "great": "Great recording! This will make a strong contribution",
}


def _clamp01(v: float) -> float:
    if math.isnan(v):
        return 0.0
    return max(0.0, min(1.0, v))


def _mean(values: Sequence[float], empty: float = 0.0) -> float:
    return sum(values) / len(values) if values else empty


# ── Labels ──────────────────────────────────────────────────────────────────

def quality_label(score: float) -> str:
    if score >= 0.85:
        return "Excellent"
    if score >= 0.70:
        return "Good"
    if score >= 0.55:
        return "Acceptable"
    if score >= 0.40:
        return "Poor"
    return "Very Poor"


def lighting_label(score: float) -> str:
    if score >= 0.85:
        return "Excellent"
    if score >= 0.70:
        return "Good"
    if score >= 0.55:
        return "Acceptable"
    if score >= 0.40:
        return "Poor"
    if score >= 0.25:
        return "Very Poor"
    return "Too Dark"


def hand_label(score: float) -> str:
    if score >= 0.85:
        return "Excellent"
    if score >= 0.70:
        return "Good"
    if score >= 0.55:
        return "Acceptable"
    if score >= 0.40:
        return "Poor"
    return "Not Visible"


# ── Per-frame measures (shared with the environment monitor) ───────────────

def point_visibility(points: Sequence[Point]) -> float:
    return _mean([p.visibility for p in points])


def frame_lighting(frame: Frame) -> float:
    """Mean visibility across every available point (pose + hands)."""
    return _clamp01(point_visibility(frame.available_points()))


def frame_hand_presence(frame: Frame) -> float:
    """Mean visibility of whichever hands are present, 0 when none are."""
    hands = frame.hands
    if not hands:
        return 0.0
    return _clamp01(_mean([point_visibility(h) for h in hands]))


def mean_visibility(frames: Sequence[Frame]) -> float:
    return _clamp01(_mean([frame_lighting(f) for f in frames]))


def quick_estimate(frames: Sequence[Frame]) -> float:
    """Fast feedback score for one attempt: its mean point visibility."""
    return mean_visibility(frames)


def smoothness_threshold_for(movement: Optional[str]) -> float:
    return SMOOTHNESS_THRESHOLDS.get(movement or "", DEFAULT_SMOOTHNESS_THRESHOLD)


# ── Sub-scores ──────────────────────────────────────────────────────────────

def hand_visibility_score(frames: Sequence[Frame]) -> float:
    per_frame = []
    for frame in frames:
        visible = sum(1 for hand in frame.hands if point_visibility(hand) > HAND_VISIBLE_THRESHOLD)
        per_frame.append(visible / 2.0)
    return _clamp01(_mean(per_frame))


def motion_smoothness_score(
    frames: Sequence[Frame],
    threshold: float = DEFAULT_SMOOTHNESS_THRESHOLD,
    reference_point: int = SMOOTHNESS_REFERENCE_POINT,
) -> float:
    if threshold <= 0:
        raise ValueError("smoothness threshold must be positive")
    scores = []
    for prev, curr in zip(frames, frames[1:]):
        if not (prev.has_pose and curr.has_pose):
            continue
        a = prev.pose[reference_point]
        b = curr.pose[reference_point]
        distance = math.sqrt((b.x - a.x) ** 2 + (b.y - a.y) ** 2 + (b.z - a.z) ** 2)
        scores.append(max(0.0, 1.0 - distance / threshold))
    return _clamp01(_mean(scores, empty=1.0))


def frame_completeness_score(frames: Sequence[Frame]) -> float:
    per_frame = [
        (int(f.has_pose) + int(f.left_hand is not None) + int(f.right_hand is not None)) / 3.0
        for f in frames
    ]
    return _clamp01(_mean(per_frame))


# ═════════════════════════════════════════════════════════════════════════════
#  Breakdown
# ═════════════════════════════════════════════════════════════════════════════

@dataclass
class QualityBreakdown:
    overall: float
    hand_visibility: float
    motion_smoothness: float
    frame_completeness: float
    lighting_quality: float
    components: dict[str, str] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)

    def passes(self, threshold: float = ACCEPTANCE_THRESHOLD) -> bool:
        return self.overall >= threshold

    @property
    def weakest(self) -> str:
        scores = {name: getattr(self, name) for name in WEIGHTS}
        return min(scores, key=scores.get)

    def to_dict(self) -> dict:
        return {
            "overall_score": round(self.overall, 4),
            "hand_visibility": round(self.hand_visibility, 4),
            "motion_smoothness": round(self.motion_smoothness, 4),
            "frame_completeness": round(self.frame_completeness, 4),
            "lighting_quality": round(self.lighting_quality, 4),
            "components": dict(self.components),
            "recommendations": list(self.recommendations),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QualityBreakdown":
        """Parse a breakdown as sent back by the backend (same shape as to_dict)."""
        overall = data.get("overall_score", data.get("overall", 0.0))
        return cls(
            overall=float(overall or 0.0),
            hand_visibility=float(data.get("hand_visibility", 0.0)),
            motion_smoothness=float(data.get("motion_smoothness", 0.0)),
            frame_completeness=float(data.get("frame_completeness", 0.0)),
            lighting_quality=float(data.get("lighting_quality", 0.0)),
            components=dict(data.get("components") or {}),
            recommendations=list(data.get("recommendations") or []),
        )


def build_recommendations(
    hand_visibility: float,
    motion_smoothness: float,
    frame_completeness: float,
    lighting_quality: float,
    overall: float,
    threshold: float = ACCEPTANCE_THRESHOLD,
) -> list[str]:
    """Weakest sub-score first; always names at least one fix when the gate fails."""
    scores = {
        "hand_visibility": hand_visibility,
        "motion_smoothness": motion_smoothness,
        "frame_completeness": frame_completeness,
    }
    ranked = sorted(scores, key=scores.get)
    flagged = [name for name in ranked if scores[name] < RECOMMEND_BELOW[name]]
    failed = overall < threshold
    if failed and not flagged:
        flagged = ranked[:1]

    recs = [RECOMMENDATIONS[name] for name in flagged]
    if lighting_quality < LIGHTING_RECOMMEND_BELOW:
        recs.append(RECOMMENDATIONS["lighting"])
    if failed:
        recs.append(RECOMMENDATIONS["distance"])
    if not recs:
        recs.append(RECOMMENDATIONS["great"])
    return recs


def score_frames(
    frames: Sequence[Frame],
    *,
    smoothness_threshold: float = DEFAULT_SMOOTHNESS_THRESHOLD,
    reference_point: int = SMOOTHNESS_REFERENCE_POINT,
    threshold: float = ACCEPTANCE_THRESHOLD,
) -> QualityBreakdown:
    """Authoritative quality breakdown for a frame sequence."""
    frames = list(frames)
    hv = hand_visibility_score(frames)
    ms = motion_smoothness_score(frames, smoothness_threshold, reference_point)
    fc = frame_completeness_score(frames)
    lq = mean_visibility(frames)

    overall = _clamp01(
        hv * WEIGHTS["hand_visibility"]
        + ms * WEIGHTS["motion_smoothness"]
        + fc * WEIGHTS["frame_completeness"]
    )

    breakdown = QualityBreakdown(
        overall=overall,
        hand_visibility=hv,
        motion_smoothness=ms,
        frame_completeness=fc,
        lighting_quality=lq,
        components={
            "overall": quality_label(overall),
            "hand_visibility": quality_label(hv),
            "motion_smoothness": quality_label(ms),
            "frame_completeness": quality_label(fc),
            "lighting": lighting_label(lq),
        },
        recommendations=build_recommendations(hv, ms, fc, lq, overall, threshold),
    )
    log.debug(
        "Scored %d frames: overall=%.3f hands=%.3f smooth=%.3f complete=%.3f light=%.3f",
        len(frames), overall, hv, ms, fc, lq,
    )
    return breakdown


def check_acceptance(breakdown: QualityBreakdown, threshold: float = ACCEPTANCE_THRESHOLD) -> None:
    """Raise QualityTooLowError when the composite misses the gate."""
    if not breakdown.passes(threshold):
        log.info("Quality gate failed: %.3f < %.2f (weakest: %s)",
                 breakdown.overall, threshold, breakdown.weakest)
        raise QualityTooLowError(breakdown, threshold)
