"""
Environment Monitor — pre-recording readiness from the live landmark stream.

Runs while the recorder is idle. Nothing is buffered: each incoming result
is scored for lighting (mean point visibility) and hand presence, and a
reading is produced for the UI. Advisory only; the caller decides whether
`can_proceed` must be true before the start control is enabled.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional

from signcapture.config import ENVIRONMENT_SMOOTHING, MIN_HAND_VISIBILITY, MIN_LIGHTING_QUALITY
from signcapture.core.landmarks import Frame, LandmarkResult
from signcapture.core.quality import frame_hand_presence, frame_lighting, hand_label, lighting_label

log = logging.getLogger("environment")


@dataclass(frozen=True)
class EnvironmentReading:
    lighting_quality: float
    hand_visibility: float
    can_proceed: bool
    lighting_label: str
    hand_label: str
    message: Optional[str] = None


def remediation(lighting_quality: float, hand_visibility: float) -> Optional[str]:
    """Short fix-it text, or None when both checks pass."""
    tips = []
    if lighting_quality < MIN_LIGHTING_QUALITY:
        tips.append("Too dark - move to a brighter area or face a light source")
    if hand_visibility < MIN_HAND_VISIBILITY:
        tips.append("Raise your hands into the camera view")
    return ". ".join(tips) or None


def assess(result: LandmarkResult) -> EnvironmentReading:
    """Raw (unsmoothed) reading for a single detector result."""
    frame = Frame.from_result(result, frame_number=0, timestamp=0.0)
    return _reading(frame_lighting(frame), frame_hand_presence(frame))


def _reading(lighting: float, hands: float) -> EnvironmentReading:
    ok = lighting >= MIN_LIGHTING_QUALITY and hands >= MIN_HAND_VISIBILITY
    return EnvironmentReading(
        lighting_quality=lighting,
        hand_visibility=hands,
        can_proceed=ok,
        lighting_label=lighting_label(lighting),
        hand_label=hand_label(hands),
        message=None if ok else remediation(lighting, hands),
    )


class EnvironmentMonitor:
    """
    Stateful wrapper over assess(): applies EMA smoothing to the displayed
    meter values so they don't flicker frame-to-frame. The readiness gate is
    never smoothed. smoothing=1.0 reports raw values.
    """

    def __init__(self, smoothing: float = ENVIRONMENT_SMOOTHING):
        if not 0.0 < smoothing <= 1.0:
            raise ValueError("smoothing must be in (0, 1]")
        self._smoothing = smoothing
        self._lighting: Optional[float] = None
        self._hands: Optional[float] = None
        self._last: Optional[EnvironmentReading] = None
        self._was_ready = False

    @property
    def last_reading(self) -> Optional[EnvironmentReading]:
        return self._last

    def reset(self):
        self._lighting = None
        self._hands = None
        self._last = None
        self._was_ready = False

    def update(self, result: LandmarkResult) -> EnvironmentReading:
        """Meter values are smoothed; can_proceed and message come from this frame alone."""
        raw = assess(result)
        a = self._smoothing
        if self._lighting is None:
            self._lighting = raw.lighting_quality
            self._hands = raw.hand_visibility
        else:
            self._lighting = a * raw.lighting_quality + (1 - a) * self._lighting
            self._hands = a * raw.hand_visibility + (1 - a) * self._hands

        reading = replace(
            raw,
            lighting_quality=self._lighting,
            hand_visibility=self._hands,
            lighting_label=lighting_label(self._lighting),
            hand_label=hand_label(self._hands),
        )
        if reading.can_proceed != self._was_ready:
            log.info("Environment %s (lighting=%.2f %s, hands=%.2f %s)",
                     "READY" if reading.can_proceed else "NOT READY",
                     raw.lighting_quality, raw.lighting_label,
                     raw.hand_visibility, raw.hand_label)
            self._was_ready = reading.can_proceed
        self._last = reading
        return reading
