"""
Attempt Recorder — bounded-duration capture of one attempt from the landmark stream.

Two layers:
  • transition(state, event) → (state, effects)   pure, synchronous, testable
  • AttemptRecorder                                asyncio driver that owns the
                                                   timers and applies effects

Phases:
    idle → counting_down(n) → recording → stopping → idle

Recording ends on the first of: manual stop, a frame arriving after the soft
target, or the hard-ceiling timer. Stop is idempotent — the progress tick, the
ceiling timer and the user can all race to call it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional, Union

from signcapture.config import (
    COMPLETION_FLASH_SECONDS,
    COUNTDOWN_INTERVAL,
    COUNTDOWN_SECONDS,
    FINISHING_UP_SECONDS,
    MIN_FRAMES,
    PROGRESS_TICK_INTERVAL,
    RECORDING_HARD_CEILING,
    RECORDING_SOFT_TARGET,
)
from signcapture.core.errors import AttemptAbortedError, InsufficientFramesError, SessionStateError
from signcapture.core.landmarks import Attempt, Frame, LandmarkResult
from signcapture.core.quality import quick_estimate

log = logging.getLogger("recorder")


class RecorderPhase(str, Enum):
    IDLE = "idle"
    COUNTING_DOWN = "counting_down"
    RECORDING = "recording"
    STOPPING = "stopping"


class StopReason(str, Enum):
    MANUAL = "manual"
    SOFT_TARGET = "soft_target"
    HARD_CEILING = "hard_ceiling"


@dataclass(frozen=True)
class RecorderSettings:
    countdown: int = COUNTDOWN_SECONDS
    soft_target: float = RECORDING_SOFT_TARGET
    hard_ceiling: float = RECORDING_HARD_CEILING
    completion_delay: float = COMPLETION_FLASH_SECONDS
    min_frames: int = MIN_FRAMES
    finishing_up: float = FINISHING_UP_SECONDS

    def __post_init__(self):
        if self.countdown < 0:
            raise ValueError("countdown must be >= 0")
        if self.hard_ceiling <= self.soft_target:
            raise ValueError("hard_ceiling must be strictly greater than soft_target")


@dataclass(frozen=True)
class RecorderState:
    phase: RecorderPhase = RecorderPhase.IDLE
    countdown: int = 0
    started_at: Optional[float] = None
    frames: tuple[Frame, ...] = ()
    stop_reason: Optional[StopReason] = None

    def elapsed(self, now: float) -> float:
        if self.started_at is None:
            return 0.0
        return max(0.0, now - self.started_at)


# ── Events ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Start:
    now: float


@dataclass(frozen=True)
class CountdownTick:
    now: float


@dataclass(frozen=True)
class FrameArrived:
    result: LandmarkResult
    now: float


@dataclass(frozen=True)
class Tick:
    now: float


@dataclass(frozen=True)
class Stop:
    now: float
    reason: StopReason = StopReason.MANUAL


@dataclass(frozen=True)
class CompletionElapsed:
    pass


@dataclass(frozen=True)
class Abort:
    pass


Event = Union[Start, CountdownTick, FrameArrived, Tick, Stop, CompletionElapsed, Abort]


# ── Effects ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CountdownChanged:
    value: int


@dataclass(frozen=True)
class StartCountdownTimer:
    pass


@dataclass(frozen=True)
class RecordingStarted:
    pass


@dataclass(frozen=True)
class StartRecordingTimers:
    pass


@dataclass(frozen=True)
class CancelTimers:
    pass


@dataclass(frozen=True)
class Progress:
    elapsed: float
    remaining: float
    percent: float
    finishing_up: bool
    frame_count: int


@dataclass(frozen=True)
class ScheduleCompletion:
    delay: float
    reason: StopReason
    frame_count: int


@dataclass(frozen=True)
class AttemptReady:
    attempt: Attempt


@dataclass(frozen=True)
class AttemptRejected:
    error: InsufficientFramesError


@dataclass(frozen=True)
class Aborted:
    pass


Effect = Union[
    CountdownChanged, StartCountdownTimer, RecordingStarted, StartRecordingTimers,
    CancelTimers, Progress, ScheduleCompletion, AttemptReady, AttemptRejected, Aborted,
]


# ═════════════════════════════════════════════════════════════════════════════
#  Pure transition function
# ═════════════════════════════════════════════════════════════════════════════

def validate_frame_count(frame_count: int, minimum: int = MIN_FRAMES) -> None:
    if frame_count < minimum:
        raise InsufficientFramesError(frame_count, minimum)


def build_attempt(frames: tuple[Frame, ...], minimum: int = MIN_FRAMES) -> Attempt:
    """Freeze a buffer into an Attempt, or raise InsufficientFramesError."""
    validate_frame_count(len(frames), minimum)
    return Attempt(
        frames=tuple(frames),
        quality=quick_estimate(frames),
        duration=frames[-1].timestamp if frames else 0.0,
    )


def progress_at(state: RecorderState, now: float, settings: RecorderSettings) -> Progress:
    elapsed = state.elapsed(now)
    remaining = max(0.0, settings.soft_target - elapsed)
    return Progress(
        elapsed=elapsed,
        remaining=remaining,
        percent=min(100.0, elapsed / settings.soft_target * 100.0),
        finishing_up=remaining <= settings.finishing_up,
        frame_count=len(state.frames),
    )


def _begin_recording(now: float) -> tuple[RecorderState, list[Effect]]:
    state = RecorderState(phase=RecorderPhase.RECORDING, started_at=now)
    return state, [RecordingStarted(), StartRecordingTimers()]


def _stop(state: RecorderState, now: float, reason: StopReason,
          settings: RecorderSettings) -> tuple[RecorderState, list[Effect]]:
    stopped = replace(state, phase=RecorderPhase.STOPPING, stop_reason=reason)
    return stopped, [
        CancelTimers(),
        progress_at(state, now, settings),
        ScheduleCompletion(settings.completion_delay, reason, len(state.frames)),
    ]


def transition(state: RecorderState, event: Event,
               settings: RecorderSettings = RecorderSettings()) -> tuple[RecorderState, list[Effect]]:
    """Return the next state plus the effects the driver must apply."""
    phase = state.phase

    if isinstance(event, Start):
        if phase != RecorderPhase.IDLE:
            return state, []
        if settings.countdown == 0:
            return _begin_recording(event.now)
        nxt = RecorderState(phase=RecorderPhase.COUNTING_DOWN, countdown=settings.countdown)
        return nxt, [CountdownChanged(settings.countdown), StartCountdownTimer()]

    if isinstance(event, CountdownTick):
        if phase != RecorderPhase.COUNTING_DOWN:
            return state, []
        remaining = state.countdown - 1
        if remaining <= 0:
            return _begin_recording(event.now)
        return replace(state, countdown=remaining), [CountdownChanged(remaining)]

    if isinstance(event, FrameArrived):
        if phase != RecorderPhase.RECORDING:
            return state, []
        elapsed = state.elapsed(event.now)
        frame = Frame.from_result(event.result, frame_number=len(state.frames), timestamp=elapsed)
        nxt = replace(state, frames=state.frames + (frame,))
        if elapsed >= settings.soft_target:
            return _stop(nxt, event.now, StopReason.SOFT_TARGET, settings)
        return nxt, []

    if isinstance(event, Tick):
        if phase != RecorderPhase.RECORDING:
            return state, []
        if state.elapsed(event.now) >= settings.hard_ceiling:
            return _stop(state, event.now, StopReason.HARD_CEILING, settings)
        return state, [progress_at(state, event.now, settings)]

    if isinstance(event, Stop):
        if phase != RecorderPhase.RECORDING:
            return state, []
        return _stop(state, event.now, event.reason, settings)

    if isinstance(event, CompletionElapsed):
        if phase != RecorderPhase.STOPPING:
            return state, []
        try:
            attempt = build_attempt(state.frames, settings.min_frames)
        except InsufficientFramesError as e:
            return RecorderState(), [AttemptRejected(e)]
        return RecorderState(), [AttemptReady(attempt)]

    if isinstance(event, Abort):
        if phase == RecorderPhase.IDLE:
            return state, []
        return RecorderState(), [CancelTimers(), Aborted()]

    raise TypeError(f"Unknown recorder event: {event!r}")


# ═════════════════════════════════════════════════════════════════════════════
#  Asyncio driver
# ═════════════════════════════════════════════════════════════════════════════

class AttemptRecorder:
    """
    Owns one RecorderState and the timers around it.

    Usage:
        recorder = AttemptRecorder(on_progress=show_progress)
        task = asyncio.create_task(recorder.record())   # countdown starts
        ...
        recorder.push(result)       # from the landmark stream consumer
        recorder.stop()             # manual stop (idempotent)
        attempt = await task        # or InsufficientFramesError / AttemptAbortedError
    """

    def __init__(
        self,
        settings: Optional[RecorderSettings] = None,
        *,
        countdown_interval: float = COUNTDOWN_INTERVAL,
        tick_interval: float = PROGRESS_TICK_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        on_countdown: Optional[Callable[[int], None]] = None,
        on_recording_started: Optional[Callable[[], None]] = None,
        on_progress: Optional[Callable[[Progress], None]] = None,
        on_stopped: Optional[Callable[[ScheduleCompletion], None]] = None,
    ):
        self.settings = settings or RecorderSettings()
        self._countdown_interval = countdown_interval
        self._tick_interval = tick_interval
        self._clock = clock
        self._on_countdown = on_countdown
        self._on_recording_started = on_recording_started
        self._on_progress = on_progress
        self._on_stopped = on_stopped

        self._state = RecorderState()
        self._timers: set[asyncio.Task] = set()
        self._result: Optional[asyncio.Future] = None

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def phase(self) -> RecorderPhase:
        return self._state.phase

    @property
    def is_idle(self) -> bool:
        return self._state.phase == RecorderPhase.IDLE

    # ── Public API ───────────────────────────────────────────────────────

    async def record(self) -> Attempt:
        """Run countdown → recording → completion and return the Attempt."""
        if not self.is_idle or self._result is not None:
            raise SessionStateError("Recorder is busy", detail=self._state.phase.value)

        self._result = asyncio.get_running_loop().create_future()
        fut = self._result
        self._dispatch(Start(self._clock()))
        try:
            return await fut
        except asyncio.CancelledError:
            self.abort()
            raise
        finally:
            self._result = None

    def push(self, result: LandmarkResult) -> None:
        """Offer one detector result. Ignored unless recording."""
        self._dispatch(FrameArrived(result, self._clock()))

    def stop(self, reason: StopReason = StopReason.MANUAL) -> None:
        self._dispatch(Stop(self._clock(), reason))

    def abort(self) -> None:
        """Discard the in-progress attempt. Completed attempts are not affected."""
        self._dispatch(Abort())

    # ── Internals ────────────────────────────────────────────────────────

    def _dispatch(self, event: Event) -> None:
        prev = self._state.phase
        self._state, effects = transition(self._state, event, self.settings)
        if isinstance(event, Stop) and prev != RecorderPhase.RECORDING:
            log.debug("Stop ignored (phase=%s)", prev.value)
        for effect in effects:
            self._apply(effect)

    def _apply(self, effect: Effect) -> None:
        if isinstance(effect, StartCountdownTimer):
            self._spawn(self._countdown_loop())
        elif isinstance(effect, StartRecordingTimers):
            self._spawn(self._progress_loop())
            self._spawn(self._ceiling_timer())
        elif isinstance(effect, CancelTimers):
            self._cancel_timers()
        elif isinstance(effect, ScheduleCompletion):
            log.info("Recording stopped (%s) with %d frames", effect.reason.value, effect.frame_count)
            self._notify(self._on_stopped, effect)
            self._spawn(self._completion_timer(effect.delay))
        elif isinstance(effect, CountdownChanged):
            self._notify(self._on_countdown, effect.value)
        elif isinstance(effect, RecordingStarted):
            log.info("🔴 Recording started")
            self._notify(self._on_recording_started)
        elif isinstance(effect, Progress):
            self._notify(self._on_progress, effect)
        elif isinstance(effect, AttemptReady):
            log.info("Attempt ready: %d frames, %.2fs, quick score %.2f",
                     effect.attempt.frame_count, effect.attempt.duration, effect.attempt.quality)
            self._resolve(result=effect.attempt)
        elif isinstance(effect, AttemptRejected):
            log.warning("Attempt rejected: %s", effect.error)
            self._resolve(error=effect.error)
        elif isinstance(effect, Aborted):
            log.info("Attempt aborted")
            self._resolve(error=AttemptAbortedError("Recording cancelled"))

    def _resolve(self, result: Optional[Attempt] = None, error: Optional[Exception] = None):
        fut = self._result
        if fut is None or fut.done():
            return
        if error is not None:
            fut.set_exception(error)
        else:
            fut.set_result(result)

    def _notify(self, callback, *args):
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            log.error("Recorder callback error: %s", e)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)

    def _cancel_timers(self) -> None:
        current = asyncio.current_task()
        for task in list(self._timers):
            if task is not current:
                task.cancel()

    async def _countdown_loop(self):
        while self._state.phase == RecorderPhase.COUNTING_DOWN:
            await asyncio.sleep(self._countdown_interval)
            self._dispatch(CountdownTick(self._clock()))

    async def _progress_loop(self):
        while self._state.phase == RecorderPhase.RECORDING:
            await asyncio.sleep(self._tick_interval)
            self._dispatch(Tick(self._clock()))

    async def _ceiling_timer(self):
        await asyncio.sleep(self.settings.hard_ceiling)
        self.stop(StopReason.HARD_CEILING)

    async def _completion_timer(self, delay: float):
        await asyncio.sleep(delay)
        self._dispatch(CompletionElapsed())
