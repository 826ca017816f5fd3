import asyncio

import pytest

from signcapture.core.errors import AttemptAbortedError, InsufficientFramesError, SessionStateError
from signcapture.core.recorder import (
    Abort,
    Aborted,
    AttemptReady,
    AttemptRecorder,
    AttemptRejected,
    CancelTimers,
    CompletionElapsed,
    CountdownChanged,
    CountdownTick,
    FrameArrived,
    RecorderPhase,
    RecorderSettings,
    RecorderState,
    RecordingStarted,
    ScheduleCompletion,
    Start,
    StartCountdownTimer,
    Stop,
    StopReason,
    Tick,
    build_attempt,
    transition,
)

SETTINGS = RecorderSettings(countdown=5, soft_target=3.0, hard_ceiling=3.5,
                            completion_delay=0.5, min_frames=30)


def _recording(now=100.0):
    state = RecorderState()
    state, _ = transition(state, Start(now), SETTINGS)
    for i in range(SETTINGS.countdown):
        state, _ = transition(state, CountdownTick(now + i + 1), SETTINGS)
    return state


def _push(state, result, count, start, fps=30.0):
    for i in range(count):
        state, effects = transition(state, FrameArrived(result, start + i / fps), SETTINGS)
    return state, effects


# ── Pure transitions ────────────────────────────────────────────────────────

def test_start_begins_countdown():
    state, effects = transition(RecorderState(), Start(0.0), SETTINGS)
    assert state.phase == RecorderPhase.COUNTING_DOWN
    assert state.countdown == 5
    assert effects == [CountdownChanged(5), StartCountdownTimer()]


def test_countdown_reaches_recording():
    state, _ = transition(RecorderState(), Start(0.0), SETTINGS)
    seen = []
    for i in range(5):
        state, effects = transition(state, CountdownTick(float(i + 1)), SETTINGS)
        seen.extend(e.value for e in effects if isinstance(e, CountdownChanged))
    assert seen == [4, 3, 2, 1]
    assert state.phase == RecorderPhase.RECORDING
    assert state.started_at == 5.0
    assert any(isinstance(e, RecordingStarted) for e in effects)


def test_start_while_busy_is_ignored():
    state = _recording()
    assert transition(state, Start(200.0), SETTINGS) == (state, [])


def test_frames_outside_recording_are_ignored(result_factory):
    idle = RecorderState()
    assert transition(idle, FrameArrived(result_factory(), 1.0), SETTINGS) == (idle, [])

    counting, _ = transition(idle, Start(0.0), SETTINGS)
    assert transition(counting, FrameArrived(result_factory(), 0.5), SETTINGS)[0] == counting


def test_frames_get_sequential_numbers_and_relative_timestamps(result_factory):
    state = _recording(now=100.0)
    state, _ = _push(state, result_factory(), 10, start=105.0)

    assert [f.frame_number for f in state.frames] == list(range(10))
    assert state.frames[0].timestamp == pytest.approx(0.0)
    assert state.frames[9].timestamp == pytest.approx(9 / 30)


def test_frame_past_soft_target_stops_recording(result_factory):
    state = _recording(now=0.0)
    state, _ = transition(state, FrameArrived(result_factory(), 5.0 + 1.0), SETTINGS)
    state, effects = transition(state, FrameArrived(result_factory(), 5.0 + 3.01), SETTINGS)

    assert state.phase == RecorderPhase.STOPPING
    assert state.stop_reason == StopReason.SOFT_TARGET
    assert len(state.frames) == 2
    assert CancelTimers() in effects
    assert any(isinstance(e, ScheduleCompletion) and e.delay == 0.5 for e in effects)


def test_tick_past_hard_ceiling_stops_recording():
    state = _recording(now=0.0)
    state, effects = transition(state, Tick(5.0 + 1.0), SETTINGS)
    assert state.phase == RecorderPhase.RECORDING

    state, effects = transition(state, Tick(5.0 + 3.6), SETTINGS)
    assert state.phase == RecorderPhase.STOPPING
    assert state.stop_reason == StopReason.HARD_CEILING


def test_stop_is_idempotent(result_factory):
    state = _recording(now=0.0)
    state, _ = transition(state, Stop(6.0), SETTINGS)
    assert state.phase == RecorderPhase.STOPPING

    again, effects = transition(state, Stop(6.1, StopReason.HARD_CEILING), SETTINGS)
    assert again == state
    assert effects == []
    assert again.stop_reason == StopReason.MANUAL

    assert transition(RecorderState(), Stop(0.0), SETTINGS) == (RecorderState(), [])


def test_no_frames_accepted_after_stop(result_factory):
    state = _recording(now=0.0)
    state, _ = _push(state, result_factory(), 5, start=5.0)
    state, _ = transition(state, Stop(5.5), SETTINGS)
    state, _ = transition(state, FrameArrived(result_factory(), 5.6), SETTINGS)
    assert len(state.frames) == 5


def test_29_frames_rejected_as_too_short(result_factory):
    state = _recording(now=0.0)
    state, _ = _push(state, result_factory(), 29, start=5.0)
    state, _ = transition(state, Stop(6.0), SETTINGS)
    state, effects = transition(state, CompletionElapsed(), SETTINGS)

    assert state.phase == RecorderPhase.IDLE
    assert len(effects) == 1 and isinstance(effects[0], AttemptRejected)
    assert effects[0].error.frame_count == 29
    assert "too short" in str(effects[0].error)


def test_30_frames_accepted(result_factory):
    state = _recording(now=0.0)
    state, _ = _push(state, result_factory(), 30, start=5.0)
    state, _ = transition(state, Stop(6.5), SETTINGS)
    state, effects = transition(state, CompletionElapsed(), SETTINGS)

    assert state == RecorderState()
    attempt = effects[0].attempt
    assert isinstance(effects[0], AttemptReady)
    assert attempt.frame_count == 30
    assert attempt.duration == pytest.approx(29 / 30)
    assert attempt.quality == pytest.approx(1.0)


def test_abort_discards_buffer(result_factory):
    state = _recording(now=0.0)
    state, _ = _push(state, result_factory(), 12, start=5.0)
    state, effects = transition(state, Abort(), SETTINGS)
    assert state == RecorderState()
    assert effects == [CancelTimers(), Aborted()]
    assert transition(state, Abort(), SETTINGS) == (state, [])


def test_build_attempt_floor(sequence_factory):
    with pytest.raises(InsufficientFramesError):
        build_attempt(tuple(sequence_factory(29)))
    assert build_attempt(tuple(sequence_factory(30))).frame_count == 30


def test_settings_require_ceiling_above_soft_target():
    with pytest.raises(ValueError):
        RecorderSettings(soft_target=3.0, hard_ceiling=3.0)


def test_unknown_event_raises():
    with pytest.raises(TypeError):
        transition(RecorderState(), object(), SETTINGS)


# ── Asyncio driver ──────────────────────────────────────────────────────────

def _fast(**overrides):
    values = dict(countdown=0, soft_target=5.0, hard_ceiling=6.0, completion_delay=0.01, min_frames=30)
    values.update(overrides)
    return RecorderSettings(**values)


def test_driver_manual_stop_returns_attempt(result_factory):
    async def scenario():
        stopped = []
        recorder = AttemptRecorder(_fast(), tick_interval=0.01, on_stopped=stopped.append)
        task = asyncio.create_task(recorder.record())
        await asyncio.sleep(0)
        assert recorder.phase == RecorderPhase.RECORDING

        for _ in range(35):
            recorder.push(result_factory())
        recorder.stop()
        recorder.stop()
        recorder.push(result_factory())

        attempt = await task
        return attempt, recorder, stopped

    attempt, recorder, stopped = asyncio.run(scenario())
    assert attempt.frame_count == 35
    assert recorder.is_idle
    assert len(stopped) == 1 and stopped[0].reason == StopReason.MANUAL


def test_driver_countdown_then_hard_ceiling(result_factory):
    async def scenario():
        counts = []
        recorder = AttemptRecorder(
            _fast(countdown=2, soft_target=0.05, hard_ceiling=0.08),
            countdown_interval=0.01,
            tick_interval=0.5,
            on_countdown=counts.append,
        )
        task = asyncio.create_task(recorder.record())
        with pytest.raises(InsufficientFramesError):
            await task
        return counts, recorder

    counts, recorder = asyncio.run(scenario())
    assert counts == [2, 1]
    assert recorder.is_idle


def test_driver_abort_keeps_recorder_usable(result_factory):
    async def scenario():
        recorder = AttemptRecorder(_fast(), tick_interval=0.01)
        task = asyncio.create_task(recorder.record())
        await asyncio.sleep(0)
        recorder.push(result_factory())
        recorder.abort()
        with pytest.raises(AttemptAbortedError):
            await task

        task = asyncio.create_task(recorder.record())
        await asyncio.sleep(0)
        for _ in range(30):
            recorder.push(result_factory())
        recorder.stop()
        return await task

    attempt = asyncio.run(scenario())
    assert attempt.frame_count == 30


def test_driver_rejects_concurrent_record():
    async def scenario():
        recorder = AttemptRecorder(_fast(), tick_interval=0.01)
        task = asyncio.create_task(recorder.record())
        await asyncio.sleep(0)
        with pytest.raises(SessionStateError):
            await recorder.record()
        recorder.abort()
        with pytest.raises(AttemptAbortedError):
            await task

    asyncio.run(scenario())
