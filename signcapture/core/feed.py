"""
Landmark Feed — fans the detector stream out to its two consumers.

The stream client is the single producer and pushes into a bounded
asyncio.Queue. One consumer task pulls each result and routes it by the
recorder's phase:

    idle           → EnvironmentMonitor.update()   (readiness meters)
    counting_down  → EnvironmentMonitor.update()
    recording      → AttemptRecorder.push()        (buffered)
    stopping       → dropped

Frame order is preserved because there is exactly one consumer.
"""

import asyncio
import logging
from typing import Callable, Optional

from signcapture.config import STREAM_QUEUE_SIZE
from signcapture.core.environment import EnvironmentMonitor, EnvironmentReading
from signcapture.core.landmarks import LandmarkResult
from signcapture.core.recorder import AttemptRecorder, RecorderPhase

log = logging.getLogger("feed")


class LandmarkFeed:
    def __init__(
        self,
        recorder: AttemptRecorder,
        monitor: EnvironmentMonitor,
        maxsize: int = STREAM_QUEUE_SIZE,
        on_reading: Optional[Callable[[EnvironmentReading], None]] = None,
        on_result: Optional[Callable[[LandmarkResult], None]] = None,
    ):
        self._recorder = recorder
        self._monitor = monitor
        self._queue: asyncio.Queue[LandmarkResult] = asyncio.Queue(maxsize=maxsize)
        self._on_reading = on_reading
        self._on_result = on_result
        self._dropped = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def offer(self, result: LandmarkResult) -> None:
        """Producer side. When the consumer falls behind, the oldest result is dropped."""
        if self._queue.full():
            try:
                self._queue.get_nowait()
                self._dropped += 1
            except asyncio.QueueEmpty:
                pass
        self._queue.put_nowait(result)

    def route(self, result: LandmarkResult) -> None:
        """Deliver one result to whichever consumer the recorder phase selects."""
        phase = self._recorder.phase
        if phase == RecorderPhase.RECORDING:
            self._recorder.push(result)
        elif phase in (RecorderPhase.IDLE, RecorderPhase.COUNTING_DOWN):
            reading = self._monitor.update(result)
            if self._on_reading is not None:
                self._on_reading(reading)
        if self._on_result is not None:
            self._on_result(result)

    async def drain(self):
        """Consumer loop; runs until cancelled."""
        while True:
            result = await self._queue.get()
            try:
                self.route(result)
            except Exception as e:
                log.error("Feed consumer error: %s", e)
            finally:
                self._queue.task_done()

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.drain())
        return self._task

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._dropped:
            log.info("Feed stopped (%d results dropped under load)", self._dropped)
