"""
WebSocket Client — Connects to the landmark relay and streams detector
results (pose + hands per camera frame) to the contribution pipeline.
"""

import asyncio
import logging
from typing import Callable, Optional

import orjson
import websockets

from signcapture.config import MAX_RECONNECT_DELAY, RECONNECT_DELAY
from signcapture.core.landmarks import LandmarkResult

log = logging.getLogger("ws_client")


def parse_event(message) -> Optional[LandmarkResult]:
    """Decode one relay message. Returns None for anything that isn't a landmark event."""
    try:
        event = orjson.loads(message)
    except orjson.JSONDecodeError as e:
        log.warning("Bad message: %s", e)
        return None
    if not isinstance(event, dict):
        return None
    body = event.get("landmarks", event)
    if not isinstance(body, dict):
        return None
    return LandmarkResult.from_event(event)


class LandmarkStreamClient:
    """
    Async WebSocket consumer for the landmark relay.
    Connects to ws://host:port/ws/landmarks, parses incoming orjson events
    into LandmarkResults, and hands each one to a callback.

    Usage:
        client = LandmarkStreamClient(url)
        await client.run(on_landmarks=router.offer)
    """

    def __init__(
        self,
        url: str,
        reconnect_delay: float = RECONNECT_DELAY,
        max_reconnect_delay: float = MAX_RECONNECT_DELAY,
    ):
        self._url = url
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay
        self._running = False
        self._connected = False
        self._received = 0

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def received(self) -> int:
        return self._received

    async def run(self, on_landmarks: Callable[[LandmarkResult], None]):
        """Connect → listen → reconnect until stop() is called."""
        self._running = True
        delay = self._reconnect_delay

        while self._running:
            try:
                log.info("Connecting to %s ...", self._url)
                async with websockets.connect(
                    self._url,
                    max_size=2**22,
                    ping_interval=20,
                    ping_timeout=10,
                    close_timeout=5,
                ) as ws:
                    self._connected = True
                    log.info("Connected ✓")
                    delay = self._reconnect_delay  # Reset backoff on success

                    async for message in ws:
                        if not self._running:
                            break
                        result = parse_event(message)
                        if result is None:
                            continue
                        self._received += 1
                        try:
                            on_landmarks(result)
                        except Exception as e:
                            log.error("Callback error: %s", e)

            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not self._running:
                    break
                log.warning("Connection lost (%s). Retrying in %.1fs...", e, delay)
                await asyncio.sleep(delay)
                delay = min(delay * 1.5, self._max_reconnect_delay)
            finally:
                self._connected = False

        log.info("Listener stopped")

    def stop(self):
        self._running = False
