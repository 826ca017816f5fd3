"""
Landmark Relay Server
──────────────────────
FastAPI + Uvicorn + orjson

Endpoints:
  ws://host:8000/ws/landmarks   — landmark events (holistic client → consumers)
  GET  /health                  — relay health
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Set

import orjson
import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from signcapture.config import RELAY_HOST, RELAY_PORT

LANDMARK_REQUIRED_KEYS = {"event_id", "timestamp", "landmarks"}

log = logging.getLogger("relay")


# ─── Connection Manager ─────────────────────────────────────────────────────
class ConnectionManager:
    """
    Registry of subscribers for one landmark channel.

    A producer never reads its own socket, so relayed events skip the sender;
    echoing them back would only fill its receive buffer.
    """

    def __init__(self, channel: str) -> None:
        self.channel = channel
        self._subscribers: Set[WebSocket] = set()
        self.relayed = 0
        self.rejected = 0

    @property
    def client_count(self) -> int:
        return len(self._subscribers)

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self._subscribers.add(ws)
        log.info("[%s] +1 subscriber, %d connected", self.channel, self.client_count)

    def disconnect(self, ws: WebSocket) -> None:
        self._subscribers.discard(ws)
        log.info("[%s] -1 subscriber, %d connected", self.channel, self.client_count)

    def reject(self) -> None:
        self.rejected += 1

    async def ingest(self, event: bytes, sender: WebSocket) -> None:
        """Relay one validated event to every subscriber except its sender."""
        self.relayed += 1
        peers = [ws for ws in self._subscribers if ws is not sender]
        if not peers:
            return
        delivered = await asyncio.gather(*(self._deliver(ws, event) for ws in peers))
        for ws, ok in zip(peers, delivered):
            if not ok:
                log.debug("[%s] dropping closed subscriber", self.channel)
                self._subscribers.discard(ws)

    @staticmethod
    async def _deliver(ws: WebSocket, event: bytes) -> bool:
        if ws.client_state != WebSocketState.CONNECTED:
            return False
        try:
            await ws.send_bytes(event)
        except (RuntimeError, WebSocketDisconnect):
            return False
        return True


landmark_manager = ConnectionManager("landmarks")


# ─── FastAPI App ─────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("Relay is READY")
    log.info("  ws://localhost:%d/ws/landmarks", RELAY_PORT)
    yield
    log.info("Relay shutdown (%d messages relayed)", landmark_manager.relayed)


app = FastAPI(
    title="Sign Capture Landmark Relay",
    version="1.0.0",
    lifespan=lifespan,
)


# ─── Lightweight validation ─────────────────────────────────────────────────
def validate_landmarks(raw: bytes) -> bytes | None:
    """Check required keys exist. Return raw bytes untouched if valid."""
    try:
        obj = orjson.loads(raw)
    except orjson.JSONDecodeError:
        return None
    if not isinstance(obj, dict):
        return None
    if not LANDMARK_REQUIRED_KEYS.issubset(obj):
        return None
    if not isinstance(obj["landmarks"], dict):
        return None
    return raw


# ─── WebSocket Endpoint ─────────────────────────────────────────────────────
@app.websocket("/ws/landmarks")
async def ws_landmarks(ws: WebSocket) -> None:
    await landmark_manager.connect(ws)
    try:
        while True:
            message = await ws.receive()
            if message.get("type") == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            if message.get("bytes"):
                raw = message["bytes"]
            elif message.get("text"):
                raw = message["text"].encode("utf-8")
            else:
                continue

            validated = validate_landmarks(raw)
            if validated is None:
                landmark_manager.reject()
                continue

            await landmark_manager.ingest(validated, sender=ws)

    except WebSocketDisconnect:
        landmark_manager.disconnect(ws)
    except Exception as exc:
        log.warning("Landmark WS error: %s", exc)
        landmark_manager.disconnect(ws)


# ─── Health check ────────────────────────────────────────────────────────────
@app.get("/health")
async def health():
    return {
        "status": "ok",
        "landmarks": {
            "clients": landmark_manager.client_count,
            "messages_processed": landmark_manager.relayed,
            "messages_rejected": landmark_manager.rejected,
        },
    }


# ─── Entrypoint ──────────────────────────────────────────────────────────────
def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s │ %(levelname)-7s │ %(message)s",
        datefmt="%H:%M:%S",
    )
    uvicorn.run(
        "signcapture.stream.relay_server:app",
        host=RELAY_HOST,
        port=RELAY_PORT,
        log_level="info",
        ws="websockets",
        loop="asyncio",
    )


if __name__ == "__main__":
    main()
