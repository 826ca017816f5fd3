"""
Holistic Client — MediaPipe webcam landmark producer
────────────────────────────────────────────────────
Model  : holistic_landmarker (float16)
Output : one event per camera frame → ws://host:8000/ws/landmarks

    {
      "event_id":  "evt_…",
      "timestamp": ISO-8601,
      "landmarks": {"pose": [33]|null, "left_hand": [21]|null,
                    "right_hand": [21]|null, "face": null}
    }

Only derived points leave this process; video frames never do.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
import urllib.request
import uuid
from datetime import datetime, timezone
from pathlib import Path

import cv2
import orjson
import websockets

# ─── Windows fix for MediaPipe 0.10.x Tasks API ─────────────────────────────
if sys.platform == "win32":
    import ctypes
    _orig_cdll_getattr = ctypes.CDLL.__getattr__

    def _patched_cdll_getattr(self, name):
        try:
            return _orig_cdll_getattr(self, name)
        except AttributeError:
            if name == "free":
                return ctypes.cdll.msvcrt.free
            raise
    ctypes.CDLL.__getattr__ = _patched_cdll_getattr

import mediapipe as mp

from signcapture.config import (
    CAM_HEIGHT,
    CAM_WIDTH,
    CAMERA_INDEX,
    LANDMARK_WS_URL,
    RECONNECT_DELAY,
    TARGET_FPS,
)
from signcapture.core.environment import assess
from signcapture.core.landmarks import Frame, LandmarkResult
from signcapture.core.preview import draw_frame

log = logging.getLogger("holistic_client")

FRAME_INTERVAL = 1.0 / TARGET_FPS

# ── Model ────────────────────────────────────────────────────────────────
MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/"
    "holistic_landmarker/holistic_landmarker/float16/latest/holistic_landmarker.task"
)
MODEL_DIR = Path(__file__).parent / "models"
MODEL_PATH = MODEL_DIR / "holistic_landmarker.task"

# ── MediaPipe Tasks API ─────────────────────────────────────────────────
BaseOptions = mp.tasks.BaseOptions
HolisticLandmarker = mp.tasks.vision.HolisticLandmarker
HolisticLandmarkerOpts = mp.tasks.vision.HolisticLandmarkerOptions
VisionRunningMode = mp.tasks.vision.RunningMode


def ensure_model() -> str:
    MODEL_DIR.mkdir(parents=True, exist_ok=True)
    if MODEL_PATH.exists():
        log.info("Model: %s", MODEL_PATH)
        return str(MODEL_PATH)
    log.info("Downloading holistic_landmarker model …")
    urllib.request.urlretrieve(MODEL_URL, str(MODEL_PATH))
    log.info("Saved: %s", MODEL_PATH)
    return str(MODEL_PATH)


def _landmark_list(value):
    """Tasks results carry either a flat landmark list or a list of lists."""
    if not value:
        return None
    if isinstance(value[0], (list, tuple)):
        return value[0] or None
    return value


def to_result(res) -> LandmarkResult:
    """Convert a HolisticLandmarkerResult into the inbound stream contract."""
    return LandmarkResult.from_parts(
        pose=_landmark_list(getattr(res, "pose_landmarks", None)),
        left_hand=_landmark_list(getattr(res, "left_hand_landmarks", None)),
        right_hand=_landmark_list(getattr(res, "right_hand_landmarks", None)),
    )


def make_event(result: LandmarkResult) -> dict:
    body = result.to_dict()
    body["face"] = None
    return {
        "event_id": f"evt_{uuid.uuid4().hex[:12]}",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "landmarks": body,
    }


# ═════════════════════════════════════════════════════════════════════════════
#  HUD
# ═════════════════════════════════════════════════════════════════════════════

def draw_hud(frame, result: LandmarkResult, fps: float):
    h, w = frame.shape[:2]
    reading = assess(result)
    col = (0, 255, 120) if reading.can_proceed else (0, 100, 255)

    overlay = frame.copy()
    cv2.rectangle(overlay, (0, 0), (w, 54), (10, 10, 10), -1)
    cv2.addWeighted(overlay, 0.75, frame, 0.25, 0, frame)

    cv2.putText(frame, "READY" if reading.can_proceed else "NOT READY", (14, 26),
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, col, 2, cv2.LINE_AA)
    cv2.putText(frame,
                f"light {reading.lighting_quality:.2f} {reading.lighting_label}   "
                f"hands {reading.hand_visibility:.2f} {reading.hand_label}",
                (14, 46), cv2.FONT_HERSHEY_SIMPLEX, 0.45, (160, 160, 160), 1, cv2.LINE_AA)
    cv2.putText(frame, f"{fps:.0f} FPS", (w - 110, 26),
                cv2.FONT_HERSHEY_SIMPLEX, 0.65, (80, 180, 255), 2, cv2.LINE_AA)


# ═════════════════════════════════════════════════════════════════════════════
#  MAIN LOOP
# ═════════════════════════════════════════════════════════════════════════════

async def run(url: str = LANDMARK_WS_URL):
    model_path = ensure_model()

    cap = cv2.VideoCapture(CAMERA_INDEX)
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, CAM_WIDTH)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, CAM_HEIGHT)
    if not cap.isOpened():
        log.error("Cannot open camera %d", CAMERA_INDEX)
        sys.exit(1)
    log.info("Camera %d×%d", int(cap.get(3)), int(cap.get(4)))

    opts = HolisticLandmarkerOpts(
        base_options=BaseOptions(model_asset_path=model_path),
        running_mode=VisionRunningMode.VIDEO,
        min_face_detection_confidence=0.5,
        min_pose_detection_confidence=0.5,
        min_pose_landmarks_confidence=0.5,
        min_hand_landmarks_confidence=0.5,
    )
    det = HolisticLandmarker.create_from_options(opts)

    ws = None
    drain = None

    async def _drain(s):
        try:
            async for _ in s:
                pass
        except websockets.exceptions.ConnectionClosed:
            pass

    async def connect():
        nonlocal ws, drain
        if drain and not drain.done():
            drain.cancel()
        while ws is None:
            try:
                ws = await websockets.connect(
                    url, max_size=2**22,
                    ping_interval=20, ping_timeout=10, close_timeout=5,
                )
                drain = asyncio.create_task(_drain(ws))
                log.info("WS → %s", url)
            except OSError as e:
                log.warning("WS fail (%s), retry %.0fs", e, RECONNECT_DELAY)
                await asyncio.sleep(RECONNECT_DELAY)

    await connect()
    ts_ms = 0
    fps = 0.0
    pt = time.monotonic()

    try:
        while True:
            t0 = time.monotonic()

            ok, frame = cap.read()
            if not ok:
                await asyncio.sleep(0.01)
                continue

            frame = cv2.flip(frame, 1)
            rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

            img = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
            ts_ms += int(FRAME_INTERVAL * 1000)
            result = to_result(det.detect_for_video(img, ts_ms))

            draw_frame(frame, Frame.from_result(result, frame_number=0, timestamp=0.0))

            try:
                await ws.send(orjson.dumps(make_event(result)))
            except websockets.exceptions.ConnectionClosed:
                log.warning("WS send fail, reconnecting …")
                ws = None
                await connect()

            now = time.monotonic()
            fps = 1.0 / (now - pt) if (now - pt) > 0 else 0
            pt = now

            draw_hud(frame, result, fps)
            cv2.imshow("Sign Capture — Camera", frame)
            if cv2.waitKey(1) & 0xFF == 27:
                break

            sl = FRAME_INTERVAL - (time.monotonic() - t0)
            if sl > 0:
                await asyncio.sleep(sl)

    finally:
        det.close()
        cap.release()
        cv2.destroyAllWindows()
        if drain and not drain.done():
            drain.cancel()
        if ws:
            await ws.close()
        log.info("Done.")


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s │ %(levelname)-7s │ %(message)s",
        datefmt="%H:%M:%S",
    )
    print("╔════════════════════════════════════════════════════════════╗")
    print("║  Sign Capture — Holistic landmark producer                ║")
    print("║                                                           ║")
    print("║  Streams pose + hand points to the landmark relay         ║")
    print("║  Press ESC to quit                                        ║")
    print("╚════════════════════════════════════════════════════════════╝")
    asyncio.run(run())


if __name__ == "__main__":
    main()
