# Sign Contribution Capture
# Configuration

import os

# Contribution backend
API_URL = os.getenv("SIGNCAPTURE_API_URL", "http://localhost:9000")
API_TIMEOUT = float(os.getenv("SIGNCAPTURE_API_TIMEOUT", "15"))

# Landmark relay (holistic client → relay → contribution CLI)
RELAY_HOST = os.getenv("SIGNCAPTURE_RELAY_HOST", "0.0.0.0")
RELAY_PORT = int(os.getenv("SIGNCAPTURE_RELAY_PORT", "8000"))
LANDMARK_WS_URL = os.getenv("SIGNCAPTURE_LANDMARK_WS_URL", "ws://localhost:8000/ws/landmarks")
RECONNECT_DELAY = 2.0
MAX_RECONNECT_DELAY = 30.0
STREAM_QUEUE_SIZE = 256

# Camera / detector
CAMERA_INDEX = int(os.getenv("SIGNCAPTURE_CAMERA_INDEX", "0"))
CAM_WIDTH = 1280
CAM_HEIGHT = 720
TARGET_FPS = 30

# Recording window (seconds)
COUNTDOWN_SECONDS = int(os.getenv("SIGNCAPTURE_COUNTDOWN", "5"))
COUNTDOWN_INTERVAL = 1.0
RECORDING_SOFT_TARGET = float(os.getenv("SIGNCAPTURE_SOFT_TARGET", "3.0"))
RECORDING_HARD_CEILING = float(os.getenv("SIGNCAPTURE_HARD_CEILING", "3.5"))
PROGRESS_TICK_INTERVAL = 0.1
COMPLETION_FLASH_SECONDS = 0.5
FINISHING_UP_SECONDS = 0.5

# Validity
MIN_FRAMES = int(os.getenv("SIGNCAPTURE_MIN_FRAMES", "30"))  # ≈1s at 30 fps
ATTEMPTS_PER_SESSION = int(os.getenv("SIGNCAPTURE_ATTEMPTS", "3"))

# Quality gate
ACCEPTANCE_THRESHOLD = 0.5
HAND_VISIBLE_THRESHOLD = 0.5
SMOOTHNESS_REFERENCE_POINT = 15  # left wrist in the 33-point pose
SMOOTHNESS_THRESHOLDS = {
    "static": float(os.getenv("SIGNCAPTURE_SMOOTHNESS_STATIC", "0.1")),
    "dynamic": float(os.getenv("SIGNCAPTURE_SMOOTHNESS_DYNAMIC", "0.1")),
}
DEFAULT_SMOOTHNESS_THRESHOLD = 0.1

# Environment readiness
MIN_LIGHTING_QUALITY = 0.25
MIN_HAND_VISIBILITY = 0.30
ENVIRONMENT_SMOOTHING = 0.35  # EMA factor for displayed readings, 1.0 = raw

# Preview playback
PREVIEW_FPS = 30
