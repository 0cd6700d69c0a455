"""Runtime configuration for the baby-monitor motion pipeline.

Every value can be overridden through a ``BABYMON_*`` environment variable;
the CLI flags in ``tools.run_motion_pipeline`` take precedence over both.
"""

from __future__ import annotations

import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# --- Motion detection --------------------------------------------------------
MOTION_THRESHOLD = _env_int("BABYMON_THRESHOLD", 20)
MOTION_MIN_AREA = _env_int("BABYMON_MIN_AREA", 2500)
MOTION_COOLDOWN_MS = _env_int("BABYMON_COOLDOWN_MS", 1200)
MOTION_USE_ROI = _env_bool("BABYMON_USE_ROI", False)
MOTION_BEEP_ENABLED = _env_bool("BABYMON_BEEP", False)

# --- Camera --------------------------------------------------------------------
CAMERA_INDEX = os.environ.get("BABYMON_CAMERA", "0")
CAMERA_WIDTH = _env_int("BABYMON_CAMERA_WIDTH", 1280)
CAMERA_HEIGHT = _env_int("BABYMON_CAMERA_HEIGHT", 720)
TARGET_FPS = _env_int("BABYMON_TARGET_FPS", 30)

# --- Backend (realtime database + object storage) ----------------------------
DATABASE_URL = os.environ.get("BABYMON_DATABASE_URL", "")
STORAGE_BUCKET = os.environ.get("BABYMON_STORAGE_BUCKET", "")
BACKEND_AUTH_TOKEN = os.environ.get("BABYMON_AUTH_TOKEN") or None
BACKEND_TIMEOUT_MS = _env_int("BABYMON_BACKEND_TIMEOUT_MS", 5000)

# --- Telemetry ---------------------------------------------------------------------
TELEMETRY_PATH = os.environ.get("BABYMON_TELEMETRY_PATH", "inkubator/realtime")
TELEMETRY_POLL_MS = _env_int("BABYMON_TELEMETRY_POLL_MS", 1000)
