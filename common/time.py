from __future__ import annotations

import time
from datetime import datetime, timezone


def now_ms() -> float:
    return datetime.now(tz=timezone.utc).timestamp() * 1000.0


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def to_iso_utc(ts_ms: float) -> str:
    return datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc).isoformat()


class FpsMeter:
    """Instantaneous frames-per-second from the gap between two ticks."""

    def __init__(self) -> None:
        self._last_ms: float | None = None
        self.fps: int = 0

    def tick(self, t_ms: float) -> int:
        if self._last_ms is not None:
            dt = t_ms - self._last_ms
            self.fps = max(1, round(1000.0 / dt)) if dt > 0 else max(1, self.fps)
        self._last_ms = t_ms
        return self.fps
