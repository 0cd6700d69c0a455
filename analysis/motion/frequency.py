from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque

WINDOW_MS = 60_000.0

# Expected periodic movement of a sleeping baby, per minute.
NORMAL_RATE_LOW = 6
NORMAL_RATE_HIGH = 9


@dataclass(frozen=True)
class FrequencyReading:
    rate_per_minute: int
    is_abnormal: bool
    became_abnormal: bool  # True only on the Normal -> Abnormal cycle


def abnormal_alert_message(rate_per_minute: int) -> str:
    return (
        f"Abnormal motion: {rate_per_minute}/min "
        f"(normal: {NORMAL_RATE_LOW}-{NORMAL_RATE_HIGH})"
    )


class FrequencyAnalyzer:
    """Sliding-window motion rate with an edge-triggered abnormal latch.

    Each call to :meth:`observe` trims timestamps older than the window,
    records the current cycle if it had motion and compares the count with
    ``high_bound``. The latch reports ``became_abnormal`` exactly once per
    transition into the abnormal state; dropping back to normal is silent.
    """

    def __init__(self, window_ms: float = WINDOW_MS, high_bound: int = NORMAL_RATE_HIGH) -> None:
        self._window_ms = float(window_ms)
        self._high_bound = int(high_bound)
        self._timestamps: Deque[float] = deque()
        self._abnormal = False

    @property
    def is_abnormal(self) -> bool:
        return self._abnormal

    @property
    def rate_per_minute(self) -> int:
        return len(self._timestamps)

    def reset(self) -> None:
        self._timestamps.clear()
        self._abnormal = False

    def observe(self, motion_present: bool, now_ms: float) -> FrequencyReading:
        now = float(now_ms)
        ts = self._timestamps
        # Appended in time order, so expired entries are always at the left.
        while ts and now - ts[0] > self._window_ms:
            ts.popleft()
        if motion_present:
            ts.append(now)

        rate = len(ts)
        is_abnormal = rate > self._high_bound
        became_abnormal = is_abnormal and not self._abnormal
        self._abnormal = is_abnormal
        return FrequencyReading(
            rate_per_minute=rate,
            is_abnormal=is_abnormal,
            became_abnormal=became_abnormal,
        )
